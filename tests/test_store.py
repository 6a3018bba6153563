"""
tests/test_store.py
~~~~~~~~~~~~~~~~~~~
Tests for ryoshu.store — seeding, issuer CRUD, history ordering, persistence
round-trips, corruption recovery and failed writes.
"""

from __future__ import annotations

import json
from dataclasses import replace
from decimal import Decimal

import pytest

from ryoshu.defaults import DEFAULT_ISSUER_ID, default_issuers
from ryoshu.exceptions import IssuerNotFoundError
from ryoshu.models import Issuer
from ryoshu.storage.memory import MemoryStorage
from ryoshu.store import HISTORY_KEY, ISSUERS_KEY, ReceiptStore


class TestSeeding:
    def test_empty_storage_seeds_default_issuer(self, store):
        assert [i.id for i in store.issuers] == [DEFAULT_ISSUER_ID]
        assert store.issuers[0].name == default_issuers()[0].name

    def test_seed_is_not_persisted_until_mutation(self, memory_storage):
        ReceiptStore(memory_storage)
        assert memory_storage.get_item(ISSUERS_KEY) is None
        assert memory_storage.write_count == 0

    def test_empty_history(self, store):
        assert store.history == []

    def test_hanko_image_passed_to_seed(self, memory_storage):
        s = ReceiptStore(memory_storage, hanko_image="stamp.png")
        assert s.issuers[0].hanko_image == "stamp.png"

    def test_stored_empty_list_is_respected(self):
        storage = MemoryStorage({ISSUERS_KEY: "[]"})
        assert ReceiptStore(storage).issuers == []


class TestIssuers:
    def test_add_assigns_id(self, store, sample_issuer):
        added = store.add_issuer(replace(sample_issuer, id=None))
        assert added.id is not None
        assert added.id > DEFAULT_ISSUER_ID
        assert store.find_issuer(added.id).name == "山田商店"

    def test_add_keeps_explicit_id(self, store, sample_issuer):
        assert store.add_issuer(sample_issuer).id == 42

    def test_ids_are_unique_for_rapid_adds(self, store):
        ids = {store.add_issuer(Issuer(name=f"n{i}")).id for i in range(5)}
        assert len(ids) == 5

    def test_add_appends_in_order(self, store):
        store.add_issuer(Issuer(name="A"))
        store.add_issuer(Issuer(name="B"))
        assert [i.name for i in store.issuers][-2:] == ["A", "B"]

    def test_find_accepts_string_id(self, store):
        assert store.find_issuer(str(DEFAULT_ISSUER_ID)) is not None

    def test_find_unknown_returns_none(self, store):
        assert store.find_issuer(999) is None
        assert store.find_issuer("abc") is None
        assert store.find_issuer(None) is None

    def test_find_returns_copy(self, store):
        found = store.find_issuer(DEFAULT_ISSUER_ID)
        found.name = "changed"
        assert store.find_issuer(DEFAULT_ISSUER_ID).name != "changed"

    def test_update_in_place(self, store):
        store.add_issuer(Issuer(name="second"))
        updated = store.update_issuer(DEFAULT_ISSUER_ID, Issuer(id=777, name="renamed"))
        assert updated.id == DEFAULT_ISSUER_ID
        assert store.issuers[0].name == "renamed"
        assert store.issuers[1].name == "second"

    def test_update_unknown_raises(self, store):
        with pytest.raises(IssuerNotFoundError) as exc_info:
            store.update_issuer(999, Issuer(name="x"))
        assert exc_info.value.issuer_id == 999

    def test_remove(self, store):
        assert store.remove_issuer(DEFAULT_ISSUER_ID) is True
        assert store.issuers == []

    def test_remove_unknown_is_noop(self, store, memory_storage):
        assert store.remove_issuer(999) is False
        assert memory_storage.write_count == 0

    def test_restore_after_delete(self, store):
        store.remove_issuer(DEFAULT_ISSUER_ID)
        assert store.restore_default_issuers() == 1
        assert store.find_issuer(DEFAULT_ISSUER_ID) is not None

    def test_restore_is_idempotent(self, store):
        store.restore_default_issuers()
        store.restore_default_issuers()
        ids = [i.id for i in store.issuers]
        assert ids.count(DEFAULT_ISSUER_ID) == 1

    def test_restore_keeps_custom_issuers(self, store, sample_issuer):
        store.add_issuer(sample_issuer)
        store.remove_issuer(DEFAULT_ISSUER_ID)
        store.restore_default_issuers()
        assert {i.id for i in store.issuers} == {42, DEFAULT_ISSUER_ID}

    def test_restore_when_present_does_not_write(self, store, memory_storage):
        assert store.restore_default_issuers() == 0
        assert memory_storage.write_count == 0


class TestHistory:
    def test_most_recent_first(self, store, sample_record):
        first  = replace(sample_record, receipt_number="R-1")
        second = replace(sample_record, receipt_number="R-2")
        store.add_history_record(first)
        store.add_history_record(second)
        assert [r.receipt_number for r in store.history] == ["R-2", "R-1"]

    def test_snapshot_survives_issuer_edit(self, store, sample_record):
        store.add_issuer(sample_record.issuer)
        store.add_history_record(sample_record)
        store.update_issuer(42, Issuer(name="別の名前"))
        assert store.history[0].issuer.name == "山田商店"

    def test_snapshot_survives_issuer_delete(self, store, sample_record):
        store.add_issuer(sample_record.issuer)
        store.add_history_record(sample_record)
        store.remove_issuer(42)
        assert store.history[0].issuer.id == 42

    def test_remove_by_index(self, store, sample_record):
        store.add_history_record(replace(sample_record, receipt_number="R-1"))
        store.add_history_record(replace(sample_record, receipt_number="R-2"))
        removed = store.remove_history_record(1)
        assert removed.receipt_number == "R-1"
        assert [r.receipt_number for r in store.history] == ["R-2"]

    def test_remove_out_of_range(self, store):
        with pytest.raises(IndexError):
            store.remove_history_record(0)

    def test_find_by_number(self, store, sample_record):
        store.add_history_record(sample_record)
        assert store.find_history_record("R-20240315-0930") is not None
        assert store.find_history_record("nope") is None

    def test_clear(self, store, sample_record):
        store.add_history_record(sample_record)
        store.add_history_record(sample_record)
        assert store.clear_history() == 2
        assert store.history == []


class TestPersistence:
    def test_round_trip(self, memory_storage, sample_issuer, sample_record):
        s1 = ReceiptStore(memory_storage)
        s1.add_issuer(sample_issuer)
        s1.add_history_record(sample_record)

        s2 = ReceiptStore(memory_storage)
        assert [i.to_dict() for i in s2.issuers] == [i.to_dict() for i in s1.issuers]
        assert s2.history == s1.history

    def test_round_trip_sqlite(self, tmp_path, sample_issuer, sample_record):
        from ryoshu.storage.sqlite import SQLiteStorage

        db = tmp_path / "ryoshu.db"
        with SQLiteStorage(db) as storage:
            s = ReceiptStore(storage)
            s.add_issuer(sample_issuer)
            s.add_history_record(sample_record)

        with SQLiteStorage(db) as storage:
            s = ReceiptStore(storage)
            assert s.find_issuer(42).name == "山田商店"
            assert s.history[0].figures.total_with_tax == Decimal("11550")

    def test_history_with_ad_hoc_issuer_survives_reload(self, memory_storage, sample_record):
        s1 = ReceiptStore(memory_storage)
        s1.add_history_record(sample_record)
        s1.add_history_record(replace(sample_record, issuer=Issuer(name="ad hoc")))

        history = ReceiptStore(memory_storage).history
        assert len(history) == 2
        assert history[0].issuer.id is None
        assert history[0].issuer.name == "ad hoc"
        assert history[1].issuer.id == 42

    def test_camel_case_issuers_keep_their_fields(self):
        raw = json.dumps([{
            "id": 1, "name": "Z", "invoiceNumber": "T112",
            "hankoImage": "hanko.png", "postalCode": "551-0031",
        }])
        issuer = ReceiptStore(MemoryStorage({ISSUERS_KEY: raw})).find_issuer(1)
        assert issuer.invoice_number == "T112"
        assert issuer.hanko_image == "hanko.png"
        assert issuer.postal_code == "551-0031"

    def test_whole_collection_written_per_mutation(self, store, memory_storage):
        store.add_issuer(Issuer(name="A"))
        stored = json.loads(memory_storage.get_item(ISSUERS_KEY))
        assert [d["id"] for d in stored][0] == DEFAULT_ISSUER_ID
        assert len(stored) == 2

    def test_stored_history_is_json_array(self, store, memory_storage, sample_record):
        store.add_history_record(sample_record)
        stored = json.loads(memory_storage.get_item(HISTORY_KEY))
        assert isinstance(stored, list)
        assert stored[0]["receipt_number"] == "R-20240315-0930"


class TestCorruption:
    @pytest.mark.parametrize("raw", [
        "not json",
        '{"id": 1}',
        '[{"name": "missing id"}]',
        '[{"id": "abc", "name": "x"}]',
        '[1, 2, 3]',
    ])
    def test_corrupt_issuers_fall_back_to_defaults(self, raw):
        storage = MemoryStorage({ISSUERS_KEY: raw})
        s = ReceiptStore(storage)
        assert [i.id for i in s.issuers] == [DEFAULT_ISSUER_ID]
        # Healed value is written back
        assert json.loads(storage.get_item(ISSUERS_KEY))[0]["id"] == DEFAULT_ISSUER_ID

    @pytest.mark.parametrize("raw", [
        "{{{",
        '[{"receipt_number": "R-1"}]',
        '[{"receipt_number": "R-1", "date": "2024-13-40", "issuer": {"id": 1, "name": "x"},'
        ' "created_at": "2024-03-15T09:30:00"}]',
        '[{"receipt_number": "R-1", "date": "2024-03-15", "issuer": {"id": 1, "name": "x"},'
        ' "product_amount": "abc", "created_at": "2024-03-15T09:30:00"}]',
    ])
    def test_corrupt_history_falls_back_to_empty(self, raw):
        storage = MemoryStorage({HISTORY_KEY: raw})
        s = ReceiptStore(storage)
        assert s.history == []
        assert storage.get_item(HISTORY_KEY) == "[]"

    def test_healed_value_is_stable(self):
        storage = MemoryStorage({ISSUERS_KEY: "garbage"})
        first = ReceiptStore(storage).issuers
        writes = storage.write_count
        second = ReceiptStore(storage).issuers
        assert [i.to_dict() for i in first] == [i.to_dict() for i in second]
        assert storage.write_count == writes

    def test_corruption_is_logged(self, caplog):
        storage = MemoryStorage({ISSUERS_KEY: "garbage"})
        with caplog.at_level("WARNING", logger="ryoshu.store"):
            ReceiptStore(storage)
        assert "corrupt" in caplog.text

    def test_corrupt_history_does_not_touch_issuers(self, sample_issuer):
        storage = MemoryStorage({
            ISSUERS_KEY: json.dumps([sample_issuer.to_dict()]),
            HISTORY_KEY: "garbage",
        })
        s = ReceiptStore(storage)
        assert [i.id for i in s.issuers] == [42]

    def test_unknown_kind_rejected(self, store):
        with pytest.raises(ValueError):
            store.load("settings")


class TestFailedWrites:
    def test_memory_state_kept(self, store, memory_storage, sample_record):
        memory_storage.fail_writes = True
        store.add_history_record(sample_record)
        assert len(store.history) == 1
        assert store.last_save_ok is False

    def test_failure_is_logged(self, store, memory_storage, caplog):
        memory_storage.fail_writes = True
        with caplog.at_level("ERROR", logger="ryoshu.store"):
            store.add_issuer(Issuer(name="A"))
        assert "Could not persist" in caplog.text

    def test_recovers_after_successful_write(self, store, memory_storage):
        memory_storage.fail_writes = True
        store.add_issuer(Issuer(name="A"))
        memory_storage.fail_writes = False
        store.add_issuer(Issuer(name="B"))
        assert store.last_save_ok is True
        assert len(json.loads(memory_storage.get_item(ISSUERS_KEY))) == 3
