"""
ryoshu.store
~~~~~~~~~~~~
The issuer & history store.

``ReceiptStore`` owns the two in-memory collections and keeps each one
mirrored to a single key of a ``KeyValueStorage``:

  ``issuers``         — JSON array of issuers, in display order
  ``receiptHistory``  — JSON array of receipt records, most recent first

Every mutation rewrites the whole collection under its key.  A stored value
that cannot be decoded is replaced by the defaults (seed issuers / empty
history) and written back, so corruption heals itself on the next load.

If a write fails, the in-memory collection keeps the change and the failure
is logged; ``last_save_ok`` reports whether the last write went through.

Usage::

    from ryoshu.storage import get_storage
    from ryoshu.store import ReceiptStore

    store = ReceiptStore(get_storage())
    issuer = store.find_issuer(1)
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import replace
from typing import Callable, Optional

from .defaults import default_issuers
from .exceptions import IssuerNotFoundError, StorageError
from .models import Issuer, ReceiptRecord
from .storage.base import KeyValueStorage

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

ISSUERS_KEY = "issuers"
HISTORY_KEY = "receiptHistory"
KINDS = (ISSUERS_KEY, HISTORY_KEY)

# Everything a structurally wrong snapshot can raise while being decoded.
_DECODE_ERRORS = (ValueError, TypeError, KeyError, AttributeError, ArithmeticError)


class ReceiptStore:
    """
    In-memory issuers and receipt history backed by durable storage.

    Args:
        storage:     Where snapshots are read from and written to.
        hanko_image: Stamp image reference given to the seeded default issuer.
        autoload:    Load both collections immediately.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        hanko_image: str = "hanko.png",
        autoload: bool = True,
    ) -> None:
        self.storage = storage
        self.hanko_image = hanko_image
        self.last_save_ok = True
        self._issuers: list[Issuer] = []
        self._history: list[ReceiptRecord] = []
        if autoload:
            self.load_all()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def issuers(self) -> list[Issuer]:
        return [i.copy() for i in self._issuers]

    @property
    def history(self) -> list[ReceiptRecord]:
        return list(self._history)

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def load_all(self) -> None:
        for kind in KINDS:
            self.load(kind)

    def load(self, kind: str) -> list:
        """
        Replace the in-memory collection with the stored snapshot.

        Missing key → defaults.  Undecodable snapshot → defaults, re-persisted.
        Never raises for storage or parse problems.
        """
        self._check_kind(kind)
        try:
            raw = self.storage.get_item(kind)
        except StorageError as exc:
            logger.error("Could not read %s, using defaults: %s", kind, exc)
            self._set(kind, self._defaults(kind))
            return self._get(kind)

        if raw is None:
            self._set(kind, self._defaults(kind))
            return self._get(kind)

        try:
            items = self._decode(kind, raw)
        except _DECODE_ERRORS as exc:
            logger.warning("Stored %s is corrupt (%s: %s); restoring defaults.",
                           kind, type(exc).__name__, exc)
            self._set(kind, self._defaults(kind))
            self.save(kind)
            return self._get(kind)

        self._set(kind, items)
        logger.debug("Loaded %d %s", len(items), kind)
        return self._get(kind)

    def save(self, kind: str) -> bool:
        """
        Overwrite the stored snapshot with the full in-memory collection.

        Returns False (and logs) if the storage rejected the write; the
        in-memory state is kept either way.
        """
        self._check_kind(kind)
        items = self._issuers if kind == ISSUERS_KEY else self._history
        payload = json.dumps([item.to_dict() for item in items], ensure_ascii=False)
        try:
            self.storage.set_item(kind, payload)
        except StorageError as exc:
            logger.error("Could not persist %s; keeping in-memory state: %s", kind, exc)
            self.last_save_ok = False
            return False
        self.last_save_ok = True
        return True

    # ------------------------------------------------------------------
    # Issuers
    # ------------------------------------------------------------------

    def add_issuer(self, issuer: Issuer) -> Issuer:
        """Append an issuer, assigning an id if it has none."""
        new = issuer.copy()
        if new.id is None:
            new.id = self._next_issuer_id()
        self._issuers.append(new)
        self.save(ISSUERS_KEY)
        logger.info("Added issuer %s (%s)", new.id, new.name)
        return new.copy()

    def update_issuer(self, issuer_id: int | str, issuer: Issuer) -> Issuer:
        """
        Overwrite the issuer with ``issuer_id`` in place.

        The id and list position are kept.

        Raises:
            IssuerNotFoundError: If no issuer has this id.
        """
        idx = self._index_of(issuer_id)
        if idx is None:
            raise IssuerNotFoundError(f"No issuer with id {issuer_id!r}.", issuer_id=issuer_id)
        updated = replace(issuer, id=self._issuers[idx].id)
        self._issuers[idx] = updated
        self.save(ISSUERS_KEY)
        return updated.copy()

    def remove_issuer(self, issuer_id: int | str) -> bool:
        """Remove the issuer with ``issuer_id``. Returns True if one was removed."""
        idx = self._index_of(issuer_id)
        if idx is None:
            return False
        removed = self._issuers.pop(idx)
        self.save(ISSUERS_KEY)
        logger.info("Removed issuer %s (%s)", removed.id, removed.name)
        return True

    def find_issuer(self, issuer_id: int | str | None) -> Optional[Issuer]:
        idx = self._index_of(issuer_id)
        return self._issuers[idx].copy() if idx is not None else None

    def restore_default_issuers(self) -> int:
        """Re-add any built-in issuer whose id is missing. Returns how many were added."""
        present = {i.id for i in self._issuers}
        missing = [d for d in default_issuers(self.hanko_image) if d.id not in present]
        if missing:
            self._issuers.extend(missing)
            self.save(ISSUERS_KEY)
        return len(missing)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_history_record(self, record: ReceiptRecord) -> ReceiptRecord:
        """Prepend ``record`` so the history stays most-recent-first."""
        snapshot = replace(record, issuer=record.issuer.copy())
        self._history.insert(0, snapshot)
        self.save(HISTORY_KEY)
        return snapshot

    def remove_history_record(self, index: int) -> ReceiptRecord:
        """
        Remove the record at ``index`` (0 = most recent).

        Raises:
            IndexError: If ``index`` is outside the history.
        """
        if not 0 <= index < len(self._history):
            raise IndexError(f"No receipt at position {index} (history has {len(self._history)}).")
        removed = self._history.pop(index)
        self.save(HISTORY_KEY)
        return removed

    def find_history_record(self, receipt_number: str) -> Optional[ReceiptRecord]:
        return next((r for r in self._history if r.receipt_number == receipt_number), None)

    def clear_history(self) -> int:
        """Remove every record. Returns how many were removed."""
        count = len(self._history)
        self._history = []
        self.save(HISTORY_KEY)
        return count

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_kind(kind: str) -> None:
        if kind not in KINDS:
            raise ValueError(f"Unknown collection {kind!r}; expected one of {KINDS}.")

    def _defaults(self, kind: str) -> list:
        return default_issuers(self.hanko_image) if kind == ISSUERS_KEY else []

    def _get(self, kind: str) -> list:
        return self.issuers if kind == ISSUERS_KEY else self.history

    def _set(self, kind: str, items: list) -> None:
        if kind == ISSUERS_KEY:
            self._issuers = items
        else:
            self._history = items

    @staticmethod
    def _decode(kind: str, raw: str) -> list:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise TypeError(f"expected a JSON array, got {type(data).__name__}")
        parse: Callable[[dict], object] = (
            Issuer.from_dict if kind == ISSUERS_KEY else ReceiptRecord.from_dict
        )
        return [parse(item) for item in data]

    @staticmethod
    def _coerce_id(issuer_id: object) -> Optional[int]:
        if issuer_id is None or isinstance(issuer_id, bool):
            return None
        try:
            return int(str(issuer_id).strip())
        except ValueError:
            return None

    def _index_of(self, issuer_id: object) -> Optional[int]:
        wanted = self._coerce_id(issuer_id)
        if wanted is None:
            return None
        for idx, issuer in enumerate(self._issuers):
            if issuer.id == wanted:
                return idx
        return None

    def _next_issuer_id(self) -> int:
        now_ms = int(time.time() * 1000)
        highest = max((i.id for i in self._issuers if i.id is not None), default=0)
        return max(now_ms, highest + 1)
