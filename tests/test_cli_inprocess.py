"""
tests/test_cli_inprocess.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~
In-process tests for RyoshuCLI and ``main`` against a tmp_path database.
"""

from __future__ import annotations

import pytest

from ryoshu.cli import RyoshuCLI, main
from ryoshu.config import Config
from ryoshu.defaults import DEFAULT_ISSUER_ID
from ryoshu.service import ReceiptForm
from ryoshu.storage.memory import MemoryStorage
from ryoshu.storage.sqlite import SQLiteStorage
from ryoshu.store import ReceiptStore


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "ryoshu.db"


@pytest.fixture
def cli(default_config, db_path) -> RyoshuCLI:
    return RyoshuCLI(config=default_config, db_path=db_path)


def _history(db_path):
    with SQLiteStorage(db_path) as storage:
        return ReceiptStore(storage).history


class TestRyoshuCLI:

    def test_print_version(self, capsys):
        RyoshuCLI().print_version()
        assert "ryoshu version" in capsys.readouterr().out

    def test_calc(self, cli, capsys):
        rc = cli.calc(ReceiptForm(amount="10000", is_electronic_receipt=False))
        out = capsys.readouterr().out
        assert rc == 0
        assert "11,000" in out
        assert "1,000" in out

    def test_issue_receipt(self, cli, capsys, db_path):
        rc = cli.issue_receipt(ReceiptForm(issuer_id=DEFAULT_ISSUER_ID, customer_name="山田", amount="10000"))
        out = capsys.readouterr().out
        assert rc == 0
        assert "領収書" in out
        assert "¥ 11,000" in out
        assert len(_history(db_path)) == 1

    def test_issue_without_issuer_fails(self, cli, capsys, db_path):
        rc = cli.issue_receipt(ReceiptForm(amount="10000"))
        assert rc == 1
        assert "issuer" in capsys.readouterr().err
        assert _history(db_path) == []

    def test_issue_with_pdf_export(self, cli, capsys, tmp_path):
        target = tmp_path / "r.pdf"
        rc = cli.issue_receipt(ReceiptForm(issuer_id=1, amount="100"), pdf=target)
        assert rc == 0
        assert target.read_bytes().startswith(b"%PDF")
        assert str(target) in capsys.readouterr().out

    def test_issue_and_open_viewer(self, cli, mocker):
        opener = mocker.patch("ryoshu.printing.webbrowser.open", return_value=False)
        rc = cli.issue_receipt(ReceiptForm(issuer_id=1, amount="100"), html=True, open_viewer=True)
        assert rc == 0
        opener.assert_called_once()

    def test_list_issuers(self, cli, capsys):
        assert cli.list_issuers() == 0
        assert "ZEGRAMTOOLS" in capsys.readouterr().out

    def test_add_issuer(self, cli, capsys):
        assert cli.add_issuer(name="新店舗", phone="06-0000-0000") == 0
        assert "新店舗" in capsys.readouterr().out
        cli.list_issuers()
        assert "新店舗" in capsys.readouterr().out

    def test_add_issuer_requires_name(self, cli):
        assert cli.add_issuer(name="  ") == 1

    def test_add_issuer_with_lookup(self, cli, mocker, db_path):
        result = mocker.Mock(success=True)
        mocker.patch(
            "ryoshu.cli.PostalCodeClient.fill_address",
            return_value=("大阪府大阪市大正区泉尾", result),
        )
        assert cli.add_issuer(name="X", postal_code="5510031", lookup_address=True) == 0
        with SQLiteStorage(db_path) as storage:
            assert ReceiptStore(storage).issuers[-1].address == "大阪府大阪市大正区泉尾"

    def test_add_issuer_bad_hanko(self, cli, tmp_path):
        bad = tmp_path / "hanko.png"
        bad.write_bytes(b"not an image")
        assert cli.add_issuer(name="X", hanko_file=bad) == 1

    def test_delete_and_restore_issuer(self, cli, capsys):
        assert cli.delete_issuer(str(DEFAULT_ISSUER_ID)) == 0
        assert cli.delete_issuer(str(DEFAULT_ISSUER_ID)) == 1
        assert cli.restore_defaults() == 0
        assert "Restored 1" in capsys.readouterr().out
        cli.restore_defaults()
        assert "already present" in capsys.readouterr().out

    def test_history_flow(self, cli, capsys, db_path):
        cli.issue_receipt(ReceiptForm(issuer_id=1, amount="100", receipt_number="R-A"))
        cli.issue_receipt(ReceiptForm(issuer_id=1, amount="200", receipt_number="R-B"))
        capsys.readouterr()

        assert cli.show_history() == 0
        out = capsys.readouterr().out
        assert out.index("R-B") < out.index("R-A")

        assert cli.show_receipt(1) == 0
        assert "№ A" in capsys.readouterr().out
        assert cli.show_receipt(5) == 1

        assert cli.delete_history(0) == 0
        assert [r.receipt_number for r in _history(db_path)] == ["R-A"]
        assert cli.delete_history(3) == 1

        assert cli.clear_history() == 0
        assert _history(db_path) == []

    def test_configured_db_path(self, tmp_path):
        db = tmp_path / "env.db"
        config = Config(_env_file=None, db_path=db)  # type: ignore[call-arg]
        assert RyoshuCLI(config=config).layout.db_path == db.resolve()
        assert RyoshuCLI(config=config, project="shop").layout.name == "shop"

    def test_empty_history(self, cli, capsys):
        assert cli.show_history() == 0
        assert "No receipts" in capsys.readouterr().out


class TestMain:
    def test_help_by_default(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_version(self, capsys):
        assert main(["--version"]) == 0

    def test_calc_paper(self, capsys, db_path):
        assert main(["--calc", "--amount", "5000000", "--paper", "--db", str(db_path)]) == 0
        out = capsys.readouterr().out
        assert "5,500,000" in out
        assert "200" in out

    def test_issue(self, capsys, db_path):
        rc = main(["--issue", "--issuer", "1", "--customer", "山田", "--amount", "10000",
                   "--shipping", "500", "--db", str(db_path)])
        assert rc == 0
        record = _history(db_path)[0]
        assert record.shipping_enabled is True
        assert record.figures.total_with_tax == 11550

    def test_electronic_flags(self, db_path):
        main(["--issue", "--issuer", "1", "--amount", "100", "--paper", "--db", str(db_path)])
        main(["--issue", "--issuer", "1", "--amount", "100", "--electronic", "--db", str(db_path)])
        history = _history(db_path)
        assert history[0].is_electronic_receipt is True
        assert history[1].is_electronic_receipt is False

    def test_ui_launch(self, mocker):
        launch = mocker.patch("ryoshu.ui.server.launch")
        assert main(["--ui", "--no-browser", "--port", "9000"]) == 0
        launch.assert_called_once_with(
            host="127.0.0.1", port=9000, project=None, db_path=None,
            reload=False, open_browser=False, log_level="warning",
        )

    def test_ui_launch_serves_selected_storage(self, mocker, db_path):
        launch = mocker.patch("ryoshu.ui.server.launch")
        assert main(["--ui", "--no-browser", "--project", "shop"]) == 0
        assert launch.call_args.kwargs["project"] == "shop"

        assert main(["--ui", "--no-browser", "--db", str(db_path)]) == 0
        assert launch.call_args.kwargs["db_path"] == db_path

    @pytest.mark.parametrize("name", ["../../x", "Shop", "a/b", "_lead"])
    def test_rejects_unsafe_project_name(self, name, capsys, mocker):
        opened = mocker.patch("ryoshu.cli.get_storage")
        assert main(["--history", "--project", name]) == 1
        assert "Invalid project name" in capsys.readouterr().err
        opened.assert_not_called()

    def test_unopenable_database_is_reported(self, capsys, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        rc = main(["--history", "--db", str(blocker / "sub" / "ryoshu.db")])
        assert rc == 1
        assert "Could not open storage" in capsys.readouterr().err


class TestUnsavedChanges:
    """Every mutating command warns when the storage rejects the write."""

    @pytest.fixture
    def failing_cli(self, cli, mocker):
        storage = MemoryStorage()
        storage.fail_writes = True
        mocker.patch("ryoshu.cli.get_storage", return_value=storage)
        return cli

    def test_add_issuer(self, failing_cli, capsys):
        assert failing_cli.add_issuer(name="X") == 0
        assert "could not be saved" in capsys.readouterr().err

    def test_delete_issuer(self, failing_cli, capsys):
        assert failing_cli.delete_issuer(str(DEFAULT_ISSUER_ID)) == 0
        assert "could not be saved" in capsys.readouterr().err

    def test_restore_defaults(self, cli, capsys, mocker):
        storage = MemoryStorage({"issuers": "[]"})
        storage.fail_writes = True
        mocker.patch("ryoshu.cli.get_storage", return_value=storage)
        assert cli.restore_defaults() == 0
        captured = capsys.readouterr()
        assert "Restored 1" in captured.out
        assert "could not be saved" in captured.err

    def test_clear_history(self, failing_cli, capsys):
        assert failing_cli.clear_history() == 0
        assert "could not be saved" in capsys.readouterr().err

    def test_saved_changes_stay_quiet(self, cli, capsys):
        assert cli.add_issuer(name="X") == 0
        assert capsys.readouterr().err == ""
