"""
tests/test_printing.py
~~~~~~~~~~~~~~~~~~~~~~
Tests for ryoshu.printing — PDF/HTML export and handing files to the
system viewer (``webbrowser.open`` mocked).
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from ryoshu.printing import ReceiptPrinter
from ryoshu.storage.project import DB_FILENAME, layout_from_db_path


@pytest.fixture
def printer(tmp_path, default_config) -> ReceiptPrinter:
    layout = layout_from_db_path(tmp_path / DB_FILENAME)
    return ReceiptPrinter(layout, default_config)


class TestExport:
    def test_pdf_default_path(self, printer, sample_record):
        path = printer.export_pdf(sample_record)
        assert path == printer.layout.pdfs_dir / "R-20240315-0930.pdf"
        assert path.read_bytes().startswith(b"%PDF")

    def test_pdf_explicit_path(self, printer, sample_record, tmp_path):
        target = tmp_path / "out" / "receipt.pdf"
        assert printer.export_pdf(sample_record, target) == target
        assert target.exists()

    def test_html_default_path(self, printer, sample_record):
        path = printer.export_html(sample_record)
        assert path.suffix == ".html"
        assert "領収書" in path.read_text(encoding="utf-8")

    def test_unsafe_receipt_number_sanitised(self, printer, sample_record):
        record = replace(sample_record, receipt_number="../evil/name")
        path = printer.default_path(record, ".pdf")
        assert path.parent == printer.layout.pdfs_dir
        assert "/" not in path.name


class TestOpen:
    def test_success(self, mocker, printer, sample_record):
        opener = mocker.patch("ryoshu.printing.webbrowser.open", return_value=True)
        path = printer.export_html(sample_record)
        result = printer.open(path)
        assert result.success
        opener.assert_called_once_with(path.resolve().as_uri())

    def test_no_viewer(self, mocker, printer, sample_record):
        mocker.patch("ryoshu.printing.webbrowser.open", return_value=False)
        result = printer.open(printer.export_html(sample_record))
        assert not result.success
        assert "manually" in result.error_message

    def test_webbrowser_error(self, mocker, printer, sample_record):
        import webbrowser

        mocker.patch("ryoshu.printing.webbrowser.open", side_effect=webbrowser.Error("none"))
        assert not printer.open(printer.export_html(sample_record)).success

    def test_missing_file(self, mocker, printer, tmp_path):
        opener = mocker.patch("ryoshu.printing.webbrowser.open")
        result = printer.open(tmp_path / "missing.pdf")
        assert not result.success
        opener.assert_not_called()
