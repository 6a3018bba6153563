"""
ryoshu.cli
~~~~~~~~~~
Command-line interface for ryoshu.

Entry point registered in pyproject.toml::

    [project.scripts]
    ryoshu = "ryoshu.cli:main"

Usage examples
--------------
    ryoshu --version

    # Figures only
    ryoshu --calc --amount 10000 --paper

    # Issue a receipt from the default issuer and export a PDF
    ryoshu --issue --issuer 1 --customer "山田太郎" --amount 10000 --pdf

    # Issuers
    ryoshu --list-issuers
    ryoshu --add-issuer --name "Shop" --postal-code 5510031 --lookup-address
    ryoshu --delete-issuer 1700000000000
    ryoshu --restore-defaults

    # History
    ryoshu --history
    ryoshu --show 0 --html out.html
    ryoshu --delete-history 0
    ryoshu --clear-history

    # Use a separate project or database
    ryoshu --history --project shop-2025
    ryoshu --history --db /tmp/receipts.db
"""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import contextmanager
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Iterator, Optional

from ryoshu.config import Config
from ryoshu.exceptions import InvalidImageError, IssuerNotSelectedError, RenderError, StorageError
from ryoshu.postal import PostalCodeClient
from ryoshu.printing import ReceiptPrinter
from ryoshu.render import TextFormatter, build_document
from ryoshu.service import ReceiptForm, ReceiptService
from ryoshu.storage import get_storage
from ryoshu.storage.project import (
    ProjectLayout,
    layout_from_db_path,
    resolve_project,
    validate_project_name,
)
from ryoshu.store import ReceiptStore
from ryoshu.utils import format_yen


# ---------------------------------------------------------------------------
# CLI class
# ---------------------------------------------------------------------------

class RyoshuCLI:
    """
    Args:
        config:  Optional Config instance.
        db_path: Explicit SQLite path — overrides the project layout.
        project: Project name — selects ~/.ryoshu/<project>/.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        db_path: Path | None = None,
        project: str | None = None,
    ) -> None:
        self.config = config or Config()
        if not (db_path or project):
            db_path = self.config.db_path
        self.layout: ProjectLayout = (
            layout_from_db_path(db_path) if db_path
            else resolve_project(project or self.config.project)
        )
        self.text = TextFormatter()

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    def print_version(self) -> None:
        try:
            print(f"ryoshu version: {version('ryoshu')}")
        except PackageNotFoundError:
            print("ryoshu version: unknown")

    @contextmanager
    def _store(self) -> Iterator[ReceiptStore]:
        with get_storage(self.layout.db_path) as storage:
            yield ReceiptStore(storage, hanko_image=self.config.default_hanko_image)

    def _warn_if_unsaved(self, store: ReceiptStore) -> None:
        if not store.last_save_ok:
            print(f"⚠  Changes could not be saved to {self.layout.db_path}.", file=sys.stderr)

    def _print_figures(self, figures) -> None:
        W   = 36
        div = "─" * W
        print(div)
        print(f"  商品計     : {format_yen(figures.product_amount):>14} 円")
        if figures.shipping_amount:
            print(f"  送料       : {format_yen(figures.shipping_amount):>14} 円")
        print(f"  消費税     : {format_yen(figures.tax_amount):>14} 円  ({figures.tax_rate_percent}%, {figures.tax_mode})")
        print(f"  合計       : {format_yen(figures.total_with_tax):>14} 円")
        print(f"  印紙税     : {format_yen(figures.stamp_duty):>14} 円")
        print(div)

    # ------------------------------------------------------------------
    # Receipts
    # ------------------------------------------------------------------

    def calc(self, form: ReceiptForm) -> int:
        """Print the figures for ``form`` without issuing anything."""
        with self._store() as store:
            figures = ReceiptService(store, self.config).preview(form)
        self._print_figures(figures)
        return 0

    def issue_receipt(
        self,
        form: ReceiptForm,
        pdf: Path | bool | None = None,
        html: Path | bool | None = None,
        open_viewer: bool = False,
    ) -> int:
        """Issue, record and optionally export a receipt. Returns exit code."""
        with self._store() as store:
            try:
                record = ReceiptService(store, self.config).issue(form)
            except IssuerNotSelectedError as exc:
                print(f"[error] {exc}", file=sys.stderr)
                return 1
            saved = store.last_save_ok

        print(self.text.format(build_document(record)))
        if not saved:
            print("⚠  Receipt issued but could not be saved to history.", file=sys.stderr)
        return self._export(record, pdf, html, open_viewer)

    def _export(self, record, pdf, html, open_viewer: bool) -> int:
        printer = ReceiptPrinter(self.layout, self.config)
        written: list[Path] = []
        try:
            if pdf:
                written.append(printer.export_pdf(record, None if pdf is True else pdf))
            if html:
                written.append(printer.export_html(record, None if html is True else html))
        except (RenderError, OSError) as exc:
            print(f"✗  Export failed: {exc}", file=sys.stderr)
            return 1

        for path in written:
            print(f"   → {path}")
        if open_viewer and written:
            result = printer.open(written[0])
            if not result.success:
                print(f"⚠  {result.error_message}", file=sys.stderr)
        return 0

    # ------------------------------------------------------------------
    # Issuers
    # ------------------------------------------------------------------

    def list_issuers(self) -> int:
        with self._store() as store:
            issuers = store.issuers
        if not issuers:
            print("No issuers registered.")
            return 0
        for issuer in issuers:
            print(f"[{issuer.id}] {issuer.name}")
            if issuer.postal_code:
                print(f"     〒{issuer.postal_code}")
            for line in issuer.address_lines:
                print(f"     {line}")
            if issuer.phone:
                print(f"     TEL: {issuer.phone}")
            print(f"     インボイス番号: {issuer.invoice_number or '—'}")
        return 0

    def add_issuer(
        self,
        name: str,
        postal_code: str = "",
        address: str = "",
        phone: str = "",
        invoice_number: str = "",
        hanko_file: Path | None = None,
        lookup_address: bool = False,
    ) -> int:
        if not name.strip():
            print("[error] --name is required.", file=sys.stderr)
            return 1

        if lookup_address and postal_code:
            address, result = PostalCodeClient(self.config).fill_address(address, postal_code)
            if not result.success:
                print(f"⚠  {result.error_message} Enter the address manually.", file=sys.stderr)

        hanko = None
        if hanko_file:
            try:
                hanko = Path(hanko_file).read_bytes()
            except OSError as exc:
                print(f"[error] Could not read hanko image: {exc}", file=sys.stderr)
                return 1

        with self._store() as store:
            try:
                issuer = ReceiptService(store, self.config).create_issuer(
                    name=name.strip(),
                    postal_code=postal_code,
                    address=address,
                    phone=phone,
                    invoice_number=invoice_number,
                    hanko=hanko,
                )
            except InvalidImageError as exc:
                print(f"[error] {exc}", file=sys.stderr)
                return 1
            self._warn_if_unsaved(store)
        print(f"✓  Issuer saved: [{issuer.id}] {issuer.name}")
        return 0

    def delete_issuer(self, issuer_id: str) -> int:
        with self._store() as store:
            removed = store.remove_issuer(issuer_id)
            self._warn_if_unsaved(store)
        if not removed:
            print(f"[error] No issuer with id {issuer_id}.", file=sys.stderr)
            return 1
        print(f"✓  Issuer {issuer_id} deleted.")
        return 0

    def restore_defaults(self) -> int:
        with self._store() as store:
            added = store.restore_default_issuers()
            self._warn_if_unsaved(store)
        if added:
            print(f"✓  Restored {added} default issuer(s).")
        else:
            print("Default issuers are already present.")
        return 0

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def show_history(self) -> int:
        with self._store() as store:
            history = store.history
        if not history:
            print("No receipts issued yet.")
            return 0
        for idx, r in enumerate(history):
            print(f"  {idx:>3}  {r.receipt_number:<16} {r.date}  "
                  f"{r.addressee:<20} ¥{format_yen(r.figures.total_with_tax):>12}")
        return 0

    def show_receipt(self, index: int, pdf=None, html=None, open_viewer: bool = False) -> int:
        with self._store() as store:
            history = store.history
        if not 0 <= index < len(history):
            print(f"[error] No receipt at position {index}.", file=sys.stderr)
            return 1
        record = history[index]
        print(self.text.format(build_document(record)))
        return self._export(record, pdf, html, open_viewer)

    def delete_history(self, index: int) -> int:
        with self._store() as store:
            try:
                removed = store.remove_history_record(index)
            except IndexError as exc:
                print(f"[error] {exc}", file=sys.stderr)
                return 1
            self._warn_if_unsaved(store)
        print(f"✓  Receipt {removed.receipt_number} deleted from history.")
        return 0

    def clear_history(self) -> int:
        with self._store() as store:
            count = store.clear_history()
            self._warn_if_unsaved(store)
        print(f"✓  {count} receipt(s) removed from history.")
        return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="ryoshu: issue Japanese receipts (領収書) with tax and stamp-duty figures.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--version", action="store_true",
        help="Show package version and exit.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose output.",
    )

    # -- Receipt ----------------------------------------------------------
    receipt_group = parser.add_argument_group("Receipt")
    receipt_group.add_argument(
        "--issue", action="store_true",
        help="Issue a receipt and record it in history.",
    )
    receipt_group.add_argument(
        "--calc", action="store_true",
        help="Only print the tax / total / stamp-duty figures.",
    )
    receipt_group.add_argument("--issuer", default=None, metavar="ID", help="Issuer id.")
    receipt_group.add_argument("--customer", default="", metavar="NAME", help="Customer name.")
    receipt_group.add_argument(
        "--title", default="", choices=["", "様", "御中"],
        help="Honorific after the customer name (default from config).",
    )
    receipt_group.add_argument("--amount", default="0", help="Product amount in yen.")
    receipt_group.add_argument(
        "--shipping", default=None,
        help="Shipping amount in yen (enables the shipping line).",
    )
    receipt_group.add_argument("--description", default="", help="Purpose line (但し書き).")
    receipt_group.add_argument("--date", default="", metavar="YYYY-MM-DD", help="Transaction date.")
    receipt_group.add_argument("--number", default="", help="Receipt number (generated if omitted).")
    kind = receipt_group.add_mutually_exclusive_group()
    kind.add_argument(
        "--electronic", dest="electronic", action="store_true", default=None,
        help="Electronic receipt (no stamp duty).",
    )
    kind.add_argument(
        "--paper", dest="electronic", action="store_false",
        help="Paper receipt (stamp duty applies).",
    )
    parser.set_defaults(electronic=None)
    receipt_group.add_argument(
        "--pdf", nargs="?", const=True, default=None, metavar="FILE",
        help="Export a PDF (to FILE, or the project's pdfs/ directory).",
    )
    receipt_group.add_argument(
        "--html", nargs="?", const=True, default=None, metavar="FILE",
        help="Export a printable HTML page.",
    )
    receipt_group.add_argument(
        "--open", action="store_true",
        help="Open the exported file in the system viewer.",
    )

    # -- Issuers ----------------------------------------------------------
    issuer_group = parser.add_argument_group("Issuers")
    issuer_group.add_argument("--list-issuers", action="store_true", help="List issuers.")
    issuer_group.add_argument("--add-issuer", action="store_true", help="Register an issuer.")
    issuer_group.add_argument("--name", default="", help="Issuer name.")
    issuer_group.add_argument("--postal-code", default="", help="Issuer postal code.")
    issuer_group.add_argument("--address", default="", help="Issuer address.")
    issuer_group.add_argument("--phone", default="", help="Issuer phone number.")
    issuer_group.add_argument("--invoice-number", default="", help="Invoice registration number (T…).")
    issuer_group.add_argument("--hanko", default=None, metavar="FILE", help="Stamp image file.")
    issuer_group.add_argument(
        "--lookup-address", action="store_true",
        help="Fill an empty --address from --postal-code.",
    )
    issuer_group.add_argument("--delete-issuer", default=None, metavar="ID", help="Delete an issuer.")
    issuer_group.add_argument(
        "--restore-defaults", action="store_true",
        help="Re-add the built-in issuer if it was deleted.",
    )

    # -- History ----------------------------------------------------------
    history_group = parser.add_argument_group("History")
    history_group.add_argument("--history", action="store_true", help="List issued receipts.")
    history_group.add_argument("--show", type=int, default=None, metavar="N",
                               help="Show receipt N (0 = most recent).")
    history_group.add_argument("--delete-history", type=int, default=None, metavar="N",
                               help="Delete receipt N from history.")
    history_group.add_argument("--clear-history", action="store_true",
                               help="Delete every receipt from history.")

    # -- Storage ----------------------------------------------------------
    storage_group = parser.add_argument_group("Storage")
    storage_group.add_argument(
        "--db", default=None, metavar="FILE",
        help="SQLite database path (default: ~/.ryoshu/<project>/ryoshu.db).",
    )
    storage_group.add_argument("--project", default=None, metavar="NAME", help="Project name.")

    # -- Web UI -----------------------------------------------------------
    ui_group = parser.add_argument_group("Web UI")
    ui_group.add_argument(
        "--ui", action="store_true",
        help="Start the web API server (requires: pip install ryoshu[ui]).",
    )
    ui_group.add_argument("--host", default="127.0.0.1", metavar="HOST", help="UI server bind address.")
    ui_group.add_argument("--port", default=8000, type=int, metavar="PORT", help="UI server port.")
    ui_group.add_argument("--no-browser", action="store_true",
                          help="Do not open the browser when starting the UI.")
    ui_group.add_argument("--reload", action="store_true",
                          help="Enable hot-reload (development mode).")
    ui_group.add_argument(
        "--log-level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
        metavar="LEVEL",
        help="Log level for the UI server (debug, info, warning, error).",
    )

    return parser


def _form_from_args(args: argparse.Namespace) -> ReceiptForm:
    return ReceiptForm(
        issuer_id=args.issuer,
        customer_name=args.customer,
        customer_title=args.title,
        amount=args.amount,
        shipping=args.shipping,
        shipping_enabled=args.shipping is not None,
        description=args.description,
        date=args.date,
        receipt_number=args.number,
        is_electronic_receipt=args.electronic,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args   = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)-8s %(name)s — %(message)s",
        )

    if args.project:
        error = validate_project_name(args.project)
        if error:
            print(f"[error] Invalid project name {args.project!r}: {error}", file=sys.stderr)
            return 1

    try:
        return _run(parser, args)
    except StorageError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1


def _run(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    db_path = Path(args.db) if args.db else None
    cli = RyoshuCLI(db_path=db_path, project=args.project)

    if args.version:
        cli.print_version()
        return 0

    if args.calc:
        return cli.calc(_form_from_args(args))

    if args.issue:
        return cli.issue_receipt(
            _form_from_args(args),
            pdf=Path(args.pdf) if isinstance(args.pdf, str) else args.pdf,
            html=Path(args.html) if isinstance(args.html, str) else args.html,
            open_viewer=args.open,
        )

    if args.list_issuers:
        return cli.list_issuers()

    if args.add_issuer:
        return cli.add_issuer(
            name=args.name,
            postal_code=args.postal_code,
            address=args.address,
            phone=args.phone,
            invoice_number=args.invoice_number,
            hanko_file=Path(args.hanko) if args.hanko else None,
            lookup_address=args.lookup_address,
        )

    if args.delete_issuer is not None:
        return cli.delete_issuer(args.delete_issuer)

    if args.restore_defaults:
        return cli.restore_defaults()

    if args.history:
        return cli.show_history()

    if args.show is not None:
        return cli.show_receipt(
            args.show,
            pdf=Path(args.pdf) if isinstance(args.pdf, str) else args.pdf,
            html=Path(args.html) if isinstance(args.html, str) else args.html,
            open_viewer=args.open,
        )

    if args.delete_history is not None:
        return cli.delete_history(args.delete_history)

    if args.clear_history:
        return cli.clear_history()

    # -- Web UI ----------------------------------------------------------
    if args.ui:
        from ryoshu.ui.server import launch
        launch(
            host=args.host,
            port=args.port,
            project=args.project,
            db_path=db_path,
            reload=args.reload,
            open_browser=not args.no_browser,
            log_level=args.log_level,
        )
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
