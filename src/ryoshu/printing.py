"""
ryoshu.printing
~~~~~~~~~~~~~~~
Hands rendered receipts to the platform's print / PDF pipeline.

Files are written to the project's ``pdfs/`` directory (or an explicit path)
and opened with the system viewer through ``webbrowser``.  Whether the user
actually prints is not tracked; the only failure detected is "no viewer could
be opened", reported as a ``PrintResult`` with instructions.
"""

from __future__ import annotations

import logging
import re
import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import Config
from .models import ReceiptRecord
from .render import HtmlFormatter, PdfFormatter, build_document
from .storage.project import ProjectLayout, resolve_project

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_UNSAFE = re.compile(r"[^\w.-]+")


@dataclass
class PrintResult:
    success:       bool
    path:          Optional[Path] = None
    error_message: Optional[str] = None


class ReceiptPrinter:
    """
    Export receipts as PDF/HTML and open them for printing.

    Args:
        layout: Project layout; exports land in ``layout.pdfs_dir``.
        config: Optional Config instance (hanko images resolve against
                ``config.assets_dir``).
    """

    def __init__(
        self,
        layout: Optional[ProjectLayout] = None,
        config: Optional[Config] = None,
    ) -> None:
        self.config = config or Config()
        self.layout = layout or resolve_project(self.config.project)
        self._pdf   = PdfFormatter(assets_dir=self.config.assets_dir)
        self._html  = HtmlFormatter(assets_dir=self.config.assets_dir)

    def default_path(self, record: ReceiptRecord, suffix: str) -> Path:
        stem = _UNSAFE.sub("_", record.receipt_number).strip("_") or "receipt"
        return self.layout.pdfs_dir / f"{stem}{suffix}"

    def export_pdf(self, record: ReceiptRecord, path: Path | str | None = None) -> Path:
        """Render ``record`` to PDF and write it. Returns the file path."""
        out = Path(path) if path else self.default_path(record, ".pdf")
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(self._pdf.render(build_document(record)))
        logger.info("PDF written: %s", out)
        return out

    def export_html(self, record: ReceiptRecord, path: Path | str | None = None) -> Path:
        """Render ``record`` to a standalone HTML page and write it."""
        out = Path(path) if path else self.default_path(record, ".html")
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(self._html.format(build_document(record)), encoding="utf-8")
        logger.info("HTML written: %s", out)
        return out

    def open(self, path: Path | str) -> PrintResult:
        """Open an exported file in the system viewer for printing."""
        path = Path(path).resolve()
        if not path.exists():
            return PrintResult(success=False, path=path,
                               error_message=f"File not found: {path}")
        try:
            opened = webbrowser.open(path.as_uri())
        except webbrowser.Error as exc:
            logger.warning("Could not open viewer: %s", exc)
            opened = False
        if not opened:
            return PrintResult(
                success=False,
                path=path,
                error_message=(
                    "No viewer could be opened. "
                    f"Open {path} manually and print it from there."
                ),
            )
        return PrintResult(success=True, path=path)
