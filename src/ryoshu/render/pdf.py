"""
ryoshu.render.pdf
~~~~~~~~~~~~~~~~~
A4 PDF rendering via PyMuPDF.

Text uses MuPDF's built-in Japanese font (``fontname="japan"``), so no font
files need to be installed.  The hanko image is stamped next to the invoice
number when its reference resolves to image bytes.
"""

from __future__ import annotations

import logging
from pathlib import Path

import fitz  # PyMuPDF

from ..exceptions import RenderError
from ..utils import load_image_bytes
from .document import ReceiptDocument

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

A4_WIDTH, A4_HEIGHT = 595, 842   # points
MARGIN = 56                      # ≈ 20 mm
FONT = "japan"


class PdfFormatter:
    """Render a ``ReceiptDocument`` to PDF bytes."""

    def __init__(self, assets_dir: Path | str = ".") -> None:
        self.assets_dir = Path(assets_dir)

    def render(self, doc: ReceiptDocument) -> bytes:
        """
        Raises:
            RenderError: If PyMuPDF fails to build the page.
        """
        pdf = fitz.open()
        try:
            page = pdf.new_page(width=A4_WIDTH, height=A4_HEIGHT)
            self._draw(page, doc)
            return pdf.tobytes()
        except (RuntimeError, ValueError) as exc:
            raise RenderError("Could not render receipt PDF.", cause=exc) from exc
        finally:
            pdf.close()

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def _text(self, page, rect, text: str, size: float, align=fitz.TEXT_ALIGN_LEFT) -> None:
        page.insert_textbox(fitz.Rect(*rect), text, fontname=FONT, fontsize=size, align=align)

    def _rule(self, page, y: float, width: float = 1.0) -> None:
        page.draw_line(fitz.Point(MARGIN, y), fitz.Point(A4_WIDTH - MARGIN, y), width=width)

    def _draw(self, page, doc: ReceiptDocument) -> None:
        left, right = MARGIN, A4_WIDTH - MARGIN
        h, a, b, s, iss = doc.header, doc.amount, doc.breakdown, doc.stamp, doc.issuer

        # Header
        self._text(page, (left, 50, right, 90), h.title, 28)
        self._text(page, (left, 50, right, 70), f"№ {h.receipt_number}", 12, fitz.TEXT_ALIGN_RIGHT)
        self._text(page, (left, 70, right, 90), h.date_text, 12, fitz.TEXT_ALIGN_RIGHT)

        # Addressee
        self._text(page, (left, 130, right, 160), doc.party.addressee, 18, fitz.TEXT_ALIGN_CENTER)
        self._rule(page, 162, 2)

        # Amount
        self._text(page, (left, 195, right, 230), a.total_text, 22, fitz.TEXT_ALIGN_CENTER)
        self._rule(page, 232, 2)
        self._text(page, (left, 255, right, 275), f"但　{a.description}", 12)
        self._rule(page, 277)
        self._text(page, (left, 300, right, 320), a.acknowledgement, 12, fitz.TEXT_ALIGN_CENTER)

        # Stamp box
        box = fitz.Rect(left, 350, left + 60, 410)
        page.draw_rect(box, width=1.5)
        self._text(page, (box.x0 + 2, box.y0 + 8, box.x1 - 2, box.y1), "\n".join(s.lines), 8,
                   fitz.TEXT_ALIGN_CENTER)

        # Breakdown
        bx = left + 90
        self._text(page, (bx, 350, right, 368), b.heading, 11)
        y = 372
        for ln in b.lines:
            self._text(page, (bx, y, right, y + 18), f"{ln.label}：", 11)
            self._text(page, (bx, y, right, y + 18), ln.value, 11, fitz.TEXT_ALIGN_RIGHT)
            y += 20
        page.draw_line(fitz.Point(bx, y + 4), fitz.Point(right, y + 4), width=1)

        # Issuer
        y = max(y + 40, 500)
        self._text(page, (left, y, right, y + 22), iss.name, 14, fitz.TEXT_ALIGN_RIGHT)
        y += 24
        for ln in iss.lines:
            self._text(page, (left, y, right, y + 18), ln, 10, fitz.TEXT_ALIGN_RIGHT)
            y += 18

        if iss.hanko_image:
            self._stamp_hanko(page, iss.hanko_image, fitz.Rect(right - 70, y - 60, right, y + 10))

    def _stamp_hanko(self, page, ref: str, rect) -> None:
        data = load_image_bytes(ref, self.assets_dir)
        if not data:
            return
        try:
            page.insert_image(rect, stream=data, keep_proportion=True, overlay=True)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Hanko image could not be placed, skipping: %s", exc)
