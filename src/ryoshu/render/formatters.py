"""
ryoshu.render.formatters
~~~~~~~~~~~~~~~~~~~~~~~~
Plain-text and HTML layouts for a ``ReceiptDocument``.

The HTML page is self-contained (inline CSS, A4 print size) and escapes
every value that came from user input.
"""

from __future__ import annotations

import logging
from html import escape
from pathlib import Path
from typing import Optional

from ..exceptions import InvalidImageError
from ..utils import image_to_data_uri, load_image_bytes
from .document import ReceiptDocument

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class TextFormatter:
    """Fixed-width text rendering, used by the CLI."""

    width = 44

    def format(self, doc: ReceiptDocument) -> str:
        W    = self.width
        div  = "─" * W
        hdiv = "═" * W
        h, a, b, s, iss = doc.header, doc.amount, doc.breakdown, doc.stamp, doc.issuer

        lines = [
            hdiv,
            f"  {h.title}",
            f"  № {h.receipt_number}",
            f"  {h.date_text}",
            div,
            f"  {doc.party.addressee}",
            div,
            f"  {a.total_text}",
            f"  但　{a.description}",
            f"  {a.acknowledgement}",
            div,
            f"  {b.heading}",
        ]
        lines += [f"    {ln.label:<6}：{ln.value:>14}" for ln in b.lines]
        lines += [
            div,
            f"  [{''.join(s.lines)}]",
            div,
            f"  {iss.name}",
        ]
        lines += [f"  {ln}" for ln in iss.lines]
        lines.append(hdiv)
        return "\n".join(lines)


_CSS = """
@page { size: A4; margin: 0; }
body { margin: 0; padding: 20mm; font-family: -apple-system, BlinkMacSystemFont, 'Hiragino Sans', 'Noto Sans JP', sans-serif; font-size: 12pt; line-height: 1.6; }
.head { display: flex; justify-content: space-between; align-items: flex-start; margin-bottom: 40px; }
.title { font-size: 32px; }
.meta { text-align: right; font-size: 16px; }
.party { font-size: 20px; text-align: center; border-bottom: 2px solid #333; margin-bottom: 30px; }
.total { font-size: 24px; text-align: center; border-bottom: 2px solid #333; margin: 40px 0 20px; }
.purpose { border-bottom: 1px solid #333; margin: 30px 0 20px; }
.ack { text-align: center; margin: 30px 0; }
.lower { display: flex; justify-content: space-between; margin-top: 40px; }
.stamp { width: 52px; height: 52px; border: 2px solid #333; display: flex; flex-direction: column; align-items: center; justify-content: center; font-size: 8px; line-height: 1.05; }
.breakdown { flex: 1; margin-left: 30px; }
.breakdown .row { display: flex; justify-content: space-between; margin-bottom: 8px; }
.issuer { text-align: right; margin-top: 40px; font-size: 14px; position: relative; min-height: 80px; }
.issuer .name { font-size: 18px; font-weight: bold; }
.hanko { position: absolute; right: 0; bottom: -18px; width: 80px; height: 80px; object-fit: contain; opacity: 0.85; }
""".strip()


class HtmlFormatter:
    """
    Standalone A4 HTML page, ready for the browser's print dialog.

    Hanko file references are inlined as ``data:`` URIs (resolved against
    ``assets_dir``) so the page renders wherever it is saved or served.
    """

    def __init__(self, assets_dir: Path | str = ".") -> None:
        self.assets_dir = Path(assets_dir)

    def _hanko_src(self, ref: Optional[str]) -> Optional[str]:
        if not ref:
            return None
        if ref.startswith("data:"):
            return ref
        data = load_image_bytes(ref, self.assets_dir)
        if not data:
            return None
        try:
            return image_to_data_uri(data)
        except InvalidImageError as exc:
            logger.warning("Hanko image %s is not usable, skipping: %s", ref, exc)
            return None

    def format(self, doc: ReceiptDocument) -> str:
        h, a, b, s, iss = doc.header, doc.amount, doc.breakdown, doc.stamp, doc.issuer

        rows = "\n".join(
            f'      <div class="row"><span>{escape(ln.label)}：</span><span>{escape(ln.value)}</span></div>'
            for ln in b.lines
        )
        stamp = "".join(f"<div>{escape(t)}</div>" for t in s.lines)
        issuer_lines = "\n".join(f"    <div>{escape(ln)}</div>" for ln in iss.lines)
        hanko_src = self._hanko_src(iss.hanko_image)
        hanko = (
            f'\n    <img class="hanko" src="{escape(hanko_src, quote=True)}" alt="電子印鑑">'
            if hanko_src else ""
        )

        return f"""<!DOCTYPE html>
<html lang="ja">
<head>
  <meta charset="UTF-8">
  <title>{escape(h.title)} {escape(h.receipt_number)}</title>
  <style>
{_CSS}
  </style>
</head>
<body>
  <div class="head">
    <div class="title">{escape(h.title)}</div>
    <div class="meta"><div>№ {escape(h.receipt_number)}</div><div>{escape(h.date_text)}</div></div>
  </div>
  <div class="party">{escape(doc.party.addressee)}</div>
  <div class="total">{escape(a.total_text)}</div>
  <div class="purpose">但　{escape(a.description)}</div>
  <div class="ack">{escape(a.acknowledgement)}</div>
  <div class="lower">
    <div class="stamp">{stamp}</div>
    <div class="breakdown">
      <div><strong>{escape(b.heading)}</strong></div>
{rows}
    </div>
  </div>
  <div class="issuer">
    <div class="name">{escape(iss.name)}</div>
{issuer_lines}{hanko}
  </div>
</body>
</html>
"""
