"""
ryoshu.render
~~~~~~~~~~~~~
Receipt document model and its text / HTML / PDF formatters.
"""

from .document import ReceiptDocument, build_document
from .formatters import HtmlFormatter, TextFormatter
from .pdf import PdfFormatter

__all__ = [
    "HtmlFormatter",
    "PdfFormatter",
    "ReceiptDocument",
    "TextFormatter",
    "build_document",
]
