"""
ryoshu.utils
~~~~~~~~~~~~
Small helpers shared by the service, renderers and CLI: form-input coercion,
receipt numbering, yen/date formatting and hanko image capture.

Coercion is deliberately forgiving — a field that cannot be read as an amount
becomes ``0`` instead of raising, matching how the receipt form behaves.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import re
import unicodedata
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .exceptions import InvalidImageError

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RECEIPT_NUMBER_PREFIX = "R-"

# Leading integer, the way the form's parseInt reads "12,000円" → 12000
_LEADING_INT = re.compile(r"^[+-]?\d+")

_DATA_URI = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(?P<b64>;base64)?,(?P<payload>.*)$", re.DOTALL)


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

def coerce_amount(raw: object) -> Decimal:
    """
    Read a yen amount from raw form input.

    Accepts ints, Decimals, floats (truncated) and strings such as
    ``"12,000"``, ``"¥5000"`` or full-width ``"１０００"``.  Anything that is
    missing, non-numeric or negative becomes ``Decimal(0)``.
    """
    if raw is None or isinstance(raw, bool):
        return Decimal(0)

    if isinstance(raw, int):
        return Decimal(max(raw, 0))

    if isinstance(raw, (float, Decimal)):
        value = Decimal(str(raw))
        if not value.is_finite() or value < 0:
            return Decimal(0)
        return Decimal(int(value))

    text = unicodedata.normalize("NFKC", str(raw)).strip()
    text = text.lstrip("¥\\").replace(",", "").strip()
    m = _LEADING_INT.match(text)
    if not m:
        return Decimal(0)
    value = int(m.group(0))
    return Decimal(value) if value > 0 else Decimal(0)


def format_yen(amount: Decimal | int) -> str:
    """``12345`` → ``"12,345"``."""
    return f"{int(amount):,}"


# ---------------------------------------------------------------------------
# Receipt numbers and dates
# ---------------------------------------------------------------------------

def generate_receipt_number(now: Optional[datetime] = None) -> str:
    """Return a receipt number in the form ``R-YYYYMMDD-HHMM``."""
    now = now or datetime.now()
    return f"{RECEIPT_NUMBER_PREFIX}{now:%Y%m%d-%H%M}"


def display_receipt_number(number: str) -> str:
    """The printed number drops the ``R-`` prefix: ``R-20240315-0930`` → ``20240315-0930``."""
    return number.replace(RECEIPT_NUMBER_PREFIX, "", 1)


def format_japanese_date(d: date) -> str:
    """``date(2024, 3, 5)`` → ``"2024年03月05日"``."""
    return f"{d.year}年{d.month:02d}月{d.day:02d}日"


def parse_date(raw: object) -> Optional[date]:
    """Parse an ISO ``YYYY-MM-DD`` form value; ``None`` when empty or invalid."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not raw:
        return None
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError:
        logger.debug("Ignoring unparseable date %r", raw)
        return None


# ---------------------------------------------------------------------------
# Hanko images
# ---------------------------------------------------------------------------

def image_to_data_uri(data: bytes) -> str:
    """
    Embed uploaded image bytes as a ``data:`` URI.

    Raises:
        InvalidImageError: If Pillow cannot identify the bytes as an image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise InvalidImageError("Uploaded hanko file is not a readable image.", cause=exc) from exc

    mime = Image.MIME.get(fmt or "")
    if not mime:
        raise InvalidImageError(f"Unsupported hanko image format: {fmt}")
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{encoded}"


def load_image_bytes(ref: str, base_dir: Path | str = ".") -> Optional[bytes]:
    """
    Resolve a hanko reference to raw image bytes.

    ``ref`` is a ``data:`` URI or a path (relative paths resolve against
    ``base_dir``).  Returns ``None`` when nothing usable is found.
    """
    if not ref:
        return None

    m = _DATA_URI.match(ref)
    if m:
        payload = m.group("payload")
        if not m.group("b64"):
            return payload.encode("utf-8")
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Hanko data URI is not valid base64; skipping image.")
            return None

    path = Path(ref)
    if not path.is_absolute():
        path = Path(base_dir) / path
    if not path.is_file():
        logger.debug("Hanko image not found: %s", path)
        return None
    return path.read_bytes()
