"""
ryoshu.models
~~~~~~~~~~~~~
Data models for issuers and issued receipts.

Key design decisions
--------------------
* ``Issuer.id`` is an integer.  The built-in seed uses ``1``; issuers created
  later get a millisecond-timestamp id assigned by the store.

* ``ReceiptRecord`` embeds a *copy* of the issuer taken when the receipt was
  issued.  Editing or deleting the issuer afterwards never changes history.

* ``ReceiptRecord`` stores the raw inputs (amounts, rate, tax mode, electronic
  flag) rather than the computed figures; ``figures`` recomputes them with the
  same strategy, so an old receipt reproduces exactly even after the default
  rate changes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from .tax.billing import DEFAULT_TAX_RATE, BillingFigures, calculate


def _first(d: dict, *keys: str) -> str:
    for key in keys:
        value = d.get(key)
        if value:
            return str(value)
    return ""


# ---------------------------------------------------------------------------
# Issuer
# ---------------------------------------------------------------------------

@dataclass
class Issuer:
    """
    The billing party printed on a receipt.

    All text fields are free-form user input and are not validated.
    ``hanko_image`` is either a relative file path or a ``data:`` URI.
    """

    id:             Optional[int] = None
    name:           str = ""
    postal_code:    str = ""
    address:        str = ""
    phone:          str = ""
    invoice_number: str = ""
    hanko_image:    str = ""

    def copy(self) -> "Issuer":
        return replace(self)

    @property
    def address_lines(self) -> list[str]:
        return [ln for ln in self.address.splitlines() if ln.strip()]

    def to_dict(self) -> dict:
        return {
            "id":             self.id,
            "name":           self.name,
            "postal_code":    self.postal_code,
            "address":        self.address,
            "phone":          self.phone,
            "invoice_number": self.invoice_number,
            "hanko_image":    self.hanko_image,
        }

    @classmethod
    def from_dict(cls, d: dict, *, require_id: bool = True) -> "Issuer":
        """
        Build an issuer from its stored form.

        camelCase keys written by the browser version of the app
        (``postalCode``, ``invoiceNumber``, ``hankoImage``) are read as
        fallbacks.  Snapshots embedded in history may carry ``id: null``;
        pass ``require_id=False`` for those.

        Raises ``KeyError`` / ``TypeError`` / ``ValueError`` when ``d`` is not
        an issuer record (missing id or name, non-integer id).
        """
        raw_id = d["id"] if require_id else d.get("id")
        return cls(
            id=             int(raw_id) if raw_id is not None or require_id else None,
            name=           str(d["name"]),
            postal_code=    _first(d, "postal_code", "postalCode"),
            address=        _first(d, "address"),
            phone=          _first(d, "phone"),
            invoice_number= _first(d, "invoice_number", "invoiceNumber"),
            hanko_image=    _first(d, "hanko_image", "hankoImage"),
        )


# ---------------------------------------------------------------------------
# ReceiptRecord
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReceiptRecord:
    """A historical snapshot of one issued receipt."""

    receipt_number:        str
    date:                  date
    issuer:                Issuer
    customer_name:         str = ""
    customer_title:        str = "様"
    description:           str = ""
    product_amount:        Decimal = field(default_factory=Decimal)
    shipping_amount:       Decimal = field(default_factory=Decimal)
    shipping_enabled:      bool = False
    tax_rate:              Decimal = DEFAULT_TAX_RATE
    tax_mode:              str = "exclusive"
    is_electronic_receipt: bool = True
    created_at:            datetime = field(default_factory=datetime.now)

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    @property
    def figures(self) -> BillingFigures:
        return calculate(
            self.product_amount,
            self.shipping_amount if self.shipping_enabled else Decimal(0),
            tax_rate=self.tax_rate,
            is_electronic_receipt=self.is_electronic_receipt,
            tax_mode=self.tax_mode,
        )

    @property
    def addressee(self) -> str:
        """Customer name with honorific, e.g. ``"山田太郎 様"``."""
        return f"{self.customer_name} {self.customer_title}".strip()

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "receipt_number":        self.receipt_number,
            "date":                  self.date.isoformat(),
            "customer_name":         self.customer_name,
            "customer_title":        self.customer_title,
            "description":           self.description,
            "product_amount":        str(self.product_amount),
            "shipping_amount":       str(self.shipping_amount),
            "shipping_enabled":      self.shipping_enabled,
            "tax_rate":              str(self.tax_rate),
            "tax_mode":              self.tax_mode,
            "is_electronic_receipt": self.is_electronic_receipt,
            "issuer":                self.issuer.to_dict(),
            "created_at":            self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ReceiptRecord":
        """
        Build a record from its stored form.

        Raises ``KeyError`` / ``TypeError`` / ``ValueError`` (including
        ``decimal.InvalidOperation``) on structurally incompatible input.
        """
        return cls(
            receipt_number=        str(d["receipt_number"]),
            date=                  date.fromisoformat(d["date"]),
            issuer=                Issuer.from_dict(d["issuer"], require_id=False),
            customer_name=         d.get("customer_name") or "",
            customer_title=        d.get("customer_title") or "",
            description=           d.get("description") or "",
            product_amount=        Decimal(str(d.get("product_amount", 0))),
            shipping_amount=       Decimal(str(d.get("shipping_amount", 0))),
            shipping_enabled=      bool(d.get("shipping_enabled", False)),
            tax_rate=              Decimal(str(d.get("tax_rate", DEFAULT_TAX_RATE))),
            tax_mode=              d.get("tax_mode") or "exclusive",
            is_electronic_receipt= bool(d.get("is_electronic_receipt", True)),
            created_at=            datetime.fromisoformat(d["created_at"]),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)
