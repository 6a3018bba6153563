"""
ryoshu.render.document
~~~~~~~~~~~~~~~~~~~~~~
Structured receipt document.

A ``ReceiptDocument`` is a fixed sequence of typed sections assembled from a
``ReceiptRecord``.  All wording and number formatting happens here, so the
formatters only decide layout.

    header     — 領収書, number, date
    party      — addressee
    amount     — grand total, purpose line (但し書き), acknowledgement
    breakdown  — 内訳 lines
    stamp      — revenue stamp box (or exemption note)
    issuer     — name, address, phone, invoice number, hanko
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..models import ReceiptRecord
from ..utils import display_receipt_number, format_japanese_date, format_yen

TITLE           = "領収書"
ACKNOWLEDGEMENT = "上記の金額正に領収いたしました"


@dataclass(frozen=True)
class HeaderSection:
    title:          str
    receipt_number: str
    date_text:      str


@dataclass(frozen=True)
class PartySection:
    addressee: str


@dataclass(frozen=True)
class AmountSection:
    total:           Decimal
    description:     str
    acknowledgement: str = ACKNOWLEDGEMENT

    @property
    def total_text(self) -> str:
        return f"¥ {format_yen(self.total)}"


@dataclass(frozen=True)
class BreakdownLine:
    label: str
    value: str


@dataclass(frozen=True)
class BreakdownSection:
    heading: str = "【内訳】"
    lines:   tuple[BreakdownLine, ...] = ()


@dataclass(frozen=True)
class StampSection:
    """The box in the lower-left corner where a revenue stamp would go."""

    electronic: bool
    stamp_duty: Decimal

    @property
    def lines(self) -> tuple[str, ...]:
        if self.electronic:
            return ("電子領収書", "につき印紙", "不要")
        if self.stamp_duty > 0:
            return ("収入印紙", f"{format_yen(self.stamp_duty)}円")
        return ("印紙", "不要")


@dataclass(frozen=True)
class IssuerSection:
    name:           str
    postal_code:    str
    address_lines:  tuple[str, ...]
    phone:          str
    invoice_number: str
    hanko_image:    Optional[str] = None

    @property
    def lines(self) -> tuple[str, ...]:
        """Every printed line below the issuer name, in order."""
        out: list[str] = []
        if self.postal_code:
            out.append(f"〒{self.postal_code}")
        out.extend(self.address_lines)
        if self.phone:
            out.append(f"TEL：{self.phone}")
        if self.invoice_number:
            out.append(f"インボイス登録番号：{self.invoice_number}")
        return tuple(out)


@dataclass(frozen=True)
class ReceiptDocument:
    header:    HeaderSection
    party:     PartySection
    amount:    AmountSection
    breakdown: BreakdownSection
    stamp:     StampSection
    issuer:    IssuerSection

    @property
    def sections(self) -> tuple:
        return (self.header, self.party, self.amount, self.breakdown, self.stamp, self.issuer)


def _breakdown_lines(record: ReceiptRecord) -> tuple[BreakdownLine, ...]:
    f = record.figures
    if f.tax_mode == "inclusive":
        tax_line = BreakdownLine("（内消費税", f"{format_yen(f.tax_amount)} 円）")
    else:
        tax_line = BreakdownLine("消費税", f"{format_yen(f.tax_amount)} 円")

    lines = [
        BreakdownLine("商品計", f"{format_yen(f.product_amount)} 円"),
        tax_line,
        BreakdownLine("消費税率", f"{f.tax_rate_percent}％"),
    ]
    if record.shipping_enabled:
        lines.append(BreakdownLine("送料", f"{format_yen(f.shipping_amount)} 円"))
    return tuple(lines)


def build_document(record: ReceiptRecord) -> ReceiptDocument:
    """Assemble the printable document for ``record``."""
    figures = record.figures
    issuer  = record.issuer
    return ReceiptDocument(
        header=HeaderSection(
            title=TITLE,
            receipt_number=display_receipt_number(record.receipt_number),
            date_text=format_japanese_date(record.date),
        ),
        party=PartySection(addressee=record.addressee),
        amount=AmountSection(total=figures.total_with_tax, description=record.description),
        breakdown=BreakdownSection(lines=_breakdown_lines(record)),
        stamp=StampSection(
            electronic=record.is_electronic_receipt,
            stamp_duty=figures.stamp_duty,
        ),
        issuer=IssuerSection(
            name=issuer.name,
            postal_code=issuer.postal_code,
            address_lines=tuple(issuer.address_lines),
            phone=issuer.phone,
            invoice_number=issuer.invoice_number,
            hanko_image=issuer.hanko_image or None,
        ),
    )
