"""
ryoshu.tax.billing
~~~~~~~~~~~~~~~~~~
Consumption tax (消費税) and stamp duty (印紙税) computation.

Tax modes
---------
exclusive  (canonical)
    The entered amounts are net of tax.
        subtotal = product + shipping
        tax      = floor(subtotal × rate)
        total    = subtotal + tax

inclusive
    The entered product amount already contains tax; the tax portion is
    derived from it and nothing is added on top.
        tax      = floor(product × rate / (1 + rate))     # ÷ 11 at 10 %
        total    = product + shipping

Both modes truncate toward zero and never round up.

Stamp duty
----------
Paper receipts above the bracket thresholds carry a revenue stamp;
electronic receipts are exempt.

Usage::

    from ryoshu.tax.billing import calculate

    figures = calculate(Decimal("10000"), tax_rate=Decimal("0.10"))
    print(figures.total_with_tax)        # 11000
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Protocol

from ..exceptions import UnknownTaxModeError


_ONE  = Decimal("1")
_ZERO = Decimal("0")

DEFAULT_TAX_RATE = Decimal("0.10")

# (inclusive lower bound, duty); highest matching bound wins.
STAMP_DUTY_BRACKETS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("50000000"), Decimal("600")),
    (Decimal("10000000"), Decimal("400")),
    (Decimal("5000000"),  Decimal("200")),
    (Decimal("1000000"),  Decimal("200")),
    (Decimal("500000"),   Decimal("200")),
    (Decimal("100000"),   Decimal("200")),
    (Decimal("50000"),    Decimal("200")),
)


def _floor(d: Decimal) -> Decimal:
    return d.quantize(_ONE, rounding=ROUND_FLOOR)


def _dec(v) -> Decimal:
    return v if isinstance(v, Decimal) else Decimal(str(v))


def stamp_duty(total: Decimal) -> Decimal:
    """Revenue stamp amount for a paper receipt of ``total`` yen."""
    for threshold, duty in STAMP_DUTY_BRACKETS:
        if total >= threshold:
            return duty
    return _ZERO


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class TaxStrategy(Protocol):
    """Turns raw amounts into (subtotal, tax, total)."""

    name: str

    def compute(
        self, product: Decimal, shipping: Decimal, rate: Decimal,
    ) -> tuple[Decimal, Decimal, Decimal]:
        ...


class ExclusiveTaxStrategy:
    """Tax is added on top of net amounts."""

    name = "exclusive"

    def compute(self, product, shipping, rate):
        subtotal = product + shipping
        tax = _floor(subtotal * rate)
        return subtotal, tax, subtotal + tax


class InclusiveTaxStrategy:
    """The product amount already includes tax; shipping is passed through."""

    name = "inclusive"

    def compute(self, product, shipping, rate):
        subtotal = product + shipping
        tax = _floor(product * rate / (_ONE + rate))
        return subtotal, tax, subtotal


_STRATEGIES: dict[str, TaxStrategy] = {
    ExclusiveTaxStrategy.name: ExclusiveTaxStrategy(),
    InclusiveTaxStrategy.name: InclusiveTaxStrategy(),
}


def get_strategy(name: str) -> TaxStrategy:
    """Resolve a tax mode name to its strategy."""
    try:
        return _STRATEGIES[str(name).strip().lower()]
    except KeyError:
        raise UnknownTaxModeError(
            f"Unknown tax mode {name!r}. Known modes: {sorted(_STRATEGIES)}"
        ) from None


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BillingFigures:
    """Display and output figures for one receipt."""

    product_amount:  Decimal
    shipping_amount: Decimal
    subtotal:        Decimal
    tax_amount:      Decimal
    total_with_tax:  Decimal
    stamp_duty:      Decimal
    tax_rate:        Decimal
    tax_mode:        str

    @property
    def tax_rate_percent(self) -> Decimal:
        """Rate as a percentage, e.g. ``Decimal("10")`` or ``Decimal("8.5")``."""
        pct = self.tax_rate * 100
        if pct == pct.to_integral_value():
            return pct.quantize(_ONE)
        return pct.normalize()

    def to_dict(self) -> dict:
        return {
            "product_amount":  int(self.product_amount),
            "shipping_amount": int(self.shipping_amount),
            "subtotal":        int(self.subtotal),
            "tax_amount":      int(self.tax_amount),
            "total_with_tax":  int(self.total_with_tax),
            "stamp_duty":      int(self.stamp_duty),
            "tax_rate":        str(self.tax_rate),
            "tax_mode":        self.tax_mode,
        }


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

def calculate(
    product_amount: Decimal,
    shipping_amount: Decimal = _ZERO,
    tax_rate: Decimal = DEFAULT_TAX_RATE,
    is_electronic_receipt: bool = False,
    tax_mode: str = "exclusive",
) -> BillingFigures:
    """
    Compute subtotal, tax, total and stamp duty.

    Amounts are expected to be validated, non-negative yen values; use
    ``ryoshu.utils.coerce_amount`` on raw form input first.
    """
    product  = _dec(product_amount)
    shipping = _dec(shipping_amount)
    rate     = _dec(tax_rate)
    strategy = get_strategy(tax_mode)

    subtotal, tax, total = strategy.compute(product, shipping, rate)
    duty = _ZERO if is_electronic_receipt else stamp_duty(total)

    return BillingFigures(
        product_amount=product,
        shipping_amount=shipping,
        subtotal=subtotal,
        tax_amount=tax,
        total_with_tax=total,
        stamp_duty=duty,
        tax_rate=rate,
        tax_mode=strategy.name,
    )
