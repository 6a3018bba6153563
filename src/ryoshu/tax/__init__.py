"""
ryoshu.tax
~~~~~~~~~~
Billing computation: consumption tax strategies and stamp-duty brackets.
"""

from .billing import (
    BillingFigures,
    ExclusiveTaxStrategy,
    InclusiveTaxStrategy,
    STAMP_DUTY_BRACKETS,
    calculate,
    get_strategy,
    stamp_duty,
)

__all__ = [
    "BillingFigures",
    "ExclusiveTaxStrategy",
    "InclusiveTaxStrategy",
    "STAMP_DUTY_BRACKETS",
    "calculate",
    "get_strategy",
    "stamp_duty",
]
