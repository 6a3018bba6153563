"""
ryoshu
~~~~~~
Japanese receipt (領収書) issuing with consumption tax and stamp-duty figures.

Typical usage::

    from ryoshu import ReceiptService, ReceiptStore, ReceiptForm
    from ryoshu.storage import get_storage

    with get_storage() as storage:
        store = ReceiptStore(storage)
        service = ReceiptService(store)
        form = service.new_form()
        form.issuer_id = 1
        form.amount = "10000"
        record = service.issue(form)
        print(record.figures.total_with_tax)     # 11000
"""

from .config import BillingDefaults, Config, cfg
from .exceptions import (
    InvalidImageError,
    IssuerNotFoundError,
    IssuerNotSelectedError,
    RenderError,
    RyoshuError,
    StorageError,
    UnknownTaxModeError,
)
from .models import Issuer, ReceiptRecord
from .service import ReceiptForm, ReceiptService
from .store import ReceiptStore
from .tax import BillingFigures, calculate, stamp_duty

__all__ = [
    # Core
    "ReceiptService",
    "ReceiptForm",
    "ReceiptStore",
    # Billing
    "BillingFigures",
    "calculate",
    "stamp_duty",
    # Configuration
    "BillingDefaults",
    "Config",
    "cfg",
    # Models
    "Issuer",
    "ReceiptRecord",
    # Exceptions
    "RyoshuError",
    "StorageError",
    "IssuerNotFoundError",
    "IssuerNotSelectedError",
    "UnknownTaxModeError",
    "InvalidImageError",
    "RenderError",
]
