"""
ryoshu.service
~~~~~~~~~~~~~~
Receipt composition — the "fill in the form, press issue" flow.

``ReceiptService`` turns raw form values into figures (live preview) and into
``ReceiptRecord`` snapshots that are pushed onto the store's history.  Raw
amounts are coerced leniently (unreadable → 0); a missing or unknown issuer
selection is the one input problem that blocks issuing.

Usage::

    service = ReceiptService(ReceiptStore(get_storage()))
    form = service.new_form()
    form.issuer_id = 1
    form.customer_name = "山田太郎"
    form.amount = "10000"
    record = service.issue(form)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from .config import Config
from .exceptions import IssuerNotSelectedError
from .models import Issuer, ReceiptRecord
from .store import ReceiptStore
from .tax.billing import BillingFigures, calculate
from .utils import coerce_amount, generate_receipt_number, image_to_data_uri, parse_date

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass
class ReceiptForm:
    """Raw receipt form values, exactly as entered."""

    issuer_id:             object = None
    customer_name:         str = ""
    customer_title:        str = ""
    amount:                object = None
    shipping:              object = None
    shipping_enabled:      bool = False
    description:           str = ""
    date:                  object = None
    receipt_number:        str = ""
    is_electronic_receipt: Optional[bool] = None
    tax_rate:              object = None


class ReceiptService:
    """
    Builds receipts from form input and records them in the store.

    Args:
        store:  The session's issuer & history store.
        config: Optional Config instance (reads .env by default).
        clock:  Source of "now"; override in tests.
    """

    def __init__(
        self,
        store: ReceiptStore,
        config: Optional[Config] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store    = store
        self.config   = config or Config()
        self.defaults = self.config.get_billing_defaults()
        self._clock   = clock

    # ------------------------------------------------------------------
    # Form lifecycle
    # ------------------------------------------------------------------

    def new_form(self) -> ReceiptForm:
        """A blank form: today's date, a fresh number, shipping off."""
        now = self._clock()
        return ReceiptForm(
            customer_title=self.defaults.customer_title,
            description=self.defaults.description,
            date=now.date().isoformat(),
            receipt_number=generate_receipt_number(now),
            is_electronic_receipt=self.defaults.electronic_receipt,
        )

    def preview(self, form: ReceiptForm) -> BillingFigures:
        """Figures for the summary panel; never raises for bad amounts."""
        product, shipping = self._amounts(form)
        return calculate(
            product,
            shipping,
            tax_rate=self._rate(form),
            is_electronic_receipt=self._electronic(form),
            tax_mode=self.defaults.tax_mode,
        )

    def issue(self, form: ReceiptForm) -> ReceiptRecord:
        """
        Compose a receipt, prepend it to history and persist.

        Raises:
            IssuerNotSelectedError: If ``form.issuer_id`` matches no issuer.
                Nothing is stored in that case.
        """
        issuer = self.store.find_issuer(form.issuer_id)
        if issuer is None:
            raise IssuerNotSelectedError("Please select an issuer before issuing a receipt.")

        now = self._clock()
        product, shipping = self._amounts(form)
        record = ReceiptRecord(
            receipt_number=form.receipt_number.strip() or generate_receipt_number(now),
            date=parse_date(form.date) or now.date(),
            issuer=issuer,
            customer_name=form.customer_name.strip(),
            customer_title=form.customer_title.strip() or self.defaults.customer_title,
            description=form.description.strip() or self.defaults.description,
            product_amount=product,
            shipping_amount=shipping,
            shipping_enabled=bool(form.shipping_enabled),
            tax_rate=self._rate(form),
            tax_mode=self.defaults.tax_mode,
            is_electronic_receipt=self._electronic(form),
            created_at=now,
        )
        self.store.add_history_record(record)
        logger.info("Issued receipt %s for %s (total %s)",
                    record.receipt_number, record.addressee, record.figures.total_with_tax)
        return record

    # ------------------------------------------------------------------
    # Issuers
    # ------------------------------------------------------------------

    def create_issuer(
        self,
        name: str,
        postal_code: str = "",
        address: str = "",
        phone: str = "",
        invoice_number: str = "",
        hanko: Optional[bytes] = None,
    ) -> Issuer:
        """
        Register a new issuer.  ``hanko`` image bytes are embedded as a data URI.

        Raises:
            InvalidImageError: If ``hanko`` is not an image (nothing is stored).
        """
        hanko_image = image_to_data_uri(hanko) if hanko else ""
        return self.store.add_issuer(Issuer(
            name=name,
            postal_code=postal_code,
            address=address,
            phone=phone,
            invoice_number=invoice_number,
            hanko_image=hanko_image,
        ))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _amounts(form: ReceiptForm) -> tuple[Decimal, Decimal]:
        product  = coerce_amount(form.amount)
        shipping = coerce_amount(form.shipping) if form.shipping_enabled else Decimal(0)
        return product, shipping

    def _rate(self, form: ReceiptForm) -> Decimal:
        if form.tax_rate is None or form.tax_rate == "":
            return self.defaults.tax_rate
        try:
            rate = Decimal(str(form.tax_rate))
        except InvalidOperation:
            logger.debug("Ignoring unparseable tax rate %r", form.tax_rate)
            return self.defaults.tax_rate
        if not rate.is_finite() or not 0 <= rate <= 1:
            return self.defaults.tax_rate
        return rate

    def _electronic(self, form: ReceiptForm) -> bool:
        if form.is_electronic_receipt is None:
            return self.defaults.electronic_receipt
        return bool(form.is_electronic_receipt)


__all__ = ["ReceiptForm", "ReceiptService"]
