"""
tests/conftest.py
~~~~~~~~~~~~~~~~~
Shared pytest fixtures for the ryoshu test suite.
"""

from __future__ import annotations

import io
from datetime import date, datetime
from decimal import Decimal

import pytest
from PIL import Image

from ryoshu.config import Config
from ryoshu.models import Issuer, ReceiptRecord
from ryoshu.service import ReceiptService
from ryoshu.storage.memory import MemoryStorage
from ryoshu.store import ReceiptStore

FIXED_NOW = datetime(2024, 3, 15, 9, 30)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@pytest.fixture
def default_config(tmp_path) -> Config:
    return Config(_env_file=None, assets_dir=tmp_path)  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# Storage / store
# ---------------------------------------------------------------------------

@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(memory_storage) -> ReceiptStore:
    return ReceiptStore(memory_storage)


@pytest.fixture
def service(store, default_config) -> ReceiptService:
    return ReceiptService(store, default_config, clock=lambda: FIXED_NOW)


# ---------------------------------------------------------------------------
# Model helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_issuer() -> Issuer:
    return Issuer(
        id=42,
        name="山田商店",
        postal_code="100-0001",
        address="東京都千代田区千代田１－１\n山田ビル３階",
        phone="03-1234-5678",
        invoice_number="T1234567890123",
        hanko_image="",
    )


@pytest.fixture
def sample_record(sample_issuer) -> ReceiptRecord:
    return ReceiptRecord(
        receipt_number="R-20240315-0930",
        date=date(2024, 3, 15),
        issuer=sample_issuer,
        customer_name="佐藤花子",
        customer_title="様",
        description="お品代として",
        product_amount=Decimal("10000"),
        shipping_amount=Decimal("500"),
        shipping_enabled=True,
        tax_rate=Decimal("0.10"),
        is_electronic_receipt=False,
        created_at=FIXED_NOW,
    )


@pytest.fixture
def png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), "red").save(buf, format="PNG")
    return buf.getvalue()
