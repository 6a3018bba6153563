"""
ryoshu.config
~~~~~~~~~~~~~
Central configuration for the ryoshu library.

All values have sensible defaults that work out of the box (10 % consumption
tax, electronic receipts, local SQLite storage). Override any field via a
``.env`` file or environment variables — pydantic-settings picks them up
automatically.

Usage::

    from ryoshu.config import cfg

    print(cfg.tax_rate)                  # Decimal("0.10")
    print(cfg.get_billing_defaults())    # typed BillingDefaults dataclass
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


TAX_MODES = ("exclusive", "inclusive")

# Standard and reduced consumption-tax rates.
STATUTORY_RATES = frozenset({Decimal("0.10"), Decimal("0.08")})


# ---------------------------------------------------------------------------
# Typed return value for billing defaults
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BillingDefaults:
    """Immutable snapshot of the settings a new receipt starts from."""

    tax_rate: Decimal
    tax_mode: str
    electronic_receipt: bool
    description: str
    customer_title: str


# ---------------------------------------------------------------------------
# Main settings class
# ---------------------------------------------------------------------------

class Config(BaseSettings):
    """
    Runtime configuration for ryoshu.

    Reads from (in priority order):
      1. Environment variables (prefixed with ``RYOSHU_``)
      2. A ``.env`` file in the working directory
      3. The defaults defined below
    """

    model_config = SettingsConfigDict(
        env_prefix="RYOSHU_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    project: str = Field(
        default="default",
        description="Project name — selects ~/.ryoshu/<project>/ for storage and exports.",
    )
    db_path: Optional[Path] = Field(
        default=None,
        description="Explicit SQLite database file; overrides the project layout.",
    )

    # ------------------------------------------------------------------
    # Billing
    # ------------------------------------------------------------------

    tax_rate: Decimal = Field(
        default=Decimal("0.10"),
        ge=0,
        le=1,
        description="Consumption tax rate as a fraction (0.10 = 10 %).",
    )
    tax_mode: str = Field(
        default="exclusive",
        description=(
            "How entered amounts are taxed. 'exclusive' adds tax on top of the "
            "entered amount; 'inclusive' treats the amount as already taxed and "
            "derives the tax portion from it."
        ),
    )
    electronic_receipt: bool = Field(
        default=True,
        description="Issue electronic receipts by default (exempt from stamp duty).",
    )

    # ------------------------------------------------------------------
    # Receipt defaults
    # ------------------------------------------------------------------

    default_description: str = Field(
        default="お品代として",
        description="Pre-filled 但し書き (purpose line) for new receipts.",
    )
    default_customer_title: str = Field(
        default="様",
        description="Honorific appended to the customer name ('様' or '御中').",
    )
    default_hanko_image: str = Field(
        default="hanko.png",
        description="Stamp image used by the built-in issuer.",
    )
    assets_dir: Path = Field(
        default=Path("."),
        description="Directory relative hanko image paths are resolved against.",
    )

    # ------------------------------------------------------------------
    # Postal-code lookup
    # ------------------------------------------------------------------

    postal_lookup_url: str = Field(
        default="https://zipcloud.ibsnet.co.jp/api/search",
        description="zipcloud-compatible postal-code search endpoint.",
    )
    request_timeout: int = Field(
        default=10,
        ge=1,
        description="HTTP request timeout in seconds.",
    )

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("postal_lookup_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("tax_mode")
    @classmethod
    def _validate_tax_mode(cls, v: str) -> str:
        mode = v.strip().lower()
        if mode not in TAX_MODES:
            raise ValueError(f"tax_mode must be one of {TAX_MODES}, got {v!r}.")
        return mode

    @field_validator("default_customer_title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def _warn_on_unusual_rate(self) -> "Config":
        if self.tax_rate not in STATUTORY_RATES:
            warnings.warn(
                f"tax_rate={self.tax_rate} is neither the standard (10 %) nor the "
                "reduced (8 %) consumption tax rate.",
                UserWarning,
                stacklevel=2,
            )
        return self

    # ------------------------------------------------------------------
    # Helper methods
    # ------------------------------------------------------------------

    def get_billing_defaults(self) -> BillingDefaults:
        """Return an immutable, typed snapshot of the receipt defaults."""
        return BillingDefaults(
            tax_rate=self.tax_rate,
            tax_mode=self.tax_mode,
            electronic_receipt=self.electronic_receipt,
            description=self.default_description,
            customer_title=self.default_customer_title,
        )


# ---------------------------------------------------------------------------
# Module-level singleton, import this everywhere
# ---------------------------------------------------------------------------

cfg = Config()

__all__ = ["BillingDefaults", "Config", "TAX_MODES", "cfg"]
