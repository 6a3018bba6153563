"""
ryoshu.postal
~~~~~~~~~~~~~
Postal-code → address lookup against a zipcloud-compatible API.

One GET, no retry.  Every failure (bad code, timeout, non-2xx, API error,
zero results) comes back as ``LookupResult(success=False, ...)`` so callers
can show a field-level hint and carry on.

Usage::

    client = PostalCodeClient()
    address, result = client.fill_address("", "551-0031")
    if not result.success:
        print(result.error_message)
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Optional

import requests

from .config import Config

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_SEVEN_DIGITS = re.compile(r"^\d{7}$")


def normalize_postal_code(raw: str | None) -> Optional[str]:
    """``"551-0031"`` / ``"〒５５１－００３１"`` → ``"5510031"``; ``None`` if not 7 digits."""
    if not raw:
        return None
    text = unicodedata.normalize("NFKC", str(raw))
    digits = re.sub(r"[\s\-‐−ー〒]", "", text)
    return digits if _SEVEN_DIGITS.match(digits) else None


@dataclass
class LookupResult:
    """Outcome of one postal-code lookup. Check ``success`` first."""

    success:       bool
    postal_code:   Optional[str] = None
    addresses:     list[str] = field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def first(self) -> Optional[str]:
        return self.addresses[0] if self.addresses else None

    def to_dict(self) -> dict:
        return {
            "success":       self.success,
            "postal_code":   self.postal_code,
            "addresses":     self.addresses,
            "error_message": self.error_message,
        }


class PostalCodeClient:
    """Thin client for the configured postal-code search endpoint."""

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config or Config()

    def lookup(self, postal_code: str) -> LookupResult:
        code = normalize_postal_code(postal_code)
        if code is None:
            return LookupResult(success=False, error_message="Postal code must have 7 digits.")

        try:
            resp = requests.get(
                self.config.postal_lookup_url,
                params={"zipcode": code},
                timeout=self.config.request_timeout,
            )
        except requests.exceptions.Timeout:
            logger.info("Postal lookup timed out for %s", code)
            return LookupResult(success=False, postal_code=code,
                                error_message="Address lookup timed out.")
        except requests.exceptions.RequestException as exc:
            logger.info("Postal lookup failed for %s: %s", code, exc)
            return LookupResult(success=False, postal_code=code,
                                error_message="Address lookup service is unreachable.")

        if not resp.ok:
            return LookupResult(success=False, postal_code=code,
                                error_message=f"Address lookup failed (HTTP {resp.status_code}).")

        try:
            body = resp.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return LookupResult(success=False, postal_code=code,
                                error_message="Address lookup returned an unreadable response.")

        if body.get("status", 200) != 200:
            return LookupResult(success=False, postal_code=code,
                                error_message=body.get("message") or "Address lookup was rejected.")

        addresses = [
            "".join(r.get(k) or "" for k in ("address1", "address2", "address3"))
            for r in body.get("results") or []
        ]
        addresses = [a for a in addresses if a]
        if not addresses:
            return LookupResult(success=False, postal_code=code,
                                error_message="No address found for this postal code.")

        logger.debug("Postal lookup %s → %d candidate(s)", code, len(addresses))
        return LookupResult(success=True, postal_code=code, addresses=addresses)

    def fill_address(self, current_address: str, postal_code: str) -> tuple[str, LookupResult]:
        """
        Look up ``postal_code`` and return ``(address, result)``.

        The first candidate is used only when ``current_address`` is empty;
        text the user already typed is never replaced.
        """
        result = self.lookup(postal_code)
        if result.success and not current_address.strip():
            return result.first, result
        return current_address, result
