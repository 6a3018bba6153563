"""
ryoshu.defaults
~~~~~~~~~~~~~~~
The built-in issuer seed.

Used identically by first-run seeding and by "restore defaults", so the two
can never drift apart.
"""

from __future__ import annotations

from .models import Issuer

DEFAULT_ISSUER_ID = 1


def default_issuers(hanko_image: str = "hanko.png") -> list[Issuer]:
    """Return fresh copies of the built-in issuers."""
    return [
        Issuer(
            id=DEFAULT_ISSUER_ID,
            name="株式会社色禅　ZEGRAMTOOLS",
            postal_code="551-0031",
            address="大阪府大阪市大正区泉尾１丁目１８番２２号",
            phone="050-7117-7851",
            invoice_number="T1120001228247",
            hanko_image=hanko_image,
        ),
    ]
