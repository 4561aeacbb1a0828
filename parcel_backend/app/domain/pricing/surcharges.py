"""
Location surcharges.

The first two postal-code digits form a sector, matched against static
sector tables. A restricted-area keyword in the street or unit text
overrides the sector lookup with a fixed, higher surcharge.
"""

import re
from decimal import Decimal
from typing import Dict

# Central business district
CBD_SECTORS = ("01", "02", "03", "04", "05", "06", "07", "08")
CBD_SURCHARGE = Decimal("4.00")

# Offshore islands and far-west industrial / rural areas
REMOTE_SECTORS = ("09", "62", "63", "69")
REMOTE_SURCHARGE = Decimal("6.00")

SECTOR_SURCHARGES: Dict[str, Decimal] = {
    **{sector: CBD_SURCHARGE for sector in CBD_SECTORS},
    **{sector: REMOTE_SURCHARGE for sector in REMOTE_SECTORS},
}

RESTRICTED_AREA_KEYWORDS = (
    "airbase",
    "air base",
    "airport",
    "military",
    "naval base",
    "customs",
    "checkpoint",
)
RESTRICTED_AREA_SURCHARGE = Decimal("15.00")

NO_SURCHARGE = Decimal("0.00")

_WHITESPACE = re.compile(r"\s+")


def postal_sector(postal_code: str) -> str:
    """First two digits of a postal code, or '' when it has fewer."""
    digits = re.sub(r"\D", "", postal_code or "")
    return digits[:2] if len(digits) >= 2 else ""


def is_restricted_area(*texts: str) -> bool:
    haystack = _WHITESPACE.sub(" ", " ".join(t for t in texts if t)).lower()
    return any(keyword in haystack for keyword in RESTRICTED_AREA_KEYWORDS)


def surcharge_for(postal_code: str, street: str = "", unit: str = "") -> Decimal:
    if is_restricted_area(street, unit):
        return RESTRICTED_AREA_SURCHARGE
    return SECTOR_SURCHARGES.get(postal_sector(postal_code), NO_SURCHARGE)
