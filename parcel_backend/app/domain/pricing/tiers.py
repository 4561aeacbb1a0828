"""
Static pricing configuration.

Tier ceilings are closed upper bounds: a parcel exactly at a ceiling
belongs to that tier. Prices are in SGD.
"""

from decimal import Decimal
from typing import Tuple
from pydantic import BaseModel, ConfigDict


class PricingTier(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    max_weight_kg: float
    max_volumetric_kg: float
    price: Decimal


PRICING_TIERS: Tuple[PricingTier, ...] = (
    PricingTier(name="T1", max_weight_kg=4, max_volumetric_kg=2, price=Decimal("4.50")),
    PricingTier(name="T2", max_weight_kg=10, max_volumetric_kg=10, price=Decimal("5.80")),
    PricingTier(name="T3", max_weight_kg=20, max_volumetric_kg=25, price=Decimal("10.30")),
    PricingTier(name="T4", max_weight_kg=30, max_volumetric_kg=float("inf"), price=Decimal("17.40")),
)

HAND_TO_HAND_FEE = Decimal("2.50")

# cm³ per kg; models an average parcel density of 200 kg/m³
VOLUMETRIC_DIVISOR = 5000

MAX_WEIGHT_KG = PRICING_TIERS[-1].max_weight_kg
