"""
Pricing Engine.

Pure functions from parcel attributes to a pricing tier and money amount.
The same functions run in the booking UI and again on the server when an
order is created, so they must never depend on client-supplied tier or
price fields.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence
from pydantic import BaseModel, ConfigDict

from parcel_backend.app.core.exceptions import PricingError
from parcel_backend.app.domain.pricing.surcharges import surcharge_for
from parcel_backend.app.domain.pricing.tiers import (
    PRICING_TIERS,
    HAND_TO_HAND_FEE,
    VOLUMETRIC_DIVISOR,
    MAX_WEIGHT_KG,
    PricingTier,
)
from parcel_backend.app.models.order_enums import DeliveryMethod

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class ParcelMeasurements(BaseModel):
    model_config = ConfigDict(frozen=True)

    weight_kg: float
    length_cm: Optional[float] = None
    width_cm: Optional[float] = None
    height_cm: Optional[float] = None

    @property
    def has_dimensions(self) -> bool:
        return None not in (self.length_cm, self.width_cm, self.height_cm)


class Address(BaseModel):
    model_config = ConfigDict(frozen=True)

    postal_code: str
    street: str = ""
    unit: str = ""


class PriceQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: PricingTier
    base_price: Decimal
    chargeable_weight_kg: float
    volumetric_weight_kg: Optional[float] = None


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def volumetric_weight(length_cm: float, width_cm: float, height_cm: float) -> float:
    return (length_cm * width_cm * height_cm) / VOLUMETRIC_DIVISOR


def _tier_for_weight(weight_kg: float) -> PricingTier:
    for tier in PRICING_TIERS:
        if weight_kg <= tier.max_weight_kg:
            return tier
    raise PricingError(
        f"Parcel weight {weight_kg}kg exceeds the maximum of {MAX_WEIGHT_KG:g}kg",
        details={"weight_kg": weight_kg, "max_weight_kg": MAX_WEIGHT_KG},
    )


def _tier_for_volumetric(volumetric_kg: float) -> PricingTier:
    for tier in PRICING_TIERS:
        if volumetric_kg <= tier.max_volumetric_kg:
            return tier
    return PRICING_TIERS[-1]


def price_for(parcel: ParcelMeasurements) -> PriceQuote:
    """
    Select the pricing tier for a parcel.

    Without dimensions the declared weight alone picks the tier. With all
    three dimensions, the declared weight is matched against the weight
    ceilings and the volumetric weight against the volumetric ceilings;
    the more expensive of the two tiers applies.
    """
    if parcel.weight_kg <= 0:
        raise PricingError("Parcel weight must be greater than zero", details={"weight_kg": parcel.weight_kg})

    weight_tier = _tier_for_weight(parcel.weight_kg)
    if not parcel.has_dimensions:
        return PriceQuote(tier=weight_tier, base_price=weight_tier.price, chargeable_weight_kg=parcel.weight_kg)

    vol_weight = volumetric_weight(parcel.length_cm, parcel.width_cm, parcel.height_cm)
    vol_tier = _tier_for_volumetric(vol_weight)
    tier = vol_tier if vol_tier.price > weight_tier.price else weight_tier

    logger.debug(
        "Pricing: actual %skg (%s), volumetric %.2fkg (%s), effective %s",
        parcel.weight_kg, weight_tier.name, vol_weight, vol_tier.name, tier.name,
    )
    return PriceQuote(
        tier=tier,
        base_price=tier.price,
        chargeable_weight_kg=max(parcel.weight_kg, vol_weight),
        volumetric_weight_kg=vol_weight,
    )


def parcel_price(parcel: ParcelMeasurements, delivery_method: DeliveryMethod) -> Decimal:
    """Tier price plus the per-parcel hand-to-hand fee when selected."""
    fee = HAND_TO_HAND_FEE if delivery_method == DeliveryMethod.HAND_TO_HAND else Decimal("0")
    return to_money(price_for(parcel).base_price + fee)


def location_surcharge(address: Address) -> Decimal:
    return to_money(surcharge_for(address.postal_code, address.street, address.unit))


def total_price(
    parcels: Sequence[ParcelMeasurements],
    delivery_method: DeliveryMethod,
    addresses: Iterable[Address],
) -> Decimal:
    """Sum of per-parcel prices plus one location surcharge per destination address."""
    base = sum((parcel_price(p, delivery_method) for p in parcels), Decimal("0"))
    surcharge = sum((location_surcharge(a) for a in addresses), Decimal("0"))
    return to_money(base + surcharge)


def amounts_match(declared, expected: Decimal, tolerance: Decimal = CENT) -> bool:
    """Compare the exact declared amount; it is never rounded before the check."""
    return abs(Decimal(str(declared)) - expected) <= tolerance
