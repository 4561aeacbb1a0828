"""
Unit tests for the pricing engine.

Tier selection, volumetric pricing, location surcharges and the
server-side amount check.
"""

import pytest
from decimal import Decimal

from parcel_backend.app.core.exceptions import PricingError
from parcel_backend.app.domain.pricing.pricing_engine import (
    ParcelMeasurements,
    Address,
    price_for,
    parcel_price,
    location_surcharge,
    total_price,
    amounts_match,
    volumetric_weight,
)
from parcel_backend.app.domain.pricing.surcharges import postal_sector
from parcel_backend.app.models.order_enums import DeliveryMethod


def test_weight_only_parcel_uses_lowest_fitting_tier():
    quote = price_for(ParcelMeasurements(weight_kg=3))

    assert quote.tier.name == "T1"
    assert quote.base_price == Decimal("4.50")
    assert total_price([ParcelMeasurements(weight_kg=3)], DeliveryMethod.ATL, []) == Decimal("4.50")


@pytest.mark.parametrize("weight, tier", [(4, "T1"), (4.01, "T2"), (10, "T2"), (20, "T3"), (20.5, "T4"), (30, "T4")])
def test_tier_ceilings_are_inclusive(weight, tier):
    assert price_for(ParcelMeasurements(weight_kg=weight)).tier.name == tier


def test_volumetric_weight_can_raise_the_tier():
    parcel = ParcelMeasurements(weight_kg=3, length_cm=30, width_cm=30, height_cm=15)

    quote = price_for(parcel)

    assert volumetric_weight(30, 30, 15) == pytest.approx(2.7)
    assert quote.tier.name == "T2"
    assert quote.base_price == Decimal("5.80")
    assert quote.chargeable_weight_kg == 3


def test_heavier_declared_weight_wins_over_small_volume():
    parcel = ParcelMeasurements(weight_kg=12, length_cm=10, width_cm=10, height_cm=10)

    assert price_for(parcel).tier.name == "T3"


def test_overweight_parcel_is_rejected():
    with pytest.raises(PricingError):
        price_for(ParcelMeasurements(weight_kg=30.5))


def test_zero_weight_is_rejected():
    with pytest.raises(PricingError):
        price_for(ParcelMeasurements(weight_kg=0))


def test_hand_to_hand_adds_fee_per_parcel():
    parcels = [ParcelMeasurements(weight_kg=3), ParcelMeasurements(weight_kg=8)]

    assert parcel_price(parcels[0], DeliveryMethod.HAND_TO_HAND) == Decimal("7.00")
    assert total_price(parcels, DeliveryMethod.HAND_TO_HAND, []) == Decimal("15.30")


def test_cbd_sector_surcharge():
    assert postal_sector("078881") == "07"
    assert location_surcharge(Address(postal_code="078881")) == Decimal("4.00")


def test_remote_sector_surcharge():
    assert location_surcharge(Address(postal_code="099010")) == Decimal("6.00")


def test_unknown_sector_has_no_surcharge():
    assert location_surcharge(Address(postal_code="520123")) == Decimal("0.00")
    assert location_surcharge(Address(postal_code="")) == Decimal("0.00")


def test_restricted_area_overrides_sector():
    address = Address(postal_code="078881", street="1 Paya Lebar Airbase Road")

    assert location_surcharge(address) == Decimal("15.00")


def test_restricted_keyword_in_unit_text():
    address = Address(postal_code="520123", street="Loyang Way", unit="Changi Naval  Base Gate 2")

    assert location_surcharge(address) == Decimal("15.00")


def test_total_adds_one_surcharge_per_address():
    parcels = [ParcelMeasurements(weight_kg=3), ParcelMeasurements(weight_kg=3)]
    addresses = [Address(postal_code="078881"), Address(postal_code="520123")]

    assert total_price(parcels, DeliveryMethod.ATL, addresses) == Decimal("13.00")


def test_pricing_is_deterministic():
    parcel = ParcelMeasurements(weight_kg=9.99, length_cm=40, width_cm=30, height_cm=20)

    assert price_for(parcel) == price_for(parcel)


@pytest.mark.parametrize("declared, ok", [
    ("4.50", True), ("4.51", True), ("4.49", True), ("4.52", False), ("4.48", False),
    ("4.514", False), ("4.5101", False), ("4.486", False),
])
def test_amount_tolerance_is_one_cent(declared, ok):
    assert amounts_match(Decimal(declared), Decimal("4.50")) is ok
