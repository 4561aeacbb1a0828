"""
Parcel Pydantic schemas.

Defines parcel and recipient request models and the parcel response model.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from parcel_backend.app.domain.pricing.pricing_engine import ParcelMeasurements, Address
from parcel_backend.app.models.order_enums import OrderStatus


class ParcelInput(BaseModel):
    """A parcel as submitted by the booking form. Tier and price are never accepted."""
    weight_kg: float = Field(..., gt=0, description="Declared weight in kilograms")
    length_cm: Optional[float] = Field(None, gt=0, description="Length in centimeters")
    width_cm: Optional[float] = Field(None, gt=0, description="Width in centimeters")
    height_cm: Optional[float] = Field(None, gt=0, description="Height in centimeters")

    def measurements(self) -> ParcelMeasurements:
        return ParcelMeasurements(
            weight_kg=self.weight_kg,
            length_cm=self.length_cm,
            width_cm=self.width_cm,
            height_cm=self.height_cm,
        )


class RecipientInput(BaseModel):
    """Recipient details; `parcel_index` ties a bulk-order recipient to its parcel."""
    parcel_index: Optional[int] = Field(None, ge=0)
    name: str = Field("", max_length=200)
    email: str = Field("", max_length=254)
    contact_number: str = Field("", max_length=30)
    line1: str = Field("", max_length=300, description="Street")
    line2: Optional[str] = Field(None, max_length=300, description="Unit number")
    postal_code: str = Field("", max_length=10)
    address: Optional[str] = Field(None, max_length=500, description="Full address line")

    def full_address(self) -> str:
        if self.address:
            return self.address
        return ", ".join(part for part in (self.line1, self.line2, self.postal_code) if part)

    def missing_fields(self) -> list[str]:
        required = {
            "name": self.name,
            "email": self.email,
            "contact_number": self.contact_number,
            "address": self.full_address(),
            "postal_code": self.postal_code,
        }
        return [field for field, value in required.items() if not (value or "").strip()]

    def pricing_address(self) -> Address:
        # The full address line is what the driver receives, so it is scanned too
        street = " ".join(part for part in (self.line1, self.address) if part)
        return Address(postal_code=self.postal_code, street=street, unit=self.line2 or "")


class ParcelResponse(BaseModel):
    """Schema for parcel response."""
    id: str
    short_code: Optional[str]
    parcel_index: int
    weight_kg: float
    length_cm: Optional[float]
    width_cm: Optional[float]
    height_cm: Optional[float]
    pricing_tier: str
    price: Decimal
    recipient_name: str
    recipient_address: str
    status: OrderStatus
    tracking_status: Optional[str]
    dispatch_job_id: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
