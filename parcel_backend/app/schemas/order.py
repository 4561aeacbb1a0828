"""
Order Pydantic schemas.

Defines the order creation request/response and order summary models.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from parcel_backend.app.models.order_enums import OrderStatus, DeliveryMethod, DispatchStatus
from parcel_backend.app.schemas.parcel import ParcelInput, RecipientInput, ParcelResponse


class OrderDetails(BaseModel):
    """Sender, delivery method and the amount the client expects to pay."""
    sender_name: str = Field(..., min_length=1, max_length=200)
    sender_email: str = Field(..., min_length=3, max_length=254)
    sender_contact_number: Optional[str] = Field(None, max_length=30)
    sender_address: Optional[str] = Field(None, max_length=500)
    delivery_method: DeliveryMethod
    amount: Decimal = Field(..., ge=0, description="Client-declared total, re-validated server-side")
    is_bulk_order: bool = False
    recipient: Optional[RecipientInput] = Field(None, description="Recipient of a single-parcel order")


class OrderCreate(BaseModel):
    """Schema for creating a new order."""
    order: OrderDetails
    parcels: List[ParcelInput] = Field(..., min_length=1)
    recipients: Optional[List[RecipientInput]] = None


class OrderCreateResponse(BaseModel):
    order_id: str
    short_code: str
    payment_url: str


class BulkOrderResponse(BaseModel):
    id: str
    total_parcels: int
    total_weight_kg: float

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Schema for order summary response."""
    id: str
    short_code: str
    sender_name: str
    delivery_method: DeliveryMethod
    amount: Decimal
    status: OrderStatus
    tracking_status: Optional[str]
    dispatch_status: DispatchStatus
    is_bulk_order: bool
    bulk_order: Optional[BulkOrderResponse]
    parcels: List[ParcelResponse]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
