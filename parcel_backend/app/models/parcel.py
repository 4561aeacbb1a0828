"""
Parcel database model.

One physical item within an order, with its own recipient, pricing tier,
tracking code and (once dispatched) delivery job reference.
"""

from sqlalchemy import Column, String, Integer, Numeric, Float, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from parcel_backend.app.db.session import Base
from parcel_backend.app.models.order import new_internal_id
from parcel_backend.app.models.order_enums import OrderStatus, enum_values


class Parcel(Base):
    """
    Parcel model.

    `pricing_tier` is computed once at booking time. `short_code` and
    `dispatch_job_id` are write-once.
    """
    __tablename__ = "parcels"

    id = Column(String(36), primary_key=True, default=new_internal_id)

    # Ownership
    order_id = Column(String(36), ForeignKey('orders.id'), nullable=False, index=True)
    bulk_order_id = Column(String(36), ForeignKey('bulk_orders.id'), nullable=True, index=True)

    short_code = Column(String(20), unique=True, nullable=True, index=True)
    parcel_index = Column(Integer, nullable=False, default=0)

    # Physical properties
    weight_kg = Column(Float, nullable=False)
    length_cm = Column(Float, nullable=True)
    width_cm = Column(Float, nullable=True)
    height_cm = Column(Float, nullable=True)

    # Pricing
    pricing_tier = Column(String(10), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    # Recipient
    recipient_name = Column(String(200), nullable=False)
    recipient_email = Column(String(254), nullable=False)
    recipient_contact_number = Column(String(30), nullable=False)
    recipient_address = Column(String(500), nullable=False)
    recipient_line1 = Column(String(300), nullable=True)
    recipient_line2 = Column(String(300), nullable=True)
    recipient_postal_code = Column(String(10), nullable=True)

    # Delivery provider references
    dispatch_job_id = Column(String(100), nullable=True, index=True)
    dispatch_item_id = Column(String(100), nullable=True, index=True)
    dispatch_reference = Column(String(100), nullable=True, index=True)

    # State
    status = Column(
        Enum(OrderStatus, name="parcel_status", values_callable=enum_values),
        default=OrderStatus.PENDING, nullable=False, index=True
    )
    tracking_status = Column(String(200), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    order = relationship("Order", back_populates="parcels")

    def __repr__(self):
        return f"<Parcel(id={self.id}, code='{self.short_code}', order_id={self.order_id}, status='{self.status.value}')>"
