"""
Order database model.

One delivery transaction, referenced internally by a UUID and publicly
by an immutable short tracking code.
"""

import uuid
from sqlalchemy import Column, String, Numeric, DateTime, Enum, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from parcel_backend.app.db.session import Base
from parcel_backend.app.models.order_enums import OrderStatus, DeliveryMethod, DispatchStatus, enum_values


def new_internal_id() -> str:
    return str(uuid.uuid4())


class Order(Base):
    """
    Order model.

    `amount` is always the server-computed price. `dispatch_job_id` and
    `dispatch_reference` are only used by single-parcel orders; bulk orders
    keep their job references on each parcel.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_internal_id)
    short_code = Column(String(20), unique=True, nullable=False, index=True)

    # Sender
    sender_name = Column(String(200), nullable=False)
    sender_email = Column(String(254), nullable=False)
    sender_contact_number = Column(String(30), nullable=True)
    sender_address = Column(String(500), nullable=True)

    delivery_method = Column(
        Enum(DeliveryMethod, name="delivery_method", values_callable=enum_values), nullable=False
    )
    amount = Column(Numeric(10, 2), nullable=False)

    # State
    status = Column(
        Enum(OrderStatus, name="order_status", values_callable=enum_values),
        default=OrderStatus.PENDING, nullable=False, index=True
    )
    tracking_status = Column(String(200), nullable=True)
    is_bulk_order = Column(Boolean, default=False, nullable=False)
    is_complete = Column(Boolean, default=True, nullable=False)

    # Payment provider references
    payment_request_id = Column(String(100), nullable=True)
    payment_id = Column(String(100), nullable=True)
    payment_status = Column(String(50), nullable=True)

    # Delivery provider references
    dispatch_status = Column(
        Enum(DispatchStatus, name="dispatch_status", values_callable=enum_values),
        default=DispatchStatus.NOT_DISPATCHED, nullable=False, index=True
    )
    dispatch_job_id = Column(String(100), nullable=True, index=True)
    dispatch_reference = Column(String(100), nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    parcels = relationship(
        "Parcel", back_populates="order", order_by="Parcel.parcel_index", lazy="selectin"
    )
    bulk_order = relationship("BulkOrder", back_populates="order", uselist=False, lazy="selectin")

    def __repr__(self):
        return f"<Order(id={self.id}, code='{self.short_code}', status='{self.status.value}')>"
