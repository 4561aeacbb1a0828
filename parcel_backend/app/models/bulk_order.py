"""
Bulk Order database model.

Display aggregate for multi-parcel orders, owned 1:1 by an Order.
"""

from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from parcel_backend.app.db.session import Base
from parcel_backend.app.models.order import new_internal_id


class BulkOrder(Base):
    __tablename__ = "bulk_orders"

    id = Column(String(36), primary_key=True, default=new_internal_id)
    order_id = Column(String(36), ForeignKey('orders.id'), unique=True, nullable=False, index=True)

    total_parcels = Column(Integer, nullable=False)
    total_weight_kg = Column(Float, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="bulk_order")

    def __repr__(self):
        return f"<BulkOrder(id={self.id}, order_id={self.order_id}, parcels={self.total_parcels})>"
