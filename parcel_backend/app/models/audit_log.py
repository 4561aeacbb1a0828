"""
Audit Log Database Model.

Tracks fulfillment events (order creation, payment confirmation, dispatch
outcomes, delivery updates, rejected webhooks) for support and reconciliation.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from parcel_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for tracking fulfillment events.

    Events logged:
    - ORDER_CREATED
    - PAYMENT_CONFIRMED / PAYMENT_STATUS_RECORDED
    - DISPATCH_COMPLETED / DISPATCH_PARTIAL_FAILURE / DISPATCH_FAILED
    - DELIVERY_STATUS_UPDATED
    - WEBHOOK_REJECTED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who triggered the event ("customer", "payment_provider", "delivery_provider", "system")
    actor = Column(String(50), nullable=False, default="system")

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which order the event concerns (None for unattributable webhooks)
    order_id = Column(String(36), index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor}, order_id={self.order_id})>"
