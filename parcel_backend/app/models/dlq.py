"""
Dispatch Failure Model (dead letter queue for dispatch-job creation).

Stores parcels whose dispatch job could not be created, for scheduled
or manual retry.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from parcel_backend.app.db.session import Base
import enum


class DLQStatus(str, enum.Enum):
    FAILED = "FAILED"
    RESOLVED = "RESOLVED"


class DispatchFailure(Base):
    """
    Dispatch failure table.
    One open row per parcel; a later successful dispatch resolves it.
    """
    __tablename__ = "dispatch_failures"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    order_id = Column(String(36), ForeignKey('orders.id'), nullable=False, index=True)
    parcel_id = Column(String(36), ForeignKey('parcels.id'), nullable=False, index=True)
    error_message = Column(Text, nullable=False)

    status = Column(Enum(DLQStatus), default=DLQStatus.FAILED, nullable=False, index=True)
    retry_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_retry_at = Column(DateTime(timezone=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<DispatchFailure(id={self.id}, parcel_id='{self.parcel_id}', status='{self.status}')>"
