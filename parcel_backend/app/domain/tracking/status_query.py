"""
Status Query Service.

Builds the customer-facing delivery timeline for an order or parcel
identifier, from the delivery provider's job when there is one and from
the locally stored status otherwise.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_backend.app.core.exceptions import ResourceNotFoundError, DeliveryProviderError
from parcel_backend.app.models.order_enums import OrderStatus
from parcel_backend.app.schemas.tracking import Milestone, Timeline
from parcel_backend.app.services import identifier_resolver, order_repository
from parcel_backend.app.services.delivery_provider import DeliveryProviderClient

logger = logging.getLogger(__name__)

# (name, provider timestamp field, description)
MILESTONES: Tuple[Tuple[str, str, str], ...] = (
    ("Order Received", "info_received_at", "Your order has been received and is being processed"),
    ("Preparing for Shipment", "scheduled_at", "Your order is being prepared for shipment"),
    ("Out for Delivery", "out_for_delivery_at", "Your order is out for delivery"),
    ("Delivered", "pod_at", "Your order has been delivered"),
)

# Milestones already reached for each local status
COMPLETED_MILESTONES = {
    OrderStatus.PENDING: 1,
    OrderStatus.PAID: 1,
    OrderStatus.PROCESSING: 1,
    OrderStatus.PICKED_UP: 2,
    OrderStatus.OUT_FOR_DELIVERY: 3,
    OrderStatus.DELIVERED: 4,
    OrderStatus.DELIVERY_FAILED: 1,
    OrderStatus.CANCELLED: 1,
}

TRACKING_PENDING = "tracking_pending"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _states(completed: int, has_current: bool = True) -> List[str]:
    states = []
    for index in range(len(MILESTONES)):
        if index < completed:
            states.append("completed")
        elif index == completed and has_current:
            states.append("current")
        else:
            states.append("upcoming")
    return states


def placeholder_timeline() -> Timeline:
    """Timeline for an order whose delivery job does not exist yet."""
    now = _now()
    return Timeline(
        status=TRACKING_PENDING,
        tracking_status="Tracking ID Pending",
        milestones=[
            Milestone(name="Order Received", status="completed", timestamp=now.isoformat(),
                      description="Your order has been received and is being processed"),
            Milestone(name="Tracking Setup", status="current",
                      description="Waiting for tracking ID to be assigned"),
            Milestone(name="Out for Delivery", status="upcoming",
                      description="Your order will be out for delivery soon"),
            Milestone(name="Delivered", status="upcoming",
                      description="Your order will be delivered soon"),
        ],
        last_updated=now,
    )


def timeline_from_job(job: Dict[str, Any]) -> Timeline:
    """
    Milestones from the provider's job timestamps. The latest milestone with
    a timestamp and every milestone before it are completed; the one after
    it is current.
    """
    timestamps = [job.get(field) for _, field, _ in MILESTONES]
    if not timestamps[0]:
        timestamps[0] = _now().isoformat()

    latest = max(i for i, ts in enumerate(timestamps) if ts)
    states = _states(latest + 1)

    milestones = [
        Milestone(name=name, status=state, timestamp=ts, description=description)
        for (name, _, description), state, ts in zip(MILESTONES, states, timestamps)
    ]
    return Timeline(
        status=job.get("status") or "processing",
        tracking_status=job.get("tracking_status") or "Order received",
        milestones=milestones,
        last_updated=_now(),
    )


def timeline_from_status(status: OrderStatus, tracking_status: Optional[str] = None) -> Timeline:
    """Timeline synthesized from the locally stored status."""
    side_exit = status in (OrderStatus.DELIVERY_FAILED, OrderStatus.CANCELLED)
    states = _states(COMPLETED_MILESTONES[status], has_current=not side_exit)
    milestones = [
        Milestone(name=name, status=state, description=description)
        for (name, _, description), state in zip(MILESTONES, states)
    ]
    return Timeline(
        status=status.value,
        tracking_status=tracking_status or status.value.replace("_", " ").capitalize(),
        milestones=milestones,
        last_updated=_now(),
    )


class StatusQueryService:
    def __init__(self, delivery_provider: DeliveryProviderClient):
        self.delivery_provider = delivery_provider

    async def get_status(self, db: AsyncSession, identifier: str) -> Timeline:
        resolved = await identifier_resolver.resolve(db, identifier)
        if resolved is None:
            raise ResourceNotFoundError("Order or parcel", identifier)

        order = await order_repository.get_order(db, resolved.order_id)
        if resolved.kind == "parcel":
            tracked = await order_repository.get_parcel(db, resolved.internal_id)
        elif order.is_bulk_order and order.parcels:
            tracked = min(order.parcels, key=lambda p: (p.created_at, p.parcel_index))
        else:
            tracked = order

        if not tracked.dispatch_job_id:
            return placeholder_timeline()

        reference = tracked.dispatch_reference or tracked.short_code
        try:
            job = await self.delivery_provider.get_job(reference)
        except DeliveryProviderError as e:
            logger.warning("Job lookup for %s failed, using local status: %s", reference, e.message)
            job = None

        if not job:
            return timeline_from_status(tracked.status, tracked.tracking_status)
        return timeline_from_job(job)
