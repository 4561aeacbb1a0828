"""
Order status machine.

Progression: PENDING → PAID → PROCESSING → PICKED_UP → OUT_FOR_DELIVERY →
DELIVERED, with side exits DELIVERY_FAILED and CANCELLED. Transitions only
move forward and never leave a terminal state.
"""

from typing import FrozenSet, Iterable, Optional
from parcel_backend.app.models.order_enums import OrderStatus


PROGRESSION = (
    OrderStatus.PENDING,
    OrderStatus.PAID,
    OrderStatus.PROCESSING,
    OrderStatus.PICKED_UP,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)
RANK = {status: rank for rank, status in enumerate(PROGRESSION)}

SIDE_EXITS = frozenset({OrderStatus.DELIVERY_FAILED, OrderStatus.CANCELLED})
TERMINAL = frozenset({OrderStatus.DELIVERED}) | SIDE_EXITS

# Delivery provider job status → local status
DELIVERY_STATUS_MAP = {
    "dispatched": OrderStatus.PICKED_UP,
    "in_progress": OrderStatus.OUT_FOR_DELIVERY,
    "completed": OrderStatus.DELIVERED,
    "failed": OrderStatus.DELIVERY_FAILED,
    "cancelled": OrderStatus.CANCELLED,
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """True if moving from `current` to `target` is a real, allowed change."""
    if current == target or current in TERMINAL:
        return False
    if target in SIDE_EXITS:
        return True
    return RANK[target] > RANK[current]


def transition_sources(target: OrderStatus) -> FrozenSet[OrderStatus]:
    """Every status from which `target` can be reached."""
    return frozenset(status for status in OrderStatus if can_transition(status, target))


def map_delivery_status(provider_status: Optional[str]) -> OrderStatus:
    """Unknown or missing provider statuses map to PROCESSING."""
    key = (provider_status or "").strip().lower()
    return DELIVERY_STATUS_MAP.get(key, OrderStatus.PROCESSING)


def rollup_status(parcel_statuses: Iterable[OrderStatus]) -> Optional[OrderStatus]:
    """
    Order status implied by its parcels: the least advanced parcel still on
    the progression. If every parcel left through a side exit, the order
    failed if any parcel failed, otherwise it was cancelled.
    """
    statuses = list(parcel_statuses)
    if not statuses:
        return None
    in_progress = [s for s in statuses if s not in SIDE_EXITS]
    if in_progress:
        return min(in_progress, key=RANK.__getitem__)
    if OrderStatus.DELIVERY_FAILED in statuses:
        return OrderStatus.DELIVERY_FAILED
    return OrderStatus.CANCELLED
