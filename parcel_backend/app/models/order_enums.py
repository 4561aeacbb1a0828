"""
Order, Parcel and dispatch enumerations.
"""

import enum


class OrderStatus(str, enum.Enum):
    """
    Order / Parcel status enumeration.

    Status flow:
        PENDING → PAID → PROCESSING → PICKED_UP → OUT_FOR_DELIVERY → DELIVERED
        Side exits: DELIVERY_FAILED, CANCELLED
    DELIVERED, DELIVERY_FAILED and CANCELLED are terminal.
    """
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    PICKED_UP = "picked_up"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"
    CANCELLED = "cancelled"


class DeliveryMethod(str, enum.Enum):
    """ATL = authorised to leave at location."""
    ATL = "atl"
    HAND_TO_HAND = "hand-to-hand"


class DispatchStatus(str, enum.Enum):
    """Order-level aggregate of per-parcel dispatch jobs."""
    NOT_DISPATCHED = "not_dispatched"
    PARTIALLY_DISPATCHED = "partially_dispatched"
    DISPATCHED = "dispatched"


def enum_values(enum_cls):
    """Persist enum values (not member names) in the database."""
    return [member.value for member in enum_cls]
