"""
Order Repository.

Persistence and lookup for Order, Parcel and BulkOrder records. Every
status mutation is a single-row update keyed by internal id.
"""

from typing import Optional, Sequence, Type, Union
from sqlalchemy import select, update, or_, func
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_backend.app.models.order import Order
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.order_enums import OrderStatus, DispatchStatus
from parcel_backend.app.domain.orders.status_machine import transition_sources


async def get_order(db: AsyncSession, order_id: str) -> Optional[Order]:
    """Fetch an order by internal id, refreshing any stale copy in the session."""
    result = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_order_by_short_code(db: AsyncSession, short_code: str) -> Optional[Order]:
    result = await db.execute(select(Order).where(Order.short_code == short_code))
    return result.scalar_one_or_none()


async def get_parcel(db: AsyncSession, parcel_id: str) -> Optional[Parcel]:
    result = await db.execute(
        select(Parcel).where(Parcel.id == parcel_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_parcel_by_short_code(db: AsyncSession, short_code: str) -> Optional[Parcel]:
    result = await db.execute(select(Parcel).where(Parcel.short_code == short_code))
    return result.scalar_one_or_none()


async def list_parcels(db: AsyncSession, order_id: str) -> Sequence[Parcel]:
    result = await db.execute(
        select(Parcel)
        .where(Parcel.order_id == order_id)
        .order_by(Parcel.parcel_index)
        .execution_options(populate_existing=True)
    )
    return result.scalars().all()


async def short_code_exists(db: AsyncSession, short_code: str) -> bool:
    """True if any order or parcel already carries this short code."""
    order_hit = await db.execute(select(Order.id).where(Order.short_code == short_code))
    if order_hit.first() is not None:
        return True
    parcel_hit = await db.execute(select(Parcel.id).where(Parcel.short_code == short_code))
    return parcel_hit.first() is not None


async def mark_order_paid(db: AsyncSession, order_id: str, payment_id: Optional[str],
                          payment_status: str) -> bool:
    """
    Move an order from PENDING to PAID.

    Conditional on the current status, so of several concurrent or replayed
    deliveries exactly one sees True.
    """
    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status == OrderStatus.PENDING)
        .values(
            status=OrderStatus.PAID,
            payment_id=payment_id,
            payment_status=payment_status,
            updated_at=func.now(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def record_payment_status(db: AsyncSession, order_id: str, payment_id: Optional[str],
                                payment_status: str) -> bool:
    """
    Store an informational payment status on a still-pending order.

    Once paid, the confirming webhook's status and payment id stand; late
    or out-of-order notifications leave them alone.
    """
    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status == OrderStatus.PENDING)
        .values(
            payment_status=payment_status,
            payment_id=func.coalesce(payment_id, Order.payment_id),
            updated_at=func.now(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def advance_status(db: AsyncSession, model: Type[Union[Order, Parcel]], record_id: str,
                         target: OrderStatus, tracking_status: Optional[str] = None) -> bool:
    """
    Move an Order or Parcel row forward to `target`.

    The WHERE clause only admits statuses that may transition to `target`
    (plus `target` itself, which just refreshes the tracking text), so a
    stale or concurrent update never moves a row backwards or out of a
    terminal state.
    """
    values = {"status": target, "updated_at": func.now()}
    if tracking_status:
        values["tracking_status"] = tracking_status
    result = await db.execute(
        update(model)
        .where(model.id == record_id, model.status.in_(list(transition_sources(target) | {target})))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def set_parcel_statuses(db: AsyncSession, order_id: str, status: OrderStatus) -> int:
    result = await db.execute(
        update(Parcel)
        .where(Parcel.order_id == order_id)
        .values(status=status, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def find_order_by_job_reference(db: AsyncSession, job_id: Optional[str],
                                      reference: Optional[str]) -> Optional[Order]:
    """Locate a single-parcel order by its stored provider job id or DO number."""
    conditions = []
    if job_id:
        conditions.append(Order.dispatch_job_id == job_id)
    if reference:
        conditions.append(Order.dispatch_reference == reference)
    if not conditions:
        return None
    result = await db.execute(
        select(Order).where(or_(*conditions)).execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def find_parcel_by_job_reference(db: AsyncSession, job_id: Optional[str],
                                       reference: Optional[str]) -> Optional[Parcel]:
    conditions = []
    if job_id:
        conditions.append(Parcel.dispatch_job_id == job_id)
    if reference:
        conditions.append(Parcel.dispatch_reference == reference)
    if not conditions:
        return None
    result = await db.execute(
        select(Parcel).where(or_(*conditions)).execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def find_parcel_by_item_id(db: AsyncSession, item_id: str) -> Optional[Parcel]:
    result = await db.execute(
        select(Parcel).where(Parcel.dispatch_item_id == item_id).execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def list_orders_awaiting_dispatch(db: AsyncSession, limit: int = 100) -> Sequence[Order]:
    """Paid (or later, non-terminal) orders whose dispatch is not complete."""
    result = await db.execute(
        select(Order)
        .where(
            Order.dispatch_status != DispatchStatus.DISPATCHED,
            Order.status.in_([OrderStatus.PAID, OrderStatus.PROCESSING]),
        )
        .order_by(Order.created_at)
        .limit(limit)
    )
    return result.scalars().all()
