"""
Order Creation Service.

Validates a booking, re-computes its price server-side, persists the order
with its parcels in one transaction and opens a payment session.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_backend.app.core.config import PaymentProviderConfig
from parcel_backend.app.core.exceptions import OrderValidationError, PriceMismatchError
from parcel_backend.app.domain.pricing.pricing_engine import price_for, parcel_price, total_price, amounts_match, to_money
from parcel_backend.app.models.order import Order
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.bulk_order import BulkOrder
from parcel_backend.app.models.order_enums import OrderStatus, DispatchStatus
from parcel_backend.app.schemas.order import OrderDetails, OrderCreateResponse
from parcel_backend.app.schemas.parcel import ParcelInput, RecipientInput
from parcel_backend.app.services import identifier_resolver
from parcel_backend.app.services.audit import log_event, AuditAction, AuditActor
from parcel_backend.app.services.payment_provider import PaymentProviderClient

logger = logging.getLogger(__name__)


def pair_recipients(
    details: OrderDetails,
    parcels: Sequence[ParcelInput],
    recipients: Optional[Sequence[RecipientInput]],
) -> List[Tuple[ParcelInput, RecipientInput]]:
    """
    Match every parcel with its recipient.

    Bulk orders need one recipient per parcel, each carrying a distinct
    `parcel_index` in 0..n-1. Single orders take the recipient from the order
    details.
    """
    if details.is_bulk_order:
        if len(parcels) < 2:
            raise OrderValidationError("Bulk orders need at least two parcels")
        if not recipients or len(recipients) != len(parcels):
            raise OrderValidationError(
                "Missing recipient details for bulk order",
                details={"parcels": len(parcels), "recipients": len(recipients or [])},
            )
        by_index = {}
        for recipient in recipients:
            index = recipient.parcel_index
            if index is None or index >= len(parcels) or index in by_index:
                raise OrderValidationError(
                    "Each bulk recipient needs a unique parcel_index matching a parcel",
                    details={"parcel_index": index},
                )
            by_index[index] = recipient
        pairs = [(parcel, by_index[i]) for i, parcel in enumerate(parcels)]
    else:
        if len(parcels) != 1:
            raise OrderValidationError("Single orders carry exactly one parcel; use a bulk order")
        recipient = details.recipient or (recipients[0] if recipients and len(recipients) == 1 else None)
        if recipient is None:
            raise OrderValidationError("Missing recipient details")
        pairs = [(parcels[0], recipient)]

    for index, (_, recipient) in enumerate(pairs):
        missing = recipient.missing_fields()
        if missing:
            raise OrderValidationError(
                "Missing recipient details",
                details={"parcel_index": index, "missing": missing},
            )
    return pairs


class OrderCreationService:
    def __init__(self, payment_provider: PaymentProviderClient, config: PaymentProviderConfig):
        self.payment_provider = payment_provider
        self.config = config

    async def create_order(
        self,
        db: AsyncSession,
        details: OrderDetails,
        parcels: Sequence[ParcelInput],
        recipients: Optional[Sequence[RecipientInput]] = None,
    ) -> OrderCreateResponse:
        pairs = pair_recipients(details, parcels, recipients)

        # Server-side price; client tier / price values are never read
        expected = total_price(
            [p.measurements() for p, _ in pairs],
            details.delivery_method,
            [r.pricing_address() for _, r in pairs],
        )
        if not amounts_match(details.amount, expected):
            logger.warning("Price mismatch: client %s, server %s", details.amount, expected)
            raise PriceMismatchError(expected=expected, declared=to_money(details.amount))

        order = await self._persist(db, details, pairs, expected)
        logger.info("Order %s created (%s parcel(s), amount %s)", order.short_code, len(pairs), order.amount)

        await log_event(
            db,
            AuditAction.ORDER_CREATED,
            order_id=order.id,
            actor=AuditActor.CUSTOMER,
            metadata={"short_code": order.short_code, "amount": f"{order.amount:.2f}", "parcels": len(pairs)},
        )

        # Provider failure propagates; the order stays PENDING
        session = await self.payment_provider.create_payment_request(order)
        if session.request_id:
            order.payment_request_id = session.request_id
            await db.commit()

        return OrderCreateResponse(order_id=order.id, short_code=order.short_code, payment_url=session.url)

    async def _persist(
        self,
        db: AsyncSession,
        details: OrderDetails,
        pairs: List[Tuple[ParcelInput, RecipientInput]],
        amount: Decimal,
    ) -> Order:
        """Order, parcels and bulk metadata, all or nothing."""
        try:
            reserved: List[str] = []
            order_code = await identifier_resolver.new_short_code(db, reserved)
            reserved.append(order_code)

            order = Order(
                short_code=order_code,
                sender_name=details.sender_name,
                sender_email=details.sender_email,
                sender_contact_number=details.sender_contact_number,
                sender_address=details.sender_address,
                delivery_method=details.delivery_method,
                amount=amount,
                status=OrderStatus.PENDING,
                dispatch_status=DispatchStatus.NOT_DISPATCHED,
                is_bulk_order=details.is_bulk_order,
                is_complete=True,
            )
            db.add(order)
            await db.flush()

            bulk = None
            if details.is_bulk_order:
                bulk = BulkOrder(
                    order_id=order.id,
                    total_parcels=len(pairs),
                    total_weight_kg=sum(p.weight_kg for p, _ in pairs),
                )
                db.add(bulk)
                await db.flush()

            for index, (parcel_in, recipient) in enumerate(pairs):
                code = await identifier_resolver.new_short_code(db, reserved)
                reserved.append(code)
                quote = price_for(parcel_in.measurements())
                db.add(Parcel(
                    order_id=order.id,
                    bulk_order_id=bulk.id if bulk else None,
                    short_code=code,
                    parcel_index=index,
                    weight_kg=parcel_in.weight_kg,
                    length_cm=parcel_in.length_cm,
                    width_cm=parcel_in.width_cm,
                    height_cm=parcel_in.height_cm,
                    pricing_tier=quote.tier.name,
                    price=parcel_price(parcel_in.measurements(), details.delivery_method),
                    recipient_name=recipient.name,
                    recipient_email=recipient.email,
                    recipient_contact_number=recipient.contact_number,
                    recipient_address=recipient.full_address(),
                    recipient_line1=recipient.line1 or None,
                    recipient_line2=recipient.line2,
                    recipient_postal_code=recipient.postal_code,
                    status=OrderStatus.PENDING,
                ))

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await db.refresh(order, attribute_names=["parcels", "bulk_order"])
        return order
