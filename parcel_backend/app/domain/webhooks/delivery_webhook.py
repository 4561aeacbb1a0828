"""
Delivery Webhook Handler.

Maps delivery-provider job updates onto local order and parcel statuses.
Every write is a conditional row update, so overlapping webhooks for the
same job can only move a record forward through the status machine.
"""

import logging
from typing import Optional, Set
from pydantic import ValidationError
from fastapi import status as http_status
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_backend.app.core.config import DeliveryProviderConfig
from parcel_backend.app.core.exceptions import WebhookSignatureError, MalformedWebhookError
from parcel_backend.app.domain.orders.status_machine import map_delivery_status, rollup_status
from parcel_backend.app.models.order import Order
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.order_enums import OrderStatus
from parcel_backend.app.schemas.webhooks import DeliveryWebhookPayload, DeliveryJobData, WebhookAck
from parcel_backend.app.services import order_repository
from parcel_backend.app.services.audit import log_event, AuditAction, AuditActor
from parcel_backend.app.services.webhook_signatures import delivery_signature, signatures_match

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Detrack-Signature"


class DeliveryWebhookHandler:
    def __init__(self, config: DeliveryProviderConfig):
        self.config = config

    def parse(self, raw_body: bytes, signature: Optional[str]) -> DeliveryWebhookPayload:
        if self.config.webhook_secret:
            expected = delivery_signature(raw_body, self.config.webhook_secret)
            if not signatures_match(expected, signature or ""):
                raise WebhookSignatureError("Invalid signature", status_code=http_status.HTTP_401_UNAUTHORIZED)

        try:
            return DeliveryWebhookPayload.model_validate_json(raw_body)
        except ValidationError as e:
            raise MalformedWebhookError(details={"errors": [err["msg"] for err in e.errors()]})

    async def handle(self, db: AsyncSession, raw_body: bytes, signature: Optional[str] = None) -> WebhookAck:
        try:
            payload = self.parse(raw_body, signature)
        except (WebhookSignatureError, MalformedWebhookError) as e:
            await log_event(
                db, AuditAction.WEBHOOK_REJECTED, actor=AuditActor.DELIVERY_PROVIDER,
                metadata={"reason": e.message},
            )
            raise

        data = payload.data
        target = map_delivery_status(data.status)
        tracking_status = data.tracking_status or data.status
        logger.info("Delivery webhook for %s: %s -> %s", data.do_number, data.status, target.value)

        order = await order_repository.find_order_by_job_reference(db, data.id, None)
        parcel = None
        if order is None:
            parcel = await order_repository.find_parcel_by_job_reference(db, data.id, None)
        if order is None and parcel is None:
            order = await order_repository.find_order_by_job_reference(db, None, data.do_number)
        if order is None and parcel is None:
            parcel = await order_repository.find_parcel_by_job_reference(db, None, data.do_number)

        if order is None and parcel is None:
            logger.warning("Delivery webhook for unknown job %s (%s)", data.id, data.do_number)
            return WebhookAck(message="Unknown job")

        if order is None:
            order = await order_repository.get_order(db, parcel.order_id)

        touched_orders: Set[str] = {order.id}
        if order.is_bulk_order and parcel is not None:
            await order_repository.advance_status(db, Parcel, parcel.id, target, tracking_status)
        else:
            if not await order_repository.advance_status(db, Order, order.id, target, tracking_status):
                logger.info("Order %s not moved to %s", order.short_code, target.value)
            for p in order.parcels:
                await order_repository.advance_status(db, Parcel, p.id, target, tracking_status)

        touched_orders |= await self._apply_items(db, data, target)

        for order_id in touched_orders:
            await self._roll_up(db, order_id, tracking_status)

        await db.commit()
        await log_event(
            db, AuditAction.DELIVERY_STATUS_UPDATED, order_id=order.id, actor=AuditActor.DELIVERY_PROVIDER,
            metadata={"do_number": data.do_number, "job_id": data.id, "provider_status": data.status,
                      "status": target.value},
        )
        return WebhookAck(message="Status updated")

    async def _apply_items(self, db: AsyncSession, data: DeliveryJobData, job_target: OrderStatus) -> Set[str]:
        """Per-item updates, each in its own savepoint. Returns ids of affected orders."""
        touched: Set[str] = set()
        for item in data.items:
            if not item.id:
                continue
            try:
                async with db.begin_nested():
                    parcel = await order_repository.find_parcel_by_item_id(db, item.id)
                    if parcel is None:
                        logger.info("No parcel for delivery item %s", item.id)
                        continue
                    target = map_delivery_status(item.status) if item.status else job_target
                    await order_repository.advance_status(db, Parcel, parcel.id, target, item.status)
                    touched.add(parcel.order_id)
            except Exception:
                logger.exception("Failed to apply delivery item %s", item.id)
        return touched

    async def _roll_up(self, db: AsyncSession, order_id: str, tracking_status: Optional[str]) -> None:
        """Bring a bulk order's status up to its least advanced parcel."""
        order: Order = await order_repository.get_order(db, order_id)
        if order is None or not order.is_bulk_order:
            return
        parcels = await order_repository.list_parcels(db, order_id)
        target = rollup_status(p.status for p in parcels)
        if target is not None:
            await order_repository.advance_status(db, Order, order_id, target, tracking_status)
