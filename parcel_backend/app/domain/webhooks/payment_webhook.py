"""
Payment Webhook Handler.

Verifies the provider's HMAC, moves the order from PENDING to PAID exactly
once and hands paid orders to the Dispatch Orchestrator.
"""

import logging
from typing import Mapping, Any
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_backend.app.core.config import PaymentProviderConfig
from parcel_backend.app.core.exceptions import WebhookSignatureError, MalformedWebhookError
from parcel_backend.app.domain.dispatch.dispatch_orchestrator import DispatchOrchestrator
from parcel_backend.app.models.order_enums import OrderStatus
from parcel_backend.app.schemas.webhooks import PaymentWebhookPayload, WebhookAck
from parcel_backend.app.services import identifier_resolver, order_repository
from parcel_backend.app.services.audit import log_event, AuditAction, AuditActor
from parcel_backend.app.services.webhook_signatures import payment_signature, signatures_match

logger = logging.getLogger(__name__)

PAYMENT_COMPLETED = "completed"


class PaymentWebhookHandler:
    def __init__(self, config: PaymentProviderConfig, orchestrator: DispatchOrchestrator):
        self.config = config
        self.orchestrator = orchestrator

    def parse(self, fields: Mapping[str, Any]) -> PaymentWebhookPayload:
        """Check the signature over the raw fields, then validate their shape."""
        received = fields.get("hmac")
        if not received:
            raise WebhookSignatureError("Missing signature")
        expected = payment_signature(fields, self.config.salt)
        if not signatures_match(expected, str(received)):
            raise WebhookSignatureError("Invalid signature")

        try:
            return PaymentWebhookPayload.model_validate(dict(fields))
        except ValidationError as e:
            raise MalformedWebhookError(details={"errors": [err["msg"] for err in e.errors()]})

    async def handle(self, db: AsyncSession, fields: Mapping[str, Any]) -> WebhookAck:
        try:
            payload = self.parse(fields)
        except (WebhookSignatureError, MalformedWebhookError) as e:
            await log_event(
                db, AuditAction.WEBHOOK_REJECTED, actor=AuditActor.PAYMENT_PROVIDER,
                metadata={"reason": e.message, "reference_number": fields.get("reference_number")},
            )
            raise

        logger.info("Payment webhook for %s: status=%s", payload.reference_number, payload.status)

        resolved = await identifier_resolver.resolve(db, payload.reference_number)
        if resolved is None or resolved.kind != "order":
            # Nothing the provider could do by retrying
            logger.warning("Payment webhook for unknown reference %s", payload.reference_number)
            return WebhookAck(message="Unknown reference")

        order_id = resolved.internal_id
        status = payload.status.strip().lower()

        if status != PAYMENT_COMPLETED:
            recorded = await order_repository.record_payment_status(db, order_id, payload.payment_id, status)
            await db.commit()
            if not recorded:
                logger.info("Order %s already past pending, ignoring payment status %s",
                            payload.reference_number, status)
                return WebhookAck(message="Already processed")
            await log_event(
                db, AuditAction.PAYMENT_STATUS_RECORDED, order_id=order_id,
                actor=AuditActor.PAYMENT_PROVIDER, metadata={"payment_status": status},
            )
            return WebhookAck(message=f"Payment status {status} recorded")

        transitioned = await order_repository.mark_order_paid(db, order_id, payload.payment_id, status)
        if not transitioned:
            await db.commit()
            logger.info("Order %s already past pending, ignoring repeated payment webhook",
                        payload.reference_number)
            return WebhookAck(message="Already processed")

        await order_repository.set_parcel_statuses(db, order_id, OrderStatus.PAID)
        await db.commit()
        await log_event(
            db, AuditAction.PAYMENT_CONFIRMED, order_id=order_id, actor=AuditActor.PAYMENT_PROVIDER,
            metadata={"payment_id": payload.payment_id, "amount": payload.amount},
        )

        try:
            result = await self.orchestrator.dispatch_order(db, order_id)
            if result.success:
                logger.info("Dispatch for %s: %s", payload.reference_number, result.message)
            else:
                logger.warning("Dispatch for %s incomplete: %s", payload.reference_number, result.message)
        except Exception:
            # The payment is recorded; retry_undispatched picks the order up later
            logger.exception("Dispatch failed for order %s", payload.reference_number)
            await db.rollback()

        return WebhookAck(message="Payment confirmed")
