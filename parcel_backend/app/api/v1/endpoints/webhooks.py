"""
Webhook API Endpoints.

Payment provider webhooks arrive form-encoded, delivery provider webhooks
as JSON. Both are acknowledged with 200 once handled, including events for
unknown references.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from parcel_backend.app.db.session import get_db
from parcel_backend.app.core.dependencies import get_payment_webhook_handler, get_delivery_webhook_handler
from parcel_backend.app.domain.webhooks.delivery_webhook import DeliveryWebhookHandler, SIGNATURE_HEADER
from parcel_backend.app.domain.webhooks.payment_webhook import PaymentWebhookHandler
from parcel_backend.app.schemas.webhooks import WebhookAck

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/payment", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    handler: PaymentWebhookHandler = Depends(get_payment_webhook_handler),
    db: AsyncSession = Depends(get_db)
):
    form = await request.form()
    fields = {key: value for key, value in form.items() if isinstance(value, str)}
    return await handler.handle(db, fields)


@router.post("/delivery", response_model=WebhookAck)
async def delivery_webhook(
    request: Request,
    handler: DeliveryWebhookHandler = Depends(get_delivery_webhook_handler),
    db: AsyncSession = Depends(get_db)
):
    raw_body = await request.body()
    return await handler.handle(db, raw_body, request.headers.get(SIGNATURE_HEADER))
