"""
Payment redirect endpoint.

The payment provider sends the customer here after checkout; they are
forwarded to the tracking page of the order's first parcel.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from parcel_backend.app.db.session import get_db
from parcel_backend.app.core.config import settings
from parcel_backend.app.services import identifier_resolver, order_repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["Payments"])


@router.get("/success")
async def payment_success(
    order_id: Optional[str] = Query(None, alias="orderId"),
    db: AsyncSession = Depends(get_db)
):
    fallback = RedirectResponse(f"{settings.public_base_url}/booking")
    if not order_id:
        return fallback

    resolved_id = await identifier_resolver.resolve_order(db, order_id)
    if resolved_id is None:
        logger.warning("Payment redirect for unknown order %s", order_id)
        return fallback

    parcels = await order_repository.list_parcels(db, resolved_id)
    if not parcels or not parcels[0].short_code:
        return fallback
    return RedirectResponse(f"{settings.public_base_url}/order/{parcels[0].short_code}")
