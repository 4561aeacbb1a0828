"""
Order API Endpoints.

Booking (price re-validation, persistence, payment session) and order lookup
by short code or internal id.
"""

from fastapi import APIRouter, Depends, status, Path
from sqlalchemy.ext.asyncio import AsyncSession
from parcel_backend.app.db.session import get_db
from parcel_backend.app.core.dependencies import get_order_service
from parcel_backend.app.core.exceptions import ResourceNotFoundError
from parcel_backend.app.domain.orders.order_service import OrderCreationService
from parcel_backend.app.schemas.order import OrderCreate, OrderCreateResponse, OrderResponse
from parcel_backend.app.services import identifier_resolver, order_repository

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("", response_model=OrderCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    service: OrderCreationService = Depends(get_order_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Book a delivery.

    The declared amount must match the server-computed price to the cent;
    on success the client is sent to the returned payment URL.
    """
    return await service.create_order(db, order_data.order, order_data.parcels, order_data.recipients)


@router.get("/{identifier}", response_model=OrderResponse)
async def get_order(
    identifier: str = Path(..., description="Order or parcel short code, or internal id"),
    db: AsyncSession = Depends(get_db)
):
    order_id = await identifier_resolver.resolve_order(db, identifier)
    if order_id is None:
        raise ResourceNotFoundError("Order", identifier)

    order = await order_repository.get_order(db, order_id)
    return OrderResponse.model_validate(order)
