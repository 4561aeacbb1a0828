"""
Dispatch API Endpoints.

Manual and scheduled retry of delivery-job creation for paid orders.
"""

from typing import List
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from parcel_backend.app.db.session import get_db
from parcel_backend.app.core.dependencies import get_dispatch_orchestrator
from parcel_backend.app.core.exceptions import ResourceNotFoundError
from parcel_backend.app.domain.dispatch.dispatch_orchestrator import DispatchOrchestrator
from parcel_backend.app.schemas.dispatch import DispatchResult
from parcel_backend.app.services import identifier_resolver

router = APIRouter(prefix="/dispatch", tags=["Dispatch"])


@router.post("/orders/{identifier}/retry", response_model=DispatchResult)
async def retry_order_dispatch(
    identifier: str = Path(..., description="Order or parcel short code, or internal id"),
    orchestrator: DispatchOrchestrator = Depends(get_dispatch_orchestrator),
    db: AsyncSession = Depends(get_db)
):
    """Create the missing delivery jobs of one order; already dispatched parcels are skipped."""
    order_id = await identifier_resolver.resolve_order(db, identifier)
    if order_id is None:
        raise ResourceNotFoundError("Order", identifier)
    return await orchestrator.dispatch_order(db, order_id)


@router.post("/retry-pending", response_model=List[DispatchResult])
async def retry_pending_dispatch(
    limit: int = Query(100, ge=1, le=500),
    orchestrator: DispatchOrchestrator = Depends(get_dispatch_orchestrator),
    db: AsyncSession = Depends(get_db)
):
    return await orchestrator.retry_undispatched(db, limit=limit)
