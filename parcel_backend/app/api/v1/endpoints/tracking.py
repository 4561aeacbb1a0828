"""
Tracking API Endpoints.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession
from parcel_backend.app.db.session import get_db
from parcel_backend.app.core.dependencies import get_status_query_service
from parcel_backend.app.domain.tracking.status_query import StatusQueryService
from parcel_backend.app.schemas.tracking import Timeline

router = APIRouter(prefix="/tracking", tags=["Tracking"])


@router.get("/{identifier}", response_model=Timeline, response_model_by_alias=True)
async def get_tracking(
    identifier: str = Path(..., description="Order or parcel short code, or internal id"),
    service: StatusQueryService = Depends(get_status_query_service),
    db: AsyncSession = Depends(get_db)
):
    """Delivery timeline for an order or parcel. 404 when the identifier is unknown."""
    return await service.get_status(db, identifier)
