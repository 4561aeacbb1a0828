"""
Dispatch result schemas.
"""

import enum
from pydantic import BaseModel, Field
from typing import Optional, List


class DispatchOutcome(str, enum.Enum):
    COMPLETE = "complete"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"


class ParcelDispatchResult(BaseModel):
    parcel_id: str
    success: bool
    job_id: Optional[str] = None
    already_dispatched: bool = False
    attempts: int = 0
    error: Optional[str] = None


class DispatchResult(BaseModel):
    """Aggregate of per-parcel dispatch-job creation for one order."""
    order_id: str
    outcome: DispatchOutcome
    job_ids: List[str] = Field(default_factory=list)
    failed_parcel_ids: List[str] = Field(default_factory=list)
    parcels: List[ParcelDispatchResult] = Field(default_factory=list)
    message: str = ""

    @property
    def success(self) -> bool:
        return self.outcome == DispatchOutcome.COMPLETE
