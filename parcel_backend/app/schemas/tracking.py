"""
Tracking timeline schemas.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, List, Literal


MilestoneState = Literal["completed", "current", "upcoming"]


class Milestone(BaseModel):
    name: str
    status: MilestoneState
    timestamp: Optional[str] = None
    description: str


class Timeline(BaseModel):
    """Serialized in camelCase for the tracking UI."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: str
    tracking_status: str
    milestones: List[Milestone]
    last_updated: datetime
