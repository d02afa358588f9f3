from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


Phase = Literal["queued", "research", "synthesis", "paused", "completed"]


class MissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    phase: Phase
    total_tasks: int = 0
    completed_tasks: int = 0
    config: Dict[str, Any] = Field(default_factory=dict)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ActivityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    mission_id: Optional[str] = None
    message: str
    type: str
    created_at: datetime


class QCResetRequest(BaseModel):
    scope: Literal["all", "flagged", "low-quality"] = "all"


class QCReviewRequest(BaseModel):
    verdict: str = ""
    notes: Optional[str] = None
    reviewer_agent_id: Optional[str] = None
