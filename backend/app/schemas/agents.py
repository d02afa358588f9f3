from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    mission_id: Optional[str] = None
    # None -> DEFAULT_MAX_TASKS, 0 -> unlimited
    max_tasks: Optional[int] = None


class CitationIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    authors: Optional[Union[str, List[str]]] = None
    journal: Optional[str] = None
    year: Optional[Union[int, str]] = None
    doi: Optional[str] = None
    url: Optional[str] = None
    study_type: Optional[str] = None
    sample_size: Optional[Union[int, str]] = None
    key_claim: Optional[str] = None


class FindingSubmitRequest(BaseModel):
    # Presence rules (title, summary, >= 1 citation) are enforced by the service
    # so every caller gets the same VALIDATION_FAILED answer.
    title: str = ""
    summary: str = ""
    citations: List[CitationIn] = Field(default_factory=list)
    confidence: Optional[str] = None
    contradictions: List[Any] = Field(default_factory=list)
    gaps: List[Any] = Field(default_factory=list)
    papers_analyzed: Optional[int] = None

    def to_content(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["citations"] = [c.model_dump(exclude_none=True) for c in self.citations]
        return data


class VerdictSubmitRequest(BaseModel):
    finding_id: str = ""
    verdict: str = ""
    notes: Optional[str] = None


class AgentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: str
    role: str
    mission_id: Optional[str] = None
    division_id: Optional[str] = None
    queue_id: Optional[str] = None
    current_task_id: Optional[str] = None
    tasks_completed: int = 0
    papers_analyzed: int = 0
    quality_score: float = 1.0
    qc_passes: int = 0
    qc_fails: int = 0
    flagged: bool = False
    max_tasks: int = 0
    registered_at: Optional[datetime] = None
    last_heartbeat: Optional[datetime] = None
    disconnected_at: Optional[datetime] = None


class FindingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    agent_id: Optional[str] = None
    task_id: Optional[str] = None
    mission_id: str
    division_id: Optional[str] = None
    queue_id: Optional[str] = None
    title: str
    summary: str
    citations: List[Dict[str, Any]] = Field(default_factory=list)
    confidence: str
    contradictions: List[Any] = Field(default_factory=list)
    gaps: List[Any] = Field(default_factory=list)
    papers_analyzed: int = 0
    submitted_at: Optional[datetime] = None
    qc_status: str
    qc_notes: Optional[str] = None
    qc_agent_id: Optional[str] = None
    qc_cycle: int = 0
    qc_reviewed_at: Optional[datetime] = None


class AgentProfileOut(BaseModel):
    agent: AgentOut
    total_citations: int
    high_confidence_rate: int
    divisions_worked: int
    queues_worked: int
    active_minutes: int
    findings: List[FindingOut] = Field(default_factory=list)
