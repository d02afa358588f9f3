from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.agents import AgentOut
from app.services.assignment_service import format_qc_assignment
from app.services.mission_service import require_active_mission
from app.services.qc_selector import flagged_agents, qc_stats, select_review_candidate


router = APIRouter(tags=["qc"])


@router.get("/qc/stats")
def read_qc_stats(request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    mission = require_active_mission(db)
    data = {"mission_id": mission.id, **qc_stats(db, mission.id)}
    data["flagged_agents"] = len(flagged_agents(db, mission.id))
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/qc/next")
def peek_next_review(request: Request, agent_id: str = "", db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Preview the finding the next reviewer would get. Nothing is assigned."""
    mission = require_active_mission(db)
    finding, author, task = select_review_candidate(db, mission.id, exclude_agent_id=agent_id or None)
    data = format_qc_assignment(agent_id or "{agent_id}", finding, author, task) if finding is not None else None
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/qc/flagged-agents")
def read_flagged_agents(request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    mission = require_active_mission(db)
    data = [AgentOut.model_validate(a).model_dump(mode="json") for a in flagged_agents(db, mission.id)]
    return {"request_id": request.state.request_id, "data": data, "error": None}
