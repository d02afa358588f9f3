from __future__ import annotations

import random

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_rng
from app.schemas.agents import (
    AgentOut,
    AgentProfileOut,
    FindingSubmitRequest,
    RegisterRequest,
    VerdictSubmitRequest,
)
from app.services import coordinator_service
from app.services.mission_service import get_active_mission


router = APIRouter(tags=["agents"])


@router.post("/agents/register")
def register_agent(
    request: Request,
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    rng: random.Random = Depends(get_rng),
):
    data = coordinator_service.register(db, mission_id=payload.mission_id, max_tasks=payload.max_tasks, rng=rng)
    return {"request_id": request.state.request_id, "data": jsonable_encoder(data), "error": None}


@router.post("/agents/{agent_id}/findings")
def submit_finding(
    request: Request,
    agent_id: str,
    payload: FindingSubmitRequest,
    db: Session = Depends(get_db),
    rng: random.Random = Depends(get_rng),
):
    data = coordinator_service.submit_finding(db, agent_id, payload.to_content(), rng=rng)
    return {"request_id": request.state.request_id, "data": jsonable_encoder(data), "error": None}


@router.post("/agents/{agent_id}/qc-submit")
def submit_verdict(
    request: Request,
    agent_id: str,
    payload: VerdictSubmitRequest,
    db: Session = Depends(get_db),
    rng: random.Random = Depends(get_rng),
):
    data = coordinator_service.submit_verdict(
        db,
        agent_id,
        payload.finding_id,
        payload.verdict,
        payload.notes,
        rng=rng,
    )
    return {"request_id": request.state.request_id, "data": jsonable_encoder(data), "error": None}


@router.post("/agents/{agent_id}/heartbeat")
def heartbeat(
    request: Request,
    agent_id: str,
    db: Session = Depends(get_db),
    rng: random.Random = Depends(get_rng),
):
    data = coordinator_service.heartbeat(db, agent_id, rng=rng)
    return {"request_id": request.state.request_id, "data": jsonable_encoder(data), "error": None}


@router.post("/agents/{agent_id}/disconnect")
def disconnect(request: Request, agent_id: str, db: Session = Depends(get_db)):
    data = coordinator_service.disconnect(db, agent_id)
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/agents")
def list_agents(request: Request, db: Session = Depends(get_db)):
    mission = get_active_mission(db)
    rows = coordinator_service.list_agents(db, mission.id) if mission else []
    data = [AgentOut.model_validate(r).model_dump(mode="json") for r in rows]
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/agents/{agent_id}/profile")
def agent_profile(request: Request, agent_id: str, db: Session = Depends(get_db)):
    profile = coordinator_service.agent_profile(db, agent_id)
    data = AgentProfileOut.model_validate(profile, from_attributes=True).model_dump(mode="json")
    return {"request_id": request.state.request_id, "data": data, "error": None}
