from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.infra.queue import is_async_enabled
from app.models.agent import Agent, AgentStatus
from app.services.mission_service import get_active_mission


router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db)):
    mission = get_active_mission(db)
    active_agents = 0
    if mission is not None:
        active_agents = (
            db.query(func.count(Agent.id))
            .filter(Agent.mission_id == mission.id, Agent.status == AgentStatus.active.value)
            .scalar()
            or 0
        )
    return {
        "status": "ok",
        "active_mission": {"id": mission.id, "phase": mission.phase} if mission else None,
        "active_agents": int(active_agents),
        "async_queue": {"enabled": bool(is_async_enabled())},
    }
