from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_admin
from app.schemas.missions import ActivityOut, MissionOut
from app.services.activity_service import recent_activity
from app.services.mission_service import activate_mission, get_active_mission, get_mission, list_missions
from app.services.task_selector import task_stats


router = APIRouter(tags=["missions"])


def _mission_dict(db: Session, mission) -> Dict[str, Any]:
    out = MissionOut.model_validate(mission).model_dump(mode="json")
    out["tasks"] = task_stats(db, mission.id)
    return out


@router.get("/missions")
def read_missions(request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    active = get_active_mission(db)
    data = {
        "active_mission_id": active.id if active else None,
        "missions": [_mission_dict(db, m) for m in list_missions(db)],
    }
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/missions/active")
def read_active_mission(request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    active = get_active_mission(db)
    data = _mission_dict(db, active) if active else None
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.post("/missions/{mission_id}/activate")
def activate(
    request: Request,
    mission_id: str,
    db: Session = Depends(get_db),
    _admin: None = Depends(require_admin),
) -> Dict[str, Any]:
    mission = activate_mission(db, mission_id)
    db.commit()
    return {"request_id": request.state.request_id, "data": _mission_dict(db, mission), "error": None}


@router.get("/missions/{mission_id}/activity")
def read_activity(
    request: Request,
    mission_id: str,
    limit: int = 100,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    get_mission(db, mission_id)
    rows = recent_activity(db, mission_id, limit=limit)
    data = [ActivityOut.model_validate(r).model_dump(mode="json") for r in rows]
    return {"request_id": request.state.request_id, "data": data, "error": None}
