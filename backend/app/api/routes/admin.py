from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_admin
from app.core.config import settings
from app.infra.event_bus import RedisEventBus
from app.infra.queue import enqueue
from app.schemas.missions import QCResetRequest, QCReviewRequest
from app.services import coordinator_service
from app.services.activity_service import log_activity
from app.services.mission_service import require_active_mission
from app.services.quality_scorer import reset_qc_cycle
from app.services.task_selector import task_stats
from app.tasks.reclaim_tasks import task_reclaim_stale

router = APIRouter(tags=["admin"])


@router.post("/admin/release-stale")
def release_stale(
    request: Request,
    hours: Optional[float] = None,
    _admin: None = Depends(require_admin),
) -> Dict[str, Any]:
    hours = float(settings.STALE_RELEASE_DEFAULT_HOURS if hours is None else hours)
    res = enqueue(
        task_reclaim_stale,
        timeout_sec=int(hours * 3600),
        reason=f"idle for more than {hours:g}h",
        queue_name="maintenance",
    )
    result = res.get("result")
    if isinstance(result, dict):
        res["released"] = int(result.get("released") or 0)
        res["agents"] = int(result.get("agents") or 0)
    return {"request_id": request.state.request_id, "data": res, "error": None}


@router.post("/admin/qc/reset-cycle")
def qc_reset_cycle(
    request: Request,
    payload: QCResetRequest,
    db: Session = Depends(get_db),
    _admin: None = Depends(require_admin),
) -> Dict[str, Any]:
    mission = require_active_mission(db)
    count = reset_qc_cycle(db, mission.id, scope=payload.scope)
    log_activity(db, mission.id, f"QC cycle reset ({payload.scope}): {count} findings back to pending", "system")
    db.commit()
    data = {"reset": int(count), "scope": payload.scope, "mission_id": mission.id}
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/admin/dashboard")
def admin_dashboard(
    request: Request,
    db: Session = Depends(get_db),
    _admin: None = Depends(require_admin),
) -> Dict[str, Any]:
    mission = require_active_mission(db)

    pending_events = 0
    if settings.EVENT_BUS_ENABLED:
        pending_events = RedisEventBus(settings.REDIS_URL).pending_count()

    data = {
        "mission_id": mission.id,
        "phase": mission.phase,
        "tasks": task_stats(db, mission.id),
        "event_bus": {"enabled": bool(settings.EVENT_BUS_ENABLED), "pending_events": int(pending_events)},
    }
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.post("/admin/qc/review/{finding_id}")
def qc_review(
    request: Request,
    finding_id: str,
    payload: QCReviewRequest,
    db: Session = Depends(get_db),
    _admin: None = Depends(require_admin),
) -> Dict[str, Any]:
    """Manual QC verdict; returns the next review candidate."""
    data = coordinator_service.review_finding(
        db,
        finding_id,
        payload.verdict,
        payload.notes,
        reviewer_agent_id=payload.reviewer_agent_id,
    )
    return {"request_id": request.state.request_id, "data": data, "error": None}
