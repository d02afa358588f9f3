from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.errors import NotFoundError
from app.models.finding import Finding
from app.schemas.agents import FindingOut
from app.services.mission_service import get_active_mission


router = APIRouter(tags=["findings"])


@router.get("/findings")
def list_findings(
    request: Request,
    mission_id: Optional[str] = None,
    division_id: Optional[str] = None,
    queue_id: Optional[str] = None,
    confidence: Optional[str] = None,
    qc_status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    if not mission_id:
        active = get_active_mission(db)
        mission_id = active.id if active else None
    if not mission_id:
        return {"request_id": request.state.request_id, "data": {"total": 0, "findings": []}, "error": None}

    q = db.query(Finding).filter(Finding.mission_id == mission_id)
    if division_id:
        q = q.filter(Finding.division_id == division_id)
    if queue_id:
        q = q.filter(Finding.queue_id == queue_id)
    if confidence:
        q = q.filter(Finding.confidence == confidence)
    if qc_status:
        q = q.filter(Finding.qc_status == qc_status)

    total = q.count()
    rows = (
        q.order_by(Finding.submitted_at.desc(), Finding.id.asc())
        .offset(int(max(0, offset)))
        .limit(int(max(1, min(500, limit))))
        .all()
    )
    data = {"total": int(total), "findings": [FindingOut.model_validate(r).model_dump(mode="json") for r in rows]}
    return {"request_id": request.state.request_id, "data": data, "error": None}


@router.get("/findings/{finding_id}")
def read_finding(request: Request, finding_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    row = db.get(Finding, finding_id)
    if row is None:
        raise NotFoundError(f"Finding not found: {finding_id}")
    return {"request_id": request.state.request_id, "data": FindingOut.model_validate(row).model_dump(mode="json"), "error": None}
