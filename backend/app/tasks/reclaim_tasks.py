from __future__ import annotations

from typing import Any, Dict, Optional

from app.db.session import SessionLocal
from app.services.coordinator_service import reclaim


def task_reclaim_stale(*, timeout_sec: Optional[int] = None, reason: str = "timed out") -> Dict[str, Any]:
    """Background stale-agent reclamation.

    Runs inline when the async queue is disabled, or in an RQ worker otherwise.
    """
    db = SessionLocal()
    try:
        return reclaim(db, timeout_sec=timeout_sec, reason=reason).to_dict()
    finally:
        db.close()
