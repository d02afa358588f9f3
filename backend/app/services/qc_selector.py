from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Query, Session

from app.models.agent import Agent
from app.models.finding import Finding, QCStatus, TERMINAL_QC_STATUSES
from app.models.task import Task

# Authors without a score sort like a perfect record: last in line for re-review.
UNKNOWN_AUTHOR_SCORE = 1.0


def review_queue(db: Session, mission_id: str, *, exclude_agent_id: Optional[str] = None) -> Query:
    """Findings of a mission in QC priority order as ``(finding, author, task)`` rows.

    ``author`` and ``task`` are None when the agent row or source task is missing.

    1. pending before reviewed
    2. flagged authors first
    3. author quality ascending
    4. least recently reviewed, never-reviewed first
    5. oldest submission first
    """

    q = (
        db.query(Finding, Agent, Task)
        .outerjoin(Agent, Agent.id == Finding.agent_id)
        .outerjoin(Task, Task.id == Finding.task_id)
        .filter(Finding.mission_id == mission_id)
    )
    if exclude_agent_id:
        q = q.filter(or_(Finding.agent_id.is_(None), Finding.agent_id != exclude_agent_id))

    return q.order_by(
        case((Finding.qc_status == QCStatus.pending.value, 0), else_=1).asc(),
        case((Agent.flagged.is_(True), 0), else_=1).asc(),
        func.coalesce(Agent.quality_score, UNKNOWN_AUTHOR_SCORE).asc(),
        case((Finding.qc_reviewed_at.is_(None), 0), else_=1).asc(),
        Finding.qc_reviewed_at.asc(),
        Finding.submitted_at.asc(),
        Finding.id.asc(),
    )


def select_for_review(db: Session, mission_id: str, exclude_agent_id: Optional[str] = None) -> Optional[Finding]:
    row = review_queue(db, mission_id, exclude_agent_id=exclude_agent_id).first()
    return row[0] if row else None


def select_review_candidate(
    db: Session, mission_id: str, exclude_agent_id: Optional[str] = None
) -> Tuple[Optional[Finding], Optional[Agent], Optional[Task]]:
    """Next finding to review with its author and the task it was researched for."""
    row = review_queue(db, mission_id, exclude_agent_id=exclude_agent_id).first()
    if not row:
        return None, None, None
    return row[0], row[1], row[2]


def count_findings(db: Session, mission_id: str) -> int:
    return int(db.query(func.count(Finding.id)).filter(Finding.mission_id == mission_id).scalar() or 0)


def qc_stats(db: Session, mission_id: str) -> Dict[str, Any]:
    rows = (
        db.query(Finding.qc_status, func.count(Finding.id))
        .filter(Finding.mission_id == mission_id)
        .group_by(Finding.qc_status)
        .all()
    )
    stats: Dict[str, Any] = {s.value: 0 for s in QCStatus}
    stats["total"] = 0
    for status, cnt in rows:
        stats[str(status)] = int(cnt or 0)
        stats["total"] += int(cnt or 0)

    reviewed = sum(int(stats.get(s) or 0) for s in TERMINAL_QC_STATUSES)
    stats["review_rate"] = round(reviewed * 100 / stats["total"]) if stats["total"] else 0
    return stats


def flagged_agents(db: Session, mission_id: str) -> List[Agent]:
    return (
        db.query(Agent)
        .filter(Agent.mission_id == mission_id, Agent.flagged.is_(True))
        .order_by(Agent.quality_score.asc(), Agent.id.asc())
        .all()
    )
