"""Contributor trust scoring from QC verdicts.

The score is always recomputed from the full verdict history of the author's
findings, never adjusted incrementally.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Literal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.models.agent import Agent
from app.models.finding import Finding, QCStatus, TERMINAL_QC_STATUSES

logger = logging.getLogger(__name__)

FLAG_MIN_REVIEWS = 3
FLAG_SCORE_THRESHOLD = 0.5

ResetScope = Literal["all", "flagged", "low-quality"]


@dataclass(frozen=True)
class QualityResult:
    score: float
    passes: int
    fails: int
    flagged: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def score_verdicts(statuses: Iterable[str]) -> QualityResult:
    """Score a sequence of QC statuses. Pending (or unknown) entries are ignored."""

    passes = 0
    fails = 0
    for status in statuses:
        if status == QCStatus.passed.value:
            passes += 1
        elif status in (QCStatus.flagged.value, QCStatus.rejected.value):
            fails += 1

    total = passes + fails
    score = passes / total if total > 0 else 1.0
    flagged = total >= FLAG_MIN_REVIEWS and score < FLAG_SCORE_THRESHOLD
    return QualityResult(score=score, passes=passes, fails=fails, flagged=flagged)


def recompute_agent_quality(db: Session, agent_id: str) -> QualityResult:
    """Recompute and persist an author's score from their terminal verdicts."""

    rows = (
        db.query(Finding.qc_status, func.count(Finding.id))
        .filter(Finding.agent_id == agent_id, Finding.qc_status.in_(TERMINAL_QC_STATUSES))
        .group_by(Finding.qc_status)
        .all()
    )
    statuses: List[str] = []
    for status, cnt in rows:
        statuses.extend([str(status)] * int(cnt or 0))
    result = score_verdicts(statuses)

    agent = db.get(Agent, agent_id)
    if agent is not None:
        agent.quality_score = float(result.score)
        agent.qc_passes = int(result.passes)
        agent.qc_fails = int(result.fails)
        agent.flagged = bool(result.flagged)
        db.flush()
    return result


def reset_qc_cycle(db: Session, mission_id: str, *, scope: ResetScope = "all") -> int:
    """Send findings back to pending for another review cycle. Returns the number reset."""

    q = db.query(Finding.id, Finding.agent_id).filter(Finding.mission_id == mission_id)
    if scope == "flagged":
        q = q.filter(Finding.qc_status == QCStatus.flagged.value)
    elif scope == "low-quality":
        flagged_ids = select(Agent.id).where(Agent.flagged.is_(True))
        q = q.filter(Finding.agent_id.in_(flagged_ids))
    elif scope != "all":
        raise ValueError(f"unknown reset scope: {scope}")

    rows = q.all()
    if not rows:
        return 0

    finding_ids = [r[0] for r in rows]
    db.execute(
        update(Finding)
        .where(Finding.id.in_(finding_ids))
        .values(qc_status=QCStatus.pending.value)
        .execution_options(synchronize_session="fetch")
    )

    authors: set[str] = {str(r[1]) for r in rows if r[1]}
    for author_id in sorted(authors):
        recompute_agent_quality(db, author_id)
    logger.info("qc cycle reset: mission=%s scope=%s findings=%s authors=%s", mission_id, scope, len(finding_ids), len(authors))
    return len(finding_ids)

