"""Research/QC assignment policy.

``next_assignment`` only reads the store. ``assign_next`` applies the choice:
it claims research tasks with the conditional update from ``task_selector`` and
re-runs the policy whenever the claim is lost.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ClaimContentionError
from app.db.base_class import utcnow
from app.models.agent import QC_DIVISION_ID, QC_QUEUE_ID, Agent, AgentRole
from app.models.finding import Finding
from app.models.task import Task
from app.services.qc_selector import count_findings, select_review_candidate
from app.services.task_selector import claim_task, select_task

logger = logging.getLogger(__name__)

AssignmentKind = Literal["research", "qc"]


@dataclass
class Assignment:
    kind: AssignmentKind
    task: Optional[Task] = None
    finding: Optional[Finding] = None
    author: Optional[Agent] = None
    # task the reviewed finding was researched for
    source_task: Optional[Task] = None


def next_assignment(
    db: Session,
    mission_id: str,
    agent_id: str,
    *,
    rng: Optional[random.Random] = None,
    qc_rate: Optional[float] = None,
    warmup: Optional[int] = None,
) -> Optional[Assignment]:
    """Decide what ``agent_id`` should work on next, without claiming anything."""

    rng = rng or random
    qc_rate = settings.QC_RATE if qc_rate is None else float(qc_rate)
    warmup = settings.QC_WARMUP_FINDINGS if warmup is None else int(warmup)

    research_task = select_task(db, mission_id, rng=rng)

    if count_findings(db, mission_id) < warmup:
        return Assignment(kind="research", task=research_task) if research_task is not None else None

    if rng.random() < qc_rate:
        qc = _qc_assignment(db, mission_id, agent_id)
        if qc is not None:
            return qc

    if research_task is not None:
        return Assignment(kind="research", task=research_task)

    # Research pool exhausted: review regardless of the draw.
    return _qc_assignment(db, mission_id, agent_id)


def _qc_assignment(db: Session, mission_id: str, agent_id: str) -> Optional[Assignment]:
    finding, author, source_task = select_review_candidate(db, mission_id, exclude_agent_id=agent_id)
    if finding is None:
        return None
    return Assignment(kind="qc", finding=finding, author=author, source_task=source_task)


def assign_next(
    db: Session,
    agent: Agent,
    mission_id: str,
    *,
    rng: Optional[random.Random] = None,
    max_retries: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Optional[Assignment]:
    """Pick and apply the next assignment for ``agent``.

    Research tasks are claimed atomically; a lost claim re-runs the policy.
    The agent row is updated in the caller's transaction.
    """

    max_retries = settings.CLAIM_MAX_RETRIES if max_retries is None else int(max_retries)
    now = now or utcnow()

    for _ in range(max(1, max_retries)):
        assignment = next_assignment(db, mission_id, agent.id, rng=rng)
        if assignment is None:
            return None

        if assignment.kind == "qc":
            agent.role = AgentRole.qc.value
            agent.current_task_id = None
            agent.division_id = QC_DIVISION_ID
            agent.queue_id = QC_QUEUE_ID
            db.flush()
            return assignment

        task = assignment.task
        if claim_task(db, task, agent.id, now=now):
            agent.role = AgentRole.worker.value
            agent.current_task_id = task.id
            agent.division_id = task.division_id
            agent.queue_id = task.queue_id
            db.flush()
            return assignment

    logger.warning("agent %s lost %s claim races in a row on mission %s", agent.id, max_retries, mission_id)
    raise ClaimContentionError("Too many agents competing for the same tasks, retry shortly")


def claim_research_task(
    db: Session,
    agent: Agent,
    mission_id: str,
    *,
    rng: Optional[random.Random] = None,
    max_retries: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Optional[Task]:
    """Claim a research task only (no QC), retrying lost races."""

    max_retries = settings.CLAIM_MAX_RETRIES if max_retries is None else int(max_retries)
    for _ in range(max(1, max_retries)):
        task = select_task(db, mission_id, rng=rng)
        if task is None:
            return None
        if claim_task(db, task, agent.id, now=now):
            agent.role = AgentRole.worker.value
            agent.current_task_id = task.id
            agent.division_id = task.division_id
            agent.queue_id = task.queue_id
            db.flush()
            return task
    raise ClaimContentionError("Too many agents competing for the same tasks, retry shortly")


def format_assignment(agent_id: str, assignment: Optional[Assignment]) -> Optional[Dict[str, Any]]:
    if assignment is None:
        return None
    if assignment.kind == "research":
        return format_research_assignment(agent_id, assignment.task)
    return format_qc_assignment(agent_id, assignment.finding, assignment.author, assignment.source_task)


def format_research_assignment(agent_id: str, task: Task) -> Dict[str, Any]:
    return {
        "type": "research",
        "task_id": task.id,
        "division": task.division_name,
        "queue": task.queue_name,
        "description": task.description,
        "search_terms": list(task.search_terms or []),
        "databases": list(task.databases or []),
        "depth": task.depth,
        "submit_to": f"/api/agents/{agent_id}/findings",
    }


def format_qc_assignment(
    agent_id: str, finding: Finding, author: Optional[Agent] = None, source_task: Optional[Task] = None
) -> Dict[str, Any]:
    return {
        "type": "qc_review",
        "finding_id": finding.id,
        "finding_title": finding.title,
        "finding_summary": finding.summary,
        "finding_citations": list(finding.citations or []),
        "finding_confidence": finding.confidence,
        "finding_contradictions": list(finding.contradictions or []),
        "finding_gaps": list(finding.gaps or []),
        "finding_division": finding.division_id,
        "finding_queue": finding.queue_id,
        "original_agent_id": finding.agent_id,
        "agent_quality": float(author.quality_score) if author is not None else None,
        "agent_flagged": bool(author.flagged) if author is not None else False,
        "previous_qc_status": finding.qc_status,
        "qc_cycle": int(finding.qc_cycle or 0),
        "original_task_description": source_task.description if source_task is not None else "",
        "original_search_terms": list(source_task.search_terms or []) if source_task is not None else [],
        "submit_to": f"/api/agents/{agent_id}/qc-submit",
    }
