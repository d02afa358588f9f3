"""Agent-facing coordinator operations.

Every public function here is one request: it runs inside a single transaction
and commits once at the end, so a failure anywhere leaves the store untouched.
"""

from __future__ import annotations

import logging
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import AgentCompletedError, NoWorkAvailableError, NotFoundError, ValidationFailedError
from app.db.base_class import utcnow
from app.models.agent import Agent, AgentRole, AgentStatus
from app.models.finding import Confidence, Finding, QCStatus, TERMINAL_QC_STATUSES
from app.models.mission import Mission, MissionPhase
from app.services.activity_service import log_activity, short_id
from app.services.assignment_service import (
    Assignment,
    assign_next,
    claim_research_task,
    format_assignment,
    format_qc_assignment,
)
from app.services.mission_service import check_mission_advancement, get_mission, require_active_mission
from app.services.qc_selector import select_review_candidate
from app.services.quality_scorer import QualityResult, recompute_agent_quality
from app.services.reclaimer import ReclaimResult, reclaim_stale
from app.services.task_selector import complete_task, release_task

logger = logging.getLogger(__name__)


def _new_agent_id() -> str:
    return f"AG-{uuid.uuid4().hex[:12]}"


def _new_finding_id() -> str:
    return f"F-{uuid.uuid4().hex[:12]}"


def get_agent(db: Session, agent_id: str) -> Agent:
    agent = db.get(Agent, agent_id)
    if agent is None:
        raise NotFoundError(f"Agent not found: {agent_id}. Re-register at POST /api/agents/register")
    return agent


def _resolve_max_tasks(max_tasks: Optional[int]) -> int:
    if max_tasks is None:
        return int(settings.DEFAULT_MAX_TASKS)
    if int(max_tasks) < 0:
        raise ValidationFailedError("max_tasks must be >= 0 (0 = unlimited)")
    return int(max_tasks)


def _ensure_working(agent: Agent, now: datetime) -> None:
    """Completed agents are terminal; reclaimed agents come back when they report in."""

    if agent.status == AgentStatus.completed.value:
        raise AgentCompletedError(f"Agent {agent.id} has completed its work and cannot take more")
    if agent.status != AgentStatus.active.value:
        agent.status = AgentStatus.active.value
        agent.disconnected_at = None
    agent.last_heartbeat = now


def register(
    db: Session,
    *,
    mission_id: Optional[str] = None,
    max_tasks: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """Create an agent and hand it its first assignment."""

    mission = get_mission(db, mission_id) if mission_id else require_active_mission(db)
    budget = _resolve_max_tasks(max_tasks)
    now = utcnow()

    agent = Agent(
        id=_new_agent_id(),
        status=AgentStatus.active.value,
        role=AgentRole.worker.value,
        mission_id=mission.id,
        registered_at=now,
        last_heartbeat=now,
        max_tasks=budget,
    )
    db.add(agent)
    db.flush()

    assignment = assign_next(db, agent, mission.id, rng=rng, now=now)
    if assignment is None:
        db.rollback()
        raise NoWorkAvailableError(f"No tasks or findings to review in mission {mission.name}")

    limit_note = f" (limit: {budget} tasks)" if budget else ""
    if assignment.kind == "research":
        target = f"{assignment.task.division_name} / {assignment.task.queue_name}"
    else:
        target = "QC review"
    log_activity(db, mission.id, f"Agent {short_id(agent.id)} registered -> {target}{limit_note}", "join")
    db.commit()

    return {
        "agent_id": agent.id,
        "max_tasks": budget or "unlimited",
        "mission": {"id": mission.id, "name": mission.name},
        "assignment": format_assignment(agent.id, assignment),
    }


def validate_finding(content: Dict[str, Any]) -> None:
    title = str(content.get("title") or "").strip()
    summary = str(content.get("summary") or "").strip()
    if not title or not summary:
        raise ValidationFailedError("title and summary required")

    citations = content.get("citations")
    if not isinstance(citations, list) or len(citations) == 0:
        raise ValidationFailedError("At least one citation required. Every claim must be backed by evidence.")

    confidence = content.get("confidence")
    if confidence is not None and confidence not in {c.value for c in Confidence}:
        raise ValidationFailedError("confidence must be: high, medium, or low")


def submit_finding(
    db: Session,
    agent_id: str,
    content: Dict[str, Any],
    *,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    agent = get_agent(db, agent_id)
    validate_finding(content)
    now = utcnow()
    _ensure_working(agent, now)

    citations = list(content["citations"])
    papers = int(content.get("papers_analyzed") or len(citations))
    confidence = str(content.get("confidence") or Confidence.medium.value)
    title = str(content["title"]).strip()

    finding = Finding(
        id=_new_finding_id(),
        agent_id=agent.id,
        task_id=agent.current_task_id,
        mission_id=agent.mission_id,
        division_id=agent.division_id,
        queue_id=agent.queue_id,
        title=title,
        summary=str(content["summary"]).strip(),
        citations=citations,
        confidence=confidence,
        contradictions=list(content.get("contradictions") or []),
        gaps=list(content.get("gaps") or []),
        papers_analyzed=papers,
        submitted_at=now,
        qc_status=QCStatus.pending.value,
        qc_cycle=0,
    )
    db.add(finding)
    db.flush()

    if agent.current_task_id:
        if not complete_task(db, agent.current_task_id, agent.id, now=now):
            logger.info("task %s was not completed by %s (already done or re-claimed)", agent.current_task_id, agent.id)
        agent.current_task_id = None

    agent.tasks_completed = int(agent.tasks_completed or 0) + 1
    agent.papers_analyzed = int(agent.papers_analyzed or 0) + papers
    db.flush()

    log_activity(
        db,
        agent.mission_id,
        f'Agent {short_id(agent.id)} submitted: "{title}" ({len(citations)} citations, {confidence} confidence)',
        "finding",
    )
    if agent.mission_id:
        check_mission_advancement(db, agent.mission_id, now=now)

    out = {"finding_id": finding.id, "status": "accepted"}
    out.update(_continue(db, agent, rng=rng, now=now))
    db.commit()
    return out


def submit_verdict(
    db: Session,
    agent_id: str,
    finding_id: str,
    verdict: str,
    notes: Optional[str] = None,
    *,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    agent = get_agent(db, agent_id)
    _validate_verdict(finding_id, verdict)

    finding = db.get(Finding, finding_id)
    if finding is None:
        raise NotFoundError(f"Finding not found: {finding_id}")
    if finding.agent_id == agent.id:
        raise ValidationFailedError("Agents cannot review their own findings")

    now = utcnow()
    _ensure_working(agent, now)
    if agent.current_task_id:
        # a research claim left behind would never complete
        release_task(db, agent.current_task_id, holder_id=agent.id)
        agent.current_task_id = None

    quality = _apply_verdict(db, finding, verdict, notes, reviewer_id=agent.id, now=now)
    agent.tasks_completed = int(agent.tasks_completed or 0) + 1
    db.flush()

    out: Dict[str, Any] = {
        "status": "reviewed",
        "finding_id": finding.id,
        "verdict": verdict,
        "author_quality": quality.to_dict() if quality is not None else None,
    }
    out.update(_continue(db, agent, rng=rng, now=now))
    db.commit()
    return out


def _validate_verdict(finding_id: str, verdict: str) -> None:
    if not finding_id or not verdict:
        raise ValidationFailedError("finding_id and verdict required")
    if verdict not in TERMINAL_QC_STATUSES:
        raise ValidationFailedError("verdict must be: passed, flagged, or rejected")


def _apply_verdict(
    db: Session,
    finding: Finding,
    verdict: str,
    notes: Optional[str],
    *,
    reviewer_id: Optional[str],
    now: datetime,
) -> Optional[QualityResult]:
    """Record the verdict on ``finding`` and re-score its author."""

    finding.qc_status = verdict
    finding.qc_notes = notes or None
    finding.qc_agent_id = reviewer_id
    finding.qc_cycle = int(finding.qc_cycle or 0) + 1
    finding.qc_reviewed_at = now
    db.flush()

    if not finding.agent_id:
        return None

    quality = recompute_agent_quality(db, finding.agent_id)
    reviewer = short_id(reviewer_id) if reviewer_id else "admin"
    log_activity(
        db,
        finding.mission_id,
        f'QC {verdict}: "{finding.title}" by {short_id(finding.agent_id)} '
        f"(score: {quality.score * 100:.0f}%) reviewed by {reviewer}",
        "qc",
    )
    if quality.flagged:
        log_activity(
            db,
            finding.mission_id,
            f"Agent {short_id(finding.agent_id)} FLAGGED, quality {quality.score * 100:.0f}% "
            f"({quality.fails} fails / {quality.passes + quality.fails} reviewed)",
            "warning",
        )
    return quality


def review_finding(
    db: Session,
    finding_id: str,
    verdict: str,
    notes: Optional[str] = None,
    *,
    reviewer_agent_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Record a verdict outside the assignment loop and preview the next candidate.

    Used by operators reviewing by hand. The reviewer, if named, gets no task
    accounting and no assignment.
    """

    _validate_verdict(finding_id, verdict)
    finding = db.get(Finding, finding_id)
    if finding is None:
        raise NotFoundError(f"Finding not found: {finding_id}")
    if reviewer_agent_id and finding.agent_id == reviewer_agent_id:
        raise ValidationFailedError("Agents cannot review their own findings")

    quality = _apply_verdict(db, finding, verdict, notes, reviewer_id=reviewer_agent_id, now=utcnow())
    db.commit()

    nxt, author, task = select_review_candidate(db, finding.mission_id, exclude_agent_id=reviewer_agent_id)
    return {
        "status": "reviewed",
        "finding_id": finding.id,
        "verdict": verdict,
        "author_quality": quality.to_dict() if quality is not None else None,
        "next_finding": (
            format_qc_assignment(reviewer_agent_id or "{agent_id}", nxt, author, task) if nxt is not None else None
        ),
    }


def _continue(db: Session, agent: Agent, *, rng: Optional[random.Random], now: datetime) -> Dict[str, Any]:
    """Enforce the task budget, then hand out the next assignment or finish the agent."""

    done = int(agent.tasks_completed or 0)
    budget = int(agent.max_tasks or 0)
    if budget > 0 and done >= budget:
        _finish(db, agent, f"reached task limit ({done}/{budget}). Stopping.")
        return {
            "next_assignment": None,
            "message": f"Task limit reached ({done}/{budget}). Thank you for your contribution.",
        }

    assignment: Optional[Assignment] = None
    mission = db.get(Mission, agent.mission_id) if agent.mission_id else None
    if mission is not None and mission.phase != MissionPhase.completed.value:
        assignment = assign_next(db, agent, mission.id, rng=rng, now=now)

    if assignment is None:
        _finish(db, agent, "no more work available")
        return {"next_assignment": None, "message": "All tasks completed. Thank you for your contribution."}

    target = assignment.task.queue_name if assignment.kind == "research" else "QC review"
    log_activity(db, agent.mission_id, f"Agent {short_id(agent.id)} -> next: {target}", "info")
    return {"next_assignment": format_assignment(agent.id, assignment)}


def _finish(db: Session, agent: Agent, reason: str) -> None:
    agent.status = AgentStatus.completed.value
    agent.current_task_id = None
    db.flush()
    log_activity(db, agent.mission_id, f"Agent {short_id(agent.id)} {reason}", "system")


def heartbeat(db: Session, agent_id: str, *, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Record liveness. A reclaimed agent without a task gets a fresh research task.

    Only ``disconnected`` agents are brought back; a ``completed`` agent is never reactivated.
    """

    agent = get_agent(db, agent_id)
    now = utcnow()
    agent.last_heartbeat = now
    assignment = None

    if agent.status == AgentStatus.disconnected.value:
        agent.status = AgentStatus.active.value
        agent.disconnected_at = None
        if agent.current_task_id:
            # the released task may have been picked up by someone else meanwhile
            agent.current_task_id = None
        mission = db.get(Mission, agent.mission_id) if agent.mission_id else None
        if mission is not None:
            task = claim_research_task(db, agent, mission.id, rng=rng, now=now)
            if task is not None:
                assignment = format_assignment(agent.id, Assignment(kind="research", task=task))
        log_activity(db, agent.mission_id, f"Agent {short_id(agent.id)} reconnected", "join")

    db.commit()
    return {
        "status": "ok",
        "agent_id": agent.id,
        "active": agent.status == AgentStatus.active.value,
        "agent_status": agent.status,
        "assignment": assignment,
    }


def disconnect(db: Session, agent_id: str) -> Dict[str, Any]:
    agent = get_agent(db, agent_id)
    now = utcnow()
    if agent.current_task_id:
        release_task(db, agent.current_task_id, holder_id=agent.id)
    agent.current_task_id = None
    # completed is terminal
    if agent.status != AgentStatus.completed.value:
        agent.status = AgentStatus.disconnected.value
        agent.disconnected_at = now
    log_activity(
        db,
        agent.mission_id,
        f"Agent {short_id(agent.id)} disconnected gracefully ({int(agent.tasks_completed or 0)} tasks completed)",
        "leave",
    )
    db.commit()
    return {"status": "disconnected", "tasks_completed": int(agent.tasks_completed or 0)}


def reclaim(db: Session, *, timeout_sec: Optional[int] = None, reason: str = "timed out") -> ReclaimResult:
    timeout = timedelta(seconds=int(settings.HEARTBEAT_TIMEOUT_SEC if timeout_sec is None else timeout_sec))
    result = reclaim_stale(db, timeout, reason=reason)
    db.commit()
    return result


def list_agents(db: Session, mission_id: str) -> List[Agent]:
    return (
        db.query(Agent)
        .filter(Agent.mission_id == mission_id)
        .order_by(Agent.tasks_completed.desc(), Agent.registered_at.desc())
        .all()
    )


def _as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def agent_profile(db: Session, agent_id: str) -> Dict[str, Any]:
    agent = get_agent(db, agent_id)
    findings = (
        db.query(Finding)
        .filter(Finding.agent_id == agent.id)
        .order_by(Finding.submitted_at.desc())
        .all()
    )
    divisions = {f.division_id for f in findings if f.division_id}
    queues = {f.queue_id for f in findings if f.queue_id}
    total_citations = sum(len(f.citations or []) for f in findings)
    high_rate = (
        sum(1 for f in findings if f.confidence == Confidence.high.value) / len(findings) if findings else 0.0
    )
    active_minutes = 0
    started, last = _as_utc(agent.registered_at), _as_utc(agent.last_heartbeat)
    if started is not None and last is not None:
        active_minutes = int(round((last - started).total_seconds() / 60))

    return {
        "agent": agent,
        "total_citations": int(total_citations),
        "high_confidence_rate": int(round(high_rate * 100)),
        "divisions_worked": len(divisions),
        "queues_worked": len(queues),
        "active_minutes": active_minutes,
        "findings": findings,
    }
