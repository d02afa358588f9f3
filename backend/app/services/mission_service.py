"""Mission lifecycle: queued -> research -> synthesis -> completed, with paused on the side."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.errors import NoActiveMissionError, NotFoundError
from app.db.base_class import utcnow
from app.models.mission import Mission, MissionPhase
from app.models.task import Task, TaskStatus
from app.services.activity_service import log_activity
from app.services.task_selector import task_stats

logger = logging.getLogger(__name__)


def get_active_mission(db: Session) -> Optional[Mission]:
    """The most recently started mission that is not completed."""

    return (
        db.query(Mission)
        .filter(Mission.started_at.is_not(None), Mission.phase != MissionPhase.completed.value)
        .order_by(Mission.started_at.desc(), Mission.id.asc())
        .first()
    )


def require_active_mission(db: Session) -> Mission:
    mission = get_active_mission(db)
    if mission is None:
        raise NoActiveMissionError("No active mission")
    return mission


def get_mission(db: Session, mission_id: str) -> Mission:
    mission = db.get(Mission, mission_id)
    if mission is None:
        raise NotFoundError(f"Mission not found: {mission_id}")
    return mission


def list_missions(db: Session) -> List[Mission]:
    return db.query(Mission).order_by(Mission.created_at.desc(), Mission.id.asc()).all()


def set_phase(db: Session, mission: Mission, phase: MissionPhase, *, now: Optional[datetime] = None) -> None:
    now = now or utcnow()
    mission.phase = phase.value
    if phase == MissionPhase.research:
        mission.started_at = now
    if phase == MissionPhase.completed:
        mission.completed_at = now
    db.flush()


def update_progress(db: Session, mission_id: str) -> Dict[str, int]:
    stats = task_stats(db, mission_id)
    mission = db.get(Mission, mission_id)
    if mission is not None:
        mission.completed_tasks = int(stats[TaskStatus.completed.value])
        db.flush()
    return stats


def check_mission_advancement(db: Session, mission_id: str, *, now: Optional[datetime] = None) -> bool:
    """Move a finished research mission to synthesis and start the next queued one.

    Returns True only for the call that performed the transition.
    """

    mission = db.get(Mission, mission_id)
    if mission is None:
        return False

    stats = update_progress(db, mission_id)
    total = int(stats["total"])
    if total <= 0 or int(stats[TaskStatus.completed.value]) < total:
        return False

    now = now or utcnow()
    result = db.execute(
        update(Mission)
        .where(Mission.id == mission_id, Mission.phase == MissionPhase.research.value)
        .values(phase=MissionPhase.synthesis.value)
        .execution_options(synchronize_session=False)
    )
    db.expire(mission)
    if int(result.rowcount or 0) != 1:
        return False

    log_activity(db, mission_id, f"ALL {total} TASKS COMPLETED, entering synthesis phase", "system")

    queued = (
        db.query(Mission)
        .filter(Mission.phase == MissionPhase.queued.value, Mission.id != mission_id)
        .order_by(Mission.created_at.asc(), Mission.id.asc())
        .first()
    )
    if queued is not None:
        set_phase(db, queued, MissionPhase.research, now=now)
        log_activity(db, queued.id, f"Mission activated: {queued.name}", "system")
    return True


def activate_mission(db: Session, mission_id: str, *, now: Optional[datetime] = None) -> Mission:
    """Explicitly make a mission the active one, pausing the current active mission."""

    mission = get_mission(db, mission_id)
    now = now or utcnow()

    active = get_active_mission(db)
    if active is not None and active.id != mission.id:
        set_phase(db, active, MissionPhase.paused, now=now)
        log_activity(db, active.id, f"Mission paused: {active.name}", "system")

    set_phase(db, mission, MissionPhase.research, now=now)
    log_activity(db, mission.id, f"Mission activated: {mission.name}", "system")
    return mission


def seed_missions(db: Session, missions: List[Dict[str, Any]]) -> Dict[str, int]:
    """Insert missions and their tasks once. Existing missions are left untouched."""

    seeded = 0
    total_tasks = 0
    now = utcnow()
    for m in missions:
        mission_id = str(m["id"])
        tasks = list(m.get("tasks") or [])
        existing = db.get(Mission, mission_id)
        if existing is not None:
            logger.info("mission %s already seeded (%s tasks)", mission_id, existing.total_tasks)
            total_tasks += int(existing.total_tasks or 0)
            continue

        phase = MissionPhase(str(m.get("phase") or MissionPhase.research.value))
        mission = Mission(
            id=mission_id,
            name=str(m.get("name") or mission_id),
            description=m.get("description"),
            phase=phase.value,
            total_tasks=len(tasks),
            completed_tasks=0,
            config=dict(m.get("config") or {}),
            created_at=now,
            started_at=now if phase == MissionPhase.research else None,
        )
        db.add(mission)
        db.flush()

        for t in tasks:
            db.add(
                Task(
                    id=str(t["id"]),
                    mission_id=mission_id,
                    division_id=str(t["division_id"]),
                    division_name=str(t.get("division_name") or t["division_id"]),
                    queue_id=str(t["queue_id"]),
                    queue_name=str(t.get("queue_name") or t["queue_id"]),
                    description=str(t.get("description") or ""),
                    search_terms=list(t.get("search_terms") or []),
                    databases=list(t.get("databases") or []),
                    depth=str(t.get("depth") or "standard"),
                    topic=t.get("topic"),
                    status=TaskStatus.available.value,
                )
            )
        db.flush()
        seeded += 1
        total_tasks += len(tasks)
        logger.info("seeded mission %s: %s tasks", mission_id, len(tasks))

    db.commit()
    return {"missions": len(missions), "seeded": seeded, "total_tasks": total_tasks}


def load_seed_file(path: str | Path) -> List[Dict[str, Any]]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("missions") or []
    if not isinstance(data, list):
        raise ValueError(f"mission seed file must hold a list of missions: {path}")
    return data
