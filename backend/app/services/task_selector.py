"""Task selection and the task status transitions.

Every status change is a single conditional UPDATE. A claim that touches zero
rows means another request won the task first; callers re-select.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from app.db.base_class import utcnow
from app.models.agent import Agent, AgentStatus
from app.models.task import Task, TaskStatus

logger = logging.getLogger(__name__)


def queue_agent_counts(db: Session, mission_id: str) -> Dict[str, int]:
    rows = (
        db.query(Agent.queue_id, func.count(Agent.id))
        .filter(Agent.mission_id == mission_id, Agent.status == AgentStatus.active.value)
        .group_by(Agent.queue_id)
        .all()
    )
    return {str(queue_id): int(cnt or 0) for queue_id, cnt in rows if queue_id is not None}


def task_stats(db: Session, mission_id: str) -> Dict[str, int]:
    rows = (
        db.query(Task.status, func.count(Task.id))
        .filter(Task.mission_id == mission_id)
        .group_by(Task.status)
        .all()
    )
    stats = {TaskStatus.available.value: 0, TaskStatus.assigned.value: 0, TaskStatus.completed.value: 0, "total": 0}
    for status, cnt in rows:
        stats[str(status)] = int(cnt or 0)
        stats["total"] += int(cnt or 0)
    return stats


def select_task(db: Session, mission_id: str, *, rng: Optional[random.Random] = None) -> Optional[Task]:
    """Pick an available task from the least-staffed queue of the mission."""

    rng = rng or random
    available_by_queue = dict(
        db.query(Task.queue_id, func.count(Task.id))
        .filter(Task.mission_id == mission_id, Task.status == TaskStatus.available.value)
        .group_by(Task.queue_id)
        .all()
    )
    if not available_by_queue:
        return None

    loads = queue_agent_counts(db, mission_id)
    lowest = min(loads.get(q, 0) for q in available_by_queue)
    # sorted so a seeded rng picks the same queue every run
    candidates = sorted(q for q in available_by_queue if loads.get(q, 0) == lowest)
    queue_id = rng.choice(candidates)

    base = (
        db.query(Task)
        .filter(Task.mission_id == mission_id, Task.queue_id == queue_id, Task.status == TaskStatus.available.value)
        .order_by(Task.id.asc())
    )
    offset = rng.randrange(int(available_by_queue[queue_id]))
    task = base.offset(offset).limit(1).first()
    if task is None:
        # queue shrank since it was counted
        task = base.first()
    return task


def claim_task(db: Session, task: Task, agent_id: str, *, now: Optional[datetime] = None) -> bool:
    """Atomically move ``task`` from available to assigned for ``agent_id``.

    Returns False when the task was no longer available (lost the race).
    """

    result = db.execute(
        update(Task)
        .where(Task.id == task.id, Task.status == TaskStatus.available.value)
        .values(status=TaskStatus.assigned.value, assigned_to=agent_id, assigned_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    _expire_cached(db, task.id)
    won = int(result.rowcount or 0) == 1
    if not won:
        logger.info("claim lost: task=%s agent=%s", task.id, agent_id)
    return won


def release_task(db: Session, task_id: str, *, holder_id: Optional[str] = None) -> bool:
    """Return an assigned task to the pool. With ``holder_id`` only that holder's claim is released."""

    stmt = update(Task).where(Task.id == task_id, Task.status == TaskStatus.assigned.value)
    if holder_id is not None:
        stmt = stmt.where(Task.assigned_to == holder_id)
    result = db.execute(
        stmt.values(status=TaskStatus.available.value, assigned_to=None, assigned_at=None).execution_options(
            synchronize_session=False
        )
    )
    _expire_cached(db, task_id)
    return int(result.rowcount or 0) == 1


def complete_task(db: Session, task_id: str, agent_id: str, *, now: Optional[datetime] = None) -> bool:
    """Mark a task completed by ``agent_id``.

    The agent must still hold the task, or the task must be back in the pool
    (released by the reclaimer and not yet claimed by anybody else).
    Completed tasks are never touched again.
    """

    result = db.execute(
        update(Task)
        .where(
            Task.id == task_id,
            Task.status != TaskStatus.completed.value,
            or_(Task.assigned_to == agent_id, Task.status == TaskStatus.available.value),
        )
        .values(status=TaskStatus.completed.value, assigned_to=agent_id, completed_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    _expire_cached(db, task_id)
    return int(result.rowcount or 0) == 1


def _expire_cached(db: Session, task_id: str) -> None:
    cached = db.identity_map.get(identity_key(Task, task_id))
    if cached is not None:
        db.expire(cached)
