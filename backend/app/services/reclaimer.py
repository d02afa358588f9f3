from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.db.base_class import utcnow
from app.models.agent import Agent, AgentStatus
from app.services.activity_service import log_activity, short_id
from app.services.task_selector import release_task

logger = logging.getLogger(__name__)


@dataclass
class ReclaimResult:
    agents: int
    released: int
    agent_ids: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def find_stale_agents(db: Session, timeout: timedelta, *, now: Optional[datetime] = None) -> List[Agent]:
    cutoff = (now or utcnow()) - timeout
    return (
        db.query(Agent)
        .filter(Agent.status == AgentStatus.active.value, Agent.last_heartbeat < cutoff)
        .order_by(Agent.last_heartbeat.asc(), Agent.id.asc())
        .all()
    )


def reclaim_stale(db: Session, timeout: timedelta, *, now: Optional[datetime] = None, reason: str = "timed out") -> ReclaimResult:
    """Disconnect agents silent for longer than ``timeout`` and free their tasks.

    Safe to run at any cadence: a second run finds nothing left to do.
    The agent keeps its task reference so a late submission can still
    complete the task if nobody else picked it up.
    """

    now = now or utcnow()
    stale = find_stale_agents(db, timeout, now=now)
    released = 0
    for agent in stale:
        agent.status = AgentStatus.disconnected.value
        agent.disconnected_at = now
        if agent.current_task_id and release_task(db, agent.current_task_id, holder_id=agent.id):
            released += 1
        log_activity(db, agent.mission_id, f"Agent {short_id(agent.id)} {reason}, task released", "leave")
    db.flush()

    if stale:
        logger.info("reclaimed %s stale agents, released %s tasks", len(stale), released)
    return ReclaimResult(agents=len(stale), released=released, agent_ids=[a.id for a in stale])
