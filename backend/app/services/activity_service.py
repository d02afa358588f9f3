from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.base_class import utcnow
from app.infra.event_bus import RedisEventBus
from app.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)

_event_bus: RedisEventBus | None = None

# session.info key holding events waiting for their transaction to commit
_PENDING_EVENTS = "pending_activity_events"


def _get_event_bus() -> RedisEventBus:
    global _event_bus
    if _event_bus is None:
        _event_bus = RedisEventBus(settings.REDIS_URL)
    return _event_bus


def log_activity(db: Session, mission_id: Optional[str], message: str, type: str = "info") -> ActivityLog:
    """Append an activity record inside the caller's transaction.

    The Redis mirror is queued on the session and only published once the
    transaction commits.
    """

    row = ActivityLog(mission_id=mission_id, message=str(message), type=str(type), created_at=utcnow())
    db.add(row)
    db.flush()
    logger.info("[%s] %s", str(type).upper(), message)

    if settings.EVENT_BUS_ENABLED:
        pending: List[Dict[str, Any]] = db.info.setdefault(_PENDING_EVENTS, [])
        pending.append({"event_type": str(type), "payload": {"message": str(message)}, "mission_id": mission_id})
    return row


@event.listens_for(Session, "after_commit")
def _publish_committed(session: Session) -> None:
    events = session.info.pop(_PENDING_EVENTS, None)
    if not events:
        return
    for ev in events:
        try:
            _get_event_bus().publish(**ev)
        except Exception as e:
            logger.warning("activity mirror to redis failed: %s", e)


@event.listens_for(Session, "after_rollback")
def _drop_rolled_back(session: Session) -> None:
    session.info.pop(_PENDING_EVENTS, None)


def recent_activity(db: Session, mission_id: str, *, limit: int = 100) -> List[ActivityLog]:
    return (
        db.query(ActivityLog)
        .filter(ActivityLog.mission_id == mission_id)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .limit(int(max(1, min(500, limit))))
        .all()
    )


def short_id(agent_id: Optional[str]) -> str:
    return str(agent_id or "")[:10]
