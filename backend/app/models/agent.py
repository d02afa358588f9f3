from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base_class import Base, utcnow


class AgentStatus(str, Enum):
    active = "active"
    disconnected = "disconnected"
    completed = "completed"


class AgentRole(str, Enum):
    worker = "worker"
    qc = "qc"


# Division/queue an agent is filed under while it holds a QC review.
QC_DIVISION_ID = "qc"
QC_QUEUE_ID = "qc-review"


class Agent(Base):
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=AgentStatus.active.value, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=AgentRole.worker.value)
    current_task_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    division_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    queue_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    mission_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_heartbeat: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    disconnected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    tasks_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    papers_analyzed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quality_score: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    qc_passes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    qc_fails: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    flagged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # 0 = unlimited
    max_tasks: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
