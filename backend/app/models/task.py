from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base_class import Base


class TaskStatus(str, Enum):
    available = "available"
    assigned = "assigned"
    completed = "completed"


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    mission_id: Mapped[str] = mapped_column(ForeignKey("missions.id"), index=True, nullable=False)
    division_id: Mapped[str] = mapped_column(String(128), nullable=False)
    division_name: Mapped[str] = mapped_column(String(255), nullable=False)
    queue_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    queue_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    search_terms: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    databases: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    depth: Mapped[str] = mapped_column(String(32), nullable=False, default="standard")
    topic: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TaskStatus.available.value, index=True)
    # Holder agent id while assigned; cleared on release.
    assigned_to: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
