from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base_class import Base, utcnow


class Confidence(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class QCStatus(str, Enum):
    pending = "pending"
    passed = "passed"
    flagged = "flagged"
    rejected = "rejected"


TERMINAL_QC_STATUSES = (QCStatus.passed.value, QCStatus.flagged.value, QCStatus.rejected.value)


class Finding(Base):
    __tablename__ = "findings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    agent_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    task_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    mission_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    division_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    queue_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    # [{title, authors, journal, year, doi, url, study_type, sample_size, key_claim}]
    citations: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    confidence: Mapped[str] = mapped_column(String(10), nullable=False, default=Confidence.medium.value)
    contradictions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    gaps: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    papers_analyzed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    qc_status: Mapped[str] = mapped_column(String(20), nullable=False, default=QCStatus.pending.value, index=True)
    qc_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    qc_agent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    qc_cycle: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    qc_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
