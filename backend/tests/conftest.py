from __future__ import annotations

import random
from datetime import timedelta
from typing import Dict, Optional

import pytest
from sqlalchemy.orm import sessionmaker

from app.db.base import Base
from app.db.base_class import utcnow
from app.db.session import make_engine
from app.models.agent import Agent, AgentStatus
from app.models.finding import Finding, QCStatus
from app.models.mission import Mission
from app.services.mission_service import seed_missions


@pytest.fixture()
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'swarm.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.rollback()
        s.close()


@pytest.fixture()
def rng():
    return random.Random(1234)


@pytest.fixture()
def make_mission(db):
    """Seed a mission whose tasks are named ``<mission>-<queue>-<n>``."""

    def _make(
        mission_id: str = "m1",
        queues: Optional[Dict[str, int]] = None,
        phase: str = "research",
        name: Optional[str] = None,
    ):
        queues = {"qa": 2, "qb": 2} if queues is None else queues
        tasks = []
        for queue_id, n in queues.items():
            for i in range(n):
                tasks.append(
                    {
                        "id": f"{mission_id}-{queue_id}-{i}",
                        "division_id": f"div-{queue_id}",
                        "division_name": f"Division {queue_id}",
                        "queue_id": queue_id,
                        "queue_name": f"Queue {queue_id}",
                        "description": f"Research item {i} of {queue_id}",
                        "search_terms": [queue_id, "evidence"],
                        "databases": ["PubMed"],
                    }
                )
        seed_missions(db, [{"id": mission_id, "name": name or mission_id.upper(), "phase": phase, "tasks": tasks}])
        return db.get(Mission, mission_id)

    return _make


@pytest.fixture()
def make_agent(db):
    def _make(
        agent_id: str,
        mission_id: str = "m1",
        *,
        queue_id: Optional[str] = None,
        status: str = AgentStatus.active.value,
        quality_score: float = 1.0,
        flagged: bool = False,
        max_tasks: int = 5,
        idle: timedelta = timedelta(0),
    ) -> Agent:
        now = utcnow()
        agent = Agent(
            id=agent_id,
            mission_id=mission_id,
            queue_id=queue_id,
            status=status,
            quality_score=quality_score,
            flagged=flagged,
            max_tasks=max_tasks,
            registered_at=now - idle,
            last_heartbeat=now - idle,
        )
        db.add(agent)
        db.flush()
        return agent

    return _make


@pytest.fixture()
def make_finding(db):
    counter = {"n": 0}

    def _make(
        agent_id: Optional[str],
        mission_id: str = "m1",
        *,
        finding_id: Optional[str] = None,
        qc_status: str = QCStatus.pending.value,
        age: timedelta = timedelta(0),
        reviewed_ago: Optional[timedelta] = None,
        title: str = "A finding",
    ) -> Finding:
        counter["n"] += 1
        now = utcnow()
        finding = Finding(
            id=finding_id or f"F-{counter['n']:03d}",
            agent_id=agent_id,
            mission_id=mission_id,
            division_id="div-qa",
            queue_id="qa",
            title=title,
            summary="Summary of the evidence.",
            citations=[{"title": "Paper", "doi": "10.1000/xyz", "year": 2020}],
            confidence="medium",
            papers_analyzed=1,
            submitted_at=now - age,
            qc_status=qc_status,
            qc_reviewed_at=(now - reviewed_ago) if reviewed_ago is not None else None,
        )
        db.add(finding)
        db.flush()
        return finding

    return _make
