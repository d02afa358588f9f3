import random

import pytest

from app.core.errors import ClaimContentionError
from app.models.agent import QC_DIVISION_ID, QC_QUEUE_ID, Agent, AgentRole
from app.models.task import Task, TaskStatus
from app.services import assignment_service
from app.services.assignment_service import (
    assign_next,
    format_assignment,
    next_assignment,
)
from app.services.task_selector import claim_task


def _findings(make_finding, n, agent_id="AUTHOR"):
    for _ in range(n):
        make_finding(agent_id)


def test_warmup_forces_research(db, make_mission, make_agent, make_finding, rng):
    make_mission()
    make_agent("AUTHOR")
    _findings(make_finding, 4)

    for _ in range(50):
        a = next_assignment(db, "m1", "R1", rng=rng, qc_rate=1.0, warmup=5)
        assert a.kind == "research"


def test_warmup_with_no_research_returns_none(db, make_mission, make_agent, make_finding, rng):
    make_mission(queues={})
    make_agent("AUTHOR")
    _findings(make_finding, 2)

    assert next_assignment(db, "m1", "R1", rng=rng, qc_rate=1.0, warmup=5) is None


def test_qc_after_warmup(db, make_mission, make_agent, make_finding, rng):
    make_mission()
    make_agent("AUTHOR")
    _findings(make_finding, 5)

    a = next_assignment(db, "m1", "R1", rng=rng, qc_rate=1.0, warmup=5)
    assert a.kind == "qc"
    assert a.finding.agent_id == "AUTHOR"
    assert a.author.id == "AUTHOR"


def test_qc_draw_falls_back_to_research_when_only_own_findings(db, make_mission, make_agent, make_finding, rng):
    make_mission()
    make_agent("R1")
    _findings(make_finding, 5, agent_id="R1")

    a = next_assignment(db, "m1", "R1", rng=rng, qc_rate=1.0, warmup=5)
    assert a.kind == "research"


def test_exhausted_research_goes_to_qc_regardless_of_draw(db, make_mission, make_agent, make_finding, rng):
    make_mission(queues={"qa": 1})
    db.get(Task, "m1-qa-0").status = TaskStatus.completed.value
    db.flush()
    make_agent("AUTHOR")
    _findings(make_finding, 5)

    a = next_assignment(db, "m1", "R1", rng=rng, qc_rate=0.0, warmup=5)
    assert a.kind == "qc"


def test_nothing_to_do(db, make_mission, make_agent, make_finding, rng):
    make_mission(queues={})
    make_agent("R1")
    _findings(make_finding, 6, agent_id="R1")

    assert next_assignment(db, "m1", "R1", rng=rng, qc_rate=0.5, warmup=5) is None


def test_qc_share_converges_to_rate(db, make_mission, make_agent, make_finding):
    make_mission(queues={"qa": 3, "qb": 3})
    make_agent("AUTHOR")
    _findings(make_finding, 6)
    rng = random.Random(42)

    trials = 4000
    qc = sum(
        1 for _ in range(trials) if next_assignment(db, "m1", "R1", rng=rng, qc_rate=0.3, warmup=5).kind == "qc"
    )
    assert abs(qc / trials - 0.3) < 0.03


def test_assign_next_research_updates_agent(db, make_mission, make_agent, rng):
    make_mission(queues={"qa": 1})
    agent = make_agent("R1")

    a = assign_next(db, agent, "m1", rng=rng)
    task = db.get(Task, a.task.id)
    assert task.status == TaskStatus.assigned.value
    assert task.assigned_to == "R1"
    assert agent.role == AgentRole.worker.value
    assert agent.current_task_id == task.id
    assert agent.division_id == task.division_id
    assert agent.queue_id == "qa"


def test_assign_next_qc_updates_agent(db, make_mission, make_agent, make_finding, rng, monkeypatch):
    monkeypatch.setattr(assignment_service.settings, "QC_RATE", 1.0)
    make_mission(queues={})
    make_agent("AUTHOR")
    _findings(make_finding, 5)
    agent = make_agent("R1")
    agent.current_task_id = "stale-task"

    a = assign_next(db, agent, "m1", rng=rng)
    assert a.kind == "qc"
    assert agent.role == AgentRole.qc.value
    assert agent.current_task_id is None
    assert agent.division_id == QC_DIVISION_ID
    assert agent.queue_id == QC_QUEUE_ID


def test_assign_next_retries_lost_claims(db, make_mission, make_agent, rng, monkeypatch):
    make_mission(queues={"qa": 2})
    taken = db.get(Task, "m1-qa-0")
    assert claim_task(db, taken, "OTHER")
    agent = make_agent("R1")

    real_select = assignment_service.select_task
    calls = {"n": 0}

    def stale_then_real(db_, mission_id, *, rng=None):
        calls["n"] += 1
        if calls["n"] == 1:
            # what a concurrent request would have seen before OTHER's claim
            return db_.get(Task, "m1-qa-0")
        return real_select(db_, mission_id, rng=rng)

    monkeypatch.setattr(assignment_service, "select_task", stale_then_real)

    a = assign_next(db, agent, "m1", rng=rng)
    assert calls["n"] == 2
    assert a.task.id == "m1-qa-1"
    assert agent.current_task_id == "m1-qa-1"


def test_assign_next_gives_up_after_max_retries(db, make_mission, make_agent, rng, monkeypatch):
    make_mission(queues={"qa": 1})
    taken = db.get(Task, "m1-qa-0")
    claim_task(db, taken, "OTHER")
    agent = make_agent("R1")
    monkeypatch.setattr(assignment_service, "select_task", lambda db_, mission_id, rng=None: db_.get(Task, "m1-qa-0"))

    with pytest.raises(ClaimContentionError) as exc:
        assign_next(db, agent, "m1", rng=rng, max_retries=3)
    assert exc.value.status_code == 503
    assert db.get(Agent, "R1").current_task_id is None


def test_format_assignments(db, make_mission, make_agent, make_finding):
    make_mission(queues={"qa": 1})
    task = db.get(Task, "m1-qa-0")
    research = format_assignment("R1", assignment_service.Assignment(kind="research", task=task))
    assert research["type"] == "research"
    assert research["task_id"] == "m1-qa-0"
    assert research["queue"] == "Queue qa"
    assert research["search_terms"] == ["qa", "evidence"]
    assert research["submit_to"] == "/api/agents/R1/findings"

    author = make_agent("AUTHOR", quality_score=0.25, flagged=True)
    finding = make_finding("AUTHOR")
    qc = format_assignment(
        "R1", assignment_service.Assignment(kind="qc", finding=finding, author=author, source_task=task)
    )
    assert qc["type"] == "qc_review"
    assert qc["finding_id"] == finding.id
    assert qc["original_agent_id"] == "AUTHOR"
    assert qc["agent_quality"] == 0.25
    assert qc["agent_flagged"] is True
    assert qc["original_task_description"] == "Research item 0 of qa"
    assert qc["original_search_terms"] == ["qa", "evidence"]
    assert qc["submit_to"] == "/api/agents/R1/qc-submit"

    bare = format_assignment("R1", assignment_service.Assignment(kind="qc", finding=finding))
    assert (bare["original_task_description"], bare["original_search_terms"]) == ("", [])
    assert bare["agent_quality"] is None

    assert format_assignment("R1", None) is None
