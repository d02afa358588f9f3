from datetime import timedelta

from app.models.activity_log import ActivityLog
from app.models.agent import Agent, AgentStatus
from app.models.task import Task, TaskStatus
from app.services.reclaimer import find_stale_agents, reclaim_stale
from app.services.task_selector import claim_task

TIMEOUT = timedelta(hours=1)


def _holding(db, make_agent, agent_id, task_id, idle):
    agent = make_agent(agent_id, queue_id="qa", idle=idle)
    claim_task(db, db.get(Task, task_id), agent_id)
    agent.current_task_id = task_id
    db.flush()
    return agent


def test_reclaim_releases_stale_agents_only(db, make_mission, make_agent):
    make_mission(queues={"qa": 2})
    _holding(db, make_agent, "STALE", "m1-qa-0", idle=timedelta(hours=2))
    _holding(db, make_agent, "FRESH", "m1-qa-1", idle=timedelta(minutes=5))

    assert [a.id for a in find_stale_agents(db, TIMEOUT)] == ["STALE"]

    res = reclaim_stale(db, TIMEOUT)
    assert res.to_dict() == {"agents": 1, "released": 1, "agent_ids": ["STALE"]}

    stale = db.get(Agent, "STALE")
    assert stale.status == AgentStatus.disconnected.value
    assert stale.disconnected_at is not None
    # kept so a late submission can still complete it
    assert stale.current_task_id == "m1-qa-0"

    released = db.get(Task, "m1-qa-0")
    db.refresh(released)
    assert released.status == TaskStatus.available.value
    assert released.assigned_to is None

    kept = db.get(Task, "m1-qa-1")
    db.refresh(kept)
    assert kept.assigned_to == "FRESH"
    assert db.get(Agent, "FRESH").status == AgentStatus.active.value


def test_reclaim_is_idempotent(db, make_mission, make_agent):
    make_mission(queues={"qa": 1})
    _holding(db, make_agent, "STALE", "m1-qa-0", idle=timedelta(hours=2))

    assert reclaim_stale(db, TIMEOUT).agents == 1
    again = reclaim_stale(db, TIMEOUT)
    assert again.agents == 0
    assert again.released == 0


def test_reclaim_agent_without_task(db, make_mission, make_agent):
    make_mission(queues={"qa": 1})
    make_agent("IDLE", idle=timedelta(hours=3))

    res = reclaim_stale(db, TIMEOUT, reason="idle for more than 2h")
    assert (res.agents, res.released) == (1, 0)
    log = db.query(ActivityLog).filter(ActivityLog.type == "leave").one()
    assert "idle for more than 2h" in log.message


def test_reclaim_skips_completed_and_disconnected(db, make_mission, make_agent):
    make_mission(queues={"qa": 1})
    make_agent("DONE", status=AgentStatus.completed.value, idle=timedelta(hours=5))
    make_agent("GONE", status=AgentStatus.disconnected.value, idle=timedelta(hours=5))

    assert reclaim_stale(db, TIMEOUT).agents == 0


def test_reclaim_does_not_release_task_now_held_by_another(db, make_mission, make_agent):
    make_mission(queues={"qa": 1})
    stale = make_agent("STALE", idle=timedelta(hours=2))
    # task was already released and picked up by someone else
    stale.current_task_id = "m1-qa-0"
    make_agent("OTHER")
    claim_task(db, db.get(Task, "m1-qa-0"), "OTHER")
    db.flush()

    res = reclaim_stale(db, TIMEOUT)
    assert (res.agents, res.released) == (1, 0)
    task = db.get(Task, "m1-qa-0")
    db.refresh(task)
    assert task.assigned_to == "OTHER"
