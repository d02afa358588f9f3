from datetime import timedelta

import pytest

from app.models.agent import Agent
from app.models.finding import Finding, QCStatus
from app.services.quality_scorer import recompute_agent_quality, reset_qc_cycle, score_verdicts


def test_score_without_reviews_is_perfect():
    res = score_verdicts([])
    assert res.score == 1.0
    assert res.flagged is False


def test_pending_statuses_are_ignored():
    res = score_verdicts(["pending", "passed", "pending"])
    assert (res.passes, res.fails) == (1, 0)
    assert res.score == 1.0


def test_one_pass_one_fail_not_flagged_yet():
    res = score_verdicts(["passed", "flagged"])
    assert res.score == 0.5
    assert res.flagged is False


def test_three_rejections_flag_the_author():
    res = score_verdicts(["rejected", "rejected", "rejected"])
    assert res.score == 0.0
    assert res.fails == 3
    assert res.flagged is True


def test_score_exactly_at_threshold_is_not_flagged():
    res = score_verdicts(["passed", "passed", "flagged", "rejected"])
    assert res.score == 0.5
    assert res.flagged is False


def test_below_threshold_with_enough_reviews_is_flagged():
    res = score_verdicts(["passed", "flagged", "rejected"])
    assert res.score == pytest.approx(1 / 3)
    assert res.flagged is True


def test_recompute_persists_on_agent(db, make_mission, make_agent, make_finding):
    make_mission()
    make_agent("A")
    for status in ("rejected", "flagged", "rejected"):
        make_finding("A", qc_status=status, reviewed_ago=timedelta(minutes=1))
    make_finding("A")

    res = recompute_agent_quality(db, "A")
    agent = db.get(Agent, "A")
    assert res.flagged is True
    assert agent.quality_score == 0.0
    assert (agent.qc_passes, agent.qc_fails) == (0, 3)
    assert agent.flagged is True


def test_recompute_can_unflag(db, make_mission, make_agent, make_finding):
    make_mission()
    make_agent("A", quality_score=0.0, flagged=True)
    for _ in range(3):
        make_finding("A", qc_status=QCStatus.passed.value, reviewed_ago=timedelta(minutes=1))

    recompute_agent_quality(db, "A")
    agent = db.get(Agent, "A")
    assert agent.flagged is False
    assert agent.quality_score == 1.0


def test_recompute_unknown_agent_returns_score_only(db):
    res = recompute_agent_quality(db, "nobody")
    assert res.score == 1.0


def test_reset_cycle_flagged_scope(db, make_mission, make_agent, make_finding):
    make_mission()
    make_agent("A")
    f1 = make_finding("A", qc_status=QCStatus.flagged.value, reviewed_ago=timedelta(hours=1))
    f2 = make_finding("A", qc_status=QCStatus.passed.value, reviewed_ago=timedelta(hours=1))
    recompute_agent_quality(db, "A")

    assert reset_qc_cycle(db, "m1", scope="flagged") == 1
    assert db.get(Finding, f1.id).qc_status == QCStatus.pending.value
    assert db.get(Finding, f2.id).qc_status == QCStatus.passed.value
    assert db.get(Agent, "A").quality_score == 1.0


def test_reset_cycle_low_quality_scope(db, make_mission, make_agent, make_finding):
    make_mission()
    make_agent("BAD")
    make_agent("OK")
    for _ in range(3):
        make_finding("BAD", qc_status=QCStatus.rejected.value, reviewed_ago=timedelta(hours=1))
    make_finding("OK", qc_status=QCStatus.passed.value, reviewed_ago=timedelta(hours=1))
    recompute_agent_quality(db, "BAD")
    assert db.get(Agent, "BAD").flagged is True

    assert reset_qc_cycle(db, "m1", scope="low-quality") == 3
    bad = db.get(Agent, "BAD")
    assert bad.flagged is False
    assert bad.quality_score == 1.0
    statuses = {f.qc_status for f in db.query(Finding).filter(Finding.agent_id == "OK")}
    assert statuses == {QCStatus.passed.value}


def test_reset_cycle_rejects_unknown_scope(db, make_mission):
    make_mission()
    with pytest.raises(ValueError):
        reset_qc_cycle(db, "m1", scope="everything")
