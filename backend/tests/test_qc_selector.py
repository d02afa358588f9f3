from datetime import timedelta

from app.models.finding import Finding, QCStatus
from app.services.qc_selector import (
    flagged_agents,
    qc_stats,
    select_for_review,
    select_review_candidate,
)


def test_pending_findings_come_before_reviewed(db, make_mission, make_agent, make_finding):
    make_mission()
    make_agent("LOW", quality_score=0.1, flagged=True)
    make_agent("GOOD", quality_score=1.0)
    make_finding("LOW", finding_id="F-reviewed", qc_status=QCStatus.passed.value, reviewed_ago=timedelta(days=3))
    make_finding("GOOD", finding_id="F-pending")

    assert select_for_review(db, "m1").id == "F-pending"


def test_flagged_author_beats_lower_quality(db, make_mission, make_agent, make_finding):
    make_mission()
    make_agent("FLAGGED", quality_score=0.45, flagged=True)
    make_agent("WEAK", quality_score=0.2)
    make_finding("WEAK", finding_id="F-weak", age=timedelta(hours=5))
    make_finding("FLAGGED", finding_id="F-flagged")

    finding, author, _ = select_review_candidate(db, "m1")
    assert finding.id == "F-flagged"
    assert author.id == "FLAGGED"


def test_lower_quality_author_first(db, make_mission, make_agent, make_finding):
    make_mission()
    make_agent("A", quality_score=0.8)
    make_agent("B", quality_score=0.4)
    make_finding("A", finding_id="F-a", age=timedelta(hours=5))
    make_finding("B", finding_id="F-b")

    assert select_for_review(db, "m1").id == "F-b"


def test_unknown_author_sorts_as_perfect_score(db, make_mission, make_agent, make_finding):
    make_mission()
    make_agent("B", quality_score=0.9)
    make_finding("ghost", finding_id="F-ghost", age=timedelta(hours=5))
    make_finding("B", finding_id="F-b")

    finding, author, _ = select_review_candidate(db, "m1")
    assert finding.id == "F-b"

    db.get(Finding, "F-b").qc_status = QCStatus.passed.value
    db.flush()
    finding, author, _ = select_review_candidate(db, "m1")
    assert finding.id == "F-ghost"
    assert author is None


def test_least_recently_reviewed_first(db, make_mission, make_agent, make_finding):
    make_mission()
    make_agent("A")
    make_finding("A", finding_id="F-recent", qc_status=QCStatus.passed.value, reviewed_ago=timedelta(minutes=5))
    make_finding("A", finding_id="F-old", qc_status=QCStatus.flagged.value, reviewed_ago=timedelta(days=2))

    assert select_for_review(db, "m1").id == "F-old"


def test_never_reviewed_before_previously_reviewed_pending(db, make_mission, make_agent, make_finding):
    make_mission()
    make_agent("A")
    # reset back to pending after an earlier review cycle
    make_finding("A", finding_id="F-reset", age=timedelta(days=3), reviewed_ago=timedelta(days=1))
    make_finding("A", finding_id="F-fresh")

    assert select_for_review(db, "m1").id == "F-fresh"


def test_oldest_submission_breaks_ties(db, make_mission, make_agent, make_finding):
    make_mission()
    make_agent("A")
    make_finding("A", finding_id="F-new", age=timedelta(minutes=1))
    make_finding("A", finding_id="F-old", age=timedelta(hours=1))

    assert select_for_review(db, "m1").id == "F-old"


def test_reviewer_never_gets_own_finding(db, make_mission, make_agent, make_finding):
    make_mission()
    make_agent("A")
    make_finding("A", finding_id="F-own")

    assert select_for_review(db, "m1", exclude_agent_id="A") is None
    assert select_for_review(db, "m1", exclude_agent_id="B").id == "F-own"


def test_other_missions_are_ignored(db, make_mission, make_agent, make_finding):
    make_mission("m1")
    make_mission("m2", phase="queued")
    make_agent("A", mission_id="m2")
    make_finding("A", mission_id="m2")

    assert select_for_review(db, "m1") is None


def test_qc_stats_and_flagged_agents(db, make_mission, make_agent, make_finding):
    make_mission()
    make_agent("A", quality_score=0.0, flagged=True)
    make_agent("B")
    make_finding("A", qc_status=QCStatus.rejected.value, reviewed_ago=timedelta(hours=1))
    make_finding("A", qc_status=QCStatus.flagged.value, reviewed_ago=timedelta(hours=1))
    make_finding("B", qc_status=QCStatus.passed.value, reviewed_ago=timedelta(hours=1))
    make_finding("B")

    stats = qc_stats(db, "m1")
    assert stats["total"] == 4
    assert stats["pending"] == 1
    assert stats["passed"] == 1
    assert stats["flagged"] == 1
    assert stats["rejected"] == 1
    assert stats["review_rate"] == 75

    assert [a.id for a in flagged_agents(db, "m1")] == ["A"]


def test_review_candidate_carries_source_task(db, make_mission, make_agent, make_finding):
    make_mission(queues={"qa": 1})
    make_agent("A")
    with_task = make_finding("A", age=timedelta(hours=2))
    with_task.task_id = "m1-qa-0"
    orphan = make_finding(None, age=timedelta(hours=1))
    db.flush()

    finding, author, task = select_review_candidate(db, "m1")
    assert finding.id == with_task.id
    assert author.id == "A"
    assert task.description == "Research item 0 of qa"

    finding, author, task = select_review_candidate(db, "m1", exclude_agent_id="A")
    assert finding.id == orphan.id
    assert (author, task) == (None, None)

    assert select_review_candidate(db, "empty") == (None, None, None)
