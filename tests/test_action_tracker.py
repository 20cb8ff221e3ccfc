from datetime import datetime, timedelta

import pytest

from habit_engine.action_tracker import ActionTracker
from habit_engine.exceptions import ActionNotFoundError
from habit_engine.models import ActionStatus, DailyAction, TimerPhase

START = datetime(2026, 3, 10, 8, 0, 0)


def _actions():
    return [
        DailyAction(id="a1", description="Walk", estimated_time_minutes=15, date="2026-03-10", vision_id="v_health"),
        DailyAction(id="a2", description="Read", estimated_time_minutes=20, date="2026-03-10", vision_id="v_career"),
    ]


def test_start_and_stop_timer_records_minutes():
    tracker = ActionTracker(_actions())

    session = tracker.start_timer("a1", now=START)
    assert session.phase == TimerPhase.RUNNING
    assert tracker.get("a1").status == ActionStatus.IN_PROGRESS

    stopped = tracker.stop_timer("a1", now=START + timedelta(minutes=12, seconds=40))

    assert stopped.phase == TimerPhase.STOPPED
    assert stopped.duration_seconds == 760
    assert tracker.get("a1").actual_time_minutes == 13
    assert tracker.get("a1").status == ActionStatus.PENDING


def test_restarting_timer_closes_previous_session():
    tracker = ActionTracker(_actions())

    tracker.start_timer("a1", now=START)
    tracker.start_timer("a1", now=START + timedelta(minutes=5))
    action = tracker.get("a1")

    assert len(action.timing_sessions) == 2
    assert action.timing_sessions[0].duration_seconds == 300
    assert [s.is_active for s in action.timing_sessions] == [False, True]


def test_stop_without_running_timer_returns_none():
    tracker = ActionTracker(_actions())

    assert tracker.stop_timer("a1", now=START) is None


def test_complete_uses_tracked_time_when_not_given():
    tracker = ActionTracker(_actions())
    tracker.start_timer("a1", now=START)

    action = tracker.complete("a1", now=START + timedelta(minutes=9))

    assert action.status == ActionStatus.COMPLETED
    assert action.actual_time_minutes == 9
    assert action.active_session() is None


def test_complete_with_explicit_seconds():
    tracker = ActionTracker(_actions())

    action = tracker.complete("a2", actual_seconds=1500, now=START)

    assert action.actual_time_minutes == 25


def test_toggle_complete_reopens_action():
    tracker = ActionTracker(_actions())

    tracker.toggle_complete("a1", now=START)
    assert tracker.get("a1").completed
    tracker.toggle_complete("a1", now=START)
    assert tracker.get("a1").status == ActionStatus.PENDING


def test_skip_closes_sessions():
    tracker = ActionTracker(_actions())
    tracker.start_timer("a2", now=START)

    action = tracker.skip("a2", now=START + timedelta(minutes=1))

    assert action.status == ActionStatus.SKIPPED
    assert action.active_session() is None


def test_progress_counts_completed_and_time():
    tracker = ActionTracker(_actions())
    tracker.complete("a1", actual_seconds=600, now=START)
    tracker.start_timer("a2", now=START)

    progress = tracker.progress(now=START + timedelta(minutes=2))

    assert progress.completed == 1
    assert progress.total == 2
    assert progress.completion_rate == 50.0
    assert progress.all_complete is False
    assert progress.total_time_spent_seconds == 600 + 120
    assert progress.estimated_total_seconds == (15 + 20) * 60


def test_progress_for_empty_day():
    progress = ActionTracker([]).progress(now=START)

    assert progress.all_complete is False
    assert progress.completion_rate == 0.0


def test_unknown_action_raises():
    tracker = ActionTracker(_actions())

    with pytest.raises(ActionNotFoundError) as exc:
        tracker.start_timer("missing", now=START)
    assert exc.value.action_id == "missing"


def test_filters_by_vision_and_status():
    tracker = ActionTracker(_actions())
    tracker.skip("a2", now=START)

    assert [a.id for a in tracker.by_vision("v_health")] == ["a1"]
    assert [a.id for a in tracker.by_status(ActionStatus.SKIPPED)] == ["a2"]
