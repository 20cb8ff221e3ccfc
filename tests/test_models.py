from datetime import datetime, timedelta

from habit_engine.models import (
    ActionStatus,
    DailyAction,
    TimeBudgetState,
    TimerPhase,
    TimingSession,
    Vision,
    VisionCategory,
)


def test_enum_decoding_is_lenient():
    assert VisionCategory.from_value("career") is VisionCategory.CAREER
    assert VisionCategory.from_value(VisionCategory.HEALTH) is VisionCategory.HEALTH
    assert VisionCategory.from_value("hobbies") is VisionCategory.PERSONAL_GROWTH
    assert ActionStatus.from_value("done") is ActionStatus.PENDING
    assert ActionStatus.from_value(ActionStatus.SKIPPED) is ActionStatus.SKIPPED


def test_timing_session_phases():
    start = datetime(2026, 3, 10, 7, 30)
    idle = TimingSession(action_id="a1")
    session = TimingSession.begin("a1", start)

    assert idle.phase == TimerPhase.IDLE
    assert session.phase == TimerPhase.RUNNING
    assert session.elapsed_seconds(start + timedelta(seconds=42)) == 42

    assert session.close(start + timedelta(minutes=3)) == 180
    assert session.phase == TimerPhase.STOPPED
    # closing again keeps the first duration
    assert session.close(start + timedelta(minutes=9)) == 180


def test_daily_action_round_trip():
    start = datetime(2026, 3, 10, 7, 30)
    session = TimingSession.begin("a1", start)
    session.close(start + timedelta(minutes=5))
    action = DailyAction(
        id="a1",
        vision_id="v1",
        description="Stretch",
        estimated_time_minutes=10,
        date="2026-03-10",
        actual_time_minutes=5,
        status=ActionStatus.COMPLETED,
        ai_generated=True,
        ai_reasoning="warm-up",
        timing_sessions=[session],
    )

    payload = action.to_dict()
    restored = DailyAction.from_dict(payload)

    assert restored == action
    assert payload["estimatedTimeMinutes"] == 10
    assert payload["timingSessions"][0]["startedAt"] == "2026-03-10T07:30:00"


def test_vision_and_budget_defaults_from_sparse_dicts():
    vision = Vision.from_dict({"id": "v1"})
    budget = TimeBudgetState.from_dict({})

    assert vision.category is VisionCategory.PERSONAL_GROWTH
    assert vision.priority == 1 and vision.is_active
    assert budget.total_available_minutes == 180
    assert budget.allocations == {}
