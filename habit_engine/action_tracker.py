"""
Action Tracker: timer and completion transitions over one day's actions.
"""
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from habit_engine.exceptions import ActionNotFoundError
from habit_engine.logger import get_logger
from habit_engine.models import ActionStatus, DailyAction, TimingSession

logger = get_logger("action_tracker")


@dataclass(frozen=True)
class DailyProgress:
    completed: int
    total: int
    completion_rate: float
    all_complete: bool
    total_time_spent_seconds: int
    estimated_total_seconds: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ActionTracker:
    """
    Mutates DailyActions in place.

    Each action keeps at most one active TimingSession; starting a timer
    closes any session still running for that action.
    """

    def __init__(self, actions: List[DailyAction], clock: Callable[[], datetime] = datetime.now):
        self.actions = actions
        self._clock = clock

    def get(self, action_id: str) -> DailyAction:
        for action in self.actions:
            if action.id == action_id:
                return action
        raise ActionNotFoundError(action_id)

    def by_vision(self, vision_id: str) -> List[DailyAction]:
        return [a for a in self.actions if a.vision_id == vision_id]

    def by_status(self, status: ActionStatus) -> List[DailyAction]:
        return [a for a in self.actions if a.status == status]

    @staticmethod
    def _close_sessions(action: DailyAction, now: datetime) -> None:
        for session in action.timing_sessions:
            if session.is_active:
                session.close(now)

    @staticmethod
    def _sessions_seconds(action: DailyAction, now: datetime) -> int:
        return sum(s.elapsed_seconds(now) for s in action.timing_sessions)

    def start_timer(self, action_id: str, now: Optional[datetime] = None) -> TimingSession:
        now = now or self._clock()
        action = self.get(action_id)
        self._close_sessions(action, now)
        session = TimingSession.begin(action.id, now)
        action.timing_sessions.append(session)
        if action.status != ActionStatus.COMPLETED:
            action.status = ActionStatus.IN_PROGRESS
        logger.debug("Timer started for %s", action_id)
        return session

    def stop_timer(self, action_id: str, now: Optional[datetime] = None) -> Optional[TimingSession]:
        """Close the running session. Returns None when nothing was running."""
        now = now or self._clock()
        action = self.get(action_id)
        session = action.active_session()
        if session is None:
            return None
        session.close(now)
        action.actual_time_minutes = round(self._sessions_seconds(action, now) / 60)
        if action.status == ActionStatus.IN_PROGRESS:
            action.status = ActionStatus.PENDING
        return session

    def complete(
        self,
        action_id: str,
        actual_seconds: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> DailyAction:
        now = now or self._clock()
        action = self.get(action_id)
        self._close_sessions(action, now)
        seconds = actual_seconds if actual_seconds is not None else self._sessions_seconds(action, now)
        if seconds:
            action.actual_time_minutes = round(max(0, int(seconds)) / 60)
        action.status = ActionStatus.COMPLETED
        return action

    def skip(self, action_id: str, now: Optional[datetime] = None) -> DailyAction:
        action = self.get(action_id)
        self._close_sessions(action, now or self._clock())
        action.status = ActionStatus.SKIPPED
        return action

    def toggle_complete(self, action_id: str, now: Optional[datetime] = None) -> DailyAction:
        action = self.get(action_id)
        if action.status == ActionStatus.COMPLETED:
            action.status = ActionStatus.PENDING
            return action
        return self.complete(action_id, now=now)

    def progress(self, now: Optional[datetime] = None) -> DailyProgress:
        now = now or self._clock()
        total = len(self.actions)
        completed = len(self.by_status(ActionStatus.COMPLETED))
        spent = 0
        for action in self.actions:
            tracked = self._sessions_seconds(action, now)
            if not tracked and action.actual_time_minutes:
                tracked = action.actual_time_minutes * 60
            spent += tracked
        return DailyProgress(
            completed=completed,
            total=total,
            completion_rate=(completed / total * 100) if total else 0.0,
            all_complete=total > 0 and completed == total,
            total_time_spent_seconds=spent,
            estimated_total_seconds=sum(a.estimated_time_minutes * 60 for a in self.actions),
        )
