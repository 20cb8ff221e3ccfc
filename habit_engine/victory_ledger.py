"""
Victory Ledger for the Habit Engine.

Append-only record of fully completed days plus streak bookkeeping.

- record(): at most one VictoryRecord per calendar date
- check_streak_decay(): the single place that decides a streak is broken;
  HabitEngine runs it before every record()
- stats(): derived read-only from history, so the incrementally kept
  current_streak can be reconciled against it
"""
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from habit_engine.logger import get_logger
from habit_engine.models import VictoryLedgerState, VictoryRecord
from habit_engine.utils import days_between, is_consecutive_day, previous_calendar_date

logger = get_logger("victory_ledger")


def _today() -> str:
    return date.today().isoformat()


@dataclass(frozen=True)
class VictoryStats:
    current_streak: int
    total_days: int
    total_time_spent_minutes: int
    average_actions_per_day: float
    best_streak: int
    completion_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class VictoryLedger:
    """胜利记录账本"""

    def __init__(
        self,
        state: Optional[VictoryLedgerState] = None,
        today: Callable[[], str] = _today,
    ):
        self.state = state if state is not None else VictoryLedgerState()
        self._today = today

    @property
    def current_streak(self) -> int:
        return self.state.current_streak

    @property
    def total_days(self) -> int:
        return self.state.total_days

    @property
    def history(self) -> List[VictoryRecord]:
        return list(self.state.history)

    def is_today_complete(self, today: Optional[str] = None) -> bool:
        return self.state.last_completed_date == (today or self._today())

    def record(
        self,
        actions_completed: int,
        total_actions: int,
        time_spent_seconds: int,
        today: Optional[str] = None,
    ) -> Optional[VictoryRecord]:
        """
        Append today's victory. Returns None when today is already recorded
        or when there were no actions to complete.
        """
        today = today or self._today()
        if self.is_today_complete(today) or any(r.date == today for r in self.state.history):
            return None
        if total_actions <= 0:
            logger.warning("Ignoring victory with total_actions=%s on %s", total_actions, today)
            return None

        total_actions = int(total_actions)
        actions_completed = min(max(int(actions_completed), 0), total_actions)
        time_spent_seconds = max(int(time_spent_seconds), 0)

        if self.state.last_completed_date == previous_calendar_date(today):
            new_streak = self.state.current_streak + 1
        else:
            new_streak = 1

        victory = VictoryRecord(
            date=today,
            day_number=self.state.total_days + 1,
            actions_completed=actions_completed,
            total_actions=total_actions,
            time_spent_seconds=time_spent_seconds,
        )
        self.state.history.append(victory)
        self.state.last_completed_date = today
        self.state.total_days += 1
        self.state.current_streak = new_streak
        logger.info("Victory recorded for %s (day %d, streak %d)", today, victory.day_number, new_streak)
        return victory

    def check_streak_decay(self, today: Optional[str] = None) -> bool:
        """Break the streak if more than one calendar day passed. Returns True on reset."""
        today = today or self._today()
        last = self.state.last_completed_date
        if not last or last == today:
            return False
        if days_between(last, today) > 1 and self.state.current_streak != 0:
            logger.info("Streak of %d broken (last victory %s)", self.state.current_streak, last)
            self.state.current_streak = 0
            return True
        return False

    def recent(self, n: int = 7) -> List[VictoryRecord]:
        if n <= 0:
            return []
        return list(reversed(self.state.history[-n:]))

    def streak_runs(self) -> List[int]:
        """Lengths of consecutive-day runs in history, oldest first."""
        runs: List[int] = []
        run = 0
        previous = None
        for victory in self.state.history:
            if previous is None or is_consecutive_day(previous.date, victory.date):
                run += 1
            else:
                runs.append(run)
                run = 1
            previous = victory
        if run:
            runs.append(run)
        return runs

    def reconciled_streak(self, today: Optional[str] = None) -> int:
        """Current streak recomputed from history alone."""
        today = today or self._today()
        runs = self.streak_runs()
        if not runs:
            return 0
        last = self.state.history[-1].date
        if days_between(last, today) > 1:
            return 0
        return runs[-1]

    def stats(self) -> VictoryStats:
        history = self.state.history
        count = len(history)
        total_seconds = sum(r.time_spent_seconds for r in history)
        if count:
            average_actions = round(sum(r.actions_completed for r in history) / count, 1)
            completion_rate = sum(
                r.actions_completed / r.total_actions for r in history if r.total_actions > 0
            ) / count * 100
        else:
            average_actions = 0.0
            completion_rate = 0.0

        return VictoryStats(
            current_streak=self.state.current_streak,
            total_days=self.state.total_days,
            total_time_spent_minutes=total_seconds // 60,
            average_actions_per_day=average_actions,
            best_streak=max([self.state.current_streak, *self.streak_runs()]),
            completion_rate=completion_rate,
        )

    def current_day_number(self, today: Optional[str] = None) -> int:
        if self.is_today_complete(today):
            return self.state.total_days
        return self.state.total_days + 1

    def motivational_message(self) -> str:
        streak = self.state.current_streak
        if streak <= 0:
            return "Every streak starts with a single day. Today can be day one."
        if streak == 1:
            return "Amazing start! You've taken the first step on your transformation journey."
        if streak < 7:
            return f"{streak} days in a row! You're building unstoppable momentum."
        if streak < 30:
            return f"{streak} day streak! Your consistency is creating real change."
        if streak < 100:
            return f"{streak} days! You're proving that transformation is possible through daily action."
        return f"{streak} days! You're an inspiration - your dedication is extraordinary!"

    def reset(self) -> None:
        self.state = VictoryLedgerState()
