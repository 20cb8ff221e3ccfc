"""
Time Budget Allocator.

Distributes a bounded daily pool of minutes across visions. Every input is
clamped, never rejected, so sum(allocations) <= total holds after any call
regardless of what the UI sends.
"""
from datetime import date
from typing import Callable, Iterable, Optional

from habit_engine.logger import get_logger
from habit_engine.models import AllocationSnapshot, TimeBudgetState, VisionAllocation

logger = get_logger("time_budget")

STEP_MINUTES = 5


def _today() -> str:
    return date.today().isoformat()


class TimeBudgetAllocator:
    """时间预算分配器"""

    def __init__(
        self,
        state: Optional[TimeBudgetState] = None,
        step: int = STEP_MINUTES,
        today: Callable[[], str] = _today,
    ):
        self.state = state if state is not None else TimeBudgetState()
        self.step = step
        self._today = today
        if not self.state.last_updated_date:
            self.state.last_updated_date = self._today()

    @property
    def total(self) -> int:
        return self.state.total_available_minutes

    @property
    def allocations(self):
        return dict(self.state.allocations)

    def _touch(self) -> None:
        self.state.last_updated_date = self._today()

    def total_allocated(self) -> int:
        return sum(self.state.allocations.values())

    def remaining(self) -> int:
        return self.total - self.total_allocated()

    def is_fully_allocated(self) -> bool:
        allocated = self.total_allocated()
        return self.total - allocated == 0 and allocated == self.total

    def set_total(self, minutes: int) -> None:
        """
        Set the daily pool. When current allocations exceed the new total they
        are scaled by new_total / old_sum and floored to the step.
        """
        new_total = max(0, int(minutes))
        current = self.total_allocated()

        if current > new_total:
            # floor(value * new_total / current) in integers, then down to the step
            self.state.allocations = {
                vision_id: value * new_total // current // self.step * self.step
                for vision_id, value in self.state.allocations.items()
            }
            logger.info("Rescaled allocations from %d to %d minutes", current, self.total_allocated())

        self.state.total_available_minutes = new_total
        self._touch()

    def set_allocation(self, vision_id: str, minutes: int) -> int:
        """Clamp to [0, total - others] and store. Returns the stored value."""
        others = sum(v for k, v in self.state.allocations.items() if k != vision_id)
        ceiling = max(0, self.total - others)
        value = min(max(int(minutes), 0), ceiling)
        self.state.allocations[vision_id] = value
        self._touch()
        return value

    def remove_allocation(self, vision_id: str) -> None:
        self.state.allocations.pop(vision_id, None)
        self._touch()

    def assign_equally(self, vision_ids: Iterable[str]) -> None:
        """Split the pool in step-sized shares; the remainder goes to the first id."""
        ids = list(dict.fromkeys(vision_ids))
        if not ids:
            return

        per_vision = self.total // len(ids) // self.step * self.step
        remainder = self.total - per_vision * len(ids)

        self.state.allocations = {
            vision_id: per_vision + (remainder if index == 0 else 0)
            for index, vision_id in enumerate(ids)
        }
        self._touch()

    def clear(self) -> None:
        self.state.allocations = {}
        self._touch()

    def reset_if_new_day(self, today: Optional[str] = None) -> bool:
        """Drop yesterday's allocations, keeping the total. Returns True on reset."""
        today = today or self._today()
        if self.state.last_updated_date == today:
            return False
        self.state.allocations = {}
        self.state.last_updated_date = today
        logger.info("New day %s: allocations reset", today)
        return True

    def snapshot(self, today: Optional[str] = None) -> AllocationSnapshot:
        return AllocationSnapshot(
            date=today or self._today(),
            total_available_minutes=self.total,
            allocations=tuple(
                VisionAllocation(vision_id=k, minutes=v)
                for k, v in self.state.allocations.items()
            ),
        )
