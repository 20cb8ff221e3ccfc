"""
HabitEngine: the call surface the application layer talks to.

    allocate(total, vision_ids | edits)            -> AllocationSnapshot
    generate_daily_actions(visions, snapshot)      -> GenerationResult
    record_completion(completed, total, seconds)   -> VictoryRecord | None

State is loaded from the repository at the start of every operation and
written back at the end, so one engine per request is fine; the
ActionGenerator (rate windows, cache) is shared process-wide.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, List, Mapping, Optional

from habit_engine.action_generator import ActionGenerator, GenerationResult, GenerationStage, finished
from habit_engine.action_tracker import ActionTracker, DailyProgress
from habit_engine.config_manager import EngineConfig, config as default_config
from habit_engine.exceptions import ConfigError
from habit_engine.llm_adapter import OfflineAdapter, call_backend, get_llm
from habit_engine.logger import get_logger
from habit_engine.models import AllocationSnapshot, DailyAction, TimingSession, VictoryRecord, Vision
from habit_engine.storage import EngineRepository, JsonFileStore, StateStore
from habit_engine.time_budget import TimeBudgetAllocator
from habit_engine.victory_ledger import VictoryLedger, VictoryStats

logger = get_logger("engine")

_default_generator: Optional[ActionGenerator] = None


def get_default_generator() -> ActionGenerator:
    """Process-wide generator wired to the active backend profile."""
    global _default_generator
    if _default_generator is None:
        try:
            adapter = get_llm()
        except ConfigError as e:
            logger.warning("Generation backend unavailable: %s", e.message)
            adapter = OfflineAdapter()
        backend = None
        if not isinstance(adapter, OfflineAdapter):
            backend = call_backend(
                adapter,
                temperature=default_config.BACKEND_TEMPERATURE,
                max_tokens=default_config.BACKEND_MAX_TOKENS,
            )
        _default_generator = ActionGenerator(backend=backend)
    return _default_generator


def reset_default_generator() -> None:
    global _default_generator
    _default_generator = None


@dataclass
class CompletionOutcome:
    action: DailyAction
    progress: DailyProgress
    victory: Optional[VictoryRecord] = None


class HabitEngine:
    """每个用户身份一个实例"""

    def __init__(
        self,
        identity: str = "default",
        store: Optional[StateStore] = None,
        generator: Optional[ActionGenerator] = None,
        settings: Optional[EngineConfig] = None,
        today: Optional[Callable[[], str]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.identity = identity
        self.settings = settings or default_config
        self.store = store if store is not None else JsonFileStore()
        self.store.init()
        self.repo = EngineRepository(self.store, identity)
        self._generator = generator
        self._today = today or (lambda: date.today().isoformat())
        self._clock = clock

    @property
    def generator(self) -> ActionGenerator:
        if self._generator is None:
            self._generator = get_default_generator()
        return self._generator

    # --- time budget ---

    def _allocator(self) -> TimeBudgetAllocator:
        state = self.repo.load_time_budget(default_total=self.settings.DEFAULT_TOTAL_MINUTES)
        allocator = TimeBudgetAllocator(state, step=self.settings.ALLOCATION_STEP_MINUTES, today=self._today)
        if allocator.reset_if_new_day(self._today()):
            self.repo.save_time_budget(allocator.state)
        return allocator

    def time_budget(self) -> TimeBudgetAllocator:
        return self._allocator()

    def allocate(
        self,
        total: Optional[int] = None,
        vision_ids: Optional[Iterable[str]] = None,
        edits: Optional[Mapping[str, int]] = None,
    ) -> AllocationSnapshot:
        allocator = self._allocator()
        if total is not None:
            allocator.set_total(total)
        if vision_ids is not None:
            allocator.assign_equally(vision_ids)
        for vision_id, minutes in (edits or {}).items():
            allocator.set_allocation(vision_id, minutes)
        self.repo.save_time_budget(allocator.state)
        return allocator.snapshot(self._today())

    def clear_allocations(self) -> AllocationSnapshot:
        allocator = self._allocator()
        allocator.clear()
        self.repo.save_time_budget(allocator.state)
        return allocator.snapshot(self._today())

    # --- daily actions ---

    def todays_actions(self) -> List[DailyAction]:
        """Stored actions for today; anything dated otherwise is discarded."""
        today = self._today()
        actions = self.repo.load_daily_actions()
        fresh = [a for a in actions if a.date == today]
        if len(fresh) != len(actions):
            logger.info("Discarding %d stale actions", len(actions) - len(fresh))
            self.repo.save_daily_actions(fresh)
        return fresh

    def eligible_visions(self, visions: List[Vision], snapshot: AllocationSnapshot) -> List[Vision]:
        active = [v for v in visions if v.is_active]
        allocation = snapshot.as_map()
        funded = [v for v in active if allocation.get(v.id, 0) > 0]
        # 尚未分配任何时间时，所有激活愿景都参与生成
        return funded if any(m > 0 for m in allocation.values()) else active

    async def generate_daily_actions(
        self,
        visions: List[Vision],
        snapshot: Optional[AllocationSnapshot] = None,
        regenerate: bool = False,
    ) -> GenerationResult:
        today = self._today()
        snapshot = snapshot or self._allocator().snapshot(today)
        eligible = self.eligible_visions(visions, snapshot)
        eligible_ids = {v.id for v in eligible}

        existing = self.todays_actions()
        if existing and not regenerate and all(a.vision_id in eligible_ids for a in existing):
            before = [a.estimated_time_minutes for a in existing]
            self.generator.clamp_actions(existing, snapshot.as_map())
            if [a.estimated_time_minutes for a in existing] != before:
                logger.info("Re-clamped stored actions to the current allocation")
                self.repo.save_daily_actions(existing)
            return finished(
                [GenerationStage.CACHED],
                actions=existing,
                cached=True,
                ai_generated=all(a.ai_generated for a in existing),
            )

        if not eligible:
            self.repo.save_daily_actions([])
            return finished([])

        result = await self.generator.generate(eligible, self.identity, snapshot)
        for action in result.actions:
            action.date = today
        self.repo.save_daily_actions(result.actions)
        return result

    def _with_tracker(self, operation):
        actions = self.todays_actions()
        tracker = ActionTracker(actions, clock=self._clock)
        outcome = operation(tracker)
        self.repo.save_daily_actions(actions)
        return outcome

    def start_timer(self, action_id: str) -> TimingSession:
        return self._with_tracker(lambda t: t.start_timer(action_id))

    def stop_timer(self, action_id: str) -> Optional[TimingSession]:
        return self._with_tracker(lambda t: t.stop_timer(action_id))

    def skip_action(self, action_id: str) -> DailyAction:
        return self._with_tracker(lambda t: t.skip(action_id))

    def complete_action(self, action_id: str, actual_seconds: Optional[int] = None) -> CompletionOutcome:
        """Complete one action; finishing the last one records today's victory."""
        def _complete(tracker: ActionTracker) -> CompletionOutcome:
            action = tracker.complete(action_id, actual_seconds=actual_seconds)
            return CompletionOutcome(action=action, progress=tracker.progress())

        outcome = self._with_tracker(_complete)
        if outcome.progress.all_complete:
            outcome.victory = self.record_completion(
                outcome.progress.completed,
                outcome.progress.total,
                outcome.progress.total_time_spent_seconds,
            )
        return outcome

    def progress(self) -> DailyProgress:
        return ActionTracker(self.todays_actions(), clock=self._clock).progress()

    # --- victory ---

    def _ledger(self) -> VictoryLedger:
        ledger = VictoryLedger(self.repo.load_victory(), today=self._today)
        if ledger.check_streak_decay(self._today()):
            self.repo.save_victory(ledger.state)
        return ledger

    def victory_ledger(self) -> VictoryLedger:
        return self._ledger()

    def record_completion(
        self,
        actions_completed: int,
        total_actions: int,
        time_spent_seconds: int,
    ) -> Optional[VictoryRecord]:
        ledger = self._ledger()
        victory = ledger.record(actions_completed, total_actions, time_spent_seconds, self._today())
        if victory is not None:
            self.repo.save_victory(ledger.state)
        return victory

    def victory_stats(self) -> VictoryStats:
        return self._ledger().stats()

    def recent_victories(self, n: Optional[int] = None) -> List[VictoryRecord]:
        return self._ledger().recent(n if n is not None else self.settings.RECENT_VICTORIES_LIMIT)
