# Habit Engine: time budget allocation, daily action generation and victory streaks.

from habit_engine.action_generator import ActionGenerator, GenerationResult, GenerationStage
from habit_engine.engine import HabitEngine
from habit_engine.models import (
    ActionStatus,
    AllocationSnapshot,
    DailyAction,
    TimingSession,
    VictoryRecord,
    Vision,
    VisionCategory,
)
from habit_engine.time_budget import TimeBudgetAllocator
from habit_engine.victory_ledger import VictoryLedger

__all__ = [
    "ActionGenerator",
    "ActionStatus",
    "AllocationSnapshot",
    "DailyAction",
    "GenerationResult",
    "GenerationStage",
    "HabitEngine",
    "TimeBudgetAllocator",
    "TimingSession",
    "VictoryLedger",
    "VictoryRecord",
    "Vision",
    "VisionCategory",
]
