"""
Core Data Models for the Habit Engine.
Defines visions, daily actions, timing sessions, allocations and victory records.

Persisted types serialize with camelCase keys so stored JSON keeps the
field names the host application already round-trips.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class VisionCategory(str, Enum):
    HEALTH = "health"
    CAREER = "career"
    RELATIONSHIPS = "relationships"
    PERSONAL_GROWTH = "personal-growth"

    @classmethod
    def from_value(cls, value: Any) -> "VisionCategory":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return cls.PERSONAL_GROWTH


class ActionStatus(str, Enum):
    PENDING = "pending"            # 待执行
    IN_PROGRESS = "in_progress"    # 计时中
    COMPLETED = "completed"        # 已完成
    SKIPPED = "skipped"            # 已跳过

    @classmethod
    def from_value(cls, value: Any) -> "ActionStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return cls.PENDING


class TimerPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class Vision:
    """A long-term goal with a priority rank (1 = highest)."""
    id: str
    category: VisionCategory
    description: str
    priority: int = 1
    suggested_allocation_minutes: int = 0
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "description": self.description,
            "priority": self.priority,
            "suggestedAllocationMinutes": self.suggested_allocation_minutes,
            "isActive": self.is_active,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Vision":
        return cls(
            id=str(d["id"]),
            category=VisionCategory.from_value(d.get("category")),
            description=d.get("description", ""),
            priority=int(d.get("priority", 1)),
            suggested_allocation_minutes=int(d.get("suggestedAllocationMinutes", 0)),
            is_active=bool(d.get("isActive", True)),
        )


def _dt_to_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _dt_from_str(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class TimingSession:
    """
    One timed stretch of work on an action.

    Phase is derived: no start -> IDLE, open session -> RUNNING,
    closed session -> STOPPED. Durations are whole seconds.
    """
    action_id: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    is_active: bool = False

    @property
    def phase(self) -> TimerPhase:
        if self.started_at is None:
            return TimerPhase.IDLE
        if self.is_active:
            return TimerPhase.RUNNING
        return TimerPhase.STOPPED

    @classmethod
    def begin(cls, action_id: str, now: datetime) -> "TimingSession":
        return cls(action_id=action_id, started_at=now, is_active=True)

    def close(self, now: datetime) -> int:
        """Stop a running session and return its duration in seconds."""
        if self.phase != TimerPhase.RUNNING:
            return self.duration_seconds or 0
        self.ended_at = now
        self.duration_seconds = max(0, int((now - self.started_at).total_seconds()))
        self.is_active = False
        return self.duration_seconds

    def elapsed_seconds(self, now: datetime) -> int:
        if self.phase == TimerPhase.RUNNING:
            return max(0, int((now - self.started_at).total_seconds()))
        return self.duration_seconds or 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actionId": self.action_id,
            "startedAt": _dt_to_str(self.started_at),
            "endedAt": _dt_to_str(self.ended_at),
            "durationSeconds": self.duration_seconds,
            "isActive": self.is_active,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TimingSession":
        return cls(
            action_id=str(d["actionId"]),
            started_at=_dt_from_str(d.get("startedAt")),
            ended_at=_dt_from_str(d.get("endedAt")),
            duration_seconds=d.get("durationSeconds"),
            is_active=bool(d.get("isActive", False)),
        )


@dataclass
class DailyAction:
    """A concrete, time-boxed task for one vision on one date."""
    id: str
    description: str
    estimated_time_minutes: int
    date: str
    vision_id: Optional[str] = None
    actual_time_minutes: Optional[int] = None
    status: ActionStatus = ActionStatus.PENDING
    ai_generated: bool = False
    ai_reasoning: Optional[str] = None
    timing_sessions: List[TimingSession] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.status == ActionStatus.COMPLETED

    def active_session(self) -> Optional[TimingSession]:
        for session in self.timing_sessions:
            if session.is_active:
                return session
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "visionId": self.vision_id,
            "description": self.description,
            "estimatedTimeMinutes": self.estimated_time_minutes,
            "actualTimeMinutes": self.actual_time_minutes,
            "status": self.status.value,
            "date": self.date,
            "aiGenerated": self.ai_generated,
            "aiReasoning": self.ai_reasoning,
            "timingSessions": [s.to_dict() for s in self.timing_sessions],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DailyAction":
        return cls(
            id=str(d["id"]),
            vision_id=d.get("visionId"),
            description=d.get("description", ""),
            estimated_time_minutes=int(d.get("estimatedTimeMinutes", 5)),
            actual_time_minutes=d.get("actualTimeMinutes"),
            status=ActionStatus.from_value(d.get("status", "pending")),
            date=d.get("date", ""),
            ai_generated=bool(d.get("aiGenerated", False)),
            ai_reasoning=d.get("aiReasoning"),
            timing_sessions=[TimingSession.from_dict(s) for s in d.get("timingSessions", [])],
        )


@dataclass(frozen=True)
class VisionAllocation:
    vision_id: str
    minutes: int

    def to_dict(self) -> Dict[str, Any]:
        return {"visionId": self.vision_id, "minutes": self.minutes}


@dataclass(frozen=True)
class AllocationSnapshot:
    """Immutable view of one day's time budget, handed to generators and storage."""
    date: str
    total_available_minutes: int
    allocations: Tuple[VisionAllocation, ...] = ()

    def as_map(self) -> Dict[str, int]:
        return {a.vision_id: a.minutes for a in self.allocations}

    def minutes_for(self, vision_id: str) -> Optional[int]:
        for a in self.allocations:
            if a.vision_id == vision_id:
                return a.minutes
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "totalAvailableMinutes": self.total_available_minutes,
            "allocations": [a.to_dict() for a in self.allocations],
        }


@dataclass
class TimeBudgetState:
    total_available_minutes: int = 180
    allocations: Dict[str, int] = field(default_factory=dict)
    last_updated_date: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalAvailableMinutes": self.total_available_minutes,
            "allocations": dict(self.allocations),
            "lastUpdatedDate": self.last_updated_date,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TimeBudgetState":
        return cls(
            total_available_minutes=int(d.get("totalAvailableMinutes", 180)),
            allocations={str(k): int(v) for k, v in (d.get("allocations") or {}).items()},
            last_updated_date=d.get("lastUpdatedDate", ""),
        )


@dataclass(frozen=True)
class VictoryRecord:
    """Ledger entry for one fully completed day. Immutable once appended."""
    date: str
    day_number: int
    actions_completed: int
    total_actions: int
    time_spent_seconds: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "dayNumber": self.day_number,
            "actionsCompleted": self.actions_completed,
            "totalActions": self.total_actions,
            "timeSpentSeconds": self.time_spent_seconds,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "VictoryRecord":
        return cls(
            date=d["date"],
            day_number=int(d.get("dayNumber", 0)),
            actions_completed=int(d.get("actionsCompleted", 0)),
            total_actions=int(d.get("totalActions", 0)),
            time_spent_seconds=int(d.get("timeSpentSeconds", 0)),
        )


@dataclass
class VictoryLedgerState:
    current_streak: int = 0
    total_days: int = 0
    last_completed_date: Optional[str] = None
    history: List[VictoryRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentStreak": self.current_streak,
            "totalDays": self.total_days,
            "lastCompletedDate": self.last_completed_date,
            "history": [r.to_dict() for r in self.history],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "VictoryLedgerState":
        history = [VictoryRecord.from_dict(r) for r in d.get("history", [])]
        return cls(
            current_streak=int(d.get("currentStreak", 0)),
            total_days=int(d.get("totalDays", len(history))),
            last_completed_date=d.get("lastCompletedDate") or None,
            history=history,
        )


@dataclass
class CacheEntry:
    key: str
    data: Any
    created_at: float


@dataclass
class RateWindow:
    identity: str
    count: int
    window_start: float
