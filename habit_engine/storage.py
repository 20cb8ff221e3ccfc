"""
Storage backends for engine state.

StateStore is the seam between the engine and whatever the host persists
into (JSON files, a key-value server, SQL). The rate limiter and response
cache run on the same interface, so their process-wide maps can move to a
shared store without touching call sites.

Path: data/<key>.json for JsonFileStore (HABIT_ENGINE_DATA_DIR overrides).
"""
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from habit_engine.exceptions import StorageError
from habit_engine.logger import get_logger
from habit_engine.models import DailyAction, TimeBudgetState, VictoryLedgerState

PROJECT_ROOT = Path(__file__).parent.parent

logger = get_logger("storage")

TIME_BUDGET_KEY = "time_budget"
DAILY_ACTIONS_KEY = "daily_actions"
VICTORY_KEY = "victory"


def get_data_dir() -> Path:
    """
    Return runtime data directory.

    Priority:
    1. HABIT_ENGINE_DATA_DIR env var
    2. <project_root>/data
    """
    raw = os.getenv("HABIT_ENGINE_DATA_DIR", "").strip()
    if raw:
        return Path(raw).expanduser()
    return PROJECT_ROOT / "data"


class StateStore(ABC):
    """Key -> JSON-compatible value store with an explicit lifecycle."""

    def init(self) -> None:
        pass

    def teardown(self) -> None:
        pass

    @abstractmethod
    def read(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    def write(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def keys(self) -> Iterable[str]:
        pass


class MemoryStore(StateStore):
    """In-process dict. Default for rate windows and cache entries."""

    def __init__(self):
        self._data: Dict[str, Any] = {}

    def read(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def write(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def teardown(self) -> None:
        self._data.clear()


class JsonFileStore(StateStore):
    """One JSON document per key under a directory."""

    def __init__(self, root: Optional[Path] = None):
        self._root = Path(root) if root is not None else get_data_dir()

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self._root / f"{safe}.json"

    def init(self) -> None:
        self._root.mkdir(parents=True, exist_ok=True)

    def read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupted state file {path.name}: {e}", key=key) from e
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}", key=key) from e

    def write(self, key: str, value: Any) -> None:
        self.init()
        path = self._path(key)
        # 先写临时文件再替换，避免中途崩溃留下半截 JSON
        fd, tmp_name = tempfile.mkstemp(dir=str(self._root), prefix=f".{path.stem}_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Cannot write {path}: {e}", key=key) from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def keys(self) -> List[str]:
        if not self._root.exists():
            return []
        return sorted(p.stem for p in self._root.glob("*.json"))


class EngineRepository:
    """
    Typed access to one user's persisted engine state.

    Keys are namespaced per identity: "<identity>.<time_budget|daily_actions|victory>".
    """

    def __init__(self, store: StateStore, identity: str = "default"):
        self.store = store
        self.identity = identity

    def _key(self, name: str) -> str:
        return f"{self.identity}.{name}"

    def load_time_budget(self, default_total: int = 180) -> TimeBudgetState:
        raw = self.store.read(self._key(TIME_BUDGET_KEY))
        if not raw:
            return TimeBudgetState(total_available_minutes=default_total)
        return TimeBudgetState.from_dict(raw)

    def save_time_budget(self, state: TimeBudgetState) -> None:
        self.store.write(self._key(TIME_BUDGET_KEY), state.to_dict())

    def load_daily_actions(self) -> List[DailyAction]:
        raw = self.store.read(self._key(DAILY_ACTIONS_KEY)) or []
        return [DailyAction.from_dict(a) for a in raw]

    def save_daily_actions(self, actions: List[DailyAction]) -> None:
        self.store.write(self._key(DAILY_ACTIONS_KEY), [a.to_dict() for a in actions])

    def load_victory(self) -> VictoryLedgerState:
        raw = self.store.read(self._key(VICTORY_KEY))
        if not raw:
            return VictoryLedgerState()
        return VictoryLedgerState.from_dict(raw)

    def save_victory(self, state: VictoryLedgerState) -> None:
        self.store.write(self._key(VICTORY_KEY), state.to_dict())
