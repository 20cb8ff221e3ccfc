"""
RateLimiter: per-identity cap on generation backend calls within a fixed window.
"""
import time
from typing import Callable, Optional

from habit_engine.logger import get_logger
from habit_engine.models import RateWindow
from habit_engine.storage import MemoryStore, StateStore

logger = get_logger("rate_limiter")

KEY_PREFIX = "rate:"


class RateLimiter:
    """
    Counts physical backend calls per identity.

    A window opens on the first call and lasts `window_seconds`; once it
    has elapsed the next call starts a fresh window with count 0. Windows of
    identities that never come back are dropped by a sweep in `hit`, run at
    most once per window length.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        store: Optional[StateStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._store = store if store is not None else MemoryStore()
        self._clock = clock
        self._last_sweep = clock()

    def _load(self, identity: str) -> Optional[RateWindow]:
        raw = self._store.read(KEY_PREFIX + identity)
        if not raw:
            return None
        window = RateWindow(
            identity=raw["identity"],
            count=int(raw["count"]),
            window_start=float(raw["windowStart"]),
        )
        if self._clock() - window.window_start >= self.window_seconds:
            self._store.delete(KEY_PREFIX + identity)
            return None
        return window

    def _save(self, window: RateWindow) -> None:
        self._store.write(KEY_PREFIX + window.identity, {
            "identity": window.identity,
            "count": window.count,
            "windowStart": window.window_start,
        })

    def evict_expired(self) -> int:
        removed = 0
        now = self._clock()
        for store_key in list(self._store.keys()):
            if not store_key.startswith(KEY_PREFIX):
                continue
            raw = self._store.read(store_key)
            if raw is None or now - float(raw["windowStart"]) >= self.window_seconds:
                self._store.delete(store_key)
                removed += 1
        return removed

    def is_limited(self, identity: str) -> bool:
        window = self._load(identity)
        return window is not None and window.count >= self.max_requests

    def hit(self, identity: str) -> int:
        """Record one backend call and return the count in the current window."""
        now = self._clock()
        if now - self._last_sweep >= self.window_seconds:
            self._last_sweep = now
            self.evict_expired()
        window = self._load(identity)
        if window is None:
            window = RateWindow(identity=identity, count=0, window_start=now)
        window.count += 1
        self._save(window)
        if window.count >= self.max_requests:
            logger.info("Identity %s reached %d backend calls in window", identity, window.count)
        return window.count

    def remaining(self, identity: str) -> int:
        window = self._load(identity)
        used = window.count if window else 0
        return max(0, self.max_requests - used)

    def reset(self, identity: Optional[str] = None) -> None:
        if identity is not None:
            self._store.delete(KEY_PREFIX + identity)
            return
        for key in list(self._store.keys()):
            if key.startswith(KEY_PREFIX):
                self._store.delete(key)
