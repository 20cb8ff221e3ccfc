"""
ResponseCache: short-TTL memoization of generation results.
"""
import hashlib
import json
import time
from typing import Any, Callable, Iterable, Optional

from habit_engine.logger import get_logger
from habit_engine.models import CacheEntry
from habit_engine.storage import MemoryStore, StateStore

logger = get_logger("response_cache")

KEY_PREFIX = "cache:"


def make_cache_key(identity: str, vision_ids: Iterable[str], namespace: str = "actions") -> str:
    """Stable key over identity + the sorted vision id set."""
    fingerprint = json.dumps(sorted(str(v) for v in vision_ids), separators=(",", ":"))
    digest = hashlib.sha256(f"{identity}|{fingerprint}".encode("utf-8")).hexdigest()[:32]
    return f"{namespace}_{digest}"


class ResponseCache:
    """
    Entries expire `ttl_seconds` after creation. An expired entry is evicted
    when it is looked up, and `set` sweeps the whole store at most once per TTL
    so keys that are never asked for again do not pile up.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        store: Optional[StateStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self._store = store if store is not None else MemoryStore()
        self._clock = clock
        self._last_sweep = clock()

    def get(self, key: str) -> Optional[Any]:
        raw = self._store.read(KEY_PREFIX + key)
        if raw is None:
            return None
        entry = CacheEntry(key=key, data=raw["data"], created_at=float(raw["createdAt"]))
        if self._clock() - entry.created_at >= self.ttl_seconds:
            logger.debug("Cache entry %s expired", key)
            self._store.delete(KEY_PREFIX + key)
            return None
        return entry.data

    def set(self, key: str, data: Any) -> None:
        now = self._clock()
        if now - self._last_sweep >= self.ttl_seconds:
            self._last_sweep = now
            removed = self.evict_expired()
            if removed:
                logger.debug("Swept %d expired cache entries", removed)
        self._store.write(KEY_PREFIX + key, {"data": data, "createdAt": now})

    def evict_expired(self) -> int:
        removed = 0
        now = self._clock()
        for store_key in list(self._store.keys()):
            if not store_key.startswith(KEY_PREFIX):
                continue
            raw = self._store.read(store_key)
            if raw is None or now - float(raw["createdAt"]) >= self.ttl_seconds:
                self._store.delete(store_key)
                removed += 1
        return removed

    def clear(self) -> None:
        for store_key in list(self._store.keys()):
            if store_key.startswith(KEY_PREFIX):
                self._store.delete(store_key)
