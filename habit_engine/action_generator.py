"""
Action Generator for the Habit Engine.

Turns the external generation backend into a reliable daily action list:

    rate check -> cache -> backend call -> parse -> (fallback) -> clamp -> cache

Backend trouble of any kind (timeout, HTTP failure, malformed text) ends in
the FallbackGenerator, so `generate` always returns a usable list and never
raises for backend reasons. Callers learn about degraded results through
the `cached` / `ai_generated` / `reason` fields of GenerationResult.
"""
import asyncio
import math
import threading
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from habit_engine.config_manager import EngineConfig, config as default_config
from habit_engine.exceptions import BackendError, ResponseParseError
from habit_engine.fallback_generator import FallbackGenerator
from habit_engine.llm_adapter import BackendCall
from habit_engine.logger import get_logger
from habit_engine.models import AllocationSnapshot, DailyAction, Vision
from habit_engine.rate_limiter import RateLimiter
from habit_engine.response_cache import ResponseCache, make_cache_key
from habit_engine.utils import extract_json_payload, generate_action_id, load_prompt

logger = get_logger("action_generator")

Allocations = Union[AllocationSnapshot, Mapping[str, int], None]


class GenerationStage(str, Enum):
    IDLE = "idle"
    RATE_LIMITED = "rate_limited"
    CACHED = "cached"
    CALLING = "calling"
    PARSED = "parsed"
    FAILED = "failed"
    FALLBACK = "fallback"
    CLAMPED = "clamped"


@dataclass
class GenerationResult:
    """
    stage 是请求结束时所处的阶段，trail 记录完整路径：
        IDLE -> CALLING -> PARSED -> CLAMPED
        IDLE -> CALLING -> FAILED -> FALLBACK -> CLAMPED
        IDLE -> RATE_LIMITED -> FALLBACK -> CLAMPED
        IDLE -> CACHED
    """
    actions: List[DailyAction] = field(default_factory=list)
    cached: bool = False
    ai_generated: bool = False
    stage: GenerationStage = GenerationStage.IDLE
    reason: Optional[str] = None
    trail: List[GenerationStage] = field(default_factory=list)

    def copy(self) -> "GenerationResult":
        return GenerationResult(
            actions=[DailyAction.from_dict(a.to_dict()) for a in self.actions],
            cached=self.cached,
            ai_generated=self.ai_generated,
            stage=self.stage,
            reason=self.reason,
            trail=list(self.trail),
        )


def finished(steps: List[GenerationStage], **fields) -> GenerationResult:
    """Build a result that walked IDLE -> *steps and stopped at the last one."""
    trail = [GenerationStage.IDLE, *steps]
    return GenerationResult(stage=trail[-1], trail=trail, **fields)


def _allocation_map(allocations: Allocations) -> Dict[str, int]:
    if allocations is None:
        return {}
    if isinstance(allocations, AllocationSnapshot):
        return allocations.as_map()
    return {str(k): int(v) for k, v in allocations.items()}


def _today() -> str:
    return date.today().isoformat()


def _run_in_worker(func: Callable[..., Any], *args) -> "asyncio.Future[Any]":
    """
    Run a blocking call on a daemon thread and expose it as a loop future.

    Nothing joins the thread: once the caller stops waiting (timeout,
    cancellation, loop shutdown) the call finishes on its own and its
    result is dropped.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def _deliver(setter, value) -> None:
        if not future.done():
            setter(value)

    def _work() -> None:
        try:
            outcome = (future.set_result, func(*args))
        except Exception as e:
            outcome = (future.set_exception, e)
        try:
            loop.call_soon_threadsafe(_deliver, *outcome)
        except RuntimeError:
            # loop already closed, nobody is waiting
            logger.debug("Discarding backend result after loop shutdown")

    threading.Thread(target=_work, name="habit-backend-call", daemon=True).start()
    return future


class ActionGenerator:
    """
    生成每日行动的状态机。

    Rate windows and cache entries live in the RateLimiter / ResponseCache
    stores and are shared by every request routed through this instance.
    Concurrent requests for the same cache key join one in-flight backend call.
    """

    def __init__(
        self,
        backend: Optional[BackendCall] = None,
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[ResponseCache] = None,
        fallback: Optional[FallbackGenerator] = None,
        settings: Optional[EngineConfig] = None,
        today: Callable[[], str] = _today,
    ):
        self.settings = settings or default_config
        self.backend = backend
        self.rate_limiter = rate_limiter or RateLimiter(
            max_requests=self.settings.RATE_LIMIT_MAX_REQUESTS,
            window_seconds=self.settings.RATE_LIMIT_WINDOW_SECONDS,
        )
        self.cache = cache or ResponseCache(ttl_seconds=self.settings.CACHE_TTL_SECONDS)
        self.fallback = fallback or FallbackGenerator(max_actions=self.settings.MAX_FALLBACK_ACTIONS)
        self._today = today
        self._inflight: Dict[str, "asyncio.Task[GenerationResult]"] = {}

    # --- public API ---

    async def generate(
        self,
        visions: List[Vision],
        identity: str = "default",
        allocations: Allocations = None,
    ) -> GenerationResult:
        if not visions:
            return finished([])

        alloc = _allocation_map(allocations)
        key = make_cache_key(identity, [v.id for v in visions])

        task = self._inflight.get(key)
        if task is not None and not task.done() and task.get_loop() is asyncio.get_running_loop():
            logger.debug("Joining in-flight generation for %s", identity)
            result = (await asyncio.shield(task)).copy()
            self.clamp_actions(result.actions, alloc)
            return result

        if self.rate_limiter.is_limited(identity):
            logger.warning("Rate limit reached for %s, using fallback actions", identity)
            return self._fallback(visions, alloc, "rate_limited", [GenerationStage.RATE_LIMITED])

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", identity)
            # cached estimates were clamped against the allocation of their own request
            actions = self.clamp_actions([DailyAction.from_dict(a) for a in cached], alloc)
            return finished(
                [GenerationStage.CACHED],
                actions=actions,
                cached=True,
                ai_generated=all(a.get("aiGenerated", False) for a in cached),
            )

        if self.backend is None:
            return self._fallback(visions, alloc, "no_backend", [])

        self.rate_limiter.hit(identity)
        task = asyncio.ensure_future(self._call_backend(visions, alloc, key))
        self._inflight[key] = task
        task.add_done_callback(lambda _t, k=key: self._forget(k, _t))

        # shield: an abandoned caller must not cancel the backend call that
        # other callers (and the cache) are waiting on
        return await asyncio.shield(task)

    def generate_sync(
        self,
        visions: List[Vision],
        identity: str = "default",
        allocations: Allocations = None,
    ) -> GenerationResult:
        """Blocking wrapper for callers without an event loop (CLI, scripts)."""
        return asyncio.run(self.generate(visions, identity, allocations))

    def clamp_minutes(self, proposed: int, allocation: Optional[int]) -> int:
        """
        Clamp an action's estimate to its vision's budget.

        With an allocation A: max(MIN, min(proposed, floor(A * ratio), MAX));
        without one: [MIN, MAX].
        """
        s = self.settings
        upper = s.MAX_ACTION_MINUTES
        if allocation is not None:
            upper = min(upper, math.floor(allocation * s.ALLOCATION_CLAMP_RATIO))
        return max(s.MIN_ACTION_MINUTES, min(int(proposed), upper))

    def clamp_actions(self, actions: List[DailyAction], allocations: Mapping[str, int]) -> List[DailyAction]:
        """Clamp in place against the given allocation map; idempotent."""
        for action in actions:
            allocation = allocations.get(action.vision_id) if action.vision_id else None
            action.estimated_time_minutes = self.clamp_minutes(action.estimated_time_minutes, allocation)
        return actions

    def clear_cache(self) -> None:
        self.cache.clear()

    def reset(self) -> None:
        self.clear_cache()
        self.rate_limiter.reset()
        self._inflight.clear()

    # --- prompt / parse ---

    def build_prompts(self, visions: List[Vision], allocations: Mapping[str, int]) -> tuple:
        s = self.settings
        ordered = FallbackGenerator.prioritize(visions, dict(allocations))
        lines = []
        for v in ordered:
            minutes = allocations.get(v.id, v.suggested_allocation_minutes)
            lines.append(
                f"- id: {v.id}\n"
                f"  category: {v.category.value}\n"
                f"  vision: \"{v.description}\"\n"
                f"  priority: {v.priority}\n"
                f"  time allocated: {minutes} minutes"
            )
        variables = {
            "max_actions": s.MAX_AI_ACTIONS,
            "min_minutes": s.PROMPT_MIN_MINUTES,
            "max_minutes": s.PROMPT_MAX_MINUTES,
            "visions": "\n".join(lines),
        }
        return (
            load_prompt("daily_actions/system", variables),
            load_prompt("daily_actions/user", variables),
        )

    def parse_actions(self, raw: str, visions: List[Vision], day: str) -> List[DailyAction]:
        """Extract at most MAX_AI_ACTIONS actions from backend text."""
        payload = extract_json_payload(raw)
        if isinstance(payload, dict):
            payload = payload["actions"] if isinstance(payload.get("actions"), list) else [payload]
        if not isinstance(payload, list) or not payload:
            raise ResponseParseError(raw=raw)

        by_id = {v.id: v for v in visions}
        primary = FallbackGenerator.prioritize(visions)[0]

        actions = []
        for item in payload[: self.settings.MAX_AI_ACTIONS]:
            if not isinstance(item, dict):
                raise ResponseParseError("Action item is not an object", raw=raw)
            description = str(item.get("description") or "").strip()
            if not description:
                raise ResponseParseError("Action item has no description", raw=raw)
            try:
                minutes = int(float(item.get("estimatedTime", item.get("estimatedTimeMinutes"))))
            except (TypeError, ValueError) as e:
                raise ResponseParseError("Action item has no numeric estimatedTime", raw=raw) from e

            vision_id = str(item.get("visionId") or "")
            if vision_id not in by_id:
                vision_id = primary.id

            reasoning = item.get("reasoning")
            actions.append(DailyAction(
                id=generate_action_id(vision_id),
                vision_id=vision_id,
                description=description,
                estimated_time_minutes=minutes,
                date=day,
                ai_generated=True,
                ai_reasoning=str(reasoning) if reasoning else None,
            ))
        return actions

    # --- internals ---

    def _forget(self, key: str, task: "asyncio.Task[GenerationResult]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    def _fallback(
        self,
        visions: List[Vision],
        allocations: Mapping[str, int],
        reason: str,
        steps: List[GenerationStage],
    ) -> GenerationResult:
        actions = self.fallback.generate(visions, self._today(), dict(allocations), reason=reason)
        return finished(
            [*steps, GenerationStage.FALLBACK, GenerationStage.CLAMPED],
            actions=self.clamp_actions(actions, allocations),
            ai_generated=False,
            reason=reason,
        )

    async def _call_backend(
        self,
        visions: List[Vision],
        allocations: Mapping[str, int],
        key: str,
    ) -> GenerationResult:
        system_prompt, user_prompt = self.build_prompts(visions, allocations)
        timeout = self.settings.BACKEND_TIMEOUT_SECONDS
        failed = [GenerationStage.CALLING, GenerationStage.FAILED]

        try:
            raw = await asyncio.wait_for(
                _run_in_worker(self.backend, system_prompt, user_prompt),
                timeout=timeout,
            )
            actions = self.parse_actions(raw, visions, self._today())
        except asyncio.TimeoutError:
            logger.warning("Backend call timed out after %ss, using fallback actions", timeout)
            return self._fallback(visions, allocations, "timeout", failed)
        except BackendError as e:
            logger.warning("Backend call failed (%s), using fallback actions", e.message)
            return self._fallback(visions, allocations, e.reason, failed)
        except Exception as e:
            logger.error("Unexpected backend failure: %s", e, exc_info=True)
            return self._fallback(visions, allocations, "backend_error", failed)

        actions = self.clamp_actions(actions, allocations)
        self.cache.set(key, [a.to_dict() for a in actions])
        logger.info("Generated %d actions from backend", len(actions))
        return finished(
            [GenerationStage.CALLING, GenerationStage.PARSED, GenerationStage.CLAMPED],
            actions=actions,
            ai_generated=True,
        )
