import time
from typing import Optional

from habit_engine.models import Vision, VisionCategory


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """callBackend stand-in that counts physical calls."""

    def __init__(self, reply: str = "", error: Optional[Exception] = None, delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls = 0
        self.prompts = []

    def __call__(self, system_prompt: str, user_prompt: str) -> str:
        self.calls += 1
        self.prompts.append((system_prompt, user_prompt))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


def make_visions():
    return [
        Vision(id="v_health", category=VisionCategory.HEALTH, description="a strong runner", priority=1),
        Vision(id="v_career", category=VisionCategory.CAREER, description="a staff engineer", priority=2),
        Vision(id="v_people", category=VisionCategory.RELATIONSHIPS, description="a present friend", priority=3),
    ]
