"""
Fallback Generator for the Habit Engine.
Deterministic, offline action synthesis used whenever the generation
backend is unavailable, rate-limited or returns unusable output.
"""
import hashlib
from typing import Dict, List, Optional, Tuple

from habit_engine.models import DailyAction, Vision, VisionCategory
from habit_engine.utils import generate_action_id

# (description, estimated minutes)
ACTION_TEMPLATES: Dict[VisionCategory, List[Tuple[str, int]]] = {
    VisionCategory.HEALTH: [
        ("Take a 15-minute walk outside", 15),
        ("Do 10 minutes of stretching", 10),
        ("Drink 3 glasses of water", 5),
        ("Practice 5 minutes of deep breathing", 5),
    ],
    VisionCategory.CAREER: [
        ("Read one article in your field", 20),
        ("Update your LinkedIn profile", 15),
        ("Practice a new skill for 20 minutes", 20),
        ("Network with one professional contact", 10),
    ],
    VisionCategory.RELATIONSHIPS: [
        ("Call a friend or family member", 15),
        ("Write a thoughtful message to someone", 10),
        ("Practice active listening in conversations", 5),
        ("Plan a quality time activity", 20),
    ],
    VisionCategory.PERSONAL_GROWTH: [
        ("Journal for 10 minutes", 10),
        ("Read for 20 minutes", 20),
        ("Practice gratitude - list 3 things", 5),
        ("Learn something new for 15 minutes", 15),
    ],
}


def _template_index(vision_id: str, day: str, size: int) -> int:
    digest = hashlib.md5(f"{vision_id}|{day}".encode("utf-8")).hexdigest()
    return int(digest, 16) % size


class FallbackGenerator:
    """模板化行动生成器 (无网络、可复现)"""

    def __init__(self, max_actions: int = 2):
        self.max_actions = max(1, max_actions)

    @staticmethod
    def prioritize(visions: List[Vision], allocations: Optional[Dict[str, int]] = None) -> List[Vision]:
        """Priority ascending (1 first), then larger allocation first."""
        allocations = allocations or {}
        return sorted(
            visions,
            key=lambda v: (v.priority, -allocations.get(v.id, v.suggested_allocation_minutes), v.id),
        )

    def generate(
        self,
        visions: List[Vision],
        day: str,
        allocations: Optional[Dict[str, int]] = None,
        reason: Optional[str] = None,
    ) -> List[DailyAction]:
        if not visions:
            return []

        chosen = self.prioritize(visions, allocations)[: self.max_actions]
        actions = []
        for vision in chosen:
            templates = ACTION_TEMPLATES.get(vision.category, ACTION_TEMPLATES[VisionCategory.PERSONAL_GROWTH])
            description, minutes = templates[_template_index(vision.id, day, len(templates))]
            actions.append(DailyAction(
                id=generate_action_id(vision.id),
                vision_id=vision.id,
                description=description,
                estimated_time_minutes=minutes,
                date=day,
                ai_generated=False,
                ai_reasoning=f"Offline template ({reason})" if reason else "Offline template",
            ))
        return actions
