from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from habit_engine.engine import HabitEngine
from habit_engine.exceptions import ActionNotFoundError
from habit_engine.models import Vision, VisionCategory
from web.backend.dependencies import get_engine

router = APIRouter()

TIMER_VERBS = {"start", "stop"}


class VisionPayload(BaseModel):
    id: str
    category: str
    description: str
    priority: int = 1
    suggested_allocation_minutes: int = 0
    is_active: bool = True

    def to_vision(self) -> Vision:
        return Vision(
            id=self.id,
            category=VisionCategory.from_value(self.category),
            description=self.description,
            priority=self.priority,
            suggested_allocation_minutes=self.suggested_allocation_minutes,
            is_active=self.is_active,
        )


class GenerateRequest(BaseModel):
    visions: List[VisionPayload]
    regenerate: bool = False


class TimerRequest(BaseModel):
    action: str


class CompleteRequest(BaseModel):
    actual_seconds: Optional[int] = None


def _not_found(e: ActionNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=e.message)


@router.post("/generate")
async def generate_actions(req: GenerateRequest, engine: HabitEngine = Depends(get_engine)):
    result = await engine.generate_daily_actions(
        [v.to_vision() for v in req.visions],
        regenerate=req.regenerate,
    )
    return {
        "actions": [a.to_dict() for a in result.actions],
        "cached": result.cached,
        "aiGenerated": result.ai_generated,
        "reason": result.reason,
    }


@router.get("")
def list_actions(engine: HabitEngine = Depends(get_engine)):
    return {
        "actions": [a.to_dict() for a in engine.todays_actions()],
        "progress": engine.progress().to_dict(),
    }


@router.post("/{action_id}/timer")
def manage_timer(action_id: str, req: TimerRequest, engine: HabitEngine = Depends(get_engine)):
    verb = req.action.strip().lower()
    if verb not in TIMER_VERBS:
        raise HTTPException(status_code=400, detail='action must be "start" or "stop"')

    try:
        if verb == "start":
            session = engine.start_timer(action_id)
        else:
            session = engine.stop_timer(action_id)
    except ActionNotFoundError as e:
        raise _not_found(e)

    if session is None:
        raise HTTPException(status_code=404, detail="No active timer to stop")
    return {"success": True, "data": session.to_dict()}


@router.post("/{action_id}/complete")
def complete_action(action_id: str, req: Optional[CompleteRequest] = None, engine: HabitEngine = Depends(get_engine)):
    try:
        outcome = engine.complete_action(action_id, actual_seconds=req.actual_seconds if req else None)
    except ActionNotFoundError as e:
        raise _not_found(e)
    return {
        "action": outcome.action.to_dict(),
        "progress": outcome.progress.to_dict(),
        "victory": outcome.victory.to_dict() if outcome.victory else None,
    }


@router.post("/{action_id}/skip")
def skip_action(action_id: str, engine: HabitEngine = Depends(get_engine)):
    try:
        action = engine.skip_action(action_id)
    except ActionNotFoundError as e:
        raise _not_found(e)
    return {"action": action.to_dict()}
