from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from habit_engine.engine import HabitEngine
from web.backend.dependencies import get_engine

router = APIRouter()


class RecordRequest(BaseModel):
    actions_completed: int
    total_actions: int
    time_spent_seconds: int = 0


@router.get("/stats")
def victory_stats(engine: HabitEngine = Depends(get_engine)):
    ledger = engine.victory_ledger()
    payload = ledger.stats().to_dict()
    payload["message"] = ledger.motivational_message()
    payload["currentDayNumber"] = ledger.current_day_number()
    return payload


@router.get("/recent")
def recent_victories(limit: int = Query(default=7, ge=1, le=365), engine: HabitEngine = Depends(get_engine)):
    return {"victories": [r.to_dict() for r in engine.recent_victories(limit)]}


@router.post("/record")
def record_victory(req: RecordRequest, engine: HabitEngine = Depends(get_engine)):
    victory = engine.record_completion(req.actions_completed, req.total_actions, req.time_spent_seconds)
    return {"recorded": victory is not None, "victory": victory.to_dict() if victory else None}
