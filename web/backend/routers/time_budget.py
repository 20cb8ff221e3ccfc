from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from habit_engine.engine import HabitEngine
from web.backend.dependencies import get_engine

router = APIRouter()


class BudgetUpdate(BaseModel):
    total_minutes: Optional[int] = None
    allocations: Optional[Dict[str, int]] = None


class EqualSplitRequest(BaseModel):
    vision_ids: List[str]
    total_minutes: Optional[int] = None


class AllocationEdit(BaseModel):
    minutes: int


def _budget_payload(engine: HabitEngine) -> dict:
    allocator = engine.time_budget()
    snapshot = allocator.snapshot()
    payload = snapshot.to_dict()
    payload.update({
        "totalAllocated": allocator.total_allocated(),
        "remaining": allocator.remaining(),
        "isFullyAllocated": allocator.is_fully_allocated(),
    })
    return payload


@router.get("")
def get_time_budget(engine: HabitEngine = Depends(get_engine)):
    return _budget_payload(engine)


@router.put("")
def update_time_budget(req: BudgetUpdate, engine: HabitEngine = Depends(get_engine)):
    engine.allocate(total=req.total_minutes, edits=req.allocations)
    return _budget_payload(engine)


@router.post("/equal")
def assign_equally(req: EqualSplitRequest, engine: HabitEngine = Depends(get_engine)):
    engine.allocate(total=req.total_minutes, vision_ids=req.vision_ids)
    return _budget_payload(engine)


@router.put("/allocations/{vision_id}")
def set_allocation(vision_id: str, req: AllocationEdit, engine: HabitEngine = Depends(get_engine)):
    engine.allocate(edits={vision_id: req.minutes})
    return _budget_payload(engine)


@router.delete("/allocations")
def clear_allocations(engine: HabitEngine = Depends(get_engine)):
    engine.clear_allocations()
    return _budget_payload(engine)
