"""
Shared providers for the HTTP layer.

Identity comes from the X-User-Id header; authentication is handled in
front of this service.
"""
from typing import Optional

from fastapi import Depends, Header

from habit_engine.engine import HabitEngine
from habit_engine.storage import JsonFileStore, StateStore

_store: Optional[StateStore] = None


def get_store() -> StateStore:
    global _store
    if _store is None:
        _store = JsonFileStore()
        _store.init()
    return _store


def get_identity(x_user_id: Optional[str] = Header(default=None)) -> str:
    identity = (x_user_id or "").strip()
    return identity or "default"


def get_engine(identity: str = Depends(get_identity)) -> HabitEngine:
    return HabitEngine(identity=identity, store=get_store())
