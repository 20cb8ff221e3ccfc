import json

import pytest

from habit_engine.exceptions import StorageError
from habit_engine.models import DailyAction, TimeBudgetState, VictoryLedgerState, VictoryRecord
from habit_engine.storage import EngineRepository, JsonFileStore, MemoryStore, get_data_dir


def test_json_store_round_trip(tmp_path):
    store = JsonFileStore(tmp_path)

    store.write("default.victory", {"currentStreak": 2})

    assert store.read("default.victory") == {"currentStreak": 2}
    assert store.keys() == ["default.victory"]
    assert not list(tmp_path.glob("*.tmp"))


def test_json_store_missing_key_and_delete(tmp_path):
    store = JsonFileStore(tmp_path)

    assert store.read("nope") is None
    store.write("k", 1)
    store.delete("k")
    store.delete("k")
    assert store.read("k") is None


def test_json_store_sanitizes_keys(tmp_path):
    store = JsonFileStore(tmp_path)

    store.write("../evil/key", {"x": 1})

    assert store.read("../evil/key") == {"x": 1}
    assert all(p.parent == tmp_path for p in tmp_path.iterdir())


def test_corrupted_file_raises_storage_error(tmp_path):
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(StorageError) as exc:
        JsonFileStore(tmp_path).read("broken")
    assert exc.value.key == "broken"


def test_data_dir_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("HABIT_ENGINE_DATA_DIR", str(tmp_path))

    assert get_data_dir() == tmp_path
    assert JsonFileStore().root == tmp_path


def test_repository_defaults_when_empty():
    repo = EngineRepository(MemoryStore(), "u1")

    assert repo.load_time_budget(default_total=90).total_available_minutes == 90
    assert repo.load_daily_actions() == []
    assert repo.load_victory() == VictoryLedgerState()


def test_repository_namespaces_by_identity(tmp_path):
    store = JsonFileStore(tmp_path)
    alice = EngineRepository(store, "alice")
    bob = EngineRepository(store, "bob")

    alice.save_time_budget(TimeBudgetState(total_available_minutes=60, allocations={"v1": 30}, last_updated_date="2026-03-10"))
    alice.save_victory(VictoryLedgerState(
        current_streak=1,
        total_days=1,
        last_completed_date="2026-03-10",
        history=[VictoryRecord("2026-03-10", 1, 2, 2, 900)],
    ))
    alice.save_daily_actions([
        DailyAction(id="a1", description="Walk", estimated_time_minutes=15, date="2026-03-10", vision_id="v1"),
    ])

    assert alice.load_time_budget().allocations == {"v1": 30}
    assert alice.load_victory().history[0].time_spent_seconds == 900
    assert alice.load_daily_actions()[0].description == "Walk"
    assert bob.load_time_budget().allocations == {}
    saved = json.loads((tmp_path / "alice.time_budget.json").read_text(encoding="utf-8"))
    assert saved["totalAvailableMinutes"] == 60
