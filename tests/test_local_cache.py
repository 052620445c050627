import json

from core.habit_store import HabitStore
from core.models import Habit, SyncMeta
from database.cache import LocalCache, HABITS_KEY, COMPLETIONS_KEY, META_KEY, CALENDAR_EDITABLE_KEY
from database.storage import LocalStorage
from tests.conftest import TODAY, fixed_today

def test_empty_storage_loads_defaults(cache):
    assert cache.load_habits() == []
    assert cache.load_completions() == {}
    assert cache.load_meta().updated_at == 0
    assert cache.load_calendar_editable() is False

def test_save_and_reload_survives_restart(tmp_path):
    path = tmp_path / "local_storage.json"
    cache = LocalCache(LocalStorage(path), today_provider=fixed_today)
    habit = Habit(id="h1", name="Read", morning_evening=True, category="Health", start_date="2024-01-01")
    cache.save_habits([habit])
    cache.save_completions({"h1": {"2024-01-01": {"morning": 1, "evening": 2}}})
    cache.save_meta(SyncMeta(updated_at=1234))

    reopened = LocalCache(LocalStorage(path), today_provider=fixed_today)
    assert reopened.load_habits() == [habit]
    assert reopened.load_completions() == {"h1": {"2024-01-01": {"morning": 1, "evening": 2}}}
    assert reopened.load_meta().updated_at == 1234

def test_keys_hold_json_strings(storage, cache):
    cache.save_meta(SyncMeta(updated_at=42))
    assert json.loads(storage.get_item(META_KEY)) == {"updatedAt": 42}

def test_legacy_habit_flags_are_combined(storage, cache):
    storage.set_item(HABITS_KEY, json.dumps([
        {"id": "a", "name": "Walk", "morning": True, "evening": True},
        {"id": "b", "name": "Pray", "morning": True, "evening": False},
        {"name": "No id"},
    ]))
    habits = cache.load_habits()
    assert [(h.id, h.morning_evening) for h in habits[:2]] == [("a", True), ("b", False)]
    assert habits[2].id
    assert habits[2].category == "General"

def test_flat_completions_move_under_today(storage, cache):
    storage.set_item(COMPLETIONS_KEY, json.dumps({
        "a": {"single": 1},
        "b": {"2024-01-01": {"morning": 2}},
    }))
    assert cache.load_completions() == {
        "a": {TODAY: {"single": 1}},
        "b": {"2024-01-01": {"morning": 2}},
    }

def test_corrupt_data_falls_back_to_empty(storage, cache):
    storage.set_item(HABITS_KEY, "{not json")
    storage.set_item(COMPLETIONS_KEY, json.dumps(["wrong", "shape"]))
    storage.set_item(META_KEY, "???")
    assert cache.load_habits() == []
    assert cache.load_completions() == {}
    assert cache.load_meta() == SyncMeta()

def test_malformed_day_entries_are_dropped(storage, cache):
    storage.set_item(COMPLETIONS_KEY, json.dumps({
        "h1": {"2024-01-01": "x", "2024-01-02": {"single": 1}},
        "h2": {"2024-01-01": {"morning": "done", "evening": 2, "noon": 1, "single": 7}},
    }))
    assert cache.load_completions() == {
        "h1": {"2024-01-02": {"single": 1}},
        "h2": {"2024-01-01": {"evening": 2}},
    }

def test_store_reads_survive_malformed_days(storage, cache):
    storage.set_item(COMPLETIONS_KEY, json.dumps({"h1": {"2024-01-01": "x", TODAY: [1, 2]}}))
    store = HabitStore(cache, today_provider=fixed_today)
    assert store.get_day_state("h1", "2024-01-01") == 0
    assert store.get_completion("h1", "single") == 0
    assert store.today_entries() == {}

def test_unreadable_storage_file_starts_empty(tmp_path):
    path = tmp_path / "local_storage.json"
    path.write_text("garbage", encoding="utf-8")
    assert LocalStorage(path).get_item(HABITS_KEY) is None

def test_calendar_flag_roundtrip(storage, cache):
    cache.save_calendar_editable(True)
    assert storage.get_item(CALENDAR_EDITABLE_KEY) == "1"
    assert cache.load_calendar_editable() is True
    cache.save_calendar_editable(False)
    assert storage.get_item(CALENDAR_EDITABLE_KEY) == "0"
