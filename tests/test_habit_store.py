import pytest

from core.habit_store import HabitStore
from core.operations import FullWrite, RemoveHabitWrite
from tests.conftest import TODAY, fixed_today

def test_add_habit_defaults(store):
    habit = store.add_habit("Read")
    assert habit.category == "General"
    assert habit.start_date == TODAY
    assert habit.morning_evening is False
    assert store.completions[habit.id] == {}
    assert len(habit.id) == 36

def test_category_color(store):
    habit = store.add_habit("Run", category="Health")
    assert habit.color == "#059669"
    habit.category = "Unknown"
    assert habit.color == "#4B5563"

def test_new_habits_are_prepended(store):
    first = store.add_habit("First")
    second = store.add_habit("Second")
    assert [h.id for h in store.habits] == [second.id, first.id]

def test_add_habit_queues_full_write(store):
    store.add_habit("Read")
    operations = store.drain_operations()
    assert len(operations) == 1
    assert isinstance(operations[0], FullWrite)
    assert operations[0].immediate is True
    assert store.pending_operations == []

def test_mutations_persist_to_cache(store, cache):
    habit = store.add_habit("Read", category="Health", start_date="2024-01-10")
    store.cycle_completion(habit.id, "single", "2024-01-10")

    reloaded = HabitStore(cache, today_provider=fixed_today)
    assert reloaded.get_habit(habit.id) == habit
    assert reloaded.get_completion(habit.id, "single", "2024-01-10") == 1

def test_remove_habit_drops_completions(store):
    habit = store.add_habit("Read")
    store.cycle_completion(habit.id, "single", "2024-01-01")
    store.drain_operations()

    assert store.remove_habit(habit.id) is True
    assert store.get_habit(habit.id) is None
    assert habit.id not in store.completions
    assert store.get_day_state(habit.id, "2024-01-01") == 0
    assert store.drain_operations() == [RemoveHabitWrite(habit.id)]

def test_remove_unknown_habit_is_noop(store):
    assert store.remove_habit("missing") is False
    assert store.pending_operations == []

def test_cycle_completion_creates_entry_and_cycles(store):
    habit = store.add_habit("Read")
    assert store.get_completion(habit.id, "single") == 0
    assert store.cycle_completion(habit.id, "single") == 1
    assert store.cycle_completion(habit.id, "single") == 2
    assert store.cycle_completion(habit.id, "single") == 0
    assert store.completions[habit.id][TODAY] == {"single": 0}

def test_cycle_completion_does_not_queue_remote_write(store):
    habit = store.add_habit("Read")
    store.drain_operations()
    store.cycle_completion(habit.id, "morning", "2024-02-01")
    assert store.pending_operations == []

def test_unknown_slot_rejected(store):
    habit = store.add_habit("Read")
    with pytest.raises(ValueError):
        store.cycle_completion(habit.id, "noon")
    with pytest.raises(ValueError):
        store.get_completion(habit.id, "noon")

def test_shape_migration_scenario(store):
    habit = store.add_habit("Meditate")
    store.cycle_completion(habit.id, "single", "2024-01-01")

    store.update_habit(habit.id, morning_evening=True)
    assert store.get_completion(habit.id, "morning", "2024-01-01") == 1
    assert store.get_completion(habit.id, "evening", "2024-01-01") == 1
    assert "single" not in store.completions[habit.id]["2024-01-01"]

    store.update_habit(habit.id, morning_evening=False)
    assert store.completions[habit.id]["2024-01-01"] == {"single": 1}

def test_update_without_shape_keeps_completions(store):
    habit = store.add_habit("Read")
    store.cycle_completion(habit.id, "single", "2024-01-01")
    store.drain_operations()

    store.update_habit(habit.id, name="Read more", category="Spiritual")
    assert store.get_habit(habit.id).name == "Read more"
    assert store.get_habit(habit.id).category == "Spiritual"
    assert store.completions[habit.id] == {"2024-01-01": {"single": 1}}
    assert store.drain_operations() == [FullWrite(reason="update_habit")]

def test_update_rejects_unknown_fields(store):
    habit = store.add_habit("Read")
    with pytest.raises(TypeError):
        store.update_habit(habit.id, id="other")

def test_update_unknown_habit_returns_none(store):
    assert store.update_habit("missing", name="x") is None

def test_toggle_does_not_migrate(store):
    habit = store.add_habit("Read")
    store.cycle_completion(habit.id, "single", "2024-01-01")
    store.drain_operations()

    store.toggle_morning_evening(habit.id)
    assert store.get_habit(habit.id).morning_evening is True
    assert store.completions[habit.id]["2024-01-01"] == {"single": 1}
    assert store.pending_operations == []

def test_reorder_clamps_target(store):
    c = store.add_habit("C")
    b = store.add_habit("B")
    a = store.add_habit("A")
    assert store.reorder_habit(0, 5) is True
    assert [h.id for h in store.habits] == [b.id, c.id, a.id]
    assert store.reorder_habit(2, -3) is True
    assert [h.id for h in store.habits] == [a.id, b.id, c.id]

def test_reorder_out_of_range_source_is_noop(store):
    store.add_habit("A")
    before = list(store.habits)
    assert store.reorder_habit(3, 0) is False
    assert store.reorder_habit(-1, 0) is False
    assert store.habits == before

def test_cycle_by_date_split_habit_moves_both_slots(store):
    habit = store.add_habit("Stretch", morning_evening=True)
    store.completions[habit.id]["2024-01-01"] = {"single": 1, "morning": 1}

    assert store.cycle_completion_by_date(habit.id, "2024-01-01") == 2
    assert store.completions[habit.id]["2024-01-01"] == {"morning": 2, "evening": 2}

def test_cycle_by_date_single_habit_drops_split_fields(store):
    habit = store.add_habit("Read")
    store.completions[habit.id]["2024-01-01"] = {"morning": 1, "evening": 0}

    assert store.cycle_completion_by_date(habit.id, "2024-01-01") == 2
    assert store.completions[habit.id]["2024-01-01"] == {"single": 2}

def test_get_day_state_rollup(store):
    habit = store.add_habit("Stretch", morning_evening=True)
    store.cycle_completion(habit.id, "morning", "2024-01-01")
    assert store.get_day_state(habit.id, "2024-01-01") == 1
    store.cycle_completion(habit.id, "evening", "2024-01-01")
    store.cycle_completion(habit.id, "evening", "2024-01-01")
    assert store.get_day_state(habit.id, "2024-01-01") == 2
    assert store.get_day_state(habit.id, "2030-01-01") == 0

def test_today_entries_only_non_empty(store):
    a = store.add_habit("A")
    b = store.add_habit("B")
    store.cycle_completion(a.id, "single")
    store.cycle_completion(b.id, "single", "2024-01-01")
    assert store.today_entries() == {a.id: {TODAY: {"single": 1}}}

def test_earliest_start_date(store):
    assert store.earliest_start_date() == TODAY
    store.add_habit("A", start_date="2024-02-01")
    store.add_habit("B", start_date="2023-12-31")
    assert store.earliest_start_date() == "2023-12-31"

def test_commit_listener_notified(store):
    seen = []
    store.add_commit_listener(lambda s: seen.append(len(s.pending_operations)))
    store.add_habit("A")
    assert seen == [1]
