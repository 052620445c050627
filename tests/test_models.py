import pytest

from core.models import Habit, SyncMeta, ValidationError, validate_habit_name

def test_validate_habit_name_trims():
    assert validate_habit_name("  Read  ") == "Read"

@pytest.mark.parametrize("name", ["", "   ", None])
def test_validate_habit_name_rejects_empty(name):
    with pytest.raises(ValidationError):
        validate_habit_name(name)

def test_validate_habit_name_rejects_too_long():
    with pytest.raises(ValidationError):
        validate_habit_name("x" * 201)

def test_habit_wire_keys():
    habit = Habit(id="h1", name="Pray", morning_evening=True, category="Spiritual", start_date="2024-01-01")
    assert habit.to_dict() == {
        "id": "h1",
        "name": "Pray",
        "morning_evening": True,
        "category": "Spiritual",
        "start_date": "2024-01-01",
    }

def test_habit_from_dict_defaults():
    habit = Habit.from_dict({"name": "Walk"})
    assert habit.id
    assert habit.category == "General"
    assert habit.morning_evening is False

def test_habit_from_dict_keeps_unknown_category():
    assert Habit.from_dict({"id": "h1", "name": "x", "category": "Hobby"}).category == "Hobby"

def test_sync_meta_wire_shape():
    assert SyncMeta(updated_at=42).to_dict() == {"updatedAt": 42}
    assert SyncMeta.from_dict({"updatedAt": 42}).updated_at == 42
    assert SyncMeta.from_dict({"updatedAt": "bad"}).updated_at == 0
    assert SyncMeta.from_dict(None).updated_at == 0
