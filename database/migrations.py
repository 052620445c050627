# database/migrations.py

"""
Загрузка устаревших форм данных из локального кэша.

Остальной движок видит только текущую форму:
habits - список привычек с флагом morning_evening,
completions - habit_id -> дата -> запись дня.
"""

import logging
from typing import Any, Dict, List, Optional

from core.completion import SLOTS, CompletionDay, DONE, FAILED, NEUTRAL
from core.models import Habit, generate_habit_id

logger = logging.getLogger(__name__)

class HabitsMigration:
    """Адаптеры старых форм для habits и habits.completions"""

    @classmethod
    def is_legacy_habit(cls, raw: Dict[str, Any]) -> bool:
        """Старая форма: отдельные булевы morning / evening"""
        return not isinstance(raw.get("morning_evening"), bool)

    @classmethod
    def migrate_habit(cls, raw: Dict[str, Any]) -> Dict[str, Any]:
        if not cls.is_legacy_habit(raw):
            return raw

        return {
            "id": raw.get("id") or generate_habit_id(),
            "name": raw.get("name") or "",
            "morning_evening": bool(raw.get("morning")) and bool(raw.get("evening")),
            "category": raw.get("category"),
            "start_date": raw.get("start_date")
        }

    @classmethod
    def load_habits(cls, raw: Any) -> List[Habit]:
        if not isinstance(raw, list):
            raise ValueError(f"habits must be a list, got {type(raw).__name__}")

        habits = []
        migrated = 0
        for item in raw:
            if not isinstance(item, dict):
                logger.warning(f"Skipping malformed habit entry: {item!r}")
                continue
            if cls.is_legacy_habit(item):
                migrated += 1
            habits.append(Habit.from_dict(cls.migrate_habit(item)))

        if migrated:
            logger.info(f"🔄 Migrated {migrated} habits from morning/evening flags")
        return habits

    @classmethod
    def is_flat_completion(cls, value: Any) -> bool:
        """Старая форма: слоты лежат прямо под habit_id, без уровня даты"""
        return isinstance(value, dict) and any(isinstance(value.get(slot), int) for slot in SLOTS)

    @classmethod
    def clean_day(cls, day: Any) -> Optional[CompletionDay]:
        """Только известные слоты с целыми значениями 0/1/2"""
        if not isinstance(day, dict):
            return None
        return {
            slot: value for slot, value in day.items()
            if slot in SLOTS and type(value) is int and value in (NEUTRAL, DONE, FAILED)
        }

    @classmethod
    def clean_days(cls, habit_id: str, days: Dict[str, Any]) -> Dict[str, CompletionDay]:
        cleaned = {}
        dropped = 0
        for iso_date, day in days.items():
            clean = cls.clean_day(day)
            if clean is None:
                dropped += 1
                continue
            dropped += len(day) - len(clean)
            cleaned[str(iso_date)] = clean

        if dropped:
            logger.warning(f"⚠️ Dropped {dropped} malformed completion values of {habit_id}")
        return cleaned

    @classmethod
    def load_completions(cls, raw: Any, today: str) -> Dict[str, Dict[str, Dict[str, int]]]:
        if not isinstance(raw, dict):
            raise ValueError(f"completions must be an object, got {type(raw).__name__}")

        completions = {}
        for habit_id, value in raw.items():
            if cls.is_flat_completion(value):
                logger.info(f"🔄 Relocating flat completion of {habit_id} under {today}")
                completions[habit_id] = {today: cls.clean_day(value)}
            elif isinstance(value, dict):
                completions[habit_id] = cls.clean_days(habit_id, value)
            else:
                completions[habit_id] = {}
        return completions
