# database/cache.py

"""
Адаптер локального кэша: сериализация habits, completions и метаданных.

Каждое сохранение полностью перезаписывает свой ключ. Поврежденные данные
никогда не поднимаются выше адаптера: вместо них возвращается пустое состояние.
"""

import json
import logging
from typing import Any, Callable, List, Optional

from core.completion import CompletionMap
from core.models import Habit, SyncMeta
from database.migrations import HabitsMigration
from database.storage import LocalStorage
from utils.datetime_utils import today_str

logger = logging.getLogger(__name__)

HABITS_KEY = "habits"
COMPLETIONS_KEY = "habits.completions"
META_KEY = "habits.meta"
CALENDAR_EDITABLE_KEY = "calendar.editable"

class LocalCacheError(Exception):
    """Поврежденные или нечитаемые данные в локальном кэше"""
    pass

class LocalCache:
    """Чтение и запись состояния движка в локальное хранилище"""

    def __init__(self, storage: LocalStorage, today_provider: Callable[[], str] = today_str):
        self.storage = storage
        self.today_provider = today_provider

    def _read_json(self, key: str) -> Optional[Any]:
        raw = self.storage.get_item(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            raise LocalCacheError(f"Key {key} holds invalid JSON: {e}") from e

    def _write_json(self, key: str, value: Any) -> None:
        try:
            self.storage.set_item(key, json.dumps(value, ensure_ascii=False))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"❌ Failed to persist {key}: {e}")

    # ===== HABITS =====

    def load_habits(self) -> List[Habit]:
        try:
            raw = self._read_json(HABITS_KEY)
            if raw is None:
                return []
            return HabitsMigration.load_habits(raw)
        except (LocalCacheError, ValueError, TypeError) as e:
            logger.warning(f"⚠️ Local habits are corrupt, falling back to empty list: {e}")
            return []

    def save_habits(self, habits: List[Habit]) -> None:
        self._write_json(HABITS_KEY, [habit.to_dict() for habit in habits])

    # ===== COMPLETIONS =====

    def load_completions(self) -> CompletionMap:
        try:
            raw = self._read_json(COMPLETIONS_KEY)
            if raw is None:
                return {}
            return HabitsMigration.load_completions(raw, self.today_provider())
        except (LocalCacheError, ValueError, TypeError) as e:
            logger.warning(f"⚠️ Local completions are corrupt, falling back to empty map: {e}")
            return {}

    def save_completions(self, completions: CompletionMap) -> None:
        self._write_json(COMPLETIONS_KEY, completions)

    # ===== META =====

    def load_meta(self) -> SyncMeta:
        try:
            return SyncMeta.from_dict(self._read_json(META_KEY))
        except LocalCacheError as e:
            logger.warning(f"⚠️ Local sync meta is corrupt, ignoring: {e}")
            return SyncMeta()

    def save_meta(self, meta: SyncMeta) -> None:
        self._write_json(META_KEY, meta.to_dict())

    # ===== CALENDAR =====

    def load_calendar_editable(self) -> bool:
        return self.storage.get_item(CALENDAR_EDITABLE_KEY) == "1"

    def save_calendar_editable(self, editable: bool) -> None:
        try:
            self.storage.set_item(CALENDAR_EDITABLE_KEY, "1" if editable else "0")
        except OSError as e:
            logger.error(f"❌ Failed to persist {CALENDAR_EDITABLE_KEY}: {e}")

