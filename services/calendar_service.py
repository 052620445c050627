# services/calendar_service.py

"""
Календарь привычек: флаг редактирования, список недель, отметки по датам.
"""

import logging
from datetime import date, timedelta
from typing import List, Optional, Tuple

from core.habit_store import HabitStore
from services.sync_service import SyncCoordinator, RemoteWriteError
from utils.datetime_utils import parse_date, week_starts_between, format_week_label, local_iso_date

logger = logging.getLogger(__name__)

class CalendarService:
    """Редактирование прошлых дней разрешено только после явного включения"""

    def __init__(self, store: HabitStore, coordinator: Optional[SyncCoordinator] = None):
        self.store = store
        self.coordinator = coordinator
        self.editable = store.cache.load_calendar_editable()

    def enable_editing(self) -> None:
        self.editable = True
        self.store.cache.save_calendar_editable(True)
        logger.info("✏️ Calendar editing enabled")

    async def disable_editing(self) -> bool:
        """Выключить редактирование и отправить текущие данные на сервер"""
        self.editable = False
        self.store.cache.save_calendar_editable(False)
        logger.info("🔒 Calendar editing disabled")

        if self.coordinator is None:
            return True

        try:
            await self.coordinator.sync_now()
            return True
        except RemoteWriteError as e:
            logger.error(f"❌ Sync after disabling calendar editing failed: {e}")
            return False

    def cycle_day(self, habit_id: str, iso_date: str) -> Optional[int]:
        if not self.editable:
            logger.info(f"Calendar is read-only, {habit_id}@{iso_date} not changed")
            return None
        return self.store.cycle_completion_by_date(habit_id, iso_date)

    def _today(self) -> date:
        return parse_date(self.store.today_provider())

    def weeks(self) -> List[date]:
        """Начала недель от текущей до недели самой ранней привычки"""
        earliest = parse_date(self.store.earliest_start_date())
        return week_starts_between(earliest, self._today())

    def week_label(self, week_start: date) -> str:
        return format_week_label(week_start, self._today())

    def week_states(self, habit_id: str, week_start: date) -> List[Tuple[str, int]]:
        """Семь пар (дата, состояние дня) начиная с понедельника"""
        days = [local_iso_date(week_start + timedelta(days=offset)) for offset in range(7)]
        return [(iso_date, self.store.get_day_state(habit_id, iso_date)) for iso_date in days]
