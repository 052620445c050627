#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Habit Sync Engine - Habit Store
Фасад состояния: привычки, отметки выполнения и их мутации

Каждая мутация синхронно меняет состояние в памяти, сохраняет его в
локальный кэш и при необходимости ставит удаленную операцию в очередь.
Очередь разбирает координатор синхронизации после уведомления о фиксации.
"""

import copy
import logging
from typing import Callable, Dict, List, Optional, Any

from core.completion import (
    CompletionDay, CompletionMap, SLOTS, SINGLE, MORNING, EVENING, NEUTRAL,
    cycle, day_state, is_empty_day, migrate_habit_days
)
from core.models import Habit, HabitState
from core.operations import FullWrite, RemoveHabitWrite, RemoteOperation
from database.cache import LocalCache
from utils.datetime_utils import today_str

logger = logging.getLogger(__name__)

CommitListener = Callable[["HabitStore"], None]

class HabitStore:
    """Хранилище привычек с локальным кэшем и очередью удаленных операций"""

    def __init__(self, cache: LocalCache, today_provider: Callable[[], str] = today_str):
        self.cache = cache
        self.today_provider = today_provider

        self.habits: List[Habit] = cache.load_habits()
        self.completions: CompletionMap = cache.load_completions()

        self.pending_operations: List[RemoteOperation] = []
        self.commit_listeners: List[CommitListener] = []

        logger.info(f"📂 Habit store loaded: {len(self.habits)} habits, "
                    f"{len(self.completions)} completion maps")

    # ===== COMMIT / EFFECTS =====

    def add_commit_listener(self, listener: CommitListener) -> None:
        if listener not in self.commit_listeners:
            self.commit_listeners.append(listener)

    def remove_commit_listener(self, listener: CommitListener) -> None:
        if listener in self.commit_listeners:
            self.commit_listeners.remove(listener)

    def drain_operations(self) -> List[RemoteOperation]:
        """Забрать все накопленные удаленные операции"""
        operations, self.pending_operations = self.pending_operations, []
        return operations

    def _commit(self, habits: bool = False, completions: bool = False,
                operation: Optional[RemoteOperation] = None) -> None:
        if habits:
            self.cache.save_habits(self.habits)
        if completions:
            self.cache.save_completions(self.completions)
        if operation is not None:
            self.pending_operations.append(operation)

        for listener in list(self.commit_listeners):
            listener(self)

    def snapshot(self) -> HabitState:
        """Глубокая копия состояния для удаленной записи"""
        return HabitState(
            habits=[copy.copy(habit) for habit in self.habits],
            completions=copy.deepcopy(self.completions)
        )

    def replace_state(self, habits: List[Habit], completions: CompletionMap) -> None:
        """Полная замена состояния (удаленная версия победила при сверке)"""
        self.habits = list(habits)
        self.completions = copy.deepcopy(completions)
        self._commit(habits=True, completions=True)
        logger.info(f"🔄 State replaced: {len(self.habits)} habits")

    # ===== HABITS =====

    def get_habit(self, habit_id: str) -> Optional[Habit]:
        for habit in self.habits:
            if habit.id == habit_id:
                return habit
        return None

    def _index_of(self, habit_id: str) -> int:
        for index, habit in enumerate(self.habits):
            if habit.id == habit_id:
                return index
        return -1

    def add_habit(self, name: str, morning_evening: bool = False, category: Optional[str] = None,
                  start_date: Optional[str] = None) -> Habit:
        """Новая привычка добавляется в начало списка"""
        habit = Habit.create(
            name=name,
            morning_evening=morning_evening,
            category=category,
            start_date=start_date,
            today=self.today_provider()
        )

        self.habits.insert(0, habit)
        self.completions[habit.id] = {}
        self._commit(habits=True, completions=True, operation=FullWrite(reason="add_habit"))

        logger.info(f"➕ Habit added: {habit.id} ({habit.name})")
        return habit

    def remove_habit(self, habit_id: str) -> bool:
        index = self._index_of(habit_id)
        had_completions = habit_id in self.completions

        if index < 0 and not had_completions:
            logger.warning(f"Habit {habit_id} not found, nothing to remove")
            return False

        if index >= 0:
            del self.habits[index]
        self.completions.pop(habit_id, None)
        self._commit(habits=True, completions=True, operation=RemoveHabitWrite(habit_id))

        logger.info(f"🗑️ Habit removed: {habit_id}")
        return True

    def toggle_morning_evening(self, habit_id: str) -> Optional[Habit]:
        """Только переключает флаг, без миграции отметок"""
        habit = self.get_habit(habit_id)
        if habit is None:
            logger.warning(f"Habit {habit_id} not found, toggle skipped")
            return None

        habit.morning_evening = not habit.morning_evening
        self._commit(habits=True)
        return habit

    def update_habit(self, habit_id: str, **patch: Any) -> Optional[Habit]:
        """
        Частичное обновление привычки.

        Если в patch есть morning_evening, все записи дней привычки
        переводятся в новую форму (или очищаются до текущей, если форма та же).
        """
        habit = self.get_habit(habit_id)
        if habit is None:
            logger.warning(f"Habit {habit_id} not found, update skipped")
            return None

        unknown = set(patch) - set(Habit.EDITABLE_FIELDS)
        if unknown:
            raise TypeError(f"Unknown habit fields: {sorted(unknown)}")

        was_morning_evening = habit.morning_evening
        for key, value in patch.items():
            setattr(habit, key, value)

        completions_changed = False
        if "morning_evening" in patch:
            will_be_morning_evening = bool(patch["morning_evening"])
            habit.morning_evening = will_be_morning_evening
            self.completions[habit_id] = migrate_habit_days(
                self.completions.get(habit_id, {}),
                was_morning_evening,
                will_be_morning_evening
            )
            completions_changed = True
            if was_morning_evening != will_be_morning_evening:
                logger.info(f"🔀 Habit {habit_id} shape migrated "
                            f"({len(self.completions[habit_id])} days)")

        self._commit(habits=True, completions=completions_changed,
                     operation=FullWrite(reason="update_habit"))
        return habit

    def reorder_habit(self, from_index: int, to_index: int) -> bool:
        """Перемещение привычки; удаленная запись остается на вызывающем"""
        if from_index < 0 or from_index >= len(self.habits):
            return False

        to_index = max(0, min(to_index, len(self.habits) - 1))
        moved = self.habits.pop(from_index)
        self.habits.insert(to_index, moved)
        self._commit(habits=True)
        return True

    def earliest_start_date(self) -> str:
        """Самая ранняя дата начала среди привычек (или сегодня)"""
        dates = [habit.start_date for habit in self.habits if habit.start_date]
        return min(dates) if dates else self.today_provider()

    # ===== COMPLETIONS =====

    def _check_slot(self, slot: str) -> None:
        if slot not in SLOTS:
            raise ValueError(f"Unknown slot {slot!r}, expected one of {SLOTS}")

    def cycle_completion(self, habit_id: str, slot: str, date: Optional[str] = None) -> int:
        """Продвинуть один слот записи дня; запись создается при первом нажатии"""
        self._check_slot(slot)
        date = date or self.today_provider()

        day = self.completions.setdefault(habit_id, {}).setdefault(date, {})
        day[slot] = cycle(day.get(slot, NEUTRAL))
        self._commit(completions=True)
        return day[slot]

    def get_completion(self, habit_id: str, slot: str, date: Optional[str] = None) -> int:
        self._check_slot(slot)
        date = date or self.today_provider()
        return self.completions.get(habit_id, {}).get(date, {}).get(slot, NEUTRAL)

    def cycle_completion_by_date(self, habit_id: str, date: str) -> int:
        """
        Один жест календаря: для привычки утро/вечер продвигаются оба слота
        вместе, иначе только single. Поля другой формы удаляются.
        """
        days = self.completions.setdefault(habit_id, {})
        day: CompletionDay = dict(days.get(date, {}))

        current = day.get(SINGLE, day.get(MORNING, day.get(EVENING, NEUTRAL)))
        value = cycle(current)

        habit = self.get_habit(habit_id)
        if habit is not None and habit.morning_evening:
            day[MORNING] = value
            day[EVENING] = value
            day.pop(SINGLE, None)
        else:
            day[SINGLE] = value
            day.pop(MORNING, None)
            day.pop(EVENING, None)

        days[date] = day
        self._commit(completions=True)
        return value

    def get_day_state(self, habit_id: str, date: str) -> int:
        return day_state(self.completions.get(habit_id, {}).get(date))

    def today_entries(self, today: Optional[str] = None) -> Dict[str, Dict[str, CompletionDay]]:
        """Сегодняшние непустые записи всех привычек: habit_id -> {today: day}"""
        today = today or self.today_provider()
        entries = {}
        for habit_id, days in self.completions.items():
            day = days.get(today)
            if not is_empty_day(day):
                entries[habit_id] = {today: dict(day)}
        return entries
