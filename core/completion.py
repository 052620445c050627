#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Habit Sync Engine - Completion Model
Трехзначная модель выполнения: цикл состояний, сводка дня, миграция формы

Чистая логика над значениями, без I/O.
"""

from typing import Dict, Iterable, Optional

# ===== CONSTANTS =====

NEUTRAL = 0
DONE = 1
FAILED = 2

MORNING = "morning"
EVENING = "evening"
SINGLE = "single"

SLOTS = (MORNING, EVENING, SINGLE)
SPLIT_SLOTS = (MORNING, EVENING)

# Запись дня: {"morning": 1, "evening": 0} или {"single": 2}
CompletionDay = Dict[str, int]
CompletionMap = Dict[str, Dict[str, CompletionDay]]

# ===== STATE RULES =====

def cycle(value: int) -> int:
    """neutral -> done -> failed -> neutral"""
    return (value + 1) % 3

def slots_for_shape(morning_evening: bool) -> Iterable[str]:
    """Слоты, допустимые для формы привычки"""
    return SPLIT_SLOTS if morning_evening else (SINGLE,)

def _present_values(day: Optional[CompletionDay]):
    if not day:
        return []
    return [day[slot] for slot in SLOTS if isinstance(day.get(slot), int)]

def is_empty_day(day: Optional[CompletionDay]) -> bool:
    return not _present_values(day)

def day_state(day: Optional[CompletionDay]) -> int:
    """
    Сводное состояние дня для календаря.

    Провал доминирует над успехом, успех над нейтральным состоянием,
    независимо от количества слотов.
    """
    values = _present_values(day)
    if FAILED in values:
        return FAILED
    if DONE in values:
        return DONE
    return NEUTRAL

def normalize_day(day: Optional[CompletionDay], morning_evening: bool) -> CompletionDay:
    """Оставить только поля текущей формы, значения не меняются"""
    day = day or {}
    return {
        slot: day[slot]
        for slot in slots_for_shape(morning_evening)
        if isinstance(day.get(slot), int)
    }

def merge_split(morning: int, evening: int) -> int:
    """Свертка утро/вечер в одно значение"""
    if morning == FAILED or evening == FAILED:
        return FAILED
    if morning == DONE and evening == DONE:
        return DONE
    if (morning == DONE and evening == NEUTRAL) or (morning == NEUTRAL and evening == DONE):
        return DONE
    return NEUTRAL

def migrate_shape(day: Optional[CompletionDay], was_morning_evening: bool,
                  will_be_morning_evening: bool) -> CompletionDay:
    """
    Перевести запись дня в новую форму привычки.

    single -> split: оба слота получают прежнее значение single (0 если нет).
    split -> single: см. merge_split.
    без смены формы: только фильтрация полей.
    """
    day = day or {}

    if not was_morning_evening and will_be_morning_evening:
        single = day.get(SINGLE, NEUTRAL)
        return {MORNING: single, EVENING: single}

    if was_morning_evening and not will_be_morning_evening:
        return {SINGLE: merge_split(day.get(MORNING, NEUTRAL), day.get(EVENING, NEUTRAL))}

    return normalize_day(day, will_be_morning_evening)

def migrate_habit_days(days: Dict[str, CompletionDay], was_morning_evening: bool,
                       will_be_morning_evening: bool) -> Dict[str, CompletionDay]:
    """Применить migrate_shape ко всем датам одной привычки"""
    return {
        iso_date: migrate_shape(day, was_morning_evening, will_be_morning_evening)
        for iso_date, day in (days or {}).items()
    }
