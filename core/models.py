#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Habit Sync Engine - Core Data Models
Модели данных: привычка, метаданные синхронизации, категории
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field, asdict
from enum import Enum

# ===== ENUMS =====

class HabitCategory(Enum):
    """Категории привычек"""
    SPIRITUAL = "Spiritual"
    HEALTH = "Health"
    FINANCES = "Finances"
    GENERAL = "General"

DEFAULT_CATEGORY = HabitCategory.GENERAL.value

CATEGORY_COLORS: Dict[str, str] = {
    HabitCategory.SPIRITUAL.value: "#6D28D9",
    HabitCategory.HEALTH.value: "#059669",
    HabitCategory.FINANCES.value: "#EF4444",
    HabitCategory.GENERAL.value: "#4B5563",
}

ALL_CATEGORIES: List[str] = [c.value for c in HabitCategory]

# ===== VALIDATION HELPERS =====

class ValidationError(Exception):
    """Ошибка валидации данных"""
    pass

def validate_habit_name(name: str, max_length: int = 200) -> str:
    """
    Проверка названия привычки до вызова хранилища.

    Движок не валидирует названия сам: пустое название означает,
    что операция просто не вызывается.
    """
    if not isinstance(name, str):
        raise ValidationError("Название должно быть строкой")

    name = name.strip()
    if not name:
        raise ValidationError("Название привычки не может быть пустым")

    if len(name) > max_length:
        raise ValidationError(f"Название должно содержать максимум {max_length} символов")

    return name

def generate_habit_id() -> str:
    return str(uuid.uuid4())

# ===== CORE MODELS =====

@dataclass
class Habit:
    """Привычка пользователя"""
    id: str
    name: str
    morning_evening: bool = False
    category: str = DEFAULT_CATEGORY
    start_date: Optional[str] = None  # ISO формат даты (YYYY-MM-DD)

    EDITABLE_FIELDS = ("name", "morning_evening", "category", "start_date")

    @property
    def color(self) -> str:
        return CATEGORY_COLORS.get(self.category, CATEGORY_COLORS[DEFAULT_CATEGORY])

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Habit":
        return cls(
            id=str(data.get("id") or generate_habit_id()),
            name=data.get("name") or "",
            morning_evening=bool(data.get("morning_evening", False)),
            category=data.get("category") or DEFAULT_CATEGORY,
            start_date=data.get("start_date")
        )

    @classmethod
    def create(cls, name: str, morning_evening: bool = False, category: Optional[str] = None,
               start_date: Optional[str] = None, today: Optional[str] = None) -> "Habit":
        """Создание новой привычки с клиентским id"""
        return cls(
            id=generate_habit_id(),
            name=name,
            morning_evening=morning_evening,
            category=category or DEFAULT_CATEGORY,
            start_date=start_date or today or datetime.now().date().isoformat()
        )

@dataclass
class SyncMeta:
    """Локальная отметка последней успешной синхронизации"""
    updated_at: int = 0  # epoch millis

    def to_dict(self) -> Dict[str, Any]:
        return {"updatedAt": self.updated_at}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SyncMeta":
        if not isinstance(data, dict):
            return cls()
        value = data.get("updatedAt") or 0
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return cls()
        return cls(updated_at=int(value))

@dataclass
class HabitState:
    """Снимок состояния хранилища"""
    habits: List[Habit] = field(default_factory=list)
    completions: Dict[str, Dict[str, Dict[str, int]]] = field(default_factory=dict)

    def habits_payload(self) -> List[Dict[str, Any]]:
        return [habit.to_dict() for habit in self.habits]
