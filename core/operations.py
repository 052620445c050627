#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Habit Sync Engine - Remote Operations
Отложенные удаленные операции, которые порождают мутации хранилища

Хранилище только ставит операции в очередь, исполняет их координатор
синхронизации после фиксации изменений.
"""

from dataclasses import dataclass
from typing import Union

@dataclass(frozen=True)
class FullWrite:
    """Полная запись habits + completions"""
    immediate: bool = True
    reason: str = ""

@dataclass(frozen=True)
class RemoveHabitWrite:
    """Удаление привычки и ее completions.<id> на сервере"""
    habit_id: str

RemoteOperation = Union[FullWrite, RemoveHabitWrite]
