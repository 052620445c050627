#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Habit Sync Engine - CLI
Командная строка для отслеживания привычек с синхронизацией
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from config import config, LogLevel
from core.completion import SLOTS
from core.habit_store import HabitStore
from core.models import ALL_CATEGORIES, ValidationError, validate_habit_name
from services import ServiceManager, RemoteWriteError
from utils.datetime_utils import is_valid_date
from utils.logger import setup_logging

logger = logging.getLogger(__name__)

STATE_MARKS = {0: "·", 1: "✓", 2: "✗"}

def _resolve_habit(store: HabitStore, ref: str) -> Optional[str]:
    """Привычка по номеру в списке, id или префиксу id"""
    if ref.isdigit() and int(ref) < len(store.habits):
        return store.habits[int(ref)].id

    matches = [habit.id for habit in store.habits if habit.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    return None

def _print_habits(store: HabitStore) -> None:
    if not store.habits:
        print("No habits yet. Add one with: add <name>")
        return

    for index, habit in enumerate(store.habits):
        if habit.morning_evening:
            marks = " ".join(
                f"{slot[0]}:{STATE_MARKS[store.get_completion(habit.id, slot)]}" for slot in ("morning", "evening")
            )
        else:
            marks = STATE_MARKS[store.get_completion(habit.id, "single")]
        print(f"{index:>2}. [{marks}] {habit.name} ({habit.category}, since {habit.start_date}) {habit.id[:8]}")

def _print_calendar(manager: ServiceManager) -> None:
    calendar = manager.calendar
    print(f"Editing: {'on' if calendar.editable else 'off'}")
    for week_start in calendar.weeks():
        print(f"\n{calendar.week_label(week_start)}")
        for habit in manager.store.habits:
            states = calendar.week_states(habit.id, week_start)
            print(f"  {habit.name[:20]:<20} " + " ".join(STATE_MARKS[state] for _, state in states))

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Отслеживание привычек с синхронизацией')
    parser.add_argument('--user', help='Войти как пользователь перед выполнением команды')
    parser.add_argument('--data-dir', type=Path, help='Каталог локального хранилища')
    parser.add_argument('--debug', action='store_true', help='Подробное логирование')

    commands = parser.add_subparsers(dest='command', required=True)

    commands.add_parser('list', help='Список привычек и отметок за сегодня')
    commands.add_parser('status', help='Состояние синхронизации')

    add = commands.add_parser('add', help='Добавить привычку')
    add.add_argument('name')
    add.add_argument('--split', action='store_true', help='Отдельные утро и вечер')
    add.add_argument('--category', choices=ALL_CATEGORIES)
    add.add_argument('--start', help='Дата начала YYYY-MM-DD')

    edit = commands.add_parser('edit', help='Изменить привычку')
    edit.add_argument('habit')
    edit.add_argument('--name')
    shape = edit.add_mutually_exclusive_group()
    shape.add_argument('--split', dest='morning_evening', action='store_true', default=None)
    shape.add_argument('--single', dest='morning_evening', action='store_false')
    edit.add_argument('--category', choices=ALL_CATEGORIES)
    edit.add_argument('--start', help='Дата начала YYYY-MM-DD')

    remove = commands.add_parser('remove', help='Удалить привычку')
    remove.add_argument('habit')

    toggle = commands.add_parser('toggle', help='Переключить утро/вечер без миграции')
    toggle.add_argument('habit')

    move = commands.add_parser('move', help='Переместить привычку')
    move.add_argument('from_index', type=int)
    move.add_argument('to_index', type=int)

    cycle = commands.add_parser('cycle', help='Продвинуть слот отметки')
    cycle.add_argument('habit')
    cycle.add_argument('slot', choices=SLOTS)
    cycle.add_argument('--date', help='Дата YYYY-MM-DD (по умолчанию сегодня)')

    day = commands.add_parser('day', help='Отметка дня из календаря')
    day.add_argument('habit')
    day.add_argument('date')

    calendar = commands.add_parser('calendar', help='Календарь по неделям')
    editing = calendar.add_mutually_exclusive_group()
    editing.add_argument('--enable', action='store_true', help='Разрешить редактирование')
    editing.add_argument('--disable', action='store_true', help='Запретить редактирование и синхронизировать')

    commands.add_parser('sync', help='Полная синхронизация сейчас')
    commands.add_parser('sync-today', help='Отправить только сегодняшние отметки')

    return parser

async def run_command(args, manager: ServiceManager) -> int:
    store = manager.store
    coordinator = manager.coordinator

    if args.command == 'list':
        _print_habits(store)

    elif args.command == 'status':
        for key, value in coordinator.get_status().items():
            print(f"{key}: {value}")

    elif args.command == 'add':
        name = validate_habit_name(args.name)
        if args.start and not is_valid_date(args.start):
            raise ValidationError(f"Неверный формат даты: {args.start}")
        habit = store.add_habit(name, morning_evening=args.split,
                                category=args.category, start_date=args.start)
        print(f"Added {habit.name} ({habit.id})")

    elif args.command in ('edit', 'remove', 'toggle', 'cycle', 'day'):
        habit_id = _resolve_habit(store, args.habit)
        if habit_id is None:
            print(f"Habit {args.habit!r} not found", file=sys.stderr)
            return 1

        if args.command == 'edit':
            patch = {}
            if args.name is not None:
                patch['name'] = validate_habit_name(args.name)
            if args.morning_evening is not None:
                patch['morning_evening'] = args.morning_evening
            if args.category is not None:
                patch['category'] = args.category
            if args.start is not None:
                if not is_valid_date(args.start):
                    raise ValidationError(f"Неверный формат даты: {args.start}")
                patch['start_date'] = args.start
            store.update_habit(habit_id, **patch)

        elif args.command == 'remove':
            store.remove_habit(habit_id)

        elif args.command == 'toggle':
            store.toggle_morning_evening(habit_id)

        elif args.command == 'cycle':
            if args.date and not is_valid_date(args.date):
                raise ValidationError(f"Неверный формат даты: {args.date}")
            value = store.cycle_completion(habit_id, args.slot, args.date)
            coordinator.schedule_write()
            print(f"{args.slot}: {STATE_MARKS[value]}")

        elif args.command == 'day':
            if not is_valid_date(args.date):
                raise ValidationError(f"Неверный формат даты: {args.date}")
            value = manager.calendar.cycle_day(habit_id, args.date)
            if value is None:
                print("Calendar editing is off (calendar --enable)", file=sys.stderr)
                return 1
            coordinator.schedule_write()
            print(f"{args.date}: {STATE_MARKS[store.get_day_state(habit_id, args.date)]}")

        if args.command in ('edit', 'remove', 'toggle'):
            _print_habits(store)

    elif args.command == 'move':
        if not store.reorder_habit(args.from_index, args.to_index):
            print(f"No habit at index {args.from_index}", file=sys.stderr)
            return 1
        coordinator.schedule_write()
        _print_habits(store)

    elif args.command == 'calendar':
        if args.enable:
            manager.calendar.enable_editing()
        elif args.disable:
            if not await manager.calendar.disable_editing():
                print("Sync failed, data kept locally", file=sys.stderr)
        _print_calendar(manager)

    elif args.command == 'sync':
        await coordinator.sync_now()
        print("Synced")

    elif args.command == 'sync-today':
        written = await coordinator.sync_today()
        print(f"Synced today's completions for {written} habits" if written else "Nothing to sync for today")

    return 0

async def amain(args) -> int:
    storage_path = (args.data_dir / config.storage.file_name) if args.data_dir else None

    async with ServiceManager(storage_path=storage_path) as manager:
        if args.user:
            await manager.identity.sign_in(args.user)

        try:
            code = await run_command(args, manager)
        except ValidationError as e:
            print(f"⚠️ {e}", file=sys.stderr)
            return 2
        except RemoteWriteError as e:
            print(f"❌ {e}", file=sys.stderr)
            return 1

        # Отложенная запись не должна потеряться при выходе
        if manager.coordinator.pending_timer is not None:
            try:
                await manager.coordinator.sync_now()
            except RemoteWriteError as e:
                logger.error(f"❌ Final sync failed: {e}")
        return code

def main():
    """Главная функция запуска"""
    parser = build_parser()
    args = parser.parse_args()

    if args.debug:
        config.log_level = LogLevel.DEBUG

    config.ensure_directories()
    setup_logging()
    logger.debug(f"Config: {config.to_dict()}")

    try:
        sys.exit(asyncio.run(amain(args)))
    except KeyboardInterrupt:
        logger.info("👋 Пока!")

if __name__ == "__main__":
    main()
