# services/remote_store.py

"""
Удаленное хранилище документов: один документ на пользователя.

Документ: {"habits": [...], "completions": {...}, "updatedAt": <timestamp>}

Контракт записи:
- set_fields: заменяет переданные поля верхнего уровня, остальные не трогает
- merge: рекурсивно сливает вложенные словари (для записи только за сегодня)
- update: точечные пути через точку ("completions.<id>"), требует документ
Каждая запись возвращает серверное время фиксации в epoch millis.
"""

import asyncio
import copy
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import gspread
from gspread.utils import rowcol_to_a1

from config import config, SyncBackend

logger = logging.getLogger(__name__)

# ===== SENTINELS =====

class _Sentinel:
    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return self.name

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

SERVER_TIMESTAMP = _Sentinel("SERVER_TIMESTAMP")
DELETE_FIELD = _Sentinel("DELETE_FIELD")

# ===== EXCEPTIONS =====

class RemoteStoreError(Exception):
    """Базовое исключение удаленного хранилища"""
    pass

class DocumentNotFoundError(RemoteStoreError):
    """Документ пользователя не существует"""
    pass

# ===== HELPERS =====

def timestamp_to_millis(value: Any) -> int:
    """
    Нормализация updatedAt: объект серверного времени (to_millis()),
    datetime или простое число. Все остальное считается нулем.
    """
    if value is None or isinstance(value, bool):
        return 0
    if hasattr(value, "to_millis") and callable(value.to_millis):
        return int(value.to_millis())
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    if isinstance(value, (int, float)):
        return int(value)
    return 0

def _resolve_sentinels(value: Any, server_time: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return server_time
    if isinstance(value, dict):
        return {k: _resolve_sentinels(v, server_time) for k, v in value.items() if v is not DELETE_FIELD}
    if isinstance(value, list):
        return [_resolve_sentinels(v, server_time) for v in value]
    return value

def _deep_merge(target: Dict[str, Any], source: Dict[str, Any], server_time: Any) -> None:
    for key, value in source.items():
        if value is DELETE_FIELD:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value, server_time)
        else:
            target[key] = _resolve_sentinels(value, server_time)

def _apply_field_paths(document: Dict[str, Any], fields: Dict[str, Any], server_time: Any) -> None:
    for path, value in fields.items():
        parts = path.split(".")
        node = document
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                if value is DELETE_FIELD:
                    node = None
                    break
                child = {}
                node[part] = child
            node = child
        if node is None:
            continue
        if value is DELETE_FIELD:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = _resolve_sentinels(value, server_time)

# ===== CONTRACT =====

class RemoteStore(ABC):
    """Асинхронный интерфейс хранилища документов пользователей"""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Документ пользователя или None"""

    @abstractmethod
    async def set_fields(self, user_id: str, data: Dict[str, Any]) -> int:
        """Заменить поля верхнего уровня; создает документ при отсутствии"""

    @abstractmethod
    async def merge(self, user_id: str, data: Dict[str, Any]) -> int:
        """Рекурсивное слияние; создает документ при отсутствии"""

    @abstractmethod
    async def update(self, user_id: str, fields: Dict[str, Any]) -> int:
        """Точечное обновление путей; DocumentNotFoundError если документа нет"""

# ===== IN-MEMORY =====

class MemoryRemoteStore(RemoteStore):
    """Хранилище в памяти процесса: тесты и офлайн режим CLI"""

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.write_count = 0
        self._last_millis = 0

    def _server_time(self) -> datetime:
        millis = max(int(time.time() * 1000), self._last_millis + 1)
        self._last_millis = millis
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)

    async def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        document = self.documents.get(user_id)
        return copy.deepcopy(document) if document is not None else None

    async def set_fields(self, user_id: str, data: Dict[str, Any]) -> int:
        server_time = self._server_time()
        document = self.documents.setdefault(user_id, {})
        for key, value in data.items():
            if value is DELETE_FIELD:
                document.pop(key, None)
            else:
                document[key] = _resolve_sentinels(copy.deepcopy(value), server_time)
        self.write_count += 1
        return timestamp_to_millis(server_time)

    async def merge(self, user_id: str, data: Dict[str, Any]) -> int:
        server_time = self._server_time()
        document = self.documents.setdefault(user_id, {})
        _deep_merge(document, copy.deepcopy(data), server_time)
        self.write_count += 1
        return timestamp_to_millis(server_time)

    async def update(self, user_id: str, fields: Dict[str, Any]) -> int:
        if user_id not in self.documents:
            raise DocumentNotFoundError(f"No document for user {user_id}")
        server_time = self._server_time()
        _apply_field_paths(self.documents[user_id], copy.deepcopy(fields), server_time)
        self.write_count += 1
        return timestamp_to_millis(server_time)

# ===== GOOGLE SHEETS =====

COMPLETIONS_PREFIX = "completions."

class SheetsRemoteStore(RemoteStore):
    """
    Документы пользователей в Google Sheets.

    Одна строка на поле документа: user_id | поле | JSON значения.
    Поля: habits, updatedAt (millis), completions.<habit_id> (отметки одной
    привычки) и прочие поля верхнего уровня.
    gspread блокирующий, поэтому вызовы идут через пул потоков.
    """

    SCOPES = [
        'https://spreadsheets.google.com/feeds',
        'https://www.googleapis.com/auth/drive'
    ]
    HEADER = ["user_id", "field", "value"]
    CELL_LIMIT = 50000  # символов в одной ячейке Google Sheets

    def __init__(self, sheet_id: Optional[str] = None, credentials_file: Optional[str] = None,
                 worksheet_name: Optional[str] = None, max_workers: Optional[int] = None):
        self.sheet_id = sheet_id or config.sync.google_sheet_id
        self.credentials_file = credentials_file or config.sync.google_credentials_file
        self.worksheet_name = worksheet_name or config.sync.google_worksheet
        self.executor = ThreadPoolExecutor(max_workers=max_workers or config.sync.max_workers)
        self._worksheet = None
        self._lock = threading.RLock()

    def _get_worksheet(self):
        if self._worksheet is not None:
            return self._worksheet

        try:
            client = gspread.service_account(filename=self.credentials_file, scopes=self.SCOPES)
            spreadsheet = client.open_by_key(self.sheet_id)
            try:
                worksheet = spreadsheet.worksheet(self.worksheet_name)
            except gspread.exceptions.WorksheetNotFound:
                worksheet = spreadsheet.add_worksheet(title=self.worksheet_name, rows=100, cols=len(self.HEADER))
                worksheet.append_row(self.HEADER)
        except (OSError, ValueError, gspread.exceptions.GSpreadException) as e:
            raise RemoteStoreError(f"Ошибка авторизации Google Sheets: {e}") from e

        self._worksheet = worksheet
        return worksheet

    def _read_rows(self, worksheet, user_id: str) -> Dict[str, Tuple[int, str]]:
        """field -> (номер строки, JSON значения) для одного пользователя"""
        rows = {}
        for index, values in enumerate(worksheet.get_all_values(), start=1):
            if index == 1 and values[:len(self.HEADER)] == self.HEADER:
                continue
            if len(values) >= 2 and values[0] == user_id:
                rows[values[1]] = (index, values[2] if len(values) > 2 else "")
        return rows

    @staticmethod
    def _assemble(rows: Dict[str, Tuple[int, str]]) -> Dict[str, Any]:
        document: Dict[str, Any] = {"completions": {}}
        for field, (_, raw) in rows.items():
            value = json.loads(raw) if raw else None
            if field.startswith(COMPLETIONS_PREFIX):
                document["completions"][field[len(COMPLETIONS_PREFIX):]] = value
            else:
                document[field] = value
        return document

    @classmethod
    def _flatten(cls, document: Dict[str, Any]) -> Dict[str, str]:
        cells = {}
        for key, value in document.items():
            if key == "completions" and isinstance(value, dict):
                for habit_id, days in value.items():
                    cells[f"{COMPLETIONS_PREFIX}{habit_id}"] = json.dumps(days, ensure_ascii=False)
            else:
                cells[key] = json.dumps(value, ensure_ascii=False)

        oversized = sorted(field for field, text in cells.items() if len(text) > cls.CELL_LIMIT)
        if oversized:
            raise RemoteStoreError(
                f"Поля {oversized} не помещаются в ячейку Google Sheets ({cls.CELL_LIMIT} символов)"
            )
        return cells

    def _write_document(self, worksheet, user_id: str, rows: Dict[str, Tuple[int, str]],
                        document: Dict[str, Any]) -> None:
        cells = self._flatten(document)

        updates = [
            {"range": rowcol_to_a1(row, 3), "values": [[cells[field]]]}
            for field, (row, raw) in rows.items() if field in cells and cells[field] != raw
        ]
        new_rows = [[user_id, field, text] for field, text in cells.items() if field not in rows]
        stale_rows = sorted((row for field, (row, _) in rows.items() if field not in cells), reverse=True)

        if updates:
            worksheet.batch_update(updates)
        if new_rows:
            worksheet.append_rows(new_rows)
        # Снизу вверх: удаление сдвигает номера строк ниже
        for row in stale_rows:
            worksheet.delete_rows(row)

    def _mutate(self, user_id: str, mutation, require_existing: bool = False) -> int:
        with self._lock:
            try:
                worksheet = self._get_worksheet()
                rows = self._read_rows(worksheet, user_id)
                if not rows and require_existing:
                    raise DocumentNotFoundError(f"No document for user {user_id}")
                document = self._assemble(rows) if rows else {}

                server_time = int(time.time() * 1000)
                mutation(document, server_time)
                self._write_document(worksheet, user_id, rows, document)
                return server_time
            except (ValueError, gspread.exceptions.GSpreadException) as e:
                raise RemoteStoreError(f"Ошибка записи в Google Sheets: {e}") from e

    def _get_sync(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            try:
                rows = self._read_rows(self._get_worksheet(), user_id)
                return self._assemble(rows) if rows else None
            except (ValueError, gspread.exceptions.GSpreadException) as e:
                raise RemoteStoreError(f"Ошибка чтения из Google Sheets: {e}") from e

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, func, *args)

    async def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await self._run(self._get_sync, user_id)

    async def set_fields(self, user_id: str, data: Dict[str, Any]) -> int:
        data = copy.deepcopy(data)

        def mutation(document, server_time):
            for key, value in data.items():
                if value is DELETE_FIELD:
                    document.pop(key, None)
                else:
                    document[key] = _resolve_sentinels(value, server_time)

        return await self._run(self._mutate, user_id, mutation)

    async def merge(self, user_id: str, data: Dict[str, Any]) -> int:
        data = copy.deepcopy(data)
        return await self._run(
            self._mutate, user_id, lambda document, server_time: _deep_merge(document, data, server_time)
        )

    async def update(self, user_id: str, fields: Dict[str, Any]) -> int:
        fields = copy.deepcopy(fields)
        return await self._run(
            self._mutate, user_id,
            lambda document, server_time: _apply_field_paths(document, fields, server_time),
            True
        )

    def close(self) -> None:
        self.executor.shutdown(wait=False)

def create_remote_store() -> RemoteStore:
    """Хранилище по конфигурации SYNC_BACKEND"""
    if config.sync.backend == SyncBackend.SHEETS:
        logger.info(f"📊 Using Google Sheets remote store ({config.sync.google_worksheet})")
        return SheetsRemoteStore()
    logger.info("🧠 Using in-memory remote store")
    return MemoryRemoteStore()
