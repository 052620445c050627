# services/__init__.py

"""
Модуль сервисов Habit Sync Engine

Сборка движка: локальное хранилище -> кэш -> хранилище привычек ->
удаленное хранилище -> координатор синхронизации -> календарь.
"""

import logging
from pathlib import Path
from typing import Optional

from core.habit_store import HabitStore
from database.cache import LocalCache
from database.storage import LocalStorage
from .identity import IdentityProvider
from .remote_store import RemoteStore, MemoryRemoteStore, SheetsRemoteStore, create_remote_store
from .sync_service import SyncCoordinator, SyncError, RemoteReadError, RemoteWriteError
from .calendar_service import CalendarService

logger = logging.getLogger(__name__)

class ServiceManager:
    """
    Менеджер для управления всеми сервисами движка

    Обеспечивает:
    - Правильную инициализацию сервисов в нужном порядке
    - Подписку координатора на идентичность
    - Корректное закрытие с ожиданием фоновых записей
    """

    def __init__(self, storage_path: Optional[Path] = None, remote: Optional[RemoteStore] = None,
                 identity: Optional[IdentityProvider] = None, debounce_seconds: Optional[float] = None):
        self.storage_path = storage_path
        self.remote = remote
        self.identity = identity or IdentityProvider()
        self.debounce_seconds = debounce_seconds

        self.store: Optional[HabitStore] = None
        self.coordinator: Optional[SyncCoordinator] = None
        self.calendar: Optional[CalendarService] = None
        self.initialized = False

    async def initialize_services(self) -> "ServiceManager":
        """Инициализация всех сервисов"""
        logger.info("🔧 Инициализация сервисов...")

        cache = LocalCache(LocalStorage(self.storage_path))
        self.store = HabitStore(cache)

        if self.remote is None:
            self.remote = create_remote_store()

        self.coordinator = SyncCoordinator(self.store, self.remote, self.identity,
                                           debounce_seconds=self.debounce_seconds)
        self.calendar = CalendarService(self.store, self.coordinator)

        await self.coordinator.start()

        self.initialized = True
        logger.info("✅ Все сервисы инициализированы успешно!")
        return self

    async def close_services(self) -> None:
        """Закрытие всех сервисов"""
        logger.info("🛑 Закрытие сервисов...")

        if self.coordinator:
            await self.coordinator.stop()

        if isinstance(self.remote, SheetsRemoteStore):
            self.remote.close()

        self.initialized = False
        logger.info("✅ Все сервисы закрыты")

    async def __aenter__(self):
        return await self.initialize_services()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close_services()

__all__ = [
    'ServiceManager',
    'IdentityProvider',
    'RemoteStore',
    'MemoryRemoteStore',
    'SheetsRemoteStore',
    'SyncCoordinator',
    'SyncError',
    'RemoteReadError',
    'RemoteWriteError',
    'CalendarService'
]
