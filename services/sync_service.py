# services/sync_service.py

"""
Координатор синхронизации с удаленным хранилищем.

- при входе пользователя: однократная сверка (last-writer-wins по updatedAt)
- запись: отложенная полная (debounce), немедленная полная, частичная за сегодня
- все удаленные записи проходят через один последовательный writer (asyncio.Lock),
  поэтому частичная запись никогда не пересекается с полной, которая еще в полете
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from config import config
from core.habit_store import HabitStore
from core.models import Habit, SyncMeta
from core.operations import FullWrite, RemoveHabitWrite
from database.migrations import HabitsMigration
from services.identity import IdentityProvider
from services.remote_store import RemoteStore, SERVER_TIMESTAMP, DELETE_FIELD, timestamp_to_millis

logger = logging.getLogger(__name__)

# ===== EXCEPTIONS =====

class SyncError(Exception):
    """Базовое исключение синхронизации"""
    pass

class RemoteReadError(SyncError):
    """Не удалось прочитать документ при сверке"""
    pass

class RemoteWriteError(SyncError):
    """Не удалось записать документ"""
    pass

class SyncCoordinator:
    """Владелец ссылки на пользователя, таймера отложенной записи и очереди записей"""

    def __init__(self, store: HabitStore, remote: RemoteStore, identity: IdentityProvider,
                 debounce_seconds: Optional[float] = None):
        self.store = store
        self.cache = store.cache
        self.remote = remote
        self.identity = identity
        self.debounce_seconds = config.sync.debounce_seconds if debounce_seconds is None else debounce_seconds

        self.user_id: Optional[str] = None
        self.reconciling_user: Optional[str] = None
        self.pending_timer: Optional[asyncio.Task] = None
        self.write_lock = asyncio.Lock()
        self.background_tasks: Set[asyncio.Task] = set()

        self._unsubscribe = None
        self.is_started = False

    # ===== LIFECYCLE =====

    async def start(self) -> None:
        """Подписка на идентичность и фиксации хранилища"""
        if self.is_started:
            return

        self._unsubscribe = self.identity.subscribe(self.on_identity_change)
        self.store.add_commit_listener(self._on_commit)
        self.is_started = True
        logger.info("🔄 Sync coordinator started")

        current = self.identity.current_user()
        if current:
            await self.on_identity_change(current)

    async def stop(self) -> None:
        if not self.is_started:
            return

        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        self.store.remove_commit_listener(self._on_commit)
        self._cancel_timer()
        await self.wait_idle()

        self.user_id = None
        self.is_started = False
        logger.info("⏹️ Sync coordinator stopped")

    async def wait_idle(self) -> None:
        """Дождаться всех фоновых записей, уже запущенных"""
        while self.background_tasks:
            await asyncio.gather(*list(self.background_tasks), return_exceptions=True)

    def get_status(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "reconciling": self.reconciling_user is not None,
            "debounce_pending": self.pending_timer is not None and not self.pending_timer.done(),
            "writes_in_flight": len(self.background_tasks),
            "last_synced_ms": self.cache.load_meta().updated_at
        }

    # ===== IDENTITY / RECONCILIATION =====

    async def on_identity_change(self, user_id: Optional[str]) -> None:
        self._cancel_timer()

        if not user_id:
            # Состояние в памяти остается доступным офлайн
            self.user_id = None
            logger.info("👋 User signed out, sync paused")
            return

        self.user_id = user_id
        await self.reconcile(user_id)

    async def reconcile(self, user_id: str) -> None:
        """
        Однократная сверка локального и удаленного состояния.

        Пока идет сверка, writer занят, а удаленные операции мутаций
        не отправляются: при победе локального состояния его все равно
        пишет полная запись, при победе удаленного они отбрасываются.
        """
        self.reconciling_user = user_id
        try:
            async with self.write_lock:
                local_wins = await self._reconcile_locked(user_id)
        finally:
            if self.reconciling_user == user_id:
                self.reconciling_user = None

        if local_wins and self.user_id == user_id:
            self.schedule_write(immediate=True)

    async def _reconcile_locked(self, user_id: str) -> bool:
        try:
            document = await self.remote.get(user_id)
        except Exception as e:
            error = RemoteReadError(f"Failed to fetch document for {user_id}: {e}")
            logger.error(f"❌ {error}; continuing in local-only mode")
            return False

        if self.user_id != user_id:
            logger.info(f"Identity changed during fetch for {user_id}, result discarded")
            return False

        if document is None:
            logger.info(f"📤 No remote document for {user_id}, local wins")
            return True

        remote_updated = timestamp_to_millis(document.get("updatedAt"))
        local_updated = self.cache.load_meta().updated_at

        if remote_updated < local_updated:
            logger.info(f"📤 Local wins for {user_id} ({local_updated} > {remote_updated})")
            return True

        habits = [Habit.from_dict(item) for item in document.get("habits") or [] if isinstance(item, dict)]
        raw_completions = document.get("completions")
        completions = {
            habit_id: HabitsMigration.clean_days(habit_id, days)
            for habit_id, days in raw_completions.items() if isinstance(days, dict)
        } if isinstance(raw_completions, dict) else {}

        self.store.replace_state(habits, completions)
        self.cache.save_meta(SyncMeta(updated_at=remote_updated))
        logger.info(f"📥 Remote wins for {user_id} ({remote_updated} >= {local_updated})")
        return False

    # ===== EFFECT DISPATCH =====

    def _on_commit(self, store: HabitStore) -> None:
        operations = store.drain_operations()
        if not operations:
            return

        if not self.user_id:
            logger.debug(f"No signed-in user, {len(operations)} remote operations skipped")
            return

        if self.reconciling_user is not None:
            logger.debug(f"Reconciliation in progress, {len(operations)} remote operations deferred to its outcome")
            return

        for operation in operations:
            if isinstance(operation, FullWrite):
                self.schedule_write(immediate=operation.immediate)
            elif isinstance(operation, RemoveHabitWrite):
                self._spawn(self._remove_habit_remote(self.user_id, operation.habit_id))

    def _spawn(self, coro) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("⚠️ No running event loop, remote write dropped")
            coro.close()
            return None

        task = loop.create_task(coro)
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)
        return task

    def _cancel_timer(self) -> None:
        if self.pending_timer is not None:
            if not self.pending_timer.done():
                self.pending_timer.cancel()
            self.pending_timer = None

    def schedule_write(self, immediate: bool = False) -> None:
        """Запланировать полную запись: сразу или через debounce"""
        if not self.user_id or self.reconciling_user is not None:
            return

        self._cancel_timer()

        if immediate:
            self._spawn(self._background_full_write(self.user_id))
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("⚠️ No running event loop, debounced write dropped")
            return
        self.pending_timer = loop.create_task(self._debounce_worker(self.user_id))

    async def _debounce_worker(self, user_id: str) -> None:
        try:
            await asyncio.sleep(self.debounce_seconds)
        except asyncio.CancelledError:
            logger.debug("⏹️ Debounced write superseded")
            raise

        self.pending_timer = None
        # Отдельная задача: отмена таймера не должна прерывать начатую запись
        self._spawn(self._background_full_write(user_id))

    # ===== WRITES =====

    async def _full_write(self, user_id: str) -> Optional[int]:
        async with self.write_lock:
            if self.user_id != user_id:
                logger.debug(f"User changed before write for {user_id}, skipped")
                return None

            state = self.store.snapshot()
            payload = {
                "habits": state.habits_payload(),
                "completions": state.completions,
                "updatedAt": SERVER_TIMESTAMP
            }

            try:
                committed = await self.remote.set_fields(user_id, payload)
            except Exception as e:
                raise RemoteWriteError(f"Failed to write habits for {user_id}: {e}") from e

            self.cache.save_meta(SyncMeta(updated_at=committed))
            logger.info(f"☁️ Full write for {user_id}: {len(state.habits)} habits")
            return committed

    async def _background_full_write(self, user_id: str) -> None:
        try:
            await self._full_write(user_id)
        except RemoteWriteError as e:
            # Следующая мутация повторит запись полным состоянием
            logger.error(f"❌ {e}")

    async def _remove_habit_remote(self, user_id: str, habit_id: str) -> None:
        async with self.write_lock:
            if self.user_id != user_id:
                return

            habits = self.store.snapshot().habits_payload()
            try:
                committed = await self.remote.update(user_id, {
                    "habits": habits,
                    f"completions.{habit_id}": DELETE_FIELD,
                    "updatedAt": SERVER_TIMESTAMP
                })
            except Exception as e:
                logger.info(f"Targeted removal of {habit_id} failed, falling back to habits overwrite: {e}")
                try:
                    committed = await self.remote.set_fields(user_id, {
                        "habits": habits,
                        "updatedAt": SERVER_TIMESTAMP
                    })
                except Exception as err:
                    logger.error(f"❌ Failed to persist removal of {habit_id} for {user_id}: {err}")
                    return

            self.cache.save_meta(SyncMeta(updated_at=committed))
            logger.info(f"🗑️ Removed habit {habit_id} on remote for {user_id}")

    async def sync_now(self) -> None:
        """Немедленная полная запись; ошибка пробрасывается вызывающему"""
        if not self.user_id:
            logger.warning("sync_now called without a signed-in user")
            return

        self._cancel_timer()
        await self._full_write(self.user_id)

    async def sync_today(self) -> int:
        """
        Запись только сегодняшних отметок в completions со слиянием по полям.

        Другие даты и привычки на сервере не затрагиваются.
        Возвращает число привычек в записи (0 - запись не выполнялась).
        """
        user_id = self.user_id or self.identity.current_user()
        if not user_id:
            logger.warning("sync_today called but no authenticated user available")
            return 0

        async with self.write_lock:
            partial = self.store.today_entries()
            if not partial:
                logger.info("Nothing recorded for today, sync_today skipped")
                return 0

            try:
                committed = await self.remote.merge(user_id, {
                    "completions": partial,
                    "updatedAt": SERVER_TIMESTAMP
                })
            except Exception as e:
                raise RemoteWriteError(f"Failed to write today's completions for {user_id}: {e}") from e

            self.cache.save_meta(SyncMeta(updated_at=committed))

        logger.info(f"☁️ Wrote today's completions for {user_id} ({len(partial)} habits)")
        return len(partial)
