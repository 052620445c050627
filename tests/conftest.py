import pytest

from core.habit_store import HabitStore
from database.cache import LocalCache
from database.storage import LocalStorage
from services.identity import IdentityProvider
from services.remote_store import MemoryRemoteStore
from services.sync_service import SyncCoordinator

TODAY = "2024-03-15"

def fixed_today() -> str:
    return TODAY

@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "local_storage.json")

@pytest.fixture
def cache(storage):
    return LocalCache(storage, today_provider=fixed_today)

@pytest.fixture
def store(cache):
    return HabitStore(cache, today_provider=fixed_today)

@pytest.fixture
def remote():
    return MemoryRemoteStore()

@pytest.fixture
def identity():
    return IdentityProvider()

@pytest.fixture
async def coordinator(store, remote, identity):
    coordinator = SyncCoordinator(store, remote, identity, debounce_seconds=0.05)
    await coordinator.start()
    yield coordinator
    await coordinator.stop()
