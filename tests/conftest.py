"""
Shared fixtures.

No network and no real clock: storage and remote are in memory and
time only moves when a test advances it.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from devlife.config import SyncSettings
from devlife.models.records import Collection
from devlife.services.storage import (
    InMemoryRemoteStore,
    MemoryStorage,
    RemoteStoreError,
    StaticAuthProvider,
    StorageError,
)
from devlife.store import LocalStore
from devlife.sync import SyncEngine


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1.0) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class FlakyStorage(MemoryStorage):
    """Memory storage whose writes and removals can be switched off."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail_saves = False
        self.fail_removes = False

    def save(self, key: str, data: bytes) -> None:
        if self.fail_saves:
            raise StorageError("disk full")
        super().save(key, data)

    def remove(self, key: str) -> None:
        if self.fail_removes:
            raise StorageError("permission denied")
        super().remove(key)


class FlakyRemote(InMemoryRemoteStore):
    """
    Remote store that fails on demand and yields to the event loop on
    every request, like a real network call would.
    """

    def __init__(self):
        super().__init__()
        self.fail_push: set[Collection] = set()
        self.fail_pull: set[Collection] = set()

    async def upsert_batch(self, collection, records, conflict_key="id"):
        await asyncio.sleep(0)
        if collection in self.fail_push:
            self.requests.append(("upsert_batch", collection))
            raise RemoteStoreError(f"push to {collection.value} refused")
        await super().upsert_batch(collection, records, conflict_key)

    async def query_newer_than(self, collection, owner_id, timestamp):
        await asyncio.sleep(0)
        if collection in self.fail_pull:
            self.requests.append(("query_newer_than", collection))
            raise RemoteStoreError(f"query on {collection.value} timed out")
        return await super().query_newer_than(collection, owner_id, timestamp)


class YieldingAuth(StaticAuthProvider):
    """Auth provider that suspends like a real token lookup."""

    async def get_current_principal(self):
        await asyncio.sleep(0)
        return self.principal_id


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return FlakyStorage()


@pytest.fixture
def store(storage, clock):
    return LocalStore(storage, clock=clock)


@pytest.fixture
def remote():
    return FlakyRemote()


@pytest.fixture
def auth():
    return YieldingAuth("user-1")


@pytest.fixture
def sync_settings():
    return SyncSettings(interval_seconds=60)


@pytest.fixture
def engine(store, remote, auth, sync_settings, clock):
    return SyncEngine(store, remote, auth, settings=sync_settings, clock=clock)
