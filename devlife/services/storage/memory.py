"""
In-Memory Storage Implementations

Used for tests and for running the app without a configured backend.
Behaviour matches the real implementations at the interface level:
the remote replaces records by id and filters by owner and updated_at.
"""

import copy
from datetime import datetime
from typing import Any, Optional

from devlife.models.records import Collection, parse_timestamp
from devlife.services.storage.interface import (
    PersistentStorage,
    RemoteStore,
    RemoteStoreError,
)


class MemoryStorage(PersistentStorage):
    """Byte store kept in a dict. Lost when the process exits."""

    def __init__(self, initial: Optional[dict[str, bytes]] = None):
        self._data: dict[str, bytes] = dict(initial or {})

    def load(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def save(self, key: str, data: bytes) -> None:
        self._data[key] = bytes(data)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class InMemoryRemoteStore(RemoteStore):
    """
    Remote store kept in process memory.

    Every request is appended to `requests` as (operation, collection)
    so callers can see how much network traffic a sweep produced.
    """

    def __init__(self):
        self._tables: dict[Collection, dict[str, dict[str, Any]]] = {
            collection: {} for collection in Collection
        }
        self.requests: list[tuple[str, Collection]] = []

    async def upsert_batch(
        self,
        collection: Collection,
        records: list[dict[str, Any]],
        conflict_key: str = "id",
    ) -> None:
        self.requests.append(("upsert_batch", collection))
        table = self._tables[collection]
        for record in records:
            key = record.get(conflict_key)
            if not key:
                raise RemoteStoreError(
                    f"Record without '{conflict_key}' rejected by {collection.value}"
                )
            table[key] = copy.deepcopy(record)

    async def query_newer_than(
        self,
        collection: Collection,
        owner_id: str,
        timestamp: datetime,
    ) -> list[dict[str, Any]]:
        self.requests.append(("query_newer_than", collection))
        return [
            copy.deepcopy(record)
            for record in self._tables[collection].values()
            if record.get("user_id") == owner_id
            and parse_timestamp(record["updated_at"]) > timestamp
        ]

    def records(self, collection: Collection) -> dict[str, dict[str, Any]]:
        """Direct view of a remote table."""
        return self._tables[collection]

    def put(self, collection: Collection, record: dict[str, Any]) -> None:
        """Place a record on the remote side as if another device pushed it."""
        self._tables[collection][record["id"]] = copy.deepcopy(record)
