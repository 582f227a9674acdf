"""
Local Store

The offline-first replica of every collection, and the only mutation
path for application state.

GUARANTEES:
- A mutation is persisted before the call returns; a failed write is
  raised to the caller and the in-memory state is rolled back
- Subscribers are notified after every persisting mutation
- Records are never hard-deleted, except by clear()
- Remote-origin writes follow last-write-wins on updated_at, with the
  existing record winning ties

All operations are synchronous and never yield to the event loop, so
each read-modify-write is atomic with respect to other coroutines.
"""

from datetime import datetime
from typing import Any, Callable, Generic, Mapping, Optional, TypeVar

import structlog

from devlife.models.records import (
    AppState,
    BaseRecord,
    Collection,
    FinanceEntry,
    Project,
    StoreSnapshot,
    SyncStatus,
    Task,
    VaultEntry,
    parse_timestamp,
    utc_now,
)
from devlife.services.storage.interface import (
    CorruptSnapshotError,
    PersistentStorage,
    StorageError,
)

logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseRecord)

Listener = Callable[[], None]


class LocalStore:
    """
    Durable store of projects, finances, tasks and vault entries.

    Construct one per session and inject it wherever state is read or
    written. Reads return immutable records; every change goes through
    upsert(), delete(), mark_synced() or clear().
    """

    def __init__(
        self,
        storage: PersistentStorage,
        storage_key: str = "devlife_offline_db",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._storage = storage
        self._storage_key = storage_key
        self._clock = clock or utc_now
        self._listeners: list[Listener] = []
        self._data = StoreSnapshot()
        # Why the snapshot was discarded at load time, if it was
        self.reset_reason: Optional[str] = None
        self._load()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _load(self) -> None:
        """Read the snapshot back, resetting the store if it is unusable."""
        try:
            raw = self._storage.load(self._storage_key)
            if raw is None:
                return
            self._data = self._decode(raw)
        except StorageError as e:
            logger.error(
                "store_corruption_detected",
                storage_key=self._storage_key,
                error=str(e),
            )
            self._data = StoreSnapshot()
            self.reset_reason = "corrupt_snapshot"
            try:
                self._storage.remove(self._storage_key)
            except StorageError as remove_error:
                logger.error("store_reset_failed", error=str(remove_error))

    @staticmethod
    def _decode(raw: bytes) -> StoreSnapshot:
        try:
            return StoreSnapshot.model_validate_json(raw)
        except ValueError as e:
            raise CorruptSnapshotError(f"Snapshot failed to deserialize: {e}") from e

    def _persist(self) -> None:
        self._storage.save(self._storage_key, self._data.model_dump_json().encode("utf-8"))

    def _write(self, collection: Collection, record: BaseRecord) -> None:
        """Replace one record and persist, restoring the old value on failure."""
        items = self._data.records(collection)
        previous = items.get(record.id)
        items[record.id] = record
        try:
            self._persist()
        except Exception:
            if previous is None:
                del items[record.id]
            else:
                items[record.id] = previous
            logger.error(
                "store_persist_failed",
                collection=collection.value,
                record_id=record.id,
            )
            raise

    def _now(self) -> datetime:
        return parse_timestamp(self._clock())

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("store_listener_failed")

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_state(self) -> AppState:
        """Live records of every collection, soft-deleted ones excluded."""
        return AppState(**{
            collection.value: [
                record
                for record in self._data.records(collection).values()
                if not record.is_deleted
            ]
            for collection in Collection
        })

    def get_raw_data(self) -> StoreSnapshot:
        """
        Unfiltered copy of the store, including soft-deleted records.

        The dicts are copies; the records are immutable and shared.
        """
        return StoreSnapshot.model_construct(**{
            collection.value: dict(self._data.records(collection))
            for collection in Collection
        })

    def get(self, collection: Collection | str, record_id: str) -> Optional[BaseRecord]:
        """A single record by id, deleted or not."""
        return self._data.records(Collection(collection)).get(record_id)

    def pending_count(self) -> int:
        """Number of records still waiting to be pushed."""
        return self._data.pending_count()

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def upsert(
        self,
        collection: Collection | str,
        partial: Mapping[str, Any],
        is_remote_origin: bool = False,
    ) -> BaseRecord:
        """
        Create or shallow-merge a record.

        Args:
            collection: Target collection
            partial: Fields to write; must include "id"
            is_remote_origin: True when applying a record pulled from the
                remote store

        Returns:
            The stored record. For a remote-origin write that lost the
            timestamp comparison this is the unchanged existing record.

        Raises:
            ValueError: If partial has no id
            pydantic.ValidationError: If the merged record is invalid
            StorageError: If the snapshot could not be persisted
        """
        collection = Collection(collection)
        record_id = partial.get("id")
        if not record_id:
            raise ValueError(f"upsert into {collection.value} requires an 'id'")

        existing = self._data.records(collection).get(record_id)
        now = self._now()

        incoming_updated_at = partial.get("updated_at") if is_remote_origin else None
        if incoming_updated_at is not None:
            incoming_updated_at = parse_timestamp(incoming_updated_at)

        # Last write wins; the local copy wins ties
        if (
            is_remote_origin
            and existing is not None
            and incoming_updated_at is not None
            and existing.updated_at >= incoming_updated_at
        ):
            return existing

        if existing is not None:
            merged = existing.model_dump()
            merged.update(partial)
            merged["created_at"] = existing.created_at
        else:
            merged = dict(partial)
            merged.setdefault("created_at", now)
            if merged["created_at"] is None:
                merged["created_at"] = now

        if is_remote_origin:
            merged["updated_at"] = incoming_updated_at or now
            merged["sync_status"] = SyncStatus.SYNCED
        else:
            merged["updated_at"] = now
            merged["sync_status"] = SyncStatus.PENDING

        record = collection.record_type.model_validate(merged)
        self._write(collection, record)
        self._notify()
        return record

    def delete(self, collection: Collection | str, record_id: str) -> Optional[BaseRecord]:
        """
        Soft-delete a record. No-op if it does not exist.

        updated_at advances with deleted_at so the tombstone is picked
        up by incremental pulls on other devices.
        """
        collection = Collection(collection)
        existing = self._data.records(collection).get(record_id)
        if existing is None:
            return None

        now = self._now()
        record = existing.model_copy(update={
            "deleted_at": now,
            "updated_at": now,
            "sync_status": SyncStatus.PENDING,
        })
        self._write(collection, record)
        self._notify()
        return record

    def mark_synced(
        self,
        collection: Collection | str,
        record_id: str,
        expected_updated_at: Optional[datetime] = None,
    ) -> bool:
        """
        Flag a record as accepted by the remote store.

        If expected_updated_at is given and the record has been edited
        since (its updated_at differs), it stays pending. Persists, but
        does not notify subscribers.

        Returns:
            True if the record was flagged synced
        """
        collection = Collection(collection)
        existing = self._data.records(collection).get(record_id)
        if existing is None:
            return False
        if expected_updated_at is not None and existing.updated_at != expected_updated_at:
            return False
        if existing.sync_status == SyncStatus.SYNCED:
            return True

        self._write(collection, existing.model_copy(update={"sync_status": SyncStatus.SYNCED}))
        return True

    def clear(self) -> None:
        """
        Drop every record, erase the durable snapshot and notify.

        The snapshot is removed first; if that fails the error is raised
        and the in-memory records are kept.
        """
        self._storage.remove(self._storage_key)
        self._data = StoreSnapshot()
        logger.info("store_cleared", storage_key=self._storage_key)
        self._notify()

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Call listener after every upsert, delete and clear.

        Returns:
            A function that unsubscribes; calling it twice is harmless
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def dispose(self) -> None:
        """Drop all subscribers at the end of a session."""
        self._listeners.clear()

    # -------------------------------------------------------------------------
    # Typed collection handles
    # -------------------------------------------------------------------------

    def collection(self, collection: Collection) -> "Repository[BaseRecord]":
        return Repository(self, collection)

    @property
    def projects(self) -> "Repository[Project]":
        return Repository(self, Collection.PROJECTS)

    @property
    def finances(self) -> "Repository[FinanceEntry]":
        return Repository(self, Collection.FINANCES)

    @property
    def tasks(self) -> "Repository[Task]":
        return Repository(self, Collection.TASKS)

    @property
    def vault(self) -> "Repository[VaultEntry]":
        return Repository(self, Collection.VAULT)


class Repository(Generic[RecordT]):
    """
    One collection of a LocalStore, with its record type fixed.

    A thin view: all state stays in the store.
    """

    def __init__(self, store: LocalStore, collection: Collection):
        self._store = store
        self._collection = collection

    @property
    def name(self) -> Collection:
        return self._collection

    def list(self) -> list[RecordT]:
        """Live records only."""
        return getattr(self._store.get_state(), self._collection.value)

    def get(self, record_id: str) -> Optional[RecordT]:
        """A live record by id; soft-deleted records are not returned."""
        record = self._store.get(self._collection, record_id)
        if record is None or record.is_deleted:
            return None
        return record

    def upsert(self, partial: Mapping[str, Any]) -> RecordT:
        return self._store.upsert(self._collection, partial)

    def delete(self, record_id: str) -> Optional[RecordT]:
        return self._store.delete(self._collection, record_id)

