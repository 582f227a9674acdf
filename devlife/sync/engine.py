"""
Sync Engine

Reconciles the local store with the remote store for one signed-in
principal, one sweep at a time.

A sweep walks the collections in fixed order (projects, finances,
tasks, vault) and for each one pushes pending records, then pulls
records the remote has seen change since the newest local updated_at.

GUARANTEES:
- At most one sweep runs at a time; a sweep requested meanwhile is
  dropped, not queued
- Failures are absorbed here and recorded as sync events; a failed push
  or pull never stops the other steps of the sweep
- A record is only flagged synced if it was not edited while its push
  was in flight
"""

import asyncio
from datetime import datetime
from typing import Callable, Coroutine, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from devlife.audit import SyncActivityLogger, create_correlation_id
from devlife.config import SyncSettings, get_settings
from devlife.models.records import Collection, parse_timestamp, utc_now
from devlife.services.storage.interface import AuthProvider, RemoteStore, StorageError
from devlife.store import LocalStore

logger = structlog.get_logger(__name__)


# =============================================================================
# RESULTS
# =============================================================================

class PushResult(BaseModel):
    """Outcome of pushing one collection."""
    collection: Collection
    attempted: int = 0
    marked_synced: int = 0
    error: Optional[str] = None


class PullResult(BaseModel):
    """Outcome of pulling one collection."""
    collection: Collection
    since: datetime
    received: int = 0
    applied: int = 0
    rejected: int = 0
    error: Optional[str] = None


class CollectionSyncResult(BaseModel):
    collection: Collection
    push: PushResult
    pull: PullResult

    @property
    def failed(self) -> bool:
        return self.push.error is not None or self.pull.error is not None


class SyncReport(BaseModel):
    """
    What one sync_all() call did.

    skipped_reason is set when the sweep did not run at all:
    "already_syncing" or "unauthenticated".
    """
    sweep_id: Optional[UUID] = None
    started_at: datetime
    finished_at: Optional[datetime] = None
    principal_id: Optional[str] = None
    skipped_reason: Optional[str] = None
    error: Optional[str] = None
    collections: list[CollectionSyncResult] = Field(default_factory=list)

    @property
    def ran(self) -> bool:
        return self.skipped_reason is None

    @property
    def pushed(self) -> int:
        return sum(c.push.attempted for c in self.collections if c.push.error is None)

    @property
    def pulled(self) -> int:
        return sum(c.pull.applied for c in self.collections)

    @property
    def failures(self) -> int:
        return sum(
            (c.push.error is not None) + (c.pull.error is not None)
            for c in self.collections
        ) + (self.error is not None)


# =============================================================================
# ENGINE
# =============================================================================

class SyncEngine:
    """
    Push-then-pull synchronization between a LocalStore and a RemoteStore.

    Lifecycle: start() runs a sweep right away and schedules one every
    SyncSettings.interval_seconds; notify_online() runs an extra sweep
    when connectivity returns; stop() cancels the schedule.
    """

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteStore,
        auth: AuthProvider,
        settings: Optional[SyncSettings] = None,
        activity: Optional[SyncActivityLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._remote = remote
        self._auth = auth
        self._settings = settings or get_settings().sync
        self._activity = activity or SyncActivityLogger(self._settings.history_size)
        self._clock = clock or utc_now

        self._syncing = False
        self._first_sweep: Optional[asyncio.Task] = None
        self._periodic: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    @property
    def is_started(self) -> bool:
        return self._first_sweep is not None

    @property
    def activity(self) -> SyncActivityLogger:
        return self._activity

    def _now(self) -> datetime:
        return parse_timestamp(self._clock())

    # -------------------------------------------------------------------------
    # Sweep
    # -------------------------------------------------------------------------

    async def sync_all(self) -> SyncReport:
        """
        Run one sweep over every collection.

        Never raises for remote, auth or storage failures; they are
        reported in the returned SyncReport.
        """
        # The guard is taken before the first await, so a second call
        # made before this one suspends sees it.
        if self._syncing:
            self._activity.log_sweep_skipped("already syncing")
            return SyncReport(started_at=self._now(), skipped_reason="already_syncing")

        self._syncing = True
        sweep_id = create_correlation_id()
        report = SyncReport(sweep_id=sweep_id, started_at=self._now())
        logger.debug("sync_sweep_initiated", sweep_id=str(sweep_id))

        try:
            principal_id = await self._auth.get_current_principal()
            if not principal_id:
                logger.debug("sync_aborted_unauthenticated", sweep_id=str(sweep_id))
                self._activity.log_sweep_skipped("not authenticated")
                report.skipped_reason = "unauthenticated"
                return report

            report.principal_id = principal_id
            self._activity.log_sweep_started(principal_id, sweep_id)

            for collection in Collection:
                push = await self.push_pending(collection, principal_id, sweep_id)
                pull = await self.pull_updates(collection, principal_id, sweep_id)
                report.collections.append(
                    CollectionSyncResult(collection=collection, push=push, pull=pull)
                )

            self._activity.log_sweep_completed(
                report.pushed, report.pulled, report.failures, sweep_id
            )
        except Exception as e:
            report.error = str(e)
            self._activity.log_sweep_aborted(str(e), sweep_id)
        finally:
            self._syncing = False
            report.finished_at = self._now()

        return report

    async def push_pending(
        self,
        collection: Collection,
        principal_id: str,
        sweep_id: Optional[UUID] = None,
    ) -> PushResult:
        """
        Send every pending record of a collection as one batch.

        On success each pushed record is flagged synced, unless it was
        edited while the batch was in flight. On failure everything stays
        pending for the next sweep.
        """
        sweep_id = sweep_id or create_correlation_id()
        raw = self._store.get_raw_data().records(collection)
        pending = [record for record in raw.values() if record.is_pending]
        result = PushResult(collection=collection, attempted=len(pending))

        if not pending:
            return result

        transmitted_at = self._now() if self._settings.restamp_on_push else None
        payload = [
            record.to_remote_payload(principal_id, updated_at=transmitted_at)
            for record in pending
        ]

        try:
            await self._remote.upsert_batch(collection, payload, conflict_key="id")
        except Exception as e:
            result.error = str(e)
            self._activity.log_push_failed(collection.value, len(pending), str(e), sweep_id)
            return result

        for record in pending:
            try:
                if self._store.mark_synced(
                    collection, record.id, expected_updated_at=record.updated_at
                ):
                    result.marked_synced += 1
            except StorageError as e:
                # Stays pending locally and is pushed again next sweep
                result.error = str(e)
                logger.error(
                    "mark_synced_failed",
                    collection=collection.value,
                    record_id=record.id,
                    error=str(e),
                )

        self._activity.log_push_completed(collection.value, len(pending), sweep_id)
        return result

    async def pull_updates(
        self,
        collection: Collection,
        principal_id: str,
        sweep_id: Optional[UUID] = None,
    ) -> PullResult:
        """
        Fetch records changed remotely since the newest local updated_at
        and apply them with last-write-wins.

        Soft-deleted local records count towards the cursor. A record the
        local store refuses is logged and skipped.
        """
        sweep_id = sweep_id or create_correlation_id()
        raw = self._store.get_raw_data().records(collection)
        since = max(
            (record.updated_at for record in raw.values()),
            default=self._settings.epoch_floor,
        )
        result = PullResult(collection=collection, since=since)

        try:
            records = await self._remote.query_newer_than(collection, principal_id, since)
        except Exception as e:
            result.error = str(e)
            self._activity.log_pull_failed(collection.value, str(e), sweep_id)
            return result

        result.received = len(records)
        for item in records:
            record_id = item.get("id")
            before = self._store.get(collection, record_id) if record_id else None
            try:
                stored = self._store.upsert(collection, item, is_remote_origin=True)
            except (ValueError, StorageError) as e:
                result.rejected += 1
                self._activity.log_record_rejected(collection.value, record_id, str(e), sweep_id)
                continue
            if stored is not before:
                result.applied += 1

        if records:
            self._activity.log_pull_completed(
                collection.value, result.received, result.applied, since, sweep_id
            )
        return result

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_periodic(self) -> None:
        while True:
            await asyncio.sleep(self._settings.interval_seconds)
            self._spawn(self.sync_all())

    def start(self) -> asyncio.Task:
        """
        Begin background synchronization.

        Runs a sweep immediately and schedules the recurring one. Calling
        start() again while started returns the first sweep's task and
        schedules nothing new. Must be called from a running event loop.
        """
        if self._first_sweep is not None:
            return self._first_sweep

        self._first_sweep = self._spawn(self.sync_all())
        self._periodic = self._spawn(self._run_periodic())
        logger.info("sync_started", interval_seconds=self._settings.interval_seconds)
        return self._first_sweep

    def notify_online(self) -> asyncio.Task:
        """Connectivity came back: sweep now. Dropped if one is running."""
        logger.info("connection_restored")
        return self._spawn(self.sync_all())

    async def stop(self, cancel_in_flight: bool = False) -> None:
        """
        Cancel the recurring schedule.

        In-flight sweeps are awaited to completion unless cancel_in_flight
        is set.
        """
        if self._periodic is not None:
            self._periodic.cancel()

        tasks = [t for t in self._tasks if t is not self._periodic]
        if cancel_in_flight:
            for task in tasks:
                task.cancel()

        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._first_sweep = None
        self._periodic = None
        logger.info("sync_stopped")
