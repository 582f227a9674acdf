"""
Tests for the sync engine

The remote store yields to the event loop on every request so that
concurrency between sweeps behaves like it would over a network.
"""

import asyncio
from datetime import timedelta

import pytest

from devlife.audit import SyncActivityLogger
from devlife.config import SyncSettings
from devlife.models.records import Collection, SyncStatus
from devlife.models.sync_event import SyncEventType
from devlife.services.storage import StaticAuthProvider
from devlife.sync import SyncEngine

from tests.conftest import FlakyRemote, YieldingAuth


class TestPushPull:
    """Tests for a single sweep."""

    @pytest.mark.asyncio
    async def test_local_record_is_pushed_and_marked_synced(self, store, remote, engine):
        store.upsert("tasks", {"id": "t1", "title": "Ship release", "priority": "High"})

        report = await engine.sync_all()

        assert report.ran
        assert report.principal_id == "user-1"
        assert report.pushed == 1
        pushed = remote.records(Collection.TASKS)["t1"]
        assert pushed["user_id"] == "user-1"
        assert pushed["priority"] == "High"
        assert "sync_status" not in pushed
        assert store.get("tasks", "t1").sync_status == SyncStatus.SYNCED

    @pytest.mark.asyncio
    async def test_collections_are_swept_in_order(self, store, remote, engine):
        store.upsert("vault", {"id": "v1"})
        store.upsert("projects", {"id": "p1"})

        report = await engine.sync_all()

        assert [c.collection for c in report.collections] == list(Collection)
        assert remote.requests == [
            ("upsert_batch", Collection.PROJECTS),
            ("query_newer_than", Collection.PROJECTS),
            ("query_newer_than", Collection.FINANCES),
            ("query_newer_than", Collection.TASKS),
            ("upsert_batch", Collection.VAULT),
            ("query_newer_than", Collection.VAULT),
        ]

    @pytest.mark.asyncio
    async def test_newer_remote_record_is_applied(self, store, remote, engine, clock):
        store.upsert("tasks", {
            "id": "t1",
            "title": "Ship release",
            "due_date": "2024-01-01",
            "priority": "High",
        })
        assert store.get("tasks", "t1").sync_status == SyncStatus.PENDING

        remote_time = clock.now + timedelta(seconds=10)
        remote.put(Collection.TASKS, {
            "id": "t1",
            "title": "Ship release",
            "priority": "High",
            "user_id": "user-1",
            "updated_at": remote_time.isoformat(),
        })

        result = await engine.pull_updates(Collection.TASKS, "user-1")

        assert result.applied == 1
        task = store.get("tasks", "t1")
        assert task.sync_status == SyncStatus.SYNCED
        assert task.updated_at == remote_time
        assert len(store.get_state().tasks) == 1

    @pytest.mark.asyncio
    async def test_round_trip_does_not_regress(self, store, remote, engine, clock):
        store.upsert("projects", {"id": "p1", "name": "DevLife", "progress": 40})

        await engine.sync_all()
        clock.advance(30)
        report = await engine.sync_all()

        project = store.get("projects", "p1")
        assert project.sync_status == SyncStatus.SYNCED
        assert project.progress == 40
        assert report.pulled == 0
        assert store.pending_count() == 0

    @pytest.mark.asyncio
    async def test_restamp_on_push(self, store, remote, auth, clock):
        settings = SyncSettings(interval_seconds=60, restamp_on_push=True)
        engine = SyncEngine(store, remote, auth, settings=settings, clock=clock)
        edited = store.upsert("tasks", {"id": "t1"})
        clock.advance(5)

        await engine.sync_all()

        task = store.get("tasks", "t1")
        assert task.updated_at == edited.updated_at + timedelta(seconds=5)
        assert task.sync_status == SyncStatus.SYNCED

    @pytest.mark.asyncio
    async def test_other_owners_records_are_not_pulled(self, store, remote, engine, clock):
        remote.put(Collection.TASKS, {
            "id": "theirs",
            "user_id": "user-2",
            "updated_at": clock.now.isoformat(),
        })
        await engine.sync_all()
        assert store.get("tasks", "theirs") is None

    @pytest.mark.asyncio
    async def test_empty_collection_pulls_from_epoch_floor(self, engine, sync_settings):
        result = await engine.pull_updates(Collection.FINANCES, "user-1")
        assert result.since == sync_settings.epoch_floor

    @pytest.mark.asyncio
    async def test_deleted_records_count_towards_cursor(self, store, engine, clock):
        store.upsert("tasks", {"id": "t1"})
        clock.advance(60)
        deleted = store.delete("tasks", "t1")

        result = await engine.pull_updates(Collection.TASKS, "user-1")

        assert result.since == deleted.updated_at

    @pytest.mark.asyncio
    async def test_tombstone_is_pushed(self, store, remote, engine):
        store.upsert("tasks", {"id": "t1"})
        await engine.sync_all()
        store.delete("tasks", "t1")

        await engine.sync_all()

        assert remote.records(Collection.TASKS)["t1"]["deleted_at"] is not None


class TestFailureIsolation:
    """Tests that one failure does not stop the rest of a sweep."""

    @pytest.mark.asyncio
    async def test_rejected_record_with_long_id_does_not_abort_sweep(
        self, store, remote, engine, clock
    ):
        """A malformed record with an oversized id is skipped, later collections still pull."""
        long_id = "x" * 600
        remote.put(Collection.PROJECTS, {
            "id": long_id,
            "user_id": "user-1",
            "progress": 500,
            "updated_at": clock.now.isoformat(),
        })
        remote.put(Collection.TASKS, {
            "id": "t-ok",
            "user_id": "user-1",
            "title": "Still pulled",
            "updated_at": clock.now.isoformat(),
        })

        report = await engine.sync_all()

        assert report.error is None
        assert report.collections[0].pull.rejected == 1
        assert store.get("projects", long_id) is None
        assert store.get("tasks", "t-ok").title == "Still pulled"
        rejected = [
            e for e in engine.activity.recent_events(limit=100)
            if e.event_type == SyncEventType.RECORD_REJECTED
        ]
        assert len(rejected) == 1
        assert len(rejected[0].details["record_id"]) <= 100

    @pytest.mark.asyncio
    async def test_push_failure_keeps_records_pending(self, store, remote, engine):
        remote.fail_push.add(Collection.TASKS)
        store.upsert("tasks", {"id": "t1"})
        store.upsert("projects", {"id": "p1"})

        report = await engine.sync_all()

        assert store.get("tasks", "t1").sync_status == SyncStatus.PENDING
        assert store.get("projects", "p1").sync_status == SyncStatus.SYNCED
        assert ("query_newer_than", Collection.TASKS) in remote.requests
        assert report.failures == 1
        assert report.error is None

    @pytest.mark.asyncio
    async def test_failed_push_is_retried_next_sweep(self, store, remote, engine):
        remote.fail_push.add(Collection.TASKS)
        store.upsert("tasks", {"id": "t1"})
        await engine.sync_all()

        remote.fail_push.clear()
        await engine.sync_all()

        assert "t1" in remote.records(Collection.TASKS)
        assert store.pending_count() == 0

    @pytest.mark.asyncio
    async def test_pull_failure_does_not_stop_later_collections(self, store, remote, engine, clock):
        remote.fail_pull.add(Collection.PROJECTS)
        remote.put(Collection.FINANCES, {
            "id": "f1",
            "user_id": "user-1",
            "amount": "50",
            "updated_at": clock.now.isoformat(),
        })

        report = await engine.sync_all()

        assert store.get("finances", "f1") is not None
        assert report.collections[0].pull.error is not None
        assert report.failures == 1

    @pytest.mark.asyncio
    async def test_malformed_record_is_skipped(self, store, remote, engine, clock):
        remote.put(Collection.TASKS, {
            "id": "bad",
            "user_id": "user-1",
            "priority": "Urgent",
            "updated_at": clock.now.isoformat(),
        })
        remote.put(Collection.TASKS, {
            "id": "good",
            "user_id": "user-1",
            "title": "Valid",
            "updated_at": clock.now.isoformat(),
        })

        result = await engine.pull_updates(Collection.TASKS, "user-1")

        assert result.received == 2
        assert result.rejected == 1
        assert result.applied == 1
        assert store.get("tasks", "bad") is None
        assert store.get("tasks", "good").title == "Valid"
        rejected = [
            e for e in engine.activity.recent_events()
            if e.event_type == SyncEventType.RECORD_REJECTED
        ]
        assert rejected[0].details["record_id"] == "bad"

    @pytest.mark.asyncio
    async def test_edit_during_push_stays_pending(self, store, clock):
        """A record edited while its push is in flight is pushed again later."""

        class EditingRemote(FlakyRemote):
            async def upsert_batch(self, collection, records, conflict_key="id"):
                await super().upsert_batch(collection, records, conflict_key)
                clock.advance(1)
                store.upsert("tasks", {"id": "t1", "completed": True})

        remote = EditingRemote()
        engine = SyncEngine(
            store, remote, StaticAuthProvider("user-1"),
            settings=SyncSettings(interval_seconds=60), clock=clock,
        )
        store.upsert("tasks", {"id": "t1", "title": "Racing"})

        result = await engine.push_pending(Collection.TASKS, "user-1")

        assert result.marked_synced == 0
        task = store.get("tasks", "t1")
        assert task.completed is True
        assert task.sync_status == SyncStatus.PENDING

    @pytest.mark.asyncio
    async def test_auth_failure_is_reported(self, store, remote, clock):
        class BrokenAuth(StaticAuthProvider):
            async def get_current_principal(self):
                raise RuntimeError("token endpoint down")

        engine = SyncEngine(
            store, remote, BrokenAuth("user-1"),
            settings=SyncSettings(interval_seconds=60), clock=clock,
        )

        report = await engine.sync_all()

        assert report.error == "token endpoint down"
        assert not engine.is_syncing
        assert engine.activity.last_error.event_type == SyncEventType.SWEEP_ABORTED


class TestSweepGuard:
    """Tests for the single-sweep guard and authentication."""

    @pytest.mark.asyncio
    async def test_overlapping_sweep_is_dropped(self, store, remote, engine):
        store.upsert("tasks", {"id": "t1"})

        first, second = await asyncio.gather(engine.sync_all(), engine.sync_all())

        assert first.ran
        assert second.skipped_reason == "already_syncing"
        # One push for tasks and one pull per collection, all from the first sweep
        assert len(remote.requests) == 5
        assert not engine.is_syncing

    @pytest.mark.asyncio
    async def test_unauthenticated_sweep_does_nothing(self, store, remote, clock):
        engine = SyncEngine(
            store, remote, YieldingAuth(None),
            settings=SyncSettings(interval_seconds=60), clock=clock,
        )
        store.upsert("tasks", {"id": "t1"})

        report = await engine.sync_all()

        assert report.skipped_reason == "unauthenticated"
        assert remote.requests == []
        assert store.get("tasks", "t1").sync_status == SyncStatus.PENDING
        assert not engine.is_syncing

    @pytest.mark.asyncio
    async def test_sweep_events_share_a_correlation_id(self, store, engine):
        store.upsert("tasks", {"id": "t1"})

        report = await engine.sync_all()

        events = engine.activity.events_for_sweep(report.sweep_id)
        assert events[0].event_type == SyncEventType.SWEEP_STARTED
        assert events[-1].event_type == SyncEventType.SWEEP_COMPLETED
        assert SyncEventType.PUSH_COMPLETED in [e.event_type for e in events]
        assert engine.activity.last_success is not None


class TestScheduling:
    """Tests for start(), notify_online() and stop()."""

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, engine):
        first = engine.start()
        second = engine.start()
        assert first is second

        report = await first
        assert report.ran
        assert engine.is_started

        await engine.stop()
        assert not engine.is_started

    @pytest.mark.asyncio
    async def test_periodic_sweeps(self, store, remote, auth, clock):
        settings = SyncSettings.model_construct(interval_seconds=0.01)
        activity = SyncActivityLogger()
        engine = SyncEngine(
            store, remote, auth, settings=settings, activity=activity, clock=clock,
        )

        engine.start()
        await asyncio.sleep(0.1)
        await engine.stop()

        started = [
            e for e in activity.recent_events(limit=1000)
            if e.event_type == SyncEventType.SWEEP_STARTED
        ]
        assert len(started) >= 2

    @pytest.mark.asyncio
    async def test_notify_online_runs_a_sweep(self, store, remote, engine):
        store.upsert("tasks", {"id": "t1"})

        report = await engine.notify_online()

        assert report.ran
        assert store.pending_count() == 0

    @pytest.mark.asyncio
    async def test_stop_waits_for_in_flight_sweep(self, store, engine):
        store.upsert("tasks", {"id": "t1"})
        engine.start()

        await engine.stop()

        assert not engine.is_syncing
        assert store.pending_count() == 0

    @pytest.mark.asyncio
    async def test_stop_can_cancel_in_flight_sweep(self, store, engine):
        store.upsert("tasks", {"id": "t1"})
        task = engine.start()

        await engine.stop(cancel_in_flight=True)

        assert task.cancelled()
        assert not engine.is_syncing


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
