"""
Sync Activity Logger

DESIGN DECISION: Every sync step is recorded.
This provides:
1. Traceability of pushes and pulls per collection
2. Debugging capability for intermittent connectivity
3. A source for the "last synced" indicator in the UI

The logger:
- Never raises into the sync engine
- Keeps a bounded in-memory history, newest last
- Supports correlation IDs to tie the steps of one sweep together
"""

from collections import deque
from datetime import datetime
from typing import Any, Callable, Optional
from uuid import UUID, uuid4

import structlog

from devlife.models.sync_event import (
    SyncEvent,
    SyncEventBuilder,
    SyncEventType,
    SyncSeverity,
)


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class SyncActivityLogger:
    """
    Central sync activity log.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An in-memory history (for the sync indicator)
    """

    def __init__(self, history_size: int = 100):
        self._history: deque[SyncEvent] = deque(maxlen=history_size)
        self._last_success: Optional[datetime] = None
        self._last_error: Optional[SyncEvent] = None
        self._logger = structlog.get_logger(__name__)

    def log(self, event: SyncEvent) -> None:
        """Record an event and emit it at its severity."""
        self._history.append(event)
        log_dict = event.to_log_dict()

        if event.severity == SyncSeverity.ERROR:
            self._last_error = event
            self._logger.error("sync_event", **log_dict)
        elif event.severity == SyncSeverity.WARNING:
            self._logger.warning("sync_event", **log_dict)
        elif event.severity == SyncSeverity.DEBUG:
            self._logger.debug("sync_event", **log_dict)
        else:
            self._logger.info("sync_event", **log_dict)

        if event.event_type == SyncEventType.SWEEP_COMPLETED:
            if not event.details.get("failures"):
                self._last_success = event.timestamp

    def _emit(self, build: Callable[..., SyncEvent], *args: Any) -> None:
        """Build an event and log it. Failures are logged, never raised."""
        try:
            self.log(build(*args))
        except Exception as e:
            # Log failure but don't raise
            self._logger.error(
                "sync_event_dropped",
                builder=build.__name__,
                error=str(e),
            )

    @property
    def last_success(self) -> Optional[datetime]:
        """Time of the last sweep that finished with no failed step."""
        return self._last_success

    @property
    def last_error(self) -> Optional[SyncEvent]:
        return self._last_error

    def recent_events(self, limit: int = 20) -> list[SyncEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._history))[:limit]

    def events_for_sweep(self, correlation_id: UUID) -> list[SyncEvent]:
        """All recorded events of one sweep, in order."""
        return [e for e in self._history if e.correlation_id == correlation_id]

    def log_sweep_started(self, principal_id: str, correlation_id: UUID) -> None:
        self._emit(SyncEventBuilder.sweep_started, principal_id, correlation_id)

    def log_sweep_completed(
        self,
        pushed: int,
        pulled: int,
        failures: int,
        correlation_id: UUID,
    ) -> None:
        self._emit(SyncEventBuilder.sweep_completed, pushed, pulled, failures, correlation_id)

    def log_sweep_skipped(self, reason: str) -> None:
        self._emit(SyncEventBuilder.sweep_skipped, reason)

    def log_sweep_aborted(self, error_message: str, correlation_id: UUID) -> None:
        self._emit(SyncEventBuilder.sweep_aborted, error_message, correlation_id)

    def log_push_completed(self, collection: str, count: int, correlation_id: UUID) -> None:
        self._emit(SyncEventBuilder.push_completed, collection, count, correlation_id)

    def log_push_failed(
        self,
        collection: str,
        count: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        self._emit(SyncEventBuilder.push_failed, collection, count, error_message, correlation_id)

    def log_pull_completed(
        self,
        collection: str,
        received: int,
        applied: int,
        since: datetime,
        correlation_id: UUID,
    ) -> None:
        self._emit(
            SyncEventBuilder.pull_completed,
            collection, received, applied, since, correlation_id,
        )

    def log_pull_failed(self, collection: str, error_message: str, correlation_id: UUID) -> None:
        self._emit(SyncEventBuilder.pull_failed, collection, error_message, correlation_id)

    def log_record_rejected(
        self,
        collection: str,
        record_id: Optional[str],
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        self._emit(
            SyncEventBuilder.record_rejected,
            collection, record_id, error_message, correlation_id,
        )

    def log_store_reset(self, reason: str) -> None:
        self._emit(SyncEventBuilder.store_reset, reason)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for one sweep.

    Pass it through every push and pull of that sweep.
    """
    return uuid4()
