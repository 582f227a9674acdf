"""
Sync Event Models for DevLife

Every sweep, push and pull produces a structured event.
This provides:
1. Traceability of what was sent and received
2. Debugging information when connectivity is flaky
3. Data for a "last synced" / "sync failed" indicator

DESIGN DECISION: Events are append-only records of what happened.
They never feed back into sync decisions.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from devlife.models.records import utc_now


def _clip(value: Any, limit: int = 100) -> Optional[str]:
    """Shorten an externally supplied value to fit event fields."""
    if value is None:
        return None
    text = str(value)
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


class SyncEventType(str, Enum):
    """Types of sync activity we record."""
    # Sweep lifecycle
    SWEEP_STARTED = "sweep_started"
    SWEEP_COMPLETED = "sweep_completed"
    SWEEP_SKIPPED = "sweep_skipped"
    SWEEP_ABORTED = "sweep_aborted"

    # Push
    PUSH_COMPLETED = "push_completed"
    PUSH_FAILED = "push_failed"

    # Pull
    PULL_COMPLETED = "pull_completed"
    PULL_FAILED = "pull_failed"
    RECORD_REJECTED = "record_rejected"

    # Local store
    STORE_RESET = "store_reset"


class SyncSeverity(str, Enum):
    """Severity level for sync events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class SyncEvent(BaseModel):
    """
    A single sync event.

    All events of one sweep share a correlation_id.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=utc_now)

    event_type: SyncEventType
    severity: SyncSeverity = SyncSeverity.INFO

    collection: Optional[str] = Field(
        default=None,
        description="Collection the event is about, if any"
    )
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Sweep this event belongs to"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "collection": self.collection,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class SyncEventBuilder:
    """
    Helper class to build sync events with common patterns.

    Usage:
        event = SyncEventBuilder.push_completed("tasks", 3, sweep_id)
        event = SyncEventBuilder.pull_failed("vault", str(exc), sweep_id)
    """

    @staticmethod
    def sweep_started(principal_id: str, correlation_id: UUID) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SWEEP_STARTED,
            correlation_id=correlation_id,
            description="Sync sweep started",
            details={"principal_id": principal_id},
        )

    @staticmethod
    def sweep_completed(
        pushed: int,
        pulled: int,
        failures: int,
        correlation_id: UUID,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SWEEP_COMPLETED,
            severity=SyncSeverity.WARNING if failures else SyncSeverity.INFO,
            correlation_id=correlation_id,
            description=(
                f"Sync sweep finished: {pushed} pushed, {pulled} pulled, "
                f"{failures} failed steps"
            ),
            details={"pushed": pushed, "pulled": pulled, "failures": failures},
        )

    @staticmethod
    def sweep_skipped(reason: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SWEEP_SKIPPED,
            severity=SyncSeverity.DEBUG,
            description=f"Sync sweep skipped: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def sweep_aborted(error_message: str, correlation_id: UUID) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SWEEP_ABORTED,
            severity=SyncSeverity.ERROR,
            correlation_id=correlation_id,
            description="Sync sweep aborted",
            error_message=error_message,
        )

    @staticmethod
    def push_completed(
        collection: str,
        count: int,
        correlation_id: UUID,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.PUSH_COMPLETED,
            collection=collection,
            correlation_id=correlation_id,
            description=f"Pushed {count} pending {collection} records",
            details={"count": count},
        )

    @staticmethod
    def push_failed(
        collection: str,
        count: int,
        error_message: str,
        correlation_id: UUID,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.PUSH_FAILED,
            severity=SyncSeverity.ERROR,
            collection=collection,
            correlation_id=correlation_id,
            description=f"Push of {count} {collection} records failed, will retry",
            details={"count": count},
            error_message=error_message,
        )

    @staticmethod
    def pull_completed(
        collection: str,
        received: int,
        applied: int,
        since: datetime,
        correlation_id: UUID,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.PULL_COMPLETED,
            collection=collection,
            correlation_id=correlation_id,
            description=f"Pulled {received} {collection} records, {applied} applied",
            details={
                "received": received,
                "applied": applied,
                "since": since.isoformat(),
            },
        )

    @staticmethod
    def pull_failed(
        collection: str,
        error_message: str,
        correlation_id: UUID,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.PULL_FAILED,
            severity=SyncSeverity.ERROR,
            collection=collection,
            correlation_id=correlation_id,
            description=f"Pull of {collection} failed",
            error_message=error_message,
        )

    @staticmethod
    def record_rejected(
        collection: str,
        record_id: Optional[str],
        error_message: str,
        correlation_id: UUID,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.RECORD_REJECTED,
            severity=SyncSeverity.WARNING,
            collection=collection,
            correlation_id=correlation_id,
            description=f"Remote {collection} record rejected: {_clip(record_id)}",
            details={"record_id": _clip(record_id)},
            error_message=error_message[:500],
        )

    @staticmethod
    def store_reset(reason: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.STORE_RESET,
            severity=SyncSeverity.WARNING,
            description=f"Local store reset: {reason}",
            details={"reason": reason},
        )
