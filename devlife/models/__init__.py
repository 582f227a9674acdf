"""
Data Models Package

This package contains all Pydantic models used by DevLife.
Everything the store persists or the sync engine reports conforms to these schemas.
"""

from devlife.models.records import (
    RECORD_TYPES,
    AppState,
    BaseRecord,
    Collection,
    FinanceEntry,
    FinanceType,
    Priority,
    Project,
    ProjectStatus,
    RepeatType,
    StoreSnapshot,
    SyncStatus,
    Task,
    VaultEntry,
    new_record_id,
    parse_timestamp,
    utc_now,
)
from devlife.models.sync_event import (
    SyncEvent,
    SyncEventBuilder,
    SyncEventType,
    SyncSeverity,
)

__all__ = [
    # Record models
    "RECORD_TYPES",
    "AppState",
    "BaseRecord",
    "Collection",
    "FinanceEntry",
    "FinanceType",
    "Priority",
    "Project",
    "ProjectStatus",
    "RepeatType",
    "StoreSnapshot",
    "SyncStatus",
    "Task",
    "VaultEntry",
    "new_record_id",
    "parse_timestamp",
    "utc_now",
    # Sync event models
    "SyncEvent",
    "SyncEventBuilder",
    "SyncEventType",
    "SyncSeverity",
]
