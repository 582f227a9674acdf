"""Background synchronization package."""

from devlife.sync.engine import (
    CollectionSyncResult,
    PullResult,
    PushResult,
    SyncEngine,
    SyncReport,
)

__all__ = [
    "CollectionSyncResult",
    "PullResult",
    "PushResult",
    "SyncEngine",
    "SyncReport",
]
