"""
Storage Services Package

Provides abstract interfaces and concrete implementations for local
persistence and the remote replica. Google Sheets is the bundled remote
backend, but sync logic only depends on the interfaces.
"""

from devlife.services.storage.interface import (
    AuthProvider,
    ConnectionError,
    CorruptSnapshotError,
    NotFoundError,
    PersistentStorage,
    RemoteStore,
    RemoteStoreError,
    StaticAuthProvider,
    StorageError,
)
from devlife.services.storage.file_storage import FileStorage
from devlife.services.storage.memory import InMemoryRemoteStore, MemoryStorage
from devlife.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
)

__all__ = [
    # Interfaces
    "AuthProvider",
    "PersistentStorage",
    "RemoteStore",
    "StaticAuthProvider",
    # Exceptions
    "ConnectionError",
    "CorruptSnapshotError",
    "NotFoundError",
    "RemoteStoreError",
    "StorageError",
    # Local implementations
    "FileStorage",
    "InMemoryRemoteStore",
    "MemoryStorage",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
]
