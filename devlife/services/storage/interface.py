"""
Abstract Storage Interfaces

DESIGN DECISION: Everything outside the process is behind an interface.
This allows us to:
1. Swap the remote backend without touching sync logic
2. Use in-memory storage and remotes for testing
3. Keep the local store independent of where its bytes live

There are three collaborators:
- PersistentStorage: durable key -> bytes, used for the local snapshot
- RemoteStore: the per-principal remote replica of every collection
- AuthProvider: who is signed in, if anyone
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from devlife.models.records import Collection


class PersistentStorage(ABC):
    """
    Durable key-value byte store.

    Calls are synchronous: the local store must not return from a
    mutation before its snapshot write has been attempted.
    """

    @abstractmethod
    def load(self, key: str) -> Optional[bytes]:
        """
        Read the bytes saved under key.

        Returns:
            The stored bytes, or None if nothing was saved

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def save(self, key: str, data: bytes) -> None:
        """
        Durably replace the bytes saved under key.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """
        Erase key. Removing a missing key is not an error.

        Raises:
            StorageError: If the backend refuses the removal
        """
        pass


class RemoteStore(ABC):
    """
    Remote replica of the record collections.

    Records travel as JSON-ready dicts keyed by "id" and carry a
    "user_id" ownership key. Access control is the backend's concern.
    """

    @abstractmethod
    async def upsert_batch(
        self,
        collection: Collection,
        records: list[dict[str, Any]],
        conflict_key: str = "id",
    ) -> None:
        """
        Insert every record, replacing any existing one with the same key.

        Args:
            collection: Target collection
            records: Remote payloads
            conflict_key: Field identifying an existing record

        Raises:
            RemoteStoreError: If the batch was not accepted
        """
        pass

    @abstractmethod
    async def query_newer_than(
        self,
        collection: Collection,
        owner_id: str,
        timestamp: datetime,
    ) -> list[dict[str, Any]]:
        """
        Records owned by owner_id with updated_at strictly after timestamp.

        Raises:
            RemoteStoreError: If the query fails
        """
        pass


class AuthProvider(ABC):
    """Source of the authenticated principal that scopes sync."""

    @abstractmethod
    async def get_current_principal(self) -> Optional[str]:
        """
        Identifier of the signed-in principal.

        Returns:
            The principal id, or None when nobody is signed in
        """
        pass


class StaticAuthProvider(AuthProvider):
    """Auth provider with a fixed principal, switchable at runtime."""

    def __init__(self, principal_id: Optional[str] = None):
        self.principal_id = principal_id

    async def get_current_principal(self) -> Optional[str]:
        return self.principal_id

    def sign_out(self) -> None:
        self.principal_id = None


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class CorruptSnapshotError(StorageError):
    """Persisted snapshot could not be decoded."""
    pass


class RemoteStoreError(StorageError):
    """Remote store rejected or failed a request."""
    pass
