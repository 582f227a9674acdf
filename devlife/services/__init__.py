"""Services package."""

from devlife.services.crypto import (
    Cipher,
    CryptoError,
    DecryptionError,
    FernetCipher,
    derive_key,
)
from devlife.services.storage import (
    AuthProvider,
    ConnectionError,
    CorruptSnapshotError,
    FileStorage,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    InMemoryRemoteStore,
    MemoryStorage,
    NotFoundError,
    PersistentStorage,
    RemoteStore,
    RemoteStoreError,
    StaticAuthProvider,
    StorageError,
)

__all__ = [
    # Crypto
    "Cipher",
    "CryptoError",
    "DecryptionError",
    "FernetCipher",
    "derive_key",
    # Storage services
    "AuthProvider",
    "ConnectionError",
    "CorruptSnapshotError",
    "FileStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "InMemoryRemoteStore",
    "MemoryStorage",
    "NotFoundError",
    "PersistentStorage",
    "RemoteStore",
    "RemoteStoreError",
    "StaticAuthProvider",
    "StorageError",
]
