"""
API Vault Service

Stores API keys encrypted. Plaintext only exists in the caller's hands:
it is encrypted before reaching the local store and decrypted on demand.
"""

from typing import Optional

from devlife.models.records import Collection, VaultEntry, new_record_id
from devlife.services.crypto import Cipher
from devlife.services.storage.interface import NotFoundError
from devlife.store import LocalStore


class VaultService:
    """Add, reveal, rotate and remove API keys."""

    def __init__(self, store: LocalStore, cipher: Cipher):
        self._store = store
        self._cipher = cipher

    def add_key(
        self,
        service_name: str,
        secret: str,
        expiry_date: str = "No Expiry",
        project_id: Optional[str] = None,
    ) -> VaultEntry:
        """Encrypt a secret and store it as a new vault entry."""
        if not service_name.strip():
            raise ValueError("Service name is required")
        if not secret:
            raise ValueError("Secret is required")

        return self._store.upsert(Collection.VAULT, {
            "id": new_record_id(),
            "service_name": service_name.strip(),
            "encrypted_key": self._cipher.encrypt(secret),
            "expiry_date": expiry_date,
            "project_id": project_id,
        })

    def reveal(self, entry_id: str) -> str:
        """
        Decrypt the secret of a live entry.

        Raises:
            NotFoundError: If there is no live entry with that id
            DecryptionError: If the ciphertext does not match the key
        """
        entry = self._get(entry_id)
        return self._cipher.decrypt(entry.encrypted_key)

    def rotate_key(self, entry_id: str, secret: str) -> VaultEntry:
        """Replace the secret of an entry, keeping its other fields."""
        self._get(entry_id)
        if not secret:
            raise ValueError("Secret is required")
        return self._store.upsert(Collection.VAULT, {
            "id": entry_id,
            "encrypted_key": self._cipher.encrypt(secret),
        })

    def remove(self, entry_id: str) -> None:
        self._store.delete(Collection.VAULT, entry_id)

    def _get(self, entry_id: str) -> VaultEntry:
        entry = self._store.vault.get(entry_id)
        if entry is None:
            raise NotFoundError(f"Vault entry not found: {entry_id}")
        return entry
