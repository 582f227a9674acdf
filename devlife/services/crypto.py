"""
Vault Encryption

The store treats vault secrets as opaque ciphertext. This module is the
encrypt/decrypt capability that produces and reads that ciphertext.

Key derivation: PBKDF2-HMAC-SHA256 over a passphrase and salt,
100 000 iterations by default, feeding a Fernet (AES-128-CBC + HMAC) key.
"""

import base64
from abc import ABC, abstractmethod
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from devlife.config import VaultSettings, get_settings


class CryptoError(Exception):
    """Base exception for vault encryption."""
    pass


class DecryptionError(CryptoError):
    """Ciphertext is malformed or was produced with another key."""
    pass


class Cipher(ABC):
    """Encrypt/decrypt capability for vault secrets."""

    @abstractmethod
    def encrypt(self, plaintext: str) -> str:
        pass

    @abstractmethod
    def decrypt(self, ciphertext: str) -> str:
        """
        Raises:
            DecryptionError: If the ciphertext cannot be decrypted
        """
        pass


def derive_key(passphrase: str, salt: str, iterations: int = 100_000) -> bytes:
    """Derive a urlsafe-base64 Fernet key from a passphrase."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt.encode("utf-8"),
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))


class FernetCipher(Cipher):
    """Fernet cipher keyed from a passphrase."""

    def __init__(self, key: bytes):
        self._fernet = Fernet(key)

    @classmethod
    def from_passphrase(
        cls,
        passphrase: str,
        salt: str = "devlife-salt",
        iterations: int = 100_000,
    ) -> "FernetCipher":
        return cls(derive_key(passphrase, salt, iterations))

    @classmethod
    def from_settings(cls, settings: Optional[VaultSettings] = None) -> "FernetCipher":
        settings = settings or get_settings().vault
        return cls.from_passphrase(
            settings.passphrase.get_secret_value(),
            salt=settings.salt,
            iterations=settings.iterations,
        )

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise DecryptionError("Vault secret could not be decrypted") from e
