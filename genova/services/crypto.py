"""
Encryption at rest for stored session tokens (Fernet).
Without ENCRYPTION_KEY (development) tokens are stored as given.
"""
from __future__ import annotations

import logging
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from genova.config import settings

logger = logging.getLogger(__name__)


class InvalidEncryptionKey(RuntimeError):
    """ENCRYPTION_KEY is set but is not a Fernet key."""


@lru_cache(maxsize=4)
def _cipher_for(key: str) -> Fernet:
    try:
        return Fernet(key.encode())
    except ValueError as e:
        raise InvalidEncryptionKey("ENCRYPTION_KEY must be a url-safe base64-encoded 32-byte key") from e


def token_cipher() -> Fernet | None:
    key = settings.encryption_key.strip()
    return _cipher_for(key) if key else None


def generate_key() -> str:
    """New key for ENCRYPTION_KEY."""
    return Fernet.generate_key().decode()


def encrypt_token(token: str) -> str:
    cipher = token_cipher()
    if cipher is None:
        return token
    return cipher.encrypt(token.encode()).decode()


def decrypt_token(stored: str) -> str | None:
    """
    Plaintext token, or None when it cannot be read with the configured key
    (key rotated since it was written, or the file was edited).
    """
    cipher = token_cipher()
    if cipher is None:
        return stored
    try:
        return cipher.decrypt(stored.encode()).decode()
    except InvalidToken:
        logger.warning("Stored token does not decrypt with the configured ENCRYPTION_KEY; ignoring it")
        return None
