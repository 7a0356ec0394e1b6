"""Encryption utilities for stored platform credentials"""
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from clipdesk.core.config import settings

logger = logging.getLogger(__name__)

ENCRYPTION_KEY_STR = settings.ENCRYPTION_KEY

if not ENCRYPTION_KEY_STR:
    raise ValueError(
        "ENCRYPTION_KEY environment variable is required. "
        "Generate one with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
    )

try:
    cipher = Fernet(ENCRYPTION_KEY_STR.encode())
except ValueError as e:
    raise ValueError(
        f"Invalid ENCRYPTION_KEY format: {e}. "
        "The key must be 32 bytes, base64-encoded (URL-safe), resulting in 44 characters."
    )


def encrypt(plaintext: Optional[str]) -> Optional[str]:
    """Encrypt a string; empty values are stored as NULL"""
    if not plaintext:
        return None
    return cipher.encrypt(plaintext.encode()).decode()


def decrypt(ciphertext: Optional[str]) -> Optional[str]:
    """Decrypt a string

    Raises:
        ValueError: If decryption fails (invalid token, wrong key, corrupted data)
    """
    if not ciphertext:
        return None
    try:
        return cipher.decrypt(ciphertext.encode()).decode()
    except InvalidToken as e:
        logger.error(f"Decryption failed: {type(e).__name__}")
        raise ValueError(f"Decryption failed: {type(e).__name__}")
