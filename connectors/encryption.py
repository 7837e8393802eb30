"""
Token encryption — encrypt / decrypt OAuth tokens at rest.

Uses Fernet (AES-128-CBC + HMAC-SHA256) from the ``cryptography`` library.
The encryption key is loaded from ``config.token_encryption_key``
(env var: ``TOKEN_ENCRYPTION_KEY``).

If no key is configured, a key is derived from ``config.session_secret``
(with a startup warning) so tokens are never written as plaintext.
Generate a dedicated key with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

from __future__ import annotations

import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from config.settings import config

logger = logging.getLogger(__name__)

_fernet: Optional[Fernet] = None


def _derive_key(secret: str) -> bytes:
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())


def _get_fernet() -> Fernet:
    """Lazy-initialise the Fernet cipher once."""
    global _fernet
    if _fernet is not None:
        return _fernet

    key = config.token_encryption_key
    if key:
        _fernet = Fernet(key.encode() if isinstance(key, str) else key)
        logger.info("Token encryption enabled (Fernet, configured key)")
    else:
        logger.warning(
            "TOKEN_ENCRYPTION_KEY not set — deriving the token key from SESSION_SECRET. "
            "Set a dedicated key in production."
        )
        _fernet = Fernet(_derive_key(config.session_secret))
    return _fernet


def reset_cipher() -> None:
    """Drop the cached cipher (used when settings change at runtime, e.g. tests)."""
    global _fernet
    _fernet = None


def encrypt_token(plaintext: str) -> str:
    """
    Encrypt a token string for database storage.

    Returns the Fernet ciphertext (URL-safe base64).
    """
    return _get_fernet().encrypt(plaintext.encode()).decode()


def decrypt_token(ciphertext: Optional[str]) -> Optional[str]:
    """
    Decrypt a token string read from the database.

    Rows written before encryption was enabled are not valid Fernet tokens;
    they are returned unchanged.
    """
    if not ciphertext:
        return ciphertext
    try:
        return _get_fernet().decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.warning("Stored token is not Fernet ciphertext; treating it as legacy plaintext")
        return ciphertext
