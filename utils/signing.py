"""
Compact signed payloads shared by API bearer tokens and OAuth ``state``.

Format: ``urlsafe_b64(json) + "." + hex(hmac_sha256)[:32]``. Every payload
carries an ``exp`` (unix seconds); ``unsign`` rejects expired ones.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from base64 import urlsafe_b64decode, urlsafe_b64encode
from typing import Any, Dict


class BadSignature(ValueError):
    """The payload is malformed, tampered with, or expired."""


def _digest(secret: str, raw: bytes) -> str:
    return hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()[:32]


def sign(payload: Dict[str, Any], secret: str, ttl_seconds: int) -> str:
    body = dict(payload, exp=int(time.time()) + ttl_seconds)
    raw = json.dumps(body, separators=(",", ":")).encode()
    return urlsafe_b64encode(raw).decode() + "." + _digest(secret, raw)


def decode_unverified(token: str) -> Dict[str, Any]:
    """Decode the payload without checking the signature or expiry."""
    parts = token.split(".", 1)
    if len(parts) != 2:
        raise BadSignature("bad format")
    try:
        payload = json.loads(urlsafe_b64decode(parts[0].encode()))
    except (ValueError, TypeError) as exc:
        raise BadSignature(f"undecodable payload: {exc}") from exc
    if not isinstance(payload, dict):
        raise BadSignature("payload is not an object")
    return payload


def unsign(token: str, secret: str) -> Dict[str, Any]:
    """Verify ``token`` and return its payload. Raises ``BadSignature``."""
    payload = decode_unverified(token)
    raw = urlsafe_b64decode(token.split(".", 1)[0].encode())
    if not hmac.compare_digest(token.split(".", 1)[1], _digest(secret, raw)):
        raise BadSignature("bad signature")
    if payload.get("exp", 0) < time.time():
        raise BadSignature("expired")
    return payload
