"""
Bearer tokens for API clients (browsers use the session cookie).

Same signed-payload scheme as the OAuth ``state``, keyed with
``config.token_secret`` (env var: ``TOKEN_SECRET``).
"""

from __future__ import annotations

from fastapi import HTTPException, status

from config.settings import config
from utils.signing import BadSignature, sign, unsign


def create_token(user_id: int) -> str:
    return sign({"user_id": user_id, "typ": "api"}, config.token_secret, config.token_expiry_seconds)


def verify_token(token: str) -> int:
    """Return the ``user_id`` of a valid token; 401 otherwise."""
    try:
        payload = unsign(token, config.token_secret)
        if payload.get("typ") != "api":
            raise BadSignature("not an API token")
        return int(payload["user_id"])
    except (BadSignature, KeyError, TypeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid or expired token: {exc}",
        )
