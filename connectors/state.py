"""
OAuth ``state`` tokens: per-flow CSRF correlation.

The state is a signed payload (``utils.signing``) carrying the user id,
the provider and a random nonce. The nonce is also recorded server-side
(``pending_oauth_flows``) so concurrent flows never overwrite each other
and a callback is accepted once, whatever cookie the browser replays.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import config
from database.models import PendingOAuthFlow
from utils.dates import ensure_utc
from utils.signing import BadSignature, decode_unverified, sign, unsign


class InvalidStateError(ValueError):
    """The state token is malformed, tampered with, or expired."""


def create_state(user_id: int, provider: str) -> tuple[str, str]:
    """Return ``(state, nonce)`` for a new flow."""
    nonce = secrets.token_urlsafe(16)
    state = sign(
        {"user_id": user_id, "provider": provider, "nonce": nonce},
        config.oauth_state_secret,
        config.oauth_state_ttl_seconds,
    )
    return state, nonce


def verify_state(state: str, provider: str) -> Dict[str, Any]:
    """Verify a state token and return its payload. Raises ``InvalidStateError``."""
    try:
        payload = unsign(state, config.oauth_state_secret)
    except BadSignature as exc:
        raise InvalidStateError(str(exc)) from exc
    if payload.get("provider") != provider:
        raise InvalidStateError("provider mismatch")
    return payload


# ── Pending flows ──────────────────────────────────────────────────────


def _stale_cutoff() -> datetime:
    return datetime.now(timezone.utc) - timedelta(seconds=config.oauth_state_ttl_seconds)


async def stash_flow(db: AsyncSession, nonce: str, user_id: int, provider: str) -> None:
    """Record a started flow server-side; abandoned flows past the TTL are dropped."""
    await db.execute(delete(PendingOAuthFlow).where(PendingOAuthFlow.created_at < _stale_cutoff()))
    db.add(PendingOAuthFlow(nonce=nonce, user_id=user_id, provider=provider))
    await db.flush()


async def pop_flow(db: AsyncSession, nonce: Optional[str]) -> Optional[Dict[str, Any]]:
    """Delete and return the pending flow for ``nonce`` (None if absent or stale)."""
    if not nonce:
        return None
    flow = await db.get(PendingOAuthFlow, nonce)
    if flow is None:
        return None
    await db.delete(flow)
    await db.flush()
    if ensure_utc(flow.created_at) < _stale_cutoff():
        return None
    return {"user_id": flow.user_id, "provider": flow.provider}


def peek_nonce(state: Optional[str]) -> Optional[str]:
    """Read the nonce from an unverified state so it can be cleared on failure."""
    if not state:
        return None
    try:
        nonce = decode_unverified(state).get("nonce")
    except BadSignature:
        return None
    return nonce if isinstance(nonce, str) else None
