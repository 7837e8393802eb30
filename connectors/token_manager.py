"""
Token manager — store / load / refresh / remove per-user OAuth connections.

``get_client_handle`` is the single interface the email and calendar
services use to get a usable client for a user + service combination.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from connectors.base import DEFAULT_TOKEN_LIFETIME, BaseConnector
from connectors.encryption import decrypt_token, encrypt_token
from connectors.handles import ClientHandle, ProviderClient, SimulatedClient
from connectors.registry import ConnectorRegistry
from database.models import Connection, ConnectionKind
from utils.dates import ensure_utc, utcnow

logger = logging.getLogger(__name__)

SIMULATED_ACCESS_TOKEN = "simulated-access-token"
SIMULATED_REFRESH_TOKEN = "simulated-refresh-token"


# ── Reads ────────────────────────────────────────────────────────────────


async def get_connection(session: AsyncSession, user_id: int, service: str) -> Optional[Connection]:
    result = await session.execute(
        select(Connection).where(
            Connection.user_id == user_id,
            Connection.service == service,
        )
    )
    return result.scalar_one_or_none()


async def list_connections(session: AsyncSession, user_id: int) -> List[Connection]:
    result = await session.execute(
        select(Connection).where(Connection.user_id == user_id).order_by(Connection.id)
    )
    return list(result.scalars().all())


def serialize_connection(conn: Connection) -> Dict[str, Any]:
    """
    Client-facing view of a connection.

    Real tokens are never returned; simulated connections expose their
    sentinel access token so the client can label them as demo links.
    """
    registry = ConnectorRegistry()
    connector = registry.for_service(conn.service)
    expiry = ensure_utc(conn.token_expiry)
    created = ensure_utc(conn.created_at)
    return {
        "id": conn.id,
        "userId": conn.user_id,
        "service": conn.service,
        "provider": connector.provider_name if connector else None,
        "kind": conn.kind,
        "email": conn.email,
        "accessToken": SIMULATED_ACCESS_TOKEN if conn.is_simulated else None,
        "tokenExpiry": expiry.isoformat() if expiry else None,
        "createdAt": created.isoformat() if created else None,
    }


async def get_user_connections(session: AsyncSession, user_id: int) -> List[Dict[str, Any]]:
    """Return all connections for a user (no tokens exposed)."""
    return [serialize_connection(c) for c in await list_connections(session, user_id)]


async def find_connection(session: AsyncSession, user_id: int, services: tuple[str, ...]) -> Optional[Connection]:
    """Return the first of ``services`` the user has connected, if any."""
    for service in services:
        conn = await get_connection(session, user_id, service)
        if conn is not None:
            return conn
    return None


# ── Writes ───────────────────────────────────────────────────────────────


async def store_connection(
    session: AsyncSession,
    user_id: int,
    service: str,
    token_data: Dict[str, Any],
) -> Connection:
    """
    Insert or update the (user, service) connection from a token grant.

    Parameters
    ----------
    token_data : dict
        Output of ``connector.handle_callback()``: access_token,
        refresh_token, expires_in, email.
    """
    expires_at = utcnow() + timedelta(seconds=int(token_data.get("expires_in") or DEFAULT_TOKEN_LIFETIME))
    refresh_token = token_data.get("refresh_token")

    existing = await get_connection(session, user_id, service)
    if existing:
        existing.kind = ConnectionKind.OAUTH.value
        existing.access_token = encrypt_token(token_data["access_token"])
        # Providers only send a refresh token on first consent; keep the old one otherwise.
        if refresh_token:
            existing.refresh_token = encrypt_token(refresh_token)
        existing.token_expiry = expires_at
        existing.email = token_data.get("email") or existing.email
        conn = existing
        logger.info("Updated %s connection for user %s", service, user_id)
    else:
        conn = Connection(
            user_id=user_id,
            service=service,
            kind=ConnectionKind.OAUTH.value,
            access_token=encrypt_token(token_data["access_token"]),
            refresh_token=encrypt_token(refresh_token) if refresh_token else None,
            token_expiry=expires_at,
            email=token_data.get("email"),
        )
        session.add(conn)
        logger.info("Created %s connection for user %s", service, user_id)

    await session.flush()
    return conn


async def store_grant(
    session: AsyncSession,
    user_id: int,
    connector: BaseConnector,
    token_data: Dict[str, Any],
) -> List[Connection]:
    """Persist one connection per sub-service of the provider grant."""
    return [
        await store_connection(session, user_id, service, token_data)
        for service in connector.services
    ]


async def create_simulated_connections(
    session: AsyncSession,
    user_id: int,
    connector: BaseConnector,
    email: Optional[str],
) -> List[Connection]:
    """
    Fabricate a successful grant for an unconfigured provider.

    Only missing services are created; existing rows are left untouched.
    """
    expires_at = utcnow() + timedelta(seconds=DEFAULT_TOKEN_LIFETIME)
    created: List[Connection] = []
    for service in connector.services:
        if await get_connection(session, user_id, service) is not None:
            continue
        conn = Connection(
            user_id=user_id,
            service=service,
            kind=ConnectionKind.SIMULATED.value,
            access_token=encrypt_token(SIMULATED_ACCESS_TOKEN),
            refresh_token=encrypt_token(SIMULATED_REFRESH_TOKEN),
            token_expiry=expires_at,
            email=email,
        )
        session.add(conn)
        created.append(conn)
    await session.flush()
    if created:
        logger.info(
            "Simulated %s connection(s) %s for user %s",
            connector.provider_name,
            [c.service for c in created],
            user_id,
        )
    return created


async def disconnect_service(session: AsyncSession, user_id: int, service: str) -> bool:
    """
    Delete the (user, service) connection and its paired service.

    The paired removal is best-effort: failures are logged, not raised.
    Returns True if the requested service was connected.
    """
    registry = ConnectorRegistry()
    connector = registry.for_service(service)

    removed = False
    conn = await get_connection(session, user_id, service)
    if conn is not None:
        if connector is not None and not conn.is_simulated:
            await connector.revoke_token(decrypt_token(conn.access_token))
        await session.delete(conn)
        await session.flush()
        removed = True
        logger.info("Disconnected %s for user %s", service, user_id)
    else:
        logger.info("Disconnect requested for %s but user %s had no connection", service, user_id)

    paired = connector.paired_service(service) if connector else None
    if paired:
        try:
            paired_conn = await get_connection(session, user_id, paired)
            if paired_conn is not None:
                await session.delete(paired_conn)
                await session.flush()
                logger.info("Disconnected paired %s for user %s", paired, user_id)
        except SQLAlchemyError as exc:
            logger.warning("Could not remove paired %s connection for user %s: %s", paired, user_id, exc)

    return removed


# ── Refresh gate ─────────────────────────────────────────────────────────


def _provider_handle(conn: Connection, provider: str) -> ProviderClient:
    return ProviderClient(
        provider=provider,
        service=conn.service,
        access_token=decrypt_token(conn.access_token),
        refresh_token=decrypt_token(conn.refresh_token),
        expires_at=ensure_utc(conn.token_expiry),
        account_email=conn.email,
    )


async def _same_grant_rows(
    session: AsyncSession,
    conn: Connection,
    connector: BaseConnector,
    refresh_token: str,
) -> List[Connection]:
    """Paired rows that were stored from the same grant as ``conn``."""
    paired = connector.paired_service(conn.service)
    if not paired:
        return []
    other = await get_connection(session, conn.user_id, paired)
    if other is None or other.is_simulated:
        return []
    if decrypt_token(other.refresh_token) != refresh_token:
        return []
    return [other]


async def get_client_handle(
    session: AsyncSession,
    user_id: int,
    service: str,
) -> Optional[ClientHandle]:
    """
    Get a ready-to-use client for the user + service.

    1. Look up the connection; ``None`` if not connected.
    2. Simulated connections get a ``SimulatedClient`` placeholder.
    3. If the stored expiry has passed, refresh once and persist the new
       token before returning. A failed refresh is logged and the stale
       handle is returned.

    No locking: concurrent callers may each refresh; the last write wins.
    """
    conn = await get_connection(session, user_id, service)
    if conn is None:
        return None

    registry = ConnectorRegistry()
    connector = registry.for_service(service)
    provider = connector.provider_name if connector else "unknown"

    if conn.is_simulated:
        return SimulatedClient(provider=provider, service=service, account_email=conn.email)

    handle = _provider_handle(conn, provider)
    if handle.expires_at is None or handle.expires_at > utcnow():
        return handle

    if not handle.refresh_token:
        logger.warning("%s token for user %s expired and no refresh token is stored", service, user_id)
        return handle
    if connector is None:
        logger.error("No connector for service %s", service)
        return handle

    try:
        refreshed = await connector.refresh_access_token(handle.refresh_token)
    except (httpx.HTTPError, KeyError, ValueError) as exc:
        logger.error("Token refresh failed for %s/%s: %s", service, user_id, exc)
        return handle

    expires_at = utcnow() + timedelta(seconds=int(refreshed.get("expires_in") or DEFAULT_TOKEN_LIFETIME))
    rotated = refreshed.get("refresh_token")
    rows = [conn] + await _same_grant_rows(session, conn, connector, handle.refresh_token)
    for row in rows:
        row.access_token = encrypt_token(refreshed["access_token"])
        row.token_expiry = expires_at
        if rotated:
            row.refresh_token = encrypt_token(rotated)
    await session.commit()
    logger.info("Refreshed %s token for user %s", service, user_id)

    return ProviderClient(
        provider=provider,
        service=service,
        access_token=refreshed["access_token"],
        refresh_token=rotated or handle.refresh_token,
        expires_at=expires_at,
        account_email=conn.email,
    )
