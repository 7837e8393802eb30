"""
Connector API routes — OAuth initiate/callback, list connections, disconnect.

Route prefix: /api
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import SESSION_USER_KEY, db_session, get_current_user, get_current_user_id
from config.settings import config
from connectors.base import OAuthFlowError
from connectors.registry import ConnectorRegistry
from connectors.state import (
    InvalidStateError,
    create_state,
    peek_nonce,
    pop_flow,
    stash_flow,
    verify_state,
)
from connectors.token_manager import (
    create_simulated_connections,
    disconnect_service,
    get_user_connections,
    store_grant,
)
from database.models import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["connectors"])


def _settings_redirect(**params: str) -> RedirectResponse:
    """302 back to the client's settings page with a success/error flag."""
    url = f"{config.settings_page_path}?{urlencode(params)}"
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


def _get_connector(provider: str):
    connector = ConnectorRegistry().get(provider)
    if connector is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Provider '{provider}' not found",
        )
    return connector


# ── Routes ─────────────────────────────────────────────────────────────


@router.get("/auth/providers")
async def list_providers() -> list[dict]:
    """
    List available providers and whether they run real OAuth.
    No auth required — used by the settings page to label buttons.
    """
    return ConnectorRegistry().list_providers()


@router.get("/auth/{provider}")
async def start_oauth(
    provider: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(db_session),
) -> RedirectResponse:
    """
    Start the authorization-code flow for ``provider``.

    Without client credentials the provider's connections are simulated
    and the browser goes straight back to the settings page.
    """
    connector = _get_connector(provider)

    if not connector.is_configured():
        await create_simulated_connections(session, user.id, connector, user.email)
        await session.commit()
        return _settings_redirect(success=provider)

    state, nonce = create_state(user.id, provider)
    await stash_flow(session, nonce, user.id, provider)
    await session.commit()
    logger.info("OAuth flow started: user=%s provider=%s", user.id, provider)
    return RedirectResponse(connector.get_auth_url(state), status_code=status.HTTP_302_FOUND)


@router.get("/auth/{provider}/callback")
async def oauth_callback(
    provider: str,
    request: Request,
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    session: AsyncSession = Depends(db_session),
) -> RedirectResponse:
    """
    OAuth callback — the provider redirects here after consent.

    Every failure becomes a redirect to ``/settings?error=…``; the reason is
    only logged. The pending flow is consumed whatever the outcome.
    """
    connector = _get_connector(provider)
    flow = await pop_flow(session, peek_nonce(state))
    await session.commit()

    if error:
        logger.warning("OAuth provider %s returned error: %s", provider, error)
        return _settings_redirect(error="access_denied")

    if not state or flow is None:
        logger.warning("OAuth callback for %s without a matching pending flow", provider)
        return _settings_redirect(error="invalid_state")

    try:
        payload = verify_state(state, provider)
    except InvalidStateError as exc:
        logger.warning("OAuth callback for %s rejected: %s", provider, exc)
        return _settings_redirect(error="invalid_state")

    user_id = payload["user_id"]
    if flow.get("user_id") != user_id or flow.get("provider") != provider:
        logger.warning("OAuth callback for %s: state does not match the pending flow", provider)
        return _settings_redirect(error="invalid_state")

    browser_user = request.session.get(SESSION_USER_KEY)
    if browser_user is not None and int(browser_user) != user_id:
        logger.warning("OAuth callback for %s completed in another user's browser session", provider)
        return _settings_redirect(error="invalid_state")

    if not code:
        logger.warning("OAuth callback for %s without an authorization code", provider)
        return _settings_redirect(error="missing_code")

    try:
        token_data = await connector.handle_callback(code)
    except OAuthFlowError as exc:
        logger.error("OAuth callback failed for %s (user %s): %s", provider, user_id, exc)
        return _settings_redirect(error=exc.reason)

    await store_grant(session, user_id, connector, token_data)
    await session.commit()

    logger.info("OAuth connected: user=%s provider=%s account=%s", user_id, provider, token_data["email"])
    return _settings_redirect(success=provider)


@router.get("/connections")
async def list_connections(
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """List all connections for the authenticated user."""
    return {"connections": await get_user_connections(session, user_id)}


async def _disconnect(session: AsyncSession, user_id: int, service: str) -> Dict[str, str]:
    if service not in ConnectorRegistry().known_services():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown service '{service}'",
        )
    try:
        removed = await disconnect_service(session, user_id, service)
        await session.commit()
    except SQLAlchemyError as exc:
        logger.error("Disconnect of %s failed for user %s: %s", service, user_id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to disconnect service",
        )
    if not removed:
        return {"message": f"{service} was not connected"}
    return {"message": f"{service} disconnected successfully"}


@router.post("/auth/disconnect/{service}")
async def disconnect(
    service: str,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, str]:
    """Disconnect ``service`` and its paired service of the same provider."""
    return await _disconnect(session, user_id, service)


@router.delete("/connections/{service}")
async def delete_connection(
    service: str,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, str]:
    return await _disconnect(session, user_id, service)
