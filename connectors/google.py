"""
GoogleConnector — OAuth2 web flow for Gmail + Google Calendar.

A single Google grant covers both the ``gmail`` and ``google_calendar``
services; the token pair is stored once per service.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from config.settings import config
from connectors.base import DEFAULT_TOKEN_LIFETIME, BaseConnector

logger = logging.getLogger(__name__)

# Google OAuth2 endpoints
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


class GoogleConnector(BaseConnector):
    """OAuth2 connector for Google (Gmail + Calendar)."""

    @property
    def provider_name(self) -> str:
        return "google"

    @property
    def display_name(self) -> str:
        return "Google"

    @property
    def mail_service(self) -> str:
        return "gmail"

    @property
    def calendar_service(self) -> str:
        return "google_calendar"

    @property
    def scopes(self) -> List[str]:
        return [
            "openid",
            "https://www.googleapis.com/auth/userinfo.email",
            "https://www.googleapis.com/auth/userinfo.profile",
            "https://www.googleapis.com/auth/gmail.readonly",
            "https://www.googleapis.com/auth/gmail.send",
            "https://www.googleapis.com/auth/gmail.modify",
            "https://www.googleapis.com/auth/calendar",
        ]

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": config.google_client_id,
            "redirect_uri": self.redirect_uri(),
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",       # gets refresh_token
            "prompt": "consent",            # force consent to always get refresh_token
            "include_granted_scopes": "true",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": config.google_client_id,
                    "client_secret": config.google_client_secret,
                    "redirect_uri": self.redirect_uri(),
                    "grant_type": "authorization_code",
                },
            )
            resp.raise_for_status()
            return resp.json()

    async def fetch_account_email(self, access_token: str) -> Optional[str]:
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            resp.raise_for_status()
            return resp.json().get("email")

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """Use refresh token to get a new access token."""
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": config.google_client_id,
                    "client_secret": config.google_client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
            resp.raise_for_status()
            data = resp.json()

        return {
            "access_token": data["access_token"],
            "expires_in": data.get("expires_in", DEFAULT_TOKEN_LIFETIME),
            "refresh_token": data.get("refresh_token"),
        }

    async def revoke_token(self, access_token: str) -> bool:
        """Revoke the token at Google."""
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    GOOGLE_REVOKE_URL,
                    params={"token": access_token},
                )
                return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.warning("Google token revocation failed: %s", exc)
            return False
