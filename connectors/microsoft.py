"""
MicrosoftConnector — OAuth2 (Microsoft identity platform v2.0) for
Outlook mail + Outlook calendar via Microsoft Graph.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from config.settings import config
from connectors.base import DEFAULT_TOKEN_LIFETIME, BaseConnector

logger = logging.getLogger(__name__)

_LOGIN_BASE = "https://login.microsoftonline.com"
GRAPH_API = "https://graph.microsoft.com/v1.0"


class MicrosoftConnector(BaseConnector):
    """OAuth2 connector for Microsoft 365 / Outlook.com accounts."""

    @property
    def provider_name(self) -> str:
        return "microsoft"

    @property
    def display_name(self) -> str:
        return "Microsoft"

    @property
    def mail_service(self) -> str:
        return "outlook"

    @property
    def calendar_service(self) -> str:
        return "outlook_calendar"

    @property
    def scopes(self) -> List[str]:
        return [
            "openid",
            "email",
            "profile",
            "offline_access",   # gets refresh_token
            "User.Read",
            "Mail.ReadWrite",
            "Mail.Send",
            "Calendars.ReadWrite",
        ]

    def _endpoint(self, name: str) -> str:
        return f"{_LOGIN_BASE}/{config.microsoft_tenant}/oauth2/v2.0/{name}"

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": config.microsoft_client_id,
            "redirect_uri": self.redirect_uri(),
            "response_type": "code",
            "response_mode": "query",
            "scope": " ".join(self.scopes),
            "state": state,
        }
        return f"{self._endpoint('authorize')}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                self._endpoint("token"),
                data={
                    "code": code,
                    "client_id": config.microsoft_client_id,
                    "client_secret": config.microsoft_client_secret,
                    "redirect_uri": self.redirect_uri(),
                    "grant_type": "authorization_code",
                    "scope": " ".join(self.scopes),
                },
            )
            resp.raise_for_status()
            return resp.json()

    async def fetch_account_email(self, access_token: str) -> Optional[str]:
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                f"{GRAPH_API}/me",
                headers={"Authorization": f"Bearer {access_token}"},
                params={"$select": "mail,userPrincipalName"},
            )
            resp.raise_for_status()
            profile = resp.json()
        # Personal accounts often have no ``mail``; the UPN is the sign-in address.
        return profile.get("mail") or profile.get("userPrincipalName")

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                self._endpoint("token"),
                data={
                    "client_id": config.microsoft_client_id,
                    "client_secret": config.microsoft_client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                    "scope": " ".join(self.scopes),
                },
            )
            resp.raise_for_status()
            data = resp.json()

        return {
            "access_token": data["access_token"],
            "expires_in": data.get("expires_in", DEFAULT_TOKEN_LIFETIME),
            # Microsoft rotates refresh tokens on every refresh
            "refresh_token": data.get("refresh_token"),
        }
