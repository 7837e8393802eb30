"""
BaseConnector — abstract interface for all OAuth2 connectors.

Every provider (Google, Microsoft, …) subclasses this and implements the
token-endpoint and identity calls. One provider grant backs two local
services: a mail service and a calendar service.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import httpx

from config.settings import config

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIFETIME = 3600  # seconds, used when the provider omits expires_in


class OAuthFlowError(Exception):
    """
    A step of the authorization-code flow failed.

    ``reason`` is a short machine code that ends up in the
    ``/settings?error=…`` redirect; the message is for server logs only.
    """

    def __init__(self, reason: str, message: str = "") -> None:
        super().__init__(message or reason)
        self.reason = reason


class BaseConnector(ABC):
    """Abstract base for all OAuth2 connectors."""

    # ── Identity ────────────────────────────────────────────────────────
    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique slug used in URLs: 'google', 'microsoft'."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        ...

    @property
    @abstractmethod
    def mail_service(self) -> str:
        """Service name of the mail side of the grant ('gmail', 'outlook')."""
        ...

    @property
    @abstractmethod
    def calendar_service(self) -> str:
        """Service name of the calendar side of the grant."""
        ...

    @property
    @abstractmethod
    def scopes(self) -> List[str]:
        """OAuth scopes requested for the combined mail + calendar grant."""
        ...

    @property
    def services(self) -> Tuple[str, str]:
        return (self.mail_service, self.calendar_service)

    def paired_service(self, service: str) -> Optional[str]:
        """Return the other half of the grant for ``service``."""
        if service == self.mail_service:
            return self.calendar_service
        if service == self.calendar_service:
            return self.mail_service
        return None

    # ── OAuth flow ──────────────────────────────────────────────────────

    def redirect_uri(self) -> str:
        return f"{config.oauth_redirect_base.rstrip('/')}/api/auth/{self.provider_name}/callback"

    @abstractmethod
    def get_auth_url(self, state: str) -> str:
        """
        Build the provider's OAuth2 authorization URL.

        Parameters
        ----------
        state : str
            Signed state string (encodes user_id, provider and a per-flow nonce).
        """
        ...

    @abstractmethod
    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """
        Exchange an authorization code at the token endpoint.

        Returns the provider's raw token response
        (``access_token``, ``refresh_token``, ``expires_in``, …).
        """
        ...

    @abstractmethod
    async def fetch_account_email(self, access_token: str) -> Optional[str]:
        """Return the email address of the account that granted access."""
        ...

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """
        Refresh an expired access token.

        Returns
        -------
        dict with keys: access_token, expires_in, (optional) refresh_token
        """
        ...

    async def revoke_token(self, access_token: str) -> bool:
        """
        Revoke the token at the provider (optional).
        Returns True on success, False if provider doesn't support revocation.
        """
        return False

    async def handle_callback(self, code: str) -> Dict[str, Any]:
        """
        Run the exchange + identity steps of the callback.

        Returns
        -------
        dict with keys: access_token, refresh_token, expires_in, email

        Raises
        ------
        OAuthFlowError
            ``token_exchange_failed``, ``missing_tokens`` or ``missing_email``.
        """
        try:
            token_data = await self.exchange_code(code)
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise OAuthFlowError("token_exchange_failed", f"{self.provider_name} code exchange failed: {exc}") from exc

        access_token = token_data.get("access_token")
        if not access_token:
            raise OAuthFlowError("missing_tokens", f"{self.provider_name} token response had no access_token")

        try:
            email = await self.fetch_account_email(access_token)
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise OAuthFlowError("missing_email", f"{self.provider_name} identity lookup failed: {exc}") from exc
        if not email:
            raise OAuthFlowError("missing_email", f"{self.provider_name} identity response had no email")

        return {
            "access_token": access_token,
            "refresh_token": token_data.get("refresh_token"),
            "expires_in": int(token_data.get("expires_in") or DEFAULT_TOKEN_LIFETIME),
            "email": email,
        }

    # ── Helpers ─────────────────────────────────────────────────────────

    def is_configured(self) -> bool:
        """
        Return True if client credentials are present. Unconfigured
        providers fall back to the simulated connection path.
        """
        client_id, client_secret = config.provider_credentials(self.provider_name)
        return bool(client_id and client_secret)
