"""
Client handles returned by the token refresh gate.

``ProviderClient`` carries live credentials; ``SimulatedClient`` stands in
for a demo connection and must never be used for network calls. Callers
branch on ``handle.kind`` (or ``isinstance``) rather than comparing token
strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Union

import httpx
from google.oauth2.credentials import Credentials

from config.settings import config
from connectors.google import GOOGLE_TOKEN_URL


@dataclass
class ProviderClient:
    provider: str
    service: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    account_email: Optional[str] = None
    kind: str = field(default="oauth", init=False)

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def http_client(self, base_url: str = "") -> httpx.AsyncClient:
        """An ``httpx.AsyncClient`` pre-loaded with the bearer token."""
        return httpx.AsyncClient(base_url=base_url, headers=self.auth_headers())

    def google_credentials(self) -> Credentials:
        """``google-auth`` credentials for googleapiclient services."""
        return Credentials(
            token=self.access_token,
            refresh_token=self.refresh_token,
            token_uri=GOOGLE_TOKEN_URL,
            client_id=config.google_client_id or None,
            client_secret=config.google_client_secret or None,
        )


@dataclass
class SimulatedClient:
    provider: str
    service: str
    account_email: Optional[str] = None
    kind: str = field(default="simulated", init=False)


ClientHandle = Union[ProviderClient, SimulatedClient]
