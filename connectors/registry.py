"""
ConnectorRegistry — provides access to all OAuth connectors and the
service ↔ provider mapping.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from connectors.base import BaseConnector
from connectors.google import GoogleConnector
from connectors.microsoft import MicrosoftConnector

logger = logging.getLogger(__name__)

# ── All known connectors; add new ones here ─────────────────────────────

_ALL_CONNECTORS: List[BaseConnector] = [
    GoogleConnector(),
    MicrosoftConnector(),
]


class ConnectorRegistry:
    """
    Singleton registry for all OAuth connectors.

    Unlike a plugin registry, unconfigured connectors stay registered:
    initiating their flow runs the simulated-connection path instead.
    """

    _instance: Optional["ConnectorRegistry"] = None

    def __new__(cls) -> "ConnectorRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._connectors = {c.provider_name: c for c in _ALL_CONNECTORS}
            cls._instance._by_service = {
                service: c for c in _ALL_CONNECTORS for service in c.services
            }
        return cls._instance

    def log_status(self) -> None:
        """Log which providers run real OAuth and which are simulated."""
        for conn in self._connectors.values():
            if conn.is_configured():
                logger.info("Connector ready: %s (%s)", conn.display_name, conn.provider_name)
            else:
                logger.warning(
                    "Connector %s not configured (missing client_id/secret) — "
                    "connections will be simulated",
                    conn.provider_name,
                )

    def get(self, provider: str) -> Optional[BaseConnector]:
        """Get a connector by provider slug."""
        return self._connectors.get(provider)

    def for_service(self, service: str) -> Optional[BaseConnector]:
        """Get the connector whose grant backs ``service``."""
        return self._by_service.get(service)

    def known_services(self) -> List[str]:
        return list(self._by_service.keys())

    def list_providers(self) -> List[Dict[str, object]]:
        """Return info about all available connectors."""
        return [
            {
                "provider": c.provider_name,
                "display_name": c.display_name,
                "services": list(c.services),
                "configured": c.is_configured(),
            }
            for c in self._connectors.values()
        ]
