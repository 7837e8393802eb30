"""
connectors — OAuth connection lifecycle for external mail/calendar providers.

Provides:
  • OAuth2 auth-URL generation with signed, per-flow ``state``
  • Callback handling (code → token exchange → account email)
  • Per-user connection storage (one row per user + service) & refresh-on-expiry
  • Fernet encryption of tokens at rest
  • Simulated connections when a provider has no client credentials
  • Disconnect with paired-service cascade

Each provider (Google, Microsoft) is a subclass of BaseConnector.
"""
