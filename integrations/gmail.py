"""
Gmail adapter — google-api-python-client over a per-user OAuth token.

All sync ``googleapiclient`` calls are offloaded to a thread via
``asyncio.to_thread()`` so they never block the event loop.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from datetime import datetime, timezone
from email.mime.text import MIMEText
from typing import Any, Dict, List

from googleapiclient.discovery import build

from connectors.handles import ProviderClient

logger = logging.getLogger(__name__)


async def _build_service(client: ProviderClient):
    # Discovery does I/O, so it runs in a thread as well.
    return await asyncio.to_thread(
        build, "gmail", "v1", credentials=client.google_credentials(), cache_discovery=False
    )


def _decode_body(payload: Dict[str, Any]) -> str:
    if payload.get("body", {}).get("data"):
        return base64.urlsafe_b64decode(payload["body"]["data"]).decode(errors="replace")
    for part in payload.get("parts", []) or []:
        if part.get("mimeType") == "text/plain" and part.get("body", {}).get("data"):
            return base64.urlsafe_b64decode(part["body"]["data"]).decode(errors="replace")
    return ""


def parse_message(msg: Dict[str, Any]) -> Dict[str, Any]:
    """Normalise a Gmail API message resource."""
    payload = msg.get("payload", {})
    headers = {h["name"]: h["value"] for h in payload.get("headers", [])}
    labels = msg.get("labelIds", []) or []
    snippet = msg.get("snippet", "")
    body = _decode_body(payload)

    internal_ms = int(msg.get("internalDate") or 0)
    received_at = datetime.fromtimestamp(internal_ms / 1000, tz=timezone.utc)

    return {
        "message_id": msg.get("id"),
        "conversation_id": msg.get("threadId"),
        "sender": headers.get("From", ""),
        "recipient": headers.get("To", ""),
        "subject": headers.get("Subject", ""),
        "snippet": snippet,
        "body": body[:5000] if body else snippet,
        "received_at": received_at,
        "is_read": "UNREAD" not in labels,
        "labels": [label.lower() for label in labels],
    }


async def list_messages(client: ProviderClient, max_results: int = 20) -> List[Dict[str, Any]]:
    """Fetch the most recent inbox messages."""
    service = await _build_service(client)

    def _fetch() -> List[Dict[str, Any]]:
        listing = (
            service.users()
            .messages()
            .list(userId="me", labelIds=["INBOX"], maxResults=max_results)
            .execute()
        )
        return [
            service.users().messages().get(userId="me", id=ref["id"], format="full").execute()
            for ref in listing.get("messages", [])
        ]

    messages = await asyncio.to_thread(_fetch)
    logger.debug("Fetched %d Gmail messages for %s", len(messages), client.account_email)
    return [parse_message(m) for m in messages]


async def mark_read(client: ProviderClient, message_id: str) -> None:
    service = await _build_service(client)
    await asyncio.to_thread(
        service.users()
        .messages()
        .modify(userId="me", id=message_id, body={"removeLabelIds": ["UNREAD"]})
        .execute
    )


def build_raw_message(sender: str, to: str, subject: str, body: str) -> str:
    """Create a base64url-encoded RFC 2822 message."""
    mime = MIMEText(body, "plain")
    mime["to"] = to
    mime["subject"] = subject
    if sender:
        mime["from"] = sender
    return base64.urlsafe_b64encode(mime.as_bytes()).decode()


async def send_message(client: ProviderClient, to: str, subject: str, body: str) -> Dict[str, Any]:
    """Send a plain-text message; returns ``{id, threadId}``."""
    service = await _build_service(client)
    raw = build_raw_message(client.account_email or "", to, subject, body)
    sent = await asyncio.to_thread(
        service.users().messages().send(userId="me", body={"raw": raw}).execute
    )
    logger.info("Gmail message sent to %s (id=%s)", to, sent.get("id"))
    return {"id": sent.get("id"), "threadId": sent.get("threadId")}
