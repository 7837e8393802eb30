"""
Email service — local mailbox store, provider sync, sending, smart replies.

When a live mail connection exists, recent messages are pulled from the
provider into the local store before reads. Simulated connections only
ever touch the local store.
"""

from __future__ import annotations

import logging
import uuid
from email.utils import parseaddr
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from connectors.handles import ClientHandle, ProviderClient
from connectors.token_manager import find_connection, get_client_handle
from database.models import Email, SmartReply, User
from integrations import PROVIDER_ERRORS, gmail, outlook
from services import assistant
from services.errors import NotConnectedError, NotFoundError, UpstreamError
from utils.dates import utcnow

logger = logging.getLogger(__name__)

MAIL_SERVICES = ("gmail", "outlook")

_ADAPTERS = {
    "gmail": gmail,
    "outlook": outlook,
}

# Messages created here, not fetched from a provider.
LOCAL_MESSAGE_PREFIXES = ("sent-", "demo-")

_PRIORITY_SUBJECT_WORDS = ("urgent", "important")
_PRIORITY_SENDER_WORDS = ("boss", "ceo")


def is_priority_email(sender: Optional[str], subject: Optional[str]) -> bool:
    subject = (subject or "").lower()
    sender = (sender or "").lower()
    return any(w in subject for w in _PRIORITY_SUBJECT_WORDS) or any(
        w in sender for w in _PRIORITY_SENDER_WORDS
    )


async def _mail_handle(session: AsyncSession, user_id: int) -> Optional[ClientHandle]:
    conn = await find_connection(session, user_id, MAIL_SERVICES)
    if conn is None:
        return None
    return await get_client_handle(session, user_id, conn.service)


# ── Sync ─────────────────────────────────────────────────────────────────


async def sync_emails(
    session: AsyncSession,
    user_id: int,
    client: ProviderClient,
    max_results: int = 20,
) -> int:
    """Upsert the provider's most recent inbox messages by ``message_id``."""
    messages = await _ADAPTERS[client.service].list_messages(client, max_results)

    for msg in messages:
        result = await session.execute(
            select(Email).where(Email.user_id == user_id, Email.message_id == msg["message_id"])
        )
        email = result.scalar_one_or_none()
        if email is None:
            session.add(
                Email(
                    user_id=user_id,
                    is_priority=is_priority_email(msg["sender"], msg["subject"]),
                    **msg,
                )
            )
        else:
            email.is_read = msg["is_read"]
            email.labels = msg["labels"]
    await session.flush()

    logger.info("Synced %d %s messages for user %s", len(messages), client.service, user_id)
    return len(messages)


# ── Reads ────────────────────────────────────────────────────────────────


async def get_emails(session: AsyncSession, user_id: int, limit: Optional[int] = 10) -> List[Email]:
    """Most recent emails first. Provider sync failures fall back to the stored mailbox."""
    handle = await _mail_handle(session, user_id)
    if isinstance(handle, ProviderClient):
        try:
            await sync_emails(session, user_id, handle)
        except PROVIDER_ERRORS as exc:
            logger.warning("Email sync failed for user %s, serving stored emails: %s", user_id, exc)

    query = select(Email).where(Email.user_id == user_id).order_by(Email.received_at.desc())
    if limit:
        query = query.limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_email(session: AsyncSession, user_id: int, email_pk: int) -> Email:
    email = await session.get(Email, email_pk)
    if email is None or email.user_id != user_id:
        raise NotFoundError("Email not found")
    return email


# ── Writes ───────────────────────────────────────────────────────────────


async def mark_email_as_read(session: AsyncSession, user_id: int, email_pk: int) -> Email:
    email = await get_email(session, user_id, email_pk)
    if email.is_read:
        return email

    handle = await _mail_handle(session, user_id)
    if isinstance(handle, ProviderClient) and not email.message_id.startswith(LOCAL_MESSAGE_PREFIXES):
        try:
            await _ADAPTERS[handle.service].mark_read(handle, email.message_id)
        except PROVIDER_ERRORS as exc:
            logger.warning("Could not mark %s read at %s: %s", email.message_id, handle.service, exc)

    email.is_read = True
    await session.flush()
    return email


async def send_email(session: AsyncSession, user_id: int, to: str, subject: str, body: str) -> Email:
    """
    Send through the connected mail provider and record the message locally
    with the ``sent`` label. Requires a mail connection.
    """
    handle = await _mail_handle(session, user_id)
    if handle is None:
        raise NotConnectedError("No email service connected")

    message_id = None
    conversation_id = None
    if isinstance(handle, ProviderClient):
        try:
            sent = await _ADAPTERS[handle.service].send_message(handle, to, subject, body)
        except PROVIDER_ERRORS as exc:
            raise UpstreamError(f"Failed to send email via {handle.service}: {exc}") from exc
        message_id, conversation_id = sent["id"], sent["threadId"]

    user = await session.get(User, user_id)
    email = Email(
        user_id=user_id,
        message_id=message_id or f"sent-{uuid.uuid4().hex}",
        conversation_id=conversation_id,
        sender=handle.account_email or user.email,
        recipient=to,
        subject=subject,
        body=body,
        snippet=body[:100],
        received_at=utcnow(),
        is_read=True,
        is_priority=False,
        labels=["sent"],
    )
    session.add(email)
    await session.flush()
    logger.info("Email sent for user %s via %s", user_id, handle.service)
    return email


# ── AI conveniences ──────────────────────────────────────────────────────


async def summarize_email(session: AsyncSession, user_id: int, email_pk: int) -> str:
    email = await get_email(session, user_id, email_pk)
    summary = await assistant.generate_email_summary(email.body or email.snippet or "")
    email.ai_summary = summary
    await session.flush()
    return summary


async def suggest_replies(session: AsyncSession, user_id: int, email_pk: int) -> List[SmartReply]:
    """Generate and store pending replies in the user's preferred tone."""
    email = await get_email(session, user_id, email_pk)
    user = await session.get(User, user_id)
    tone = (user.preferences or {}).get("replyTone") or "professional"

    texts = await assistant.generate_smart_replies(email, tone)
    replies = [
        SmartReply(user_id=user_id, email_id=email.id, reply_text=text, reply_tone=tone, status="pending")
        for text in texts
    ]
    session.add_all(replies)
    await session.flush()
    return replies


async def list_pending_replies(session: AsyncSession, user_id: int) -> List[SmartReply]:
    result = await session.execute(
        select(SmartReply)
        .where(SmartReply.user_id == user_id, SmartReply.status == "pending")
        .order_by(SmartReply.created_at.desc(), SmartReply.id.desc())
    )
    return list(result.scalars().all())


async def send_smart_reply(session: AsyncSession, user_id: int, reply_pk: int) -> Dict[str, Any]:
    reply = await session.get(SmartReply, reply_pk)
    if reply is None or reply.user_id != user_id:
        raise NotFoundError("Reply not found")
    email = await session.get(Email, reply.email_id)
    if email is None or email.user_id != user_id:
        raise NotFoundError("Original email not found")

    to = parseaddr(email.sender)[1] or email.sender
    await send_email(session, user_id, to, f"Re: {email.subject or ''}", reply.reply_text)
    reply.status = "sent"
    await session.flush()
    return {"message": "Reply sent successfully"}
