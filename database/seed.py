"""
Demo account seeded on startup so the dashboard has something to show
before any provider is connected.
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth.password import hash_password
from config.settings import config
from database.models import CalendarEvent, Email, SmartReply, User, default_preferences
from utils.dates import ensure_utc, get_zone, utcnow

logger = logging.getLogger(__name__)

DEMO_USERNAME = "demo"
DEMO_PASSWORD = "password"
DEMO_EMAIL = "emily@example.com"

_EMAILS = [
    {
        "message_id": "demo-001",
        "sender": "Marketing Team <marketing@example.com>",
        "subject": "Client Proposal Draft",
        "snippet": "I've attached the latest version of our client proposal for review. Could you provide feedback by tomorrow?",
        "body": (
            "Hi Emily,\n\nI've attached the latest version of our client proposal for review. "
            "Could you provide feedback by tomorrow? We need to finalize it before the meeting on Friday.\n\n"
            "Thanks,\nMarketing Team"
        ),
        "age": timedelta(hours=2),
        "is_priority": True,
        "labels": ["work", "important"],
    },
    {
        "message_id": "demo-002",
        "sender": "Alex Davidson <alex@example.com>",
        "subject": "Project Review Meeting",
        "snippet": "Just a reminder about our project review meeting scheduled for 11 AM today. Please bring your quarterly metrics.",
        "body": (
            "Hi Emily,\n\nJust a reminder about our project review meeting scheduled for 11 AM today. "
            "Please bring your quarterly metrics so we can discuss the progress.\n\nBest,\nAlex"
        ),
        "age": timedelta(days=1),
        "is_priority": False,
        "labels": ["work"],
    },
    {
        "message_id": "demo-003",
        "sender": "Sarah Chen <sarah@example.com>",
        "subject": "Quarterly Report Status",
        "snippet": "Just checking in on the status of the quarterly report. We'll need the draft by tomorrow for review before submission.",
        "body": (
            "Hi Emily,\n\nJust checking in on the status of the quarterly report. We'll need the draft by "
            "tomorrow for review before submission to the management team.\n\n"
            "Let me know if you need any help compiling the data.\n\nRegards,\nSarah"
        ),
        "age": timedelta(hours=28),
        "is_priority": False,
        "labels": ["work", "report"],
    },
]

_EVENTS = [
    {
        "event_id": "demo-evt-001",
        "title": "Project Review Meeting",
        "description": "Quarterly review of project progress and metrics",
        "start": time(11, 0),
        "end": time(12, 0),
        "location": "Conference Room A",
        "attendees": [{"name": "Alex Davidson", "email": "alex@example.com"}],
        "tags": ["Team"],
    },
    {
        "event_id": "demo-evt-002",
        "title": "Client Call - XYZ Corp",
        "description": "Follow-up call to discuss proposal details",
        "start": time(16, 0),
        "end": time(16, 30),
        "location": "Zoom Meeting",
        "attendees": [{"name": "John Smith", "email": "john@xyzcorp.com"}],
        "tags": ["External"],
    },
]

_REPLIES = [
    "Thanks for sharing the client proposal. I'll review it today and provide my feedback by "
    "tomorrow morning. Is there anything specific you'd like me to focus on?",
    "Thanks for the reminder. I have the meeting on my calendar and will bring the quarterly "
    "metrics as requested. Looking forward to our discussion.",
]


async def seed_demo_data(session: AsyncSession) -> bool:
    """Create the demo user and sample data. Returns False if it already exists."""
    existing = await session.execute(select(User).where(User.username == DEMO_USERNAME))
    if existing.scalar_one_or_none() is not None:
        return False

    user = User(
        username=DEMO_USERNAME,
        password_hash=hash_password(DEMO_PASSWORD),
        email=DEMO_EMAIL,
        display_name="Emily Johnson",
        preferences=default_preferences(),
    )
    session.add(user)
    await session.flush()

    now = utcnow()
    emails = []
    for item in _EMAILS:
        fields = {k: v for k, v in item.items() if k != "age"}
        email = Email(user_id=user.id, recipient=DEMO_EMAIL, received_at=now - item["age"], is_read=False, **fields)
        session.add(email)
        emails.append(email)

    tz = get_zone(config.business_timezone)
    today = now.astimezone(tz).date()
    for item in _EVENTS:
        fields = {k: v for k, v in item.items() if k not in ("start", "end")}
        session.add(
            CalendarEvent(
                user_id=user.id,
                start_time=ensure_utc(datetime.combine(today, item["start"], tzinfo=tz)),
                end_time=ensure_utc(datetime.combine(today, item["end"], tzinfo=tz)),
                is_all_day=False,
                **fields,
            )
        )
    await session.flush()

    for email, text in zip(emails, _REPLIES):
        session.add(
            SmartReply(user_id=user.id, email_id=email.id, reply_text=text, reply_tone="professional", status="pending")
        )
    await session.flush()

    logger.info("Seeded demo user '%s' with %d emails and %d events", DEMO_USERNAME, len(emails), len(_EVENTS))
    return True
