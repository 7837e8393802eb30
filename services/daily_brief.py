"""
Daily brief — today's mail and calendar condensed into a summary and a
priority list, stored per request.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from database.models import DailyBrief
from services import assistant
from services.calendar_service import business_free_blocks, business_zone, get_calendar_events
from services.email_service import get_emails
from utils.dates import utcnow

logger = logging.getLogger(__name__)


async def create_daily_brief(session: AsyncSession, user_id: int) -> Dict[str, Any]:
    today = utcnow().astimezone(business_zone()).date()

    emails = await get_emails(session, user_id, limit=10)
    events = await get_calendar_events(session, user_id, today)
    free_blocks = business_free_blocks(events, today)

    brief = await assistant.generate_daily_brief(emails, events, free_blocks)

    session.add(
        DailyBrief(
            user_id=user_id,
            summary=brief["summary"],
            priorities=brief["priorities"],
            email_count=len(emails),
            event_count=len(events),
        )
    )
    await session.flush()
    logger.info("Daily brief for user %s: %d emails, %d events", user_id, len(emails), len(events))
    return brief
