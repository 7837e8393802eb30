"""
REST API routes — preferences, emails, smart replies, calendar, daily brief.

Route prefix: /api
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_user, get_current_user_id
from database.models import User, default_preferences
from services import calendar_service, email_service
from services.daily_brief import create_daily_brief
from services.errors import ValidationError
from utils.dates import parse_day
from utils.schemas import (
    CalendarEventOut,
    EmailOut,
    EventRequest,
    FreeBlockOut,
    SendEmailRequest,
    SmartReplyOut,
    dump,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _day(value: Optional[str]) -> date:
    try:
        return parse_day(value)
    except ValueError as exc:
        raise ValidationError("date must be formatted YYYY-MM-DD") from exc


# ── Preferences ──────────────────────────────────────────────────────────


@router.get("/user/preferences", tags=["user"])
async def get_preferences(user: User = Depends(get_current_user)) -> Dict[str, Any]:
    return user.preferences or default_preferences()


@router.post("/user/preferences", tags=["user"])
async def update_preferences(
    updates: Dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Merge ``updates`` into the stored preferences."""
    merged = {**(user.preferences or default_preferences()), **updates}
    user.preferences = merged
    await session.flush()
    return merged


# ── Emails ───────────────────────────────────────────────────────────────


@router.get("/emails", tags=["emails"])
async def list_emails(
    limit: int = Query(default=10, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> List[Dict[str, Any]]:
    emails = await email_service.get_emails(session, user_id, limit)
    return [dump(EmailOut, e) for e in emails]


@router.post("/emails/send", tags=["emails"])
async def send_email(
    req: SendEmailRequest,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, str]:
    await email_service.send_email(session, user_id, req.to, req.subject, req.body)
    return {"message": "Email sent successfully"}


@router.get("/emails/{email_id}", tags=["emails"])
async def get_email(
    email_id: int,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    return dump(EmailOut, await email_service.get_email(session, user_id, email_id))


@router.post("/emails/{email_id}/read", tags=["emails"])
async def mark_read(
    email_id: int,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, str]:
    await email_service.mark_email_as_read(session, user_id, email_id)
    return {"message": "Email marked as read"}


@router.get("/emails/{email_id}/summary", tags=["emails"])
async def email_summary(
    email_id: int,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, str]:
    return {"summary": await email_service.summarize_email(session, user_id, email_id)}


@router.get("/emails/{email_id}/replies", tags=["emails"])
async def email_replies(
    email_id: int,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    replies = await email_service.suggest_replies(session, user_id, email_id)
    return {"replies": [dump(SmartReplyOut, r) for r in replies]}


# ── Smart replies ────────────────────────────────────────────────────────


@router.get("/smartreplies", tags=["emails"])
async def list_smart_replies(
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> List[Dict[str, Any]]:
    replies = await email_service.list_pending_replies(session, user_id)
    return [dump(SmartReplyOut, r) for r in replies]


@router.post("/smartreplies/{reply_id}/send", tags=["emails"])
async def send_smart_reply(
    reply_id: int,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, str]:
    return await email_service.send_smart_reply(session, user_id, reply_id)


# ── Calendar ─────────────────────────────────────────────────────────────


@router.get("/calendar/events", tags=["calendar"])
async def list_events(
    day: Optional[str] = Query(default=None, alias="date"),
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> List[Dict[str, Any]]:
    """Events on ``date`` (YYYY-MM-DD), or every stored event without it."""
    events = await calendar_service.get_calendar_events(
        session, user_id, _day(day) if day else None
    )
    return [dump(CalendarEventOut, e) for e in events]


@router.get("/calendar/freetime", tags=["calendar"])
async def free_time(
    day: Optional[str] = Query(default=None, alias="date"),
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> List[Dict[str, Any]]:
    blocks = await calendar_service.get_free_time_blocks(session, user_id, _day(day))
    return [dump(FreeBlockOut, b) for b in blocks]


@router.get("/calendar/events/{event_id}", tags=["calendar"])
async def get_event(
    event_id: int,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    return dump(CalendarEventOut, await calendar_service.get_calendar_event(session, user_id, event_id))


@router.post("/calendar/events", tags=["calendar"], status_code=status.HTTP_201_CREATED)
async def create_event(
    req: EventRequest,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    event = await calendar_service.create_calendar_event(session, user_id, req.model_dump())
    return dump(CalendarEventOut, event)


@router.put("/calendar/events/{event_id}", tags=["calendar"])
async def update_event(
    event_id: int,
    req: EventRequest,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    event = await calendar_service.update_calendar_event(session, user_id, event_id, req.model_dump())
    return dump(CalendarEventOut, event)


@router.delete("/calendar/events/{event_id}", tags=["calendar"])
async def delete_event(
    event_id: int,
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, str]:
    await calendar_service.delete_calendar_event(session, user_id, event_id)
    return {"message": "Event deleted successfully"}


# ── Daily brief ──────────────────────────────────────────────────────────


@router.get("/dailybrief", tags=["brief"])
async def daily_brief(
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    return await create_daily_brief(session, user_id)
