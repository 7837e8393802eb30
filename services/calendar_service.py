"""
Calendar service — local event store, provider sync, and free-time blocks.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import config
from connectors.handles import ClientHandle, ProviderClient
from connectors.token_manager import find_connection, get_client_handle
from database.models import CalendarEvent
from integrations import PROVIDER_ERRORS, google_calendar, outlook
from services.errors import NotFoundError, UpstreamError
from utils.dates import day_bounds, ensure_utc, get_zone, local_window, utcnow

logger = logging.getLogger(__name__)

CALENDAR_SERVICES = ("google_calendar", "outlook_calendar")

_ADAPTERS = {
    "google_calendar": google_calendar,
    "outlook_calendar": outlook,
}

LOCAL_EVENT_PREFIX = "local-"
# Events created here or by the demo seed; they have no provider copy.
LOCAL_EVENT_PREFIXES = (LOCAL_EVENT_PREFIX, "demo-")


# ── Free time ────────────────────────────────────────────────────────────


@dataclass
class FreeBlock:
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    description: str = "Free Time Block"
    is_free: bool = True


def compute_free_blocks(
    events: Iterable[Any],
    day: date,
    *,
    tz: ZoneInfo,
    start_hour: int = 9,
    end_hour: int = 17,
    min_minutes: int = 30,
) -> List[FreeBlock]:
    """
    Gaps of at least ``min_minutes`` in the ``start_hour``–``end_hour``
    window of ``day`` (local to ``tz``).

    ``events`` only need ``start_time`` / ``end_time``. Overlapping events
    are merged by advancing the boundary to the furthest end seen so far;
    events starting after the window closes are ignored.
    """
    window_start, window_end = local_window(day, tz, start_hour, end_hour)

    gaps = []
    boundary = window_start
    for event in sorted(events, key=lambda e: ensure_utc(e.start_time)):
        start, end = ensure_utc(event.start_time), ensure_utc(event.end_time)
        if start > window_end:
            break
        if boundary < start:
            gaps.append((boundary, start))
        boundary = max(boundary, end)
    if boundary < window_end:
        gaps.append((boundary, window_end))

    minimum = timedelta(minutes=min_minutes)
    return [
        FreeBlock(
            start_time=start,
            end_time=end,
            duration_minutes=int((end - start).total_seconds() // 60),
        )
        for start, end in gaps
        if end - start >= minimum
    ]


def business_zone() -> ZoneInfo:
    return get_zone(config.business_timezone)


# ── Provider sync ────────────────────────────────────────────────────────


async def _calendar_handle(session: AsyncSession, user_id: int) -> Optional[ClientHandle]:
    conn = await find_connection(session, user_id, CALENDAR_SERVICES)
    if conn is None:
        return None
    return await get_client_handle(session, user_id, conn.service)


async def _find_by_event_id(session: AsyncSession, user_id: int, event_id: str) -> Optional[CalendarEvent]:
    result = await session.execute(
        select(CalendarEvent).where(
            CalendarEvent.user_id == user_id,
            CalendarEvent.event_id == event_id,
        )
    )
    return result.scalar_one_or_none()


async def sync_calendar_events(
    session: AsyncSession,
    user_id: int,
    client: ProviderClient,
    time_min: datetime,
    time_max: datetime,
) -> int:
    """Upsert provider events in ``[time_min, time_max)`` into the local store."""
    adapter = _ADAPTERS[client.service]
    items = await adapter.list_events(client, time_min, time_max)

    for item in items:
        event = await _find_by_event_id(session, user_id, item["event_id"])
        if event is None:
            session.add(CalendarEvent(user_id=user_id, tags=[], **item))
        else:
            for key, value in item.items():
                setattr(event, key, value)
    await session.flush()

    logger.info("Synced %d %s events for user %s", len(items), client.service, user_id)
    return len(items)


async def _try_sync(session: AsyncSession, user_id: int, time_min: datetime, time_max: datetime) -> None:
    handle = await _calendar_handle(session, user_id)
    if not isinstance(handle, ProviderClient):
        return
    try:
        await sync_calendar_events(session, user_id, handle, time_min, time_max)
    except PROVIDER_ERRORS as exc:
        logger.warning("Calendar sync failed for user %s, serving stored events: %s", user_id, exc)


# ── Queries ──────────────────────────────────────────────────────────────


async def get_calendar_events(
    session: AsyncSession,
    user_id: int,
    day: Optional[date] = None,
) -> List[CalendarEvent]:
    """Events starting on ``day`` (business timezone), or all events when ``day`` is None."""
    query = select(CalendarEvent).where(CalendarEvent.user_id == user_id)

    if day is not None:
        start, end = day_bounds(day, business_zone())
        await _try_sync(session, user_id, start, end)
        query = query.where(CalendarEvent.start_time >= start, CalendarEvent.start_time < end)
    else:
        now = utcnow()
        await _try_sync(session, user_id, now - timedelta(days=1), now + timedelta(days=7))

    result = await session.execute(query.order_by(CalendarEvent.start_time))
    return list(result.scalars().all())


async def get_calendar_event(session: AsyncSession, user_id: int, event_pk: int) -> CalendarEvent:
    event = await session.get(CalendarEvent, event_pk)
    if event is None or event.user_id != user_id:
        raise NotFoundError("Event not found")
    return event


def business_free_blocks(events: Iterable[CalendarEvent], day: date) -> List[FreeBlock]:
    """Free blocks for ``day`` using the configured business hours; all-day events are ignored."""
    return compute_free_blocks(
        [e for e in events if not e.is_all_day],
        day,
        tz=business_zone(),
        start_hour=config.business_day_start_hour,
        end_hour=config.business_day_end_hour,
        min_minutes=config.min_free_block_minutes,
    )


async def get_free_time_blocks(session: AsyncSession, user_id: int, day: date) -> List[FreeBlock]:
    return business_free_blocks(await get_calendar_events(session, user_id, day), day)


# ── Writes ───────────────────────────────────────────────────────────────


def _event_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "title": data["title"],
        "description": data.get("description"),
        "start_time": data["start_time"],
        "end_time": data["end_time"],
        "location": data.get("location"),
        "attendees": list(data.get("attendees") or []),
        "is_all_day": bool(data.get("is_all_day")),
    }


async def _provider_for(session: AsyncSession, user_id: int, event: CalendarEvent) -> Optional[ProviderClient]:
    """The live calendar client an existing event's changes must go through, if any."""
    if event.event_id.startswith(LOCAL_EVENT_PREFIXES):
        return None
    handle = await _calendar_handle(session, user_id)
    return handle if isinstance(handle, ProviderClient) else None


async def create_calendar_event(session: AsyncSession, user_id: int, data: Dict[str, Any]) -> CalendarEvent:
    """
    Create an event. With a live calendar connection it is created at the
    provider first and stored under the provider's id; otherwise it is
    stored locally only.
    """
    fields = _event_fields(data)
    event_id = f"{LOCAL_EVENT_PREFIX}{uuid.uuid4().hex}"

    handle = await _calendar_handle(session, user_id)
    if isinstance(handle, ProviderClient):
        try:
            created = await _ADAPTERS[handle.service].create_event(handle, fields)
        except PROVIDER_ERRORS as exc:
            raise UpstreamError(f"Failed to create event on {handle.service}: {exc}") from exc
        event_id = created["event_id"]

    event = CalendarEvent(user_id=user_id, event_id=event_id, tags=data.get("tags") or [], **fields)
    session.add(event)
    await session.flush()
    logger.info("Created calendar event %s for user %s", event.event_id, user_id)
    return event


async def update_calendar_event(
    session: AsyncSession,
    user_id: int,
    event_pk: int,
    data: Dict[str, Any],
) -> CalendarEvent:
    """
    Replace an event's fields. Provider-backed events are updated at the
    provider first so the next sync does not bring the old copy back.
    """
    event = await get_calendar_event(session, user_id, event_pk)
    fields = _event_fields(data)

    handle = await _provider_for(session, user_id, event)
    if handle is not None:
        try:
            await _ADAPTERS[handle.service].update_event(handle, event.event_id, fields)
        except PROVIDER_ERRORS as exc:
            raise UpstreamError(f"Failed to update event on {handle.service}: {exc}") from exc

    for key, value in fields.items():
        setattr(event, key, value)
    event.tags = list(data.get("tags") or [])
    await session.flush()
    return event


async def delete_calendar_event(session: AsyncSession, user_id: int, event_pk: int) -> None:
    event = await get_calendar_event(session, user_id, event_pk)

    handle = await _provider_for(session, user_id, event)
    if handle is not None:
        try:
            await _ADAPTERS[handle.service].delete_event(handle, event.event_id)
        except PROVIDER_ERRORS as exc:
            raise UpstreamError(f"Failed to delete event on {handle.service}: {exc}") from exc

    await session.delete(event)
    await session.flush()
    logger.info("Deleted calendar event %s for user %s", event_pk, user_id)
