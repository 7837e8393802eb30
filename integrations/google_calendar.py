"""
Google Calendar adapter — events on the user's primary calendar.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from connectors.handles import ProviderClient
from utils.dates import parse_iso_datetime


async def _build_service(client: ProviderClient):
    return await asyncio.to_thread(
        build, "calendar", "v3", credentials=client.google_credentials(), cache_discovery=False
    )


def _parse_time(value: Dict[str, Any]) -> datetime:
    if "dateTime" in value:
        return parse_iso_datetime(value["dateTime"])
    return datetime.combine(date.fromisoformat(value["date"]), time.min, tzinfo=timezone.utc)


def parse_event(item: Dict[str, Any]) -> Dict[str, Any]:
    start = item.get("start", {})
    return {
        "event_id": item["id"],
        "title": item.get("summary") or "(No title)",
        "description": item.get("description"),
        "start_time": _parse_time(start),
        "end_time": _parse_time(item.get("end", start)),
        "location": item.get("location"),
        "attendees": [
            {
                "email": a.get("email"),
                "name": a.get("displayName"),
                "status": a.get("responseStatus"),
            }
            for a in item.get("attendees", [])
        ],
        "is_all_day": "date" in start and "dateTime" not in start,
    }


async def list_events(client: ProviderClient, time_min: datetime, time_max: datetime) -> List[Dict[str, Any]]:
    service = await _build_service(client)
    result = await asyncio.to_thread(
        service.events()
        .list(
            calendarId="primary",
            timeMin=time_min.isoformat(),
            timeMax=time_max.isoformat(),
            singleEvents=True,
            orderBy="startTime",
            maxResults=250,
        )
        .execute
    )
    return [parse_event(item) for item in result.get("items", [])]


def _event_body(event: Dict[str, Any]) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "summary": event["title"],
        "description": event.get("description") or "",
        "location": event.get("location") or "",
        "start": {"dateTime": event["start_time"].isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": event["end_time"].isoformat(), "timeZone": "UTC"},
    }
    if event.get("attendees"):
        body["attendees"] = [{"email": a["email"]} for a in event["attendees"] if a.get("email")]
    return body


async def create_event(client: ProviderClient, event: Dict[str, Any]) -> Dict[str, Any]:
    """Insert an event; ``event`` uses the same keys ``parse_event`` returns."""
    service = await _build_service(client)
    created = await asyncio.to_thread(
        service.events().insert(calendarId="primary", body=_event_body(event)).execute
    )
    return parse_event(created)


async def update_event(client: ProviderClient, event_id: str, event: Dict[str, Any]) -> Dict[str, Any]:
    """Replace the event's fields; returns the provider's copy."""
    service = await _build_service(client)
    updated = await asyncio.to_thread(
        service.events().update(calendarId="primary", eventId=event_id, body=_event_body(event)).execute
    )
    return parse_event(updated)


async def delete_event(client: ProviderClient, event_id: str) -> None:
    service = await _build_service(client)
    try:
        await asyncio.to_thread(service.events().delete(calendarId="primary", eventId=event_id).execute)
    except HttpError as exc:
        # Already gone at the provider.
        if exc.resp.status not in (404, 410):
            raise
