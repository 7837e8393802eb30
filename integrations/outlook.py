"""
Outlook mail + calendar adapter over Microsoft Graph.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List

from connectors.handles import ProviderClient
from connectors.microsoft import GRAPH_API
from utils.dates import parse_iso_datetime

logger = logging.getLogger(__name__)

# Graph returns event times in this zone when asked via the Prefer header.
_UTC_PREFER = {"Prefer": 'outlook.timezone="UTC"'}

_MESSAGE_FIELDS = (
    "id,conversationId,from,toRecipients,subject,bodyPreview,body,"
    "receivedDateTime,isRead,categories,importance"
)


def _address(recipient: Dict[str, Any] | None) -> str:
    email = (recipient or {}).get("emailAddress", {})
    name, address = email.get("name"), email.get("address", "")
    if name and name != address:
        return f"{name} <{address}>"
    return address


def parse_message(msg: Dict[str, Any]) -> Dict[str, Any]:
    body = (msg.get("body") or {}).get("content") or msg.get("bodyPreview", "")
    labels = [c.lower() for c in msg.get("categories", [])]
    if msg.get("importance") == "high":
        labels.append("important")
    return {
        "message_id": msg["id"],
        "conversation_id": msg.get("conversationId"),
        "sender": _address(msg.get("from")),
        "recipient": ", ".join(_address(r) for r in msg.get("toRecipients", [])),
        "subject": msg.get("subject") or "",
        "snippet": msg.get("bodyPreview", ""),
        "body": body[:5000],
        "received_at": parse_iso_datetime(msg["receivedDateTime"]),
        "is_read": bool(msg.get("isRead")),
        "labels": labels,
    }


def parse_event(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "event_id": item["id"],
        "title": item.get("subject") or "(No title)",
        "description": item.get("bodyPreview"),
        "start_time": parse_iso_datetime(item["start"]["dateTime"]),
        "end_time": parse_iso_datetime(item["end"]["dateTime"]),
        "location": (item.get("location") or {}).get("displayName") or None,
        "attendees": [
            {
                "email": a.get("emailAddress", {}).get("address"),
                "name": a.get("emailAddress", {}).get("name"),
                "status": (a.get("status") or {}).get("response"),
            }
            for a in item.get("attendees", [])
        ],
        "is_all_day": bool(item.get("isAllDay")),
    }


# ── Mail ─────────────────────────────────────────────────────────────────


async def list_messages(client: ProviderClient, max_results: int = 20) -> List[Dict[str, Any]]:
    params = {
        "$top": str(max_results),
        "$orderby": "receivedDateTime desc",
        "$select": _MESSAGE_FIELDS,
    }
    async with client.http_client(GRAPH_API) as http:
        resp = await http.get(
            "/me/mailFolders/inbox/messages",
            params=params,
            headers={"Prefer": 'outlook.body-content-type="text"'},
        )
        resp.raise_for_status()
        messages = resp.json().get("value", [])
    logger.debug("Fetched %d Outlook messages for %s", len(messages), client.account_email)
    return [parse_message(m) for m in messages]


async def mark_read(client: ProviderClient, message_id: str) -> None:
    async with client.http_client(GRAPH_API) as http:
        resp = await http.patch(f"/me/messages/{message_id}", json={"isRead": True})
        resp.raise_for_status()


async def send_message(client: ProviderClient, to: str, subject: str, body: str) -> Dict[str, Any]:
    payload = {
        "message": {
            "subject": subject,
            "body": {"contentType": "Text", "content": body},
            "toRecipients": [{"emailAddress": {"address": to}}],
        },
        "saveToSentItems": True,
    }
    async with client.http_client(GRAPH_API) as http:
        resp = await http.post("/me/sendMail", json=payload)
        resp.raise_for_status()
    logger.info("Outlook message sent to %s", to)
    # sendMail is 202 with no body, so there is no message id to return.
    return {"id": None, "threadId": None}


# ── Calendar ─────────────────────────────────────────────────────────────


def _graph_time(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


async def list_events(client: ProviderClient, time_min: datetime, time_max: datetime) -> List[Dict[str, Any]]:
    params = {
        "startDateTime": _graph_time(time_min),
        "endDateTime": _graph_time(time_max),
        "$select": "id,subject,bodyPreview,start,end,location,attendees,isAllDay",
        "$orderby": "start/dateTime",
        "$top": "200",
    }
    async with client.http_client(GRAPH_API) as http:
        resp = await http.get("/me/calendarView", params=params, headers=_UTC_PREFER)
        resp.raise_for_status()
        items = resp.json().get("value", [])
    return [parse_event(item) for item in items]


def _event_body(event: Dict[str, Any]) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "subject": event["title"],
        "start": {"dateTime": event["start_time"].replace(tzinfo=None).isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": event["end_time"].replace(tzinfo=None).isoformat(), "timeZone": "UTC"},
        "isAllDay": bool(event.get("is_all_day")),
        "body": {"contentType": "Text", "content": event.get("description") or ""},
        "location": {"displayName": event.get("location") or ""},
    }
    if event.get("attendees"):
        body["attendees"] = [
            {"emailAddress": {"address": a["email"]}, "type": "required"}
            for a in event["attendees"]
            if a.get("email")
        ]
    return body


async def create_event(client: ProviderClient, event: Dict[str, Any]) -> Dict[str, Any]:
    async with client.http_client(GRAPH_API) as http:
        resp = await http.post("/me/events", json=_event_body(event), headers=_UTC_PREFER)
        resp.raise_for_status()
        return parse_event(resp.json())


async def update_event(client: ProviderClient, event_id: str, event: Dict[str, Any]) -> Dict[str, Any]:
    async with client.http_client(GRAPH_API) as http:
        resp = await http.patch(f"/me/events/{event_id}", json=_event_body(event), headers=_UTC_PREFER)
        resp.raise_for_status()
        return parse_event(resp.json())


async def delete_event(client: ProviderClient, event_id: str) -> None:
    async with client.http_client(GRAPH_API) as http:
        resp = await http.delete(f"/me/events/{event_id}")
        # Already gone at the provider.
        if resp.status_code == 404:
            return
        resp.raise_for_status()
