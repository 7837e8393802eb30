"""
Tests for the provider adapters' parsing and the Graph request shapes.
"""

import base64
import email
import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from googleapiclient.errors import HttpError

from connectors.handles import ProviderClient
from integrations import gmail, google_calendar, outlook


def _b64(text):
    return base64.urlsafe_b64encode(text.encode()).decode()


def _graph_client(handler):
    def factory(self, base_url=""):
        return httpx.AsyncClient(
            base_url=base_url,
            headers=self.auth_headers(),
            transport=httpx.MockTransport(handler),
        )

    return patch.object(ProviderClient, "http_client", new=factory)


OUTLOOK = ProviderClient(provider="microsoft", service="outlook", access_token="tok", account_email="e@outlook.com")
CALENDAR = ProviderClient(provider="google", service="google_calendar", access_token="tok", account_email="e@gmail.com")


class TestGmail:
    def test_parse_message(self):
        msg = {
            "id": "m1",
            "threadId": "t1",
            "snippet": "Quick question",
            "internalDate": "1709542800000",
            "labelIds": ["INBOX", "UNREAD", "IMPORTANT"],
            "payload": {
                "headers": [
                    {"name": "From", "value": "Sam <sam@example.com>"},
                    {"name": "To", "value": "me@gmail.com"},
                    {"name": "Subject", "value": "Hello"},
                ],
                "parts": [
                    {"mimeType": "text/html", "body": {"data": _b64("<p>html</p>")}},
                    {"mimeType": "text/plain", "body": {"data": _b64("Plain body")}},
                ],
            },
        }
        parsed = gmail.parse_message(msg)

        assert parsed["message_id"] == "m1"
        assert parsed["conversation_id"] == "t1"
        assert parsed["sender"] == "Sam <sam@example.com>"
        assert parsed["body"] == "Plain body"
        assert parsed["received_at"] == datetime(2024, 3, 4, 9, tzinfo=timezone.utc)
        assert parsed["is_read"] is False
        assert parsed["labels"] == ["inbox", "unread", "important"]

    def test_body_falls_back_to_snippet(self):
        parsed = gmail.parse_message({"id": "m2", "snippet": "only snippet", "labelIds": ["INBOX"]})
        assert parsed["body"] == "only snippet"
        assert parsed["is_read"] is True

    def test_build_raw_message(self):
        raw = gmail.build_raw_message("me@gmail.com", "you@example.com", "Hi", "Body text")
        mime = email.message_from_bytes(base64.urlsafe_b64decode(raw))
        assert mime["to"] == "you@example.com"
        assert mime["from"] == "me@gmail.com"
        assert mime["subject"] == "Hi"
        assert mime.get_payload() == "Body text"


class TestGoogleCalendar:
    def test_timed_event(self):
        parsed = google_calendar.parse_event(
            {
                "id": "e1",
                "summary": "Standup",
                "start": {"dateTime": "2024-03-04T09:00:00-05:00"},
                "end": {"dateTime": "2024-03-04T09:15:00-05:00"},
                "attendees": [{"email": "a@b.c", "displayName": "A", "responseStatus": "accepted"}],
            }
        )
        assert parsed["start_time"] == datetime(2024, 3, 4, 14, tzinfo=timezone.utc)
        assert parsed["end_time"] == datetime(2024, 3, 4, 14, 15, tzinfo=timezone.utc)
        assert parsed["is_all_day"] is False
        assert parsed["attendees"] == [{"email": "a@b.c", "name": "A", "status": "accepted"}]

    def test_all_day_event(self):
        parsed = google_calendar.parse_event(
            {"id": "e2", "start": {"date": "2024-03-04"}, "end": {"date": "2024-03-05"}}
        )
        assert parsed["title"] == "(No title)"
        assert parsed["is_all_day"] is True
        assert parsed["start_time"] == datetime(2024, 3, 4, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_update_event_sends_attendees(self):
        service = MagicMock()
        service.events.return_value.update.return_value.execute.return_value = {
            "id": "e1",
            "summary": "Moved",
            "start": {"dateTime": "2024-03-04T14:00:00Z"},
            "end": {"dateTime": "2024-03-04T15:00:00Z"},
        }
        fields = {
            "title": "Moved",
            "start_time": datetime(2024, 3, 4, 14, tzinfo=timezone.utc),
            "end_time": datetime(2024, 3, 4, 15, tzinfo=timezone.utc),
            "attendees": [{"email": "sam@example.com"}, {"name": "no address"}],
        }

        with patch.object(google_calendar, "_build_service", new=AsyncMock(return_value=service)):
            parsed = await google_calendar.update_event(CALENDAR, "e1", fields)

        kwargs = service.events.return_value.update.call_args.kwargs
        assert kwargs["eventId"] == "e1"
        assert kwargs["body"]["summary"] == "Moved"
        assert kwargs["body"]["attendees"] == [{"email": "sam@example.com"}]
        assert parsed["title"] == "Moved"

    @pytest.mark.asyncio
    async def test_delete_event_tolerates_gone(self):
        service = MagicMock()
        execute = service.events.return_value.delete.return_value.execute

        with patch.object(google_calendar, "_build_service", new=AsyncMock(return_value=service)):
            execute.side_effect = HttpError(SimpleNamespace(status=410, reason="Gone"), b"")
            await google_calendar.delete_event(CALENDAR, "e1")

            execute.side_effect = HttpError(SimpleNamespace(status=403, reason="Forbidden"), b"")
            with pytest.raises(HttpError):
                await google_calendar.delete_event(CALENDAR, "e1")


class TestOutlook:
    def test_parse_message(self):
        parsed = outlook.parse_message(
            {
                "id": "AAMk1",
                "conversationId": "c1",
                "from": {"emailAddress": {"name": "Sam", "address": "sam@example.com"}},
                "toRecipients": [
                    {"emailAddress": {"name": "me@outlook.com", "address": "me@outlook.com"}},
                    {"emailAddress": {"address": "b@example.com"}},
                ],
                "subject": "Hi",
                "bodyPreview": "preview",
                "body": {"content": "full text"},
                "receivedDateTime": "2024-03-04T09:00:00Z",
                "isRead": True,
                "categories": ["Blue"],
                "importance": "high",
            }
        )
        assert parsed["sender"] == "Sam <sam@example.com>"
        assert parsed["recipient"] == "me@outlook.com, b@example.com"
        assert parsed["body"] == "full text"
        assert parsed["labels"] == ["blue", "important"]

    def test_parse_event_with_graph_precision(self):
        parsed = outlook.parse_event(
            {
                "id": "ev1",
                "subject": "Review",
                "start": {"dateTime": "2024-03-04T09:00:00.0000000", "timeZone": "UTC"},
                "end": {"dateTime": "2024-03-04T10:30:00.0000000", "timeZone": "UTC"},
                "location": {"displayName": ""},
                "isAllDay": False,
            }
        )
        assert parsed["start_time"] == datetime(2024, 3, 4, 9, tzinfo=timezone.utc)
        assert parsed["end_time"] == datetime(2024, 3, 4, 10, 30, tzinfo=timezone.utc)
        assert parsed["location"] is None

    @pytest.mark.asyncio
    async def test_calendar_view_request(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json={"value": []})

        with _graph_client(handler):
            events = await outlook.list_events(
                OUTLOOK,
                datetime(2024, 3, 4, tzinfo=timezone.utc),
                datetime(2024, 3, 5, tzinfo=timezone.utc),
            )

        request = seen["request"]
        assert events == []
        assert request.url.path == "/v1.0/me/calendarView"
        assert request.url.params["startDateTime"] == "2024-03-04T00:00:00Z"
        assert request.headers["Prefer"] == 'outlook.timezone="UTC"'
        assert request.headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_send_mail(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(202)

        with _graph_client(handler):
            result = await outlook.send_message(OUTLOOK, "you@example.com", "Hi", "Body")

        assert result == {"id": None, "threadId": None}
        assert seen["body"]["message"]["toRecipients"] == [{"emailAddress": {"address": "you@example.com"}}]

    @pytest.mark.asyncio
    async def test_graph_error_raises(self):
        with _graph_client(lambda request: httpx.Response(401, json={"error": {}})):
            with pytest.raises(httpx.HTTPStatusError):
                await outlook.mark_read(OUTLOOK, "AAMk1")

    @pytest.mark.asyncio
    async def test_update_event_patches_in_utc(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "id": "ev1",
                    "subject": "Moved",
                    "start": {"dateTime": "2024-03-04T14:00:00.0000000", "timeZone": "UTC"},
                    "end": {"dateTime": "2024-03-04T15:00:00.0000000", "timeZone": "UTC"},
                },
            )

        fields = {
            "title": "Moved",
            "start_time": datetime(2024, 3, 4, 14, tzinfo=timezone.utc),
            "end_time": datetime(2024, 3, 4, 15, tzinfo=timezone.utc),
            "attendees": [{"email": "sam@example.com", "name": "Sam"}],
        }
        with _graph_client(handler):
            parsed = await outlook.update_event(OUTLOOK, "ev1", fields)

        assert seen["request"].method == "PATCH"
        assert seen["request"].url.path == "/v1.0/me/events/ev1"
        assert seen["body"]["start"] == {"dateTime": "2024-03-04T14:00:00", "timeZone": "UTC"}
        assert seen["body"]["attendees"] == [{"emailAddress": {"address": "sam@example.com"}, "type": "required"}]
        assert parsed["title"] == "Moved"

    @pytest.mark.asyncio
    async def test_delete_event_already_gone(self):
        with _graph_client(lambda request: httpx.Response(404, json={"error": {}})):
            assert await outlook.delete_event(OUTLOOK, "ev1") is None

        with _graph_client(lambda request: httpx.Response(500, json={"error": {}})):
            with pytest.raises(httpx.HTTPStatusError):
                await outlook.delete_event(OUTLOOK, "ev1")
