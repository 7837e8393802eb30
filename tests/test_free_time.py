"""
Tests for free-time block computation and the /api/calendar/freetime route.
"""

from datetime import date, datetime, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from services.calendar_service import business_free_blocks, compute_free_blocks

UTC = ZoneInfo("UTC")
DAY = date(2024, 3, 4)


def _at(hour, minute=0, day=DAY):
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


def _event(start, end, all_day=False):
    return SimpleNamespace(start_time=start, end_time=end, is_all_day=all_day)


def _spans(blocks):
    return [(b.start_time, b.end_time, b.duration_minutes) for b in blocks]


def _parse(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class TestComputeFreeBlocks:
    def test_two_meetings(self):
        events = [_event(_at(9), _at(10)), _event(_at(14), _at(15))]
        blocks = compute_free_blocks(events, DAY, tz=UTC)

        assert _spans(blocks) == [
            (_at(10), _at(14), 240),
            (_at(15), _at(17), 120),
        ]
        assert all(b.is_free and b.description == "Free Time Block" for b in blocks)

    def test_short_gap_is_dropped(self):
        events = [_event(_at(9), _at(12)), _event(_at(12, 20), _at(17))]
        assert compute_free_blocks(events, DAY, tz=UTC) == []

    def test_no_events_is_whole_window(self):
        assert _spans(compute_free_blocks([], DAY, tz=UTC)) == [(_at(9), _at(17), 480)]

    def test_unsorted_and_overlapping_events(self):
        events = [
            _event(_at(13), _at(14)),
            _event(_at(10), _at(12)),
            _event(_at(11), _at(13, 30)),
        ]
        assert _spans(compute_free_blocks(events, DAY, tz=UTC)) == [
            (_at(9), _at(10), 60),
            (_at(14), _at(17), 180),
        ]

    def test_event_spanning_window_start(self):
        events = [_event(_at(8), _at(9, 45))]
        assert _spans(compute_free_blocks(events, DAY, tz=UTC)) == [(_at(9, 45), _at(17), 435)]

    def test_window_is_local_to_timezone(self):
        day = date(2024, 1, 15)
        # 10:00-11:00 in New York (UTC-5 in January).
        events = [_event(_at(15, day=day), _at(16, day=day))]
        blocks = compute_free_blocks(events, day, tz=ZoneInfo("America/New_York"))

        assert _spans(blocks) == [
            (_at(14, day=day), _at(15, day=day), 60),
            (_at(16, day=day), _at(22, day=day), 360),
        ]

    def test_evening_event_does_not_hide_afternoon(self):
        events = [_event(_at(9), _at(10)), _event(_at(18), _at(19))]
        assert _spans(compute_free_blocks(events, DAY, tz=UTC)) == [(_at(10), _at(17), 420)]

    def test_event_starting_at_close(self):
        events = [_event(_at(17), _at(18))]
        assert _spans(compute_free_blocks(events, DAY, tz=UTC)) == [(_at(9), _at(17), 480)]

    def test_custom_hours_and_minimum(self):
        events = [_event(_at(10), _at(10, 45))]
        blocks = compute_free_blocks(events, DAY, tz=UTC, start_hour=10, end_hour=11, min_minutes=10)
        assert _spans(blocks) == [(_at(10, 45), _at(11), 15)]

    def test_all_day_events_ignored_for_business_hours(self):
        events = [_event(_at(0), _at(23, 59), all_day=True), _event(_at(9), _at(10))]
        assert _spans(business_free_blocks(events, DAY)) == [(_at(10), _at(17), 420)]


class TestFreeTimeRoute:
    @pytest.mark.asyncio
    async def test_blocks_for_stored_events(self, auth_client):
        for start, end in (("09:00", "10:00"), ("14:00", "15:00")):
            resp = await auth_client.post(
                "/api/calendar/events",
                json={
                    "title": "Meeting",
                    "startTime": f"2024-03-04T{start}:00Z",
                    "endTime": f"2024-03-04T{end}:00Z",
                },
            )
            assert resp.status_code == 201

        resp = await auth_client.get("/api/calendar/freetime", params={"date": "2024-03-04"})
        assert resp.status_code == 200
        blocks = resp.json()
        assert [(_parse(b["startTime"]), _parse(b["endTime"]), b["durationMinutes"]) for b in blocks] == [
            (_at(10), _at(14), 240),
            (_at(15), _at(17), 120),
        ]
        assert all(b["isFree"] for b in blocks)

    @pytest.mark.asyncio
    async def test_other_days_do_not_count(self, auth_client):
        await auth_client.post(
            "/api/calendar/events",
            json={"title": "Tomorrow", "startTime": "2024-03-05T09:00:00Z", "endTime": "2024-03-05T17:00:00Z"},
        )
        resp = await auth_client.get("/api/calendar/freetime", params={"date": "2024-03-04"})
        assert [b["durationMinutes"] for b in resp.json()] == [480]

    @pytest.mark.asyncio
    async def test_bad_date(self, auth_client):
        resp = await auth_client.get("/api/calendar/freetime", params={"date": "March 4"})
        assert resp.status_code == 400
        assert resp.json() == {"message": "date must be formatted YYYY-MM-DD"}

    @pytest.mark.asyncio
    async def test_requires_auth(self, client):
        resp = await client.get("/api/calendar/freetime")
        assert resp.status_code == 401
