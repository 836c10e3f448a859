"""Tests for the calendar sync adapter and conflict checking."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import httpx
import pytest

from sift.common.config import CalendarConfig
from sift.common.schemas import EventDraft
from sift.ingest.calendar import (
    CalendarSyncAdapter,
    GoogleCalendarService,
    NullCalendarService,
    build_calendar_service,
)
from sift.ingest.conflict import ConflictChecker

USER = "user-1"
START = datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc)


class Recorder:
    """MockTransport handler that keeps every request"""

    def __init__(self, payload):
        self.payload = payload
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(200, json=self.payload)


def _google(handler, token="tok-1"):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return GoogleCalendarService(
        lambda _user_id: token,
        api_base="https://cal.test/v3",
        calendar_id="primary",
        client=client,
    )


class TestGoogleCalendarService:
    def test_create_event(self):
        recorder = Recorder({"id": "evt-42"})
        service = _google(recorder)

        external_id = service.create_event(USER, EventDraft(title="Dentist", start_time=START, location="High St"))

        assert external_id == "evt-42"
        request = recorder.requests[0]
        assert request.url == "https://cal.test/v3/calendars/primary/events"
        assert request.headers["Authorization"] == "Bearer tok-1"
        body = json.loads(request.content)
        assert body["summary"] == "Dentist"
        assert body["location"] == "High St"
        # No end time: one hour default
        assert body["end"]["dateTime"] == (START + timedelta(hours=1)).isoformat()

    def test_no_token_skips_request(self):
        recorder = Recorder({"id": "never"})
        service = _google(recorder, token=None)

        assert service.create_event(USER, EventDraft(title="Dentist", start_time=START)) is None
        assert service.is_busy(USER, START, START + timedelta(hours=1)) is False
        assert recorder.requests == []

    def test_is_busy(self):
        busy = Recorder({"calendars": {"primary": {"busy": [{"start": "x", "end": "y"}]}}})
        free = Recorder({"calendars": {"primary": {"busy": []}}})

        assert _google(busy).is_busy(USER, START, START + timedelta(hours=1)) is True
        assert _google(free).is_busy(USER, START, START + timedelta(hours=1)) is False
        assert busy.requests[0].url.path == "/v3/freeBusy"

    def test_http_error_raises(self):
        service = _google(lambda request: httpx.Response(500))
        with pytest.raises(httpx.HTTPStatusError):
            service.create_event(USER, EventDraft(title="Dentist", start_time=START))


class TestBuildCalendarService:
    def test_none_provider(self):
        assert isinstance(build_calendar_service(CalendarConfig()), NullCalendarService)

    def test_google_without_token(self):
        cfg = CalendarConfig(provider="google")
        assert isinstance(build_calendar_service(cfg), NullCalendarService)

    def test_google_with_access_token(self):
        cfg = CalendarConfig(provider="google", access_token="tok")
        assert isinstance(build_calendar_service(cfg), GoogleCalendarService)

    def test_unknown_provider(self):
        cfg = CalendarConfig(provider="outlook")
        assert isinstance(build_calendar_service(cfg), NullCalendarService)


class TestCalendarSyncAdapter:
    def test_default_is_null(self):
        adapter = CalendarSyncAdapter()
        assert adapter.create_event(USER, EventDraft(title="x", start_time=START)) is None

    def test_failures_are_swallowed(self):
        service = Mock()
        service.create_event.side_effect = httpx.ConnectError("down")

        adapter = CalendarSyncAdapter(service)

        assert adapter.create_event(USER, EventDraft(title="x", start_time=START)) is None


class TestConflictChecker:
    def test_local_overlap(self, store):
        store.insert_event(USER, EventDraft(title="Football", start_time=START, end_time=START + timedelta(hours=2)))
        calendar = Mock()

        checker = ConflictChecker(store, calendar)

        assert checker.has_conflict(USER, START + timedelta(hours=1), START + timedelta(hours=3)) is True
        calendar.is_busy.assert_not_called()

    def test_open_ended_event_blocks_one_hour(self, store):
        store.insert_event(USER, EventDraft(title="Call", start_time=START))
        checker = ConflictChecker(store)

        assert checker.has_conflict(USER, START + timedelta(minutes=30), START + timedelta(hours=2)) is True
        assert checker.has_conflict(USER, START + timedelta(hours=1), START + timedelta(hours=2)) is False

    def test_adjacent_windows_do_not_conflict(self, store):
        store.insert_event(USER, EventDraft(title="A", start_time=START, end_time=START + timedelta(hours=1)))
        checker = ConflictChecker(store)

        assert checker.has_conflict(USER, START + timedelta(hours=1), START + timedelta(hours=2)) is False
        assert checker.has_conflict("user-2", START, START + timedelta(hours=1)) is False

    def test_external_busy(self, store):
        calendar = Mock()
        calendar.is_busy.return_value = True

        assert ConflictChecker(store, calendar).has_conflict(USER, START, START + timedelta(hours=1)) is True

    def test_external_failure_is_no_conflict(self, store):
        calendar = Mock()
        calendar.is_busy.side_effect = httpx.ConnectError("down")

        assert ConflictChecker(store, calendar).has_conflict(USER, START, START + timedelta(hours=1)) is False
