"""Tests for inbox review."""

import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from sift.common.errors import InboxEntryNotFoundError, InvalidRequestError
from sift.common.schemas import CandidateItem, InboxStatus, ProposedData
from sift.ingest.calendar import CalendarSyncAdapter
from sift.ingest.inbox import ConfirmRequest, InboxService

USER = "user-1"
START = datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def calendar_service():
    svc = Mock()
    svc.create_event.return_value = "gcal-9"
    return svc


@pytest.fixture
def service(store, calendar_service):
    return InboxService(store, CalendarSyncAdapter(calendar_service))


def _hold(store, data: ProposedData, status=InboxStatus.PENDING, person_ids=()):
    dump = store.create_dump(USER, content_text="raw")
    return store.insert_inbox_entry(USER, dump.id, data, 0.6, "low_confidence", status, person_ids=person_ids)


class TestConfirm:
    def test_confirm_creates_event(self, store, service, calendar_service):
        entry = _hold(store, ProposedData(title="Dentist", start_time=START, location="High St"))

        event = service.confirm(USER, entry.id)

        assert event.title == "Dentist"
        assert event.start_time == START
        assert event.location == "High St"
        assert event.origin_dump_id == entry.dump_id
        assert event.external_id == "gcal-9"
        assert store.get_inbox_entry(USER, entry.id).status == InboxStatus.APPROVED
        calendar_service.create_event.assert_called_once()

    def test_edits_fill_missing_start(self, store, service):
        entry = _hold(store, ProposedData(title="Bake sale", missing_info=["start_time"]), InboxStatus.NEEDS_INFO)

        event = service.confirm(USER, entry.id, ConfirmRequest(start_time=START, title="School bake sale"))

        assert event.title == "School bake sale"
        assert event.start_time == START

    def test_missing_start_rejected(self, store, service):
        entry = _hold(store, ProposedData(title="Bake sale"), InboxStatus.NEEDS_INFO)

        with pytest.raises(InvalidRequestError, match="start_time"):
            service.confirm(USER, entry.id)
        assert store.get_inbox_entry(USER, entry.id).status == InboxStatus.NEEDS_INFO
        assert store.list_events(USER) == []

    def test_confirm_twice_rejected(self, store, service):
        entry = _hold(store, ProposedData(title="Dentist", start_time=START))
        service.confirm(USER, entry.id)

        with pytest.raises(InvalidRequestError, match="already approved"):
            service.confirm(USER, entry.id)
        assert len(store.list_events(USER)) == 1

    def test_concurrent_confirms_create_one_event(self, store, service, calendar_service):
        entry = _hold(store, ProposedData(title="Dentist", start_time=START))
        # Both callers load the entry while it is still open before either claims it
        both_loaded = threading.Barrier(2)
        original_get = service.get

        def get_then_wait(user_id, entry_id):
            loaded = original_get(user_id, entry_id)
            both_loaded.wait(timeout=5)
            return loaded

        service.get = get_then_wait
        results, errors = [], []

        def run():
            try:
                results.append(service.confirm(USER, entry.id))
            except InvalidRequestError as e:
                errors.append(e)

        threads = [threading.Thread(target=run) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(results) == 1
        assert len(errors) == 1
        assert len(store.list_events(USER)) == 1
        calendar_service.create_event.assert_called_once()

    def test_failed_insert_reopens_entry(self, store, service, monkeypatch):
        entry = _hold(store, ProposedData(title="Dentist", start_time=START))
        monkeypatch.setattr(store, "insert_event", Mock(side_effect=RuntimeError("disk full")))

        with pytest.raises(RuntimeError):
            service.confirm(USER, entry.id)

        assert store.get_inbox_entry(USER, entry.id).status == InboxStatus.PENDING

    def test_calendar_failure_still_confirms(self, store, service, calendar_service):
        calendar_service.create_event.side_effect = RuntimeError("offline")
        entry = _hold(store, ProposedData(title="Dentist", start_time=START))

        event = service.confirm(USER, entry.id)

        assert event.external_id is None

    def test_other_users_entry_not_found(self, store, service):
        entry = _hold(store, ProposedData(title="Dentist", start_time=START))
        with pytest.raises(InboxEntryNotFoundError):
            service.confirm("user-2", entry.id)

    def test_candidate_items_created_with_people(self, store, service):
        mia = store.create_person(USER, "Mia")
        data = ProposedData(
            title="Trip",
            start_time=START,
            actionable_items=[CandidateItem(title="Pack lunch", description="Lunch for Mia", due_date=START - timedelta(days=1))],
        )
        entry = _hold(store, data, person_ids=[mia.id])

        event = service.confirm(USER, entry.id)

        assert event.person_ids == [mia.id]
        items = store.list_items(USER)
        assert [i.title for i in items] == ["Pack lunch"]
        assert items[0].person_ids == [mia.id]
        assert items[0].dump_id == entry.dump_id


class TestDismissAndList:
    def test_dismiss(self, store, service):
        entry = _hold(store, ProposedData(title="Spam"))

        service.dismiss(USER, entry.id)

        assert store.get_inbox_entry(USER, entry.id).status == InboxStatus.DISMISSED
        assert service.list_open(USER) == []

    def test_dismiss_closed_entry_rejected(self, store, service):
        entry = _hold(store, ProposedData(title="Dentist", start_time=START))
        service.confirm(USER, entry.id)

        with pytest.raises(InvalidRequestError, match="already approved"):
            service.dismiss(USER, entry.id)
        assert store.get_inbox_entry(USER, entry.id).status == InboxStatus.APPROVED

    def test_claim_only_moves_open_entries(self, store):
        entry = _hold(store, ProposedData(title="Spam"))

        assert store.claim_inbox_entry(USER, entry.id, InboxStatus.DISMISSED) is True
        assert store.claim_inbox_entry(USER, entry.id, InboxStatus.APPROVED) is False
        assert store.claim_inbox_entry("user-2", entry.id, InboxStatus.APPROVED) is False
        assert store.get_inbox_entry(USER, entry.id).status == InboxStatus.DISMISSED

    def test_dismiss_unknown(self, service):
        with pytest.raises(InboxEntryNotFoundError):
            service.dismiss(USER, "nope")

    def test_stats(self, store, service):
        _hold(store, ProposedData(title="A"))
        _hold(store, ProposedData(title="B"), InboxStatus.NEEDS_INFO)
        dismissed = _hold(store, ProposedData(title="C"))
        service.dismiss(USER, dismissed.id)

        stats = service.stats(USER)

        assert stats["pending"] == 1
        assert stats["needs_info"] == 1
        assert stats["dismissed"] == 1
        assert stats["total"] == 3
        assert stats["open"] == 2

    def test_format_for_review(self, store, service):
        entry = _hold(store, ProposedData(title="Dentist", missing_info=["location"]))

        text = service.format_for_review(entry)

        assert "Title: Dentist" in text
        assert "Flags: low_confidence" in text
        assert "Missing: location" in text
