"""
Inbox

Human review of proposals the triage router held back.

Workflow:
1. The orchestrator adds held proposals (pending or needs_info)
2. The user reviews them, filling in whatever was missing
3. Confirmed entries become Events (synced to the external calendar first)
4. Dismissed entries are closed without creating anything
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from ..common.errors import InboxEntryNotFoundError, InvalidRequestError
from ..common.schemas import Event, InboxEntry, InboxStatus, Person
from ..common.store import SiftStore
from .calendar import CalendarSyncAdapter
from .commit import create_candidate_items, draft_from

logger = logging.getLogger("sift.ingest.inbox")


class ConfirmRequest(BaseModel):
    """Reviewer's edits; unset fields keep the proposed values"""
    title: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: Optional[str] = None
    category: Optional[str] = None


class InboxService:
    def __init__(self, store: SiftStore, calendar: Optional[CalendarSyncAdapter] = None):
        self._store = store
        self._calendar = calendar or CalendarSyncAdapter()

    def list_open(self, user_id: str, person_id: Optional[str] = None) -> List[InboxEntry]:
        """Entries not yet approved, rejected or dismissed, newest first"""
        return self._store.list_open_inbox(user_id, person_id=person_id)

    def get(self, user_id: str, entry_id: str) -> InboxEntry:
        entry = self._store.get_inbox_entry(user_id, entry_id)
        if entry is None:
            raise InboxEntryNotFoundError(entry_id)
        return entry

    def confirm(self, user_id: str, entry_id: str, edits: Optional[ConfirmRequest] = None) -> Event:
        """
        Approve an entry and create its event.

        The entry is claimed with a conditional update before anything is
        created, so concurrent confirmations produce exactly one event.

        Raises:
            InboxEntryNotFoundError: unknown id or another user's entry
            InvalidRequestError: entry already closed, or no title / start time
        """
        entry = self.get(user_id, entry_id)
        if not entry.is_open:
            raise InvalidRequestError(f"inbox entry is already {entry.status.value}")

        overrides = edits.model_dump(exclude_none=True) if edits else {}
        data = entry.proposed_data.model_copy(update=overrides)
        if not data.title or data.start_time is None:
            raise InvalidRequestError("Missing required fields (title, start_time)")

        if not self._store.claim_inbox_entry(user_id, entry_id, InboxStatus.APPROVED):
            raise InvalidRequestError("inbox entry is already closed")

        draft = draft_from(data)
        try:
            external_id = self._calendar.create_event(user_id, draft)
            event = self._store.insert_event(
                user_id,
                draft,
                external_id=external_id,
                origin_dump_id=entry.dump_id,
                person_ids=entry.person_ids,
            )
        except Exception:
            # Reopen so the user can retry
            self._store.set_inbox_status(user_id, entry_id, entry.status)
            raise

        people = [p for p in (self._store.get_person(user_id, pid) for pid in entry.person_ids) if p]
        create_candidate_items(self._store, user_id, data.actionable_items, entry.dump_id, people)

        logger.info("Inbox entry %s approved as event %s", entry_id, event.id)
        return event

    def dismiss(self, user_id: str, entry_id: str) -> None:
        """Close an open entry without creating anything"""
        entry = self.get(user_id, entry_id)
        if not self._store.claim_inbox_entry(user_id, entry_id, InboxStatus.DISMISSED):
            raise InvalidRequestError(f"inbox entry is already {entry.status.value}")
        logger.info("Inbox entry %s dismissed", entry_id)

    def stats(self, user_id: str) -> Dict[str, int]:
        """Counts per status plus the open total"""
        counts = self._store.inbox_status_counts(user_id)
        stats = {status.value: counts.get(status.value, 0) for status in InboxStatus}
        stats["total"] = sum(counts.values())
        stats["open"] = stats["total"] - sum(stats[s.value] for s in InboxStatus.closed())
        return stats

    def format_for_review(self, entry: InboxEntry, people: Optional[List[Person]] = None) -> str:
        """Plain-text rendering of an entry, for scripts and logs"""
        data = entry.proposed_data
        lines = [
            "=" * 60,
            f"INBOX ENTRY: {entry.id}",
            f"Confidence: {entry.confidence_score:.2f}",
            f"Status: {entry.status.value}",
            f"Flags: {entry.flag_reason or '(none)'}",
            "=" * 60,
            "",
            f"Title: {data.title}",
            f"Start: {data.start_time.isoformat() if data.start_time else 'N/A'}",
            f"End: {data.end_time.isoformat() if data.end_time else 'N/A'}",
            f"Location: {data.location or 'N/A'}",
            f"Category: {data.category or 'N/A'}",
        ]
        if data.missing_info:
            lines.append(f"Missing: {', '.join(data.missing_info)}")

        if people:
            lines.extend(["", "People:"])
            lines.extend(f"  - {p.name} ({p.relationship or 'unknown'})" for p in people)

        if data.actionable_items:
            lines.extend(["", "Actionable items:"])
            for item in data.actionable_items:
                due = item.due_date.isoformat() if item.due_date else "no date"
                lines.append(f"  - [{item.kind}] {item.title} ({due})")

        lines.append("=" * 60)
        return "\n".join(lines)
