"""
Overview Reads

Composite read models: today's dashboard and a single person's context,
both applying the archive rules before reading items. Also the LLM-written
daily summary.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from ..common.errors import PersonNotFoundError
from ..common.llm_client import LLMClient
from ..common.schemas import ActionableItem, Dump, Event, InboxEntry, ItemKind, Person
from ..common.store import SiftStore
from ..common.timeutil import day_range, ensure_utc, utcnow
from .archive import enforce_archive_rules

logger = logging.getLogger("sift.ingest.overview")

DASHBOARD_TODO_LIMIT = 20
OVERVIEW_WINDOW_DAYS = 7
OVERVIEW_DUMP_LIMIT = 20


@dataclass
class Dashboard:
    events: List[Event] = field(default_factory=list)
    todos: List[ActionableItem] = field(default_factory=list)


@dataclass
class PersonOverview:
    person: Person
    todos: List[ActionableItem] = field(default_factory=list)
    infos: List[ActionableItem] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)
    inbox: List[InboxEntry] = field(default_factory=list)
    dumps: List[Tuple[Dump, str]] = field(default_factory=list)


def dashboard_today(
    store: SiftStore,
    user_id: str,
    now: Optional[datetime] = None,
    tz_offset_minutes: Optional[int] = None,
) -> Dashboard:
    """
    Events starting today, plus open todos due by the end of today or undated.

    Args:
        tz_offset_minutes: Client's offset from UTC (browser convention);
            defaults to UTC days
    """
    now = ensure_utc(now) if now else utcnow()
    enforce_archive_rules(store, user_id, now=now)

    start, end = day_range(now, tz_offset_minutes)
    return Dashboard(
        events=store.list_events(user_id, start=start, end=end),
        todos=store.list_items(
            user_id,
            completed=False,
            kind=ItemKind.TODO,
            due_before=end,
            include_undated=True,
            limit=DASHBOARD_TODO_LIMIT,
        ),
    )


def person_overview(
    store: SiftStore,
    user_id: str,
    person_id: str,
    window_days: int = OVERVIEW_WINDOW_DAYS,
    now: Optional[datetime] = None,
) -> PersonOverview:
    """Everything explicitly linked to one person"""
    now = ensure_utc(now) if now else utcnow()
    enforce_archive_rules(store, user_id, now=now)

    person = store.get_person(user_id, person_id)
    if person is None:
        raise PersonNotFoundError(person_id)

    return PersonOverview(
        person=person,
        todos=store.list_items(user_id, completed=False, kind=ItemKind.TODO, person_id=person_id),
        infos=store.list_items(user_id, kind=ItemKind.INFO, person_id=person_id),
        events=store.list_events(
            user_id, start=now, end=now + timedelta(days=window_days), person_id=person_id
        ),
        inbox=store.list_open_inbox(user_id, person_id=person_id),
        dumps=store.list_dump_history(user_id, limit=OVERVIEW_DUMP_LIMIT, person_id=person_id),
    )


# =============================================================================
# Daily summary
# =============================================================================

SUMMARY_WINDOW = timedelta(hours=24)
SUMMARY_FALLBACK = "Could not generate summary."

SUMMARY_PROMPT = """Generate a morning briefing for the user.

Upcoming events (next 24h):
{events}

Recent notes and dumps (last 24h):
{dumps}

Write a concise, friendly summary of what to expect today and any key
reminders from the notes. Plain text, no headings."""


def build_summary_prompt(events: List[Event], dumps: List[Dump]) -> str:
    event_lines = [f"- {e.title} at {e.start_time.isoformat()}" for e in events]
    dump_lines = [
        f"- [{d.source_kind.value}] {d.content_text or '(image or document content)'}" for d in dumps
    ]
    return SUMMARY_PROMPT.format(
        events="\n".join(event_lines) or "- none",
        dumps="\n".join(dump_lines) or "- none",
    )


def generate_daily_summary(
    store: SiftStore,
    llm_client: LLMClient,
    user_id: str,
    now: Optional[datetime] = None,
    timeout: float = 60.0,
) -> str:
    """
    Morning briefing over the next 24h of events and the last 24h of dumps.

    Returns a fixed fallback message when the model is unavailable or fails.
    """
    now = ensure_utc(now) if now else utcnow()
    events = store.list_events(user_id, start=now, end=now + SUMMARY_WINDOW)
    dumps = store.list_dumps_since(user_id, now - SUMMARY_WINDOW)

    if not llm_client.is_available:
        logger.warning("LLM unavailable, no daily summary for user %s", user_id)
        return SUMMARY_FALLBACK

    try:
        return llm_client.generate(build_summary_prompt(events, dumps), max_tokens=1024, timeout=timeout)
    except Exception as e:
        logger.error("Error generating summary for user %s: %s", user_id, e)
        return SUMMARY_FALLBACK
