"""
Commit

Turns approved proposal data into an Event (plus its candidate actionable
items). Shared by auto-commit in the orchestrator and inbox confirmation.
"""

import logging
from typing import List, Optional

from ..common.schemas import ActionableItem, CandidateItem, Event, EventDraft, ItemKind, Person, ProposedData
from ..common.store import SiftStore
from .calendar import CalendarSyncAdapter
from .people import mentioned_in

logger = logging.getLogger("sift.ingest.commit")


def draft_from(data: ProposedData) -> EventDraft:
    return EventDraft(
        title=data.title,
        start_time=data.start_time,
        end_time=data.end_time,
        location=data.location,
        category=data.category,
    )


def commit_event(
    store: SiftStore,
    calendar: CalendarSyncAdapter,
    user_id: str,
    data: ProposedData,
    origin_dump_id: Optional[str] = None,
    people: Optional[List[Person]] = None,
) -> Event:
    """
    Sync to the external calendar, then insert the local event.

    A failed sync still creates the event, with no external id.
    """
    people = people or []
    draft = draft_from(data)
    external_id = calendar.create_event(user_id, draft)

    event = store.insert_event(
        user_id,
        draft,
        external_id=external_id,
        origin_dump_id=origin_dump_id,
        person_ids=[p.id for p in people],
    )
    logger.info("Committed event %s (%s) for user %s", event.id, event.title, user_id)

    create_candidate_items(store, user_id, data.actionable_items, origin_dump_id, people)
    return event


def create_candidate_items(
    store: SiftStore,
    user_id: str,
    candidates: List[CandidateItem],
    dump_id: Optional[str],
    people: List[Person],
) -> List[ActionableItem]:
    """Create items from candidates, linking people named in each description"""
    created = []
    for candidate in candidates:
        if not candidate.title:
            continue
        try:
            item = store.insert_item(
                user_id,
                title=candidate.title,
                description=candidate.description,
                kind=ItemKind(candidate.kind),
                due_date=candidate.due_date,
                expires_at=candidate.expires_at,
                priority=candidate.priority,
                category=candidate.category,
                dump_id=dump_id,
                person_ids=mentioned_in(people, candidate.description),
            )
        except Exception as e:
            logger.error("Error creating actionable item %r: %s", candidate.title, e)
            continue
        created.append(item)
    return created
