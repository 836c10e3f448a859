"""
Dump Lifecycle Orchestrator

Runs one dump through the pipeline:

1. Embed the text and retrieve similar past dumps as context
2. Extract a confidence-scored proposal (text, image, context, known people)
3. Resolve mentioned people into the contact graph
4. Check the proposed window for conflicts
5. Triage: commit an Event, or hold an InboxEntry for review
6. Stamp the dump processed

process_dump never raises. Every failure is logged and the dump is still
stamped processed, so a bad dump is never retried in a loop.
"""

import logging
from typing import List, Optional

from ..common.embedding_service import EmbeddingService
from ..common.errors import ExtractionError
from ..common.schemas import Dump, Event, Person, Proposal
from ..common.store import SiftStore
from ..retriever.context import ContextRetriever
from .calendar import CalendarSyncAdapter
from .commit import commit_event
from .conflict import ConflictChecker
from .extractor import StructuredExtractor
from .media import MediaResolver
from .people import PersonResolver
from .triage import Commit, Hold, TriageSignals, route

logger = logging.getLogger("sift.ingest.orchestrator")


def format_event_context(event: Event) -> str:
    """Context line telling the model an event already exists"""
    end = event.end_time.isoformat() if event.end_time else "null"
    return (
        f'EXISTING_EVENT: id={event.id}, title="{event.title}", '
        f"start={event.start_time.isoformat()}, end={end}, category={event.category or ''}"
    )


class DumpOrchestrator:
    """
    Drives a dump from raw input to Event or InboxEntry.

    All collaborators are injected; nothing here knows which model or
    calendar provider is behind them.
    """

    def __init__(
        self,
        store: SiftStore,
        embedding_service: EmbeddingService,
        extractor: StructuredExtractor,
        retriever: Optional[ContextRetriever] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        calendar: Optional[CalendarSyncAdapter] = None,
        media_resolver: Optional[MediaResolver] = None,
        person_resolver: Optional[PersonResolver] = None,
        context_limit: int = 3,
        recent_event_context: int = 20,
    ):
        self._store = store
        self._embedding = embedding_service
        self._extractor = extractor
        self._retriever = retriever or ContextRetriever(store)
        self._calendar = calendar or CalendarSyncAdapter()
        self._conflicts = conflict_checker or ConflictChecker(store, self._calendar.service)
        self._media = media_resolver
        self._people = person_resolver or PersonResolver(store)
        self._context_limit = context_limit
        self._recent_event_context = recent_event_context

    def process_dump(self, dump_id: str) -> None:
        try:
            dump = self._store.get_dump(dump_id)
        except Exception as e:
            logger.error("Failed to load dump %s: %s", dump_id, e)
            return
        if dump is None:
            logger.error("Dump %s not found", dump_id)
            return

        logger.info("Processing dump %s...", dump_id)
        try:
            self._process(dump)
        except Exception as e:
            logger.exception("Error processing dump %s: %s", dump_id, e)
        finally:
            try:
                self._store.mark_dump_processed(dump_id)
            except Exception as e:
                logger.error("Failed to mark dump %s processed: %s", dump_id, e)

    def _process(self, dump: Dump) -> None:
        context = self._build_context(dump)
        known_people = [p.roster_entry() for p in self._store.list_people(dump.user_id)]
        media = self._media.resolve(dump.media_url) if (self._media and dump.media_url) else None

        try:
            proposal = self._extractor.extract(
                dump.content_text or "",
                media=media,
                context=context,
                known_people=known_people,
            )
        except ExtractionError as e:
            logger.error("Extraction failed for dump %s: %s", dump.id, e)
            return

        if not dump.content_text and proposal.full_text:
            self._persist_transcription(dump, proposal.full_text)

        people = self._resolve_people(dump, proposal)

        has_conflict = False
        if proposal.has_time_window:
            has_conflict = self._conflicts.has_conflict(dump.user_id, proposal.start_time, proposal.end_time)

        decision = route(
            TriageSignals(
                confidence_score=proposal.confidence_score,
                has_conflict=has_conflict,
                missing_start_date=proposal.missing_start_date,
                missing_info=list(proposal.missing_info),
            )
        )

        if isinstance(decision, Commit):
            logger.info("Auto-committing dump %s (confidence %.2f)", dump.id, proposal.confidence_score)
            commit_event(
                self._store,
                self._calendar,
                dump.user_id,
                proposal.to_proposed_data(),
                origin_dump_id=dump.id,
                people=people,
            )
        elif isinstance(decision, Hold):
            logger.info("Adding dump %s to inbox (%s)", dump.id, decision.flag_reason)
            self._store.insert_inbox_entry(
                dump.user_id,
                dump.id,
                proposal.to_proposed_data(),
                confidence_score=proposal.confidence_score,
                flag_reason=decision.flag_reason,
                status=decision.status,
                person_ids=[p.id for p in people],
            )

        logger.info("Dump %s processed successfully", dump.id)

    def _build_context(self, dump: Dump) -> List[str]:
        context: List[str] = []

        if dump.content_text:
            try:
                embedding = self._embedding.embed(dump.content_text)
                if embedding:
                    self._store.set_dump_embedding(dump.id, embedding)
                    similar = self._retriever.find_similar(
                        embedding,
                        self._context_limit,
                        user_id=dump.user_id,
                        exclude_dump_id=dump.id,
                    )
                    context.extend(s.text for s in similar)
            except Exception as e:
                logger.error("Embedding context failed for dump %s: %s", dump.id, e)

        if self._recent_event_context > 0:
            try:
                recent = self._store.recent_events(dump.user_id, limit=self._recent_event_context)
            except Exception as e:
                logger.warning("Could not load recent events for dump %s: %s", dump.id, e)
                recent = []
            context.extend(format_event_context(e) for e in recent)

        return context

    def _persist_transcription(self, dump: Dump, full_text: str) -> None:
        try:
            self._store.set_dump_text(dump.id, full_text)
            embedding = self._embedding.embed(full_text)
            if embedding:
                self._store.set_dump_embedding(dump.id, embedding)
        except Exception as e:
            logger.error("Failed to persist full_text/embedding for dump %s: %s", dump.id, e)

    def _resolve_people(self, dump: Dump, proposal: Proposal) -> List[Person]:
        try:
            people = self._people.resolve(dump.user_id, proposal)
            self._store.link_people("dump", dump.id, [p.id for p in people])
            return people
        except Exception as e:
            logger.error("Error resolving people for dump %s: %s", dump.id, e)
            return []
