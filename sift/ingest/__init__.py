"""
Ingest - Dump Triage Pipeline

Turns raw dumps into calendar events or inbox entries, and keeps actionable
items fresh.

Key Components:
- DumpOrchestrator: embed -> retrieve -> extract -> conflict -> route -> persist
- route: the traffic-light triage policy
- StructuredExtractor: LLM extraction into a Proposal
- ConflictChecker: overlap with existing commitments
- CalendarSyncAdapter: best-effort external calendar sync
- enforce_archive_rules: on-read retirement of stale items
- DumpTaskQueue: background processing

Rules:
1. Only confidence > 0.9 with a start date and no conflict commits on its own
2. Every processed dump yields at most one of Event or InboxEntry
3. A dump is always stamped processed, even when extraction fails
4. Archive timestamp and reason are set and cleared together
"""

from .archive import ArchiveReport, enforce_archive_rules, OVERDUE_GRACE
from .calendar import CalendarSyncAdapter, GoogleCalendarService, NullCalendarService
from .conflict import ConflictChecker
from .extractor import StructuredExtractor
from .orchestrator import DumpOrchestrator
from .tasks import DumpTaskQueue, TaskHandle
from .triage import AUTO_COMMIT_THRESHOLD, Commit, Hold, TriageSignals, route

__all__ = [
    "ArchiveReport",
    "enforce_archive_rules",
    "OVERDUE_GRACE",
    "CalendarSyncAdapter",
    "GoogleCalendarService",
    "NullCalendarService",
    "ConflictChecker",
    "StructuredExtractor",
    "DumpOrchestrator",
    "DumpTaskQueue",
    "TaskHandle",
    "AUTO_COMMIT_THRESHOLD",
    "Commit",
    "Hold",
    "TriageSignals",
    "route",
]
