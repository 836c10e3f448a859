"""
Sift

Turns unstructured dumps (free text, forwarded messages, photos of notices)
into calendar events, actionable items and a contact graph.

Philosophy:
- Only confident, conflict-free proposals reach the calendar on their own
- Everything else waits in the inbox for a human
- Stale items retire themselves when they are read, never by a cron

Usage:
    from sift.common import load_config, SiftStore, EmbeddingService
    from sift.ingest import DumpOrchestrator, route, enforce_archive_rules
    from sift.retriever import ContextRetriever
"""

__version__ = "0.1.0"
