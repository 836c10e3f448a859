"""
Conflict Checker

Does a proposed time window overlap something the user already committed
to? Looks at local events first, then the external calendar's free/busy.
"""

import logging
from datetime import datetime
from typing import Optional

from ..common.store import SiftStore
from .calendar import CalendarService, NullCalendarService

logger = logging.getLogger("sift.ingest.conflict")


class ConflictChecker:
    def __init__(self, store: SiftStore, calendar: Optional[CalendarService] = None):
        self._store = store
        self._calendar = calendar or NullCalendarService()

    def has_conflict(self, user_id: str, start: datetime, end: datetime) -> bool:
        """
        True if [start, end) overlaps an existing commitment.

        Any failure is treated as no conflict.
        """
        try:
            overlapping = self._store.find_overlapping_events(user_id, start, end)
            if overlapping:
                logger.info(
                    "Window %s - %s overlaps %d event(s) for user %s",
                    start.isoformat(), end.isoformat(), len(overlapping), user_id,
                )
                return True
        except Exception as e:
            logger.warning("Local conflict check failed for user %s: %s", user_id, e)

        try:
            return bool(self._calendar.is_busy(user_id, start, end))
        except Exception as e:
            logger.warning("Calendar free/busy check failed for user %s: %s", user_id, e)
            return False
