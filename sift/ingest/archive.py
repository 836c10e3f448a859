"""
Archive Rules Engine

Retires stale actionable items. Runs lazily at the start of every read of
items (active list, archive, dashboard, person overview) instead of on a
schedule.

Rules:
- open todos more than 12 hours past due -> overdue_12h
- info items past their expiry -> expired

Each rule is one set-based UPDATE, so running it again (or concurrently)
changes nothing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..common.store import SiftStore
from ..common.timeutil import ensure_utc, utcnow

logger = logging.getLogger("sift.ingest.archive")

OVERDUE_GRACE = timedelta(hours=12)


@dataclass
class ArchiveReport:
    overdue: int = 0
    expired: int = 0

    @property
    def total(self) -> int:
        return self.overdue + self.expired


def enforce_archive_rules(
    store: SiftStore,
    user_id: str,
    now: Optional[datetime] = None,
) -> ArchiveReport:
    """
    Apply the archive rules for one user.

    A todo due exactly at now - 12h is not archived yet.
    """
    now = ensure_utc(now) if now else utcnow()

    report = ArchiveReport(
        overdue=store.archive_overdue_todos(user_id, cutoff=now - OVERDUE_GRACE, now=now),
        expired=store.archive_expired_infos(user_id, now=now),
    )
    if report.total:
        logger.info(
            "Archived %d overdue and %d expired items for user %s",
            report.overdue, report.expired, user_id,
        )
    return report
