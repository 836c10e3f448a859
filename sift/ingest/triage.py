"""
Triage Router

The traffic-light policy: decides whether a proposal is trustworthy enough
to become a calendar event on its own, or must wait in the inbox.

Pure and deterministic. No I/O, no configuration.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from ..common.schemas import InboxStatus

# Strictly above this confidence a clean proposal commits automatically
AUTO_COMMIT_THRESHOLD = 0.9

# Flag reasons, in the order they appear in a flag string
LOW_CONFIDENCE = "low_confidence"
CONFLICT_DETECTED = "conflict_detected"
MISSING_CONTEXT = "missing_context"
MISSING_FIELDS = "missing_fields"


@dataclass(frozen=True)
class TriageSignals:
    """Everything the router looks at"""
    confidence_score: float
    has_conflict: bool = False
    missing_start_date: bool = False
    missing_info: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Commit:
    """Create an event now"""


@dataclass(frozen=True)
class Hold:
    """Put the proposal in the inbox"""
    status: InboxStatus
    flag_reason: Optional[str] = None


TriageResult = Union[Commit, Hold]


def route(signals: TriageSignals) -> TriageResult:
    """
    Route a proposal.

    Commit iff confidence > 0.9, no conflict and a known start. Otherwise
    Hold with a comma-joined flag reason; a missing start forces needs_info.
    """
    if (
        signals.confidence_score > AUTO_COMMIT_THRESHOLD
        and not signals.has_conflict
        and not signals.missing_start_date
    ):
        return Commit()

    reasons = []
    status = InboxStatus.PENDING

    if signals.confidence_score < AUTO_COMMIT_THRESHOLD:
        reasons.append(LOW_CONFIDENCE)
    if signals.has_conflict:
        reasons.append(CONFLICT_DETECTED)
    if signals.missing_start_date:
        reasons.append(MISSING_CONTEXT)
        status = InboxStatus.NEEDS_INFO
    if signals.missing_info:
        reasons.append(MISSING_FIELDS)

    return Hold(status=status, flag_reason=", ".join(reasons) if reasons else None)
