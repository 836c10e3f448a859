"""
Sift Schemas

Pydantic models for persisted records and the extractor's proposal.
"""

from .proposal import (
    Proposal,
    ProposedData,
    DetectedPerson,
    CandidateItem,
    PROPOSED_DATA_VERSION,
)
from .records import (
    Dump,
    Person,
    Event,
    EventDraft,
    InboxEntry,
    ActionableItem,
    SourceKind,
    InboxStatus,
    ItemKind,
    ArchiveReason,
)

__all__ = [
    "Proposal",
    "ProposedData",
    "DetectedPerson",
    "CandidateItem",
    "PROPOSED_DATA_VERSION",
    "Dump",
    "Person",
    "Event",
    "EventDraft",
    "InboxEntry",
    "ActionableItem",
    "SourceKind",
    "InboxStatus",
    "ItemKind",
    "ArchiveReason",
]
