"""
Persisted Records

Rows of the per-user store: dumps, people, events, inbox entries and
actionable items. Every record carries its owning user_id; nothing in the
pipeline reads or writes across users.
"""

from datetime import datetime
from typing import Dict, List, Optional
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from .proposal import ProposedData


# ============================================================================
# Enums
# ============================================================================

class SourceKind(str, Enum):
    """Where a dump came from"""
    MANUAL = "manual"
    FORWARDED = "forwarded"
    PHOTO = "photo"
    EMAIL = "email"
    OTHER = "other"


class InboxStatus(str, Enum):
    """Review state of an inbox entry"""
    PENDING = "pending"
    NEEDS_INFO = "needs_info"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISMISSED = "dismissed"

    @classmethod
    def closed(cls) -> List["InboxStatus"]:
        return [cls.APPROVED, cls.REJECTED, cls.DISMISSED]


class ItemKind(str, Enum):
    TODO = "todo"
    INFO = "info"


class ArchiveReason(str, Enum):
    """Why an actionable item left the active list"""
    OVERDUE_12H = "overdue_12h"
    EXPIRED = "expired"
    USER_ARCHIVED = "user_archived"
    USER_COMPLETED = "user_completed"


# ============================================================================
# Records
# ============================================================================

class Dump(BaseModel):
    """Raw captured input, mutated only by the orchestrator"""
    id: str
    user_id: str
    source_kind: SourceKind = SourceKind.MANUAL
    content_text: Optional[str] = None
    media_url: Optional[str] = None
    embedding: Optional[List[float]] = None
    created_at: datetime
    processed_at: Optional[datetime] = None

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None


class Person(BaseModel):
    """A contact; name is unique per user"""
    id: str
    user_id: str
    name: str
    relationship: Optional[str] = None
    category: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
    notes: Optional[str] = None
    is_important: bool = False
    pinned_order: Optional[int] = None
    created_at: datetime

    def roster_entry(self) -> Dict[str, object]:
        """Shape handed to the extractor so it can map mentions to ids"""
        return {
            "id": self.id,
            "name": self.name,
            "relationship": self.relationship,
            "category": self.category,
            "metadata": self.metadata,
        }


class EventDraft(BaseModel):
    """Fields needed to create an event, locally or on an external calendar"""
    title: str
    start_time: datetime
    end_time: Optional[datetime] = None
    location: Optional[str] = None
    category: Optional[str] = None


class Event(BaseModel):
    """A committed calendar item"""
    id: str
    user_id: str
    title: str
    start_time: datetime
    end_time: Optional[datetime] = None
    location: Optional[str] = None
    category: Optional[str] = None
    external_id: Optional[str] = None
    origin_dump_id: Optional[str] = None
    created_at: datetime
    person_ids: List[str] = Field(default_factory=list)


class InboxEntry(BaseModel):
    """A proposal held for human review"""
    id: str
    user_id: str
    dump_id: str
    proposed_data: ProposedData
    confidence_score: float = Field(ge=0.0, le=1.0)
    flag_reason: Optional[str] = None
    status: InboxStatus = InboxStatus.PENDING
    created_at: datetime
    person_ids: List[str] = Field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status not in InboxStatus.closed()


class ActionableItem(BaseModel):
    """A todo or an info item"""
    id: str
    user_id: str
    dump_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    kind: ItemKind = ItemKind.TODO
    due_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    priority: Optional[str] = None
    category: Optional[str] = None
    completed: bool = False
    completed_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    archived_reason: Optional[ArchiveReason] = None
    created_at: datetime
    person_ids: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _archive_fields_travel_together(self) -> "ActionableItem":
        if (self.archived_at is None) != (self.archived_reason is None):
            raise ValueError("archived_at and archived_reason must be set together")
        return self

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None
