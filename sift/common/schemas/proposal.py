"""
Proposal Schema

The extractor's structured output. A Proposal lives only in memory between
extraction and routing; when it is held for review it is frozen into a
versioned ProposedData payload, which is the only form ever persisted.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PROPOSED_DATA_VERSION = 1

# Attributes of a detected person that map onto Person columns rather than metadata
PERSON_COLUMNS = {"name", "relationship", "category", "notes", "person_id", "is_new"}


class DetectedPerson(BaseModel):
    """A person mentioned in a dump"""
    model_config = ConfigDict(extra="allow")

    name: str = ""
    relationship: Optional[str] = None
    category: Optional[str] = None
    grade: Optional[str] = None
    school: Optional[str] = None
    birth_date: Optional[str] = None
    notes: Optional[str] = None
    person_id: Optional[str] = Field(default=None, description="Id of an existing person")
    is_new: bool = False

    def metadata(self) -> Dict[str, str]:
        """Everything that is not a Person column, as string metadata"""
        data = self.model_dump(exclude=PERSON_COLUMNS)
        return {key: str(value) for key, value in data.items() if value not in (None, "", [], {})}


class CandidateItem(BaseModel):
    """A todo or info item proposed by the extractor"""
    title: str
    description: Optional[str] = None
    kind: Literal["todo", "info"] = "todo"
    due_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    priority: Optional[str] = None
    category: Optional[str] = None


class ProposedData(BaseModel):
    """Versioned payload stored on an inbox entry"""
    schema_version: Literal[1] = PROPOSED_DATA_VERSION
    title: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: Optional[str] = None
    category: Optional[str] = None
    missing_info: List[str] = Field(default_factory=list)
    people: List[DetectedPerson] = Field(default_factory=list)
    actionable_items: List[CandidateItem] = Field(default_factory=list)
    full_text: Optional[str] = None


class Proposal(BaseModel):
    """Confidence-scored extraction result"""
    title: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: Optional[str] = None
    category: Optional[str] = None
    confidence_score: float = Field(ge=0.0, le=1.0)
    people: List[DetectedPerson] = Field(default_factory=list)
    actionable_items: List[CandidateItem] = Field(default_factory=list)
    missing_info: List[str] = Field(default_factory=list)
    full_text: Optional[str] = None

    @property
    def missing_start_date(self) -> bool:
        return self.start_time is None

    @property
    def has_time_window(self) -> bool:
        return self.start_time is not None and self.end_time is not None

    def to_proposed_data(self) -> ProposedData:
        return ProposedData(
            title=self.title,
            start_time=self.start_time,
            end_time=self.end_time,
            location=self.location,
            category=self.category,
            missing_info=list(self.missing_info),
            people=list(self.people),
            actionable_items=list(self.actionable_items),
            full_text=self.full_text,
        )
