"""
People

Resolution of people mentioned in a dump into the user's contact graph,
and the contact CRUD used by the HTTP adapter.

Resolution order for each detected person:
1. the person_id the model mapped it to (if it belongs to the user)
2. an existing person with the same name
3. a new person, when the model marked it new or gave nothing to match on

Matched people get new attributes merged in. School notices that mention a
grade also match the user's children whose metadata carries that grade.
"""

import logging
import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..common.errors import InvalidRequestError, PersonNotFoundError
from ..common.schemas import DetectedPerson, Person, Proposal
from ..common.store import SiftStore

logger = logging.getLogger("sift.ingest.people")

CHILD_RELATIONSHIPS = ("child", "son", "daughter")

_GRADE_PATTERNS = [
    re.compile(r"\b(\d{1,2})(?:th|st|nd|rd)?\s*grade\b", re.IGNORECASE),
    re.compile(r"\bgrade\s*(\d{1,2})\b", re.IGNORECASE),
    re.compile(r"\b(\d{1,2})\.?\s*klasse\b", re.IGNORECASE),
]
_DIGITS = re.compile(r"\d{1,2}")


def find_grade(text: str) -> Optional[str]:
    """First school grade mentioned in text, as a bare number"""
    for pattern in _GRADE_PATTERNS:
        match = pattern.search(text or "")
        if match:
            return str(int(match.group(1)))
    return None


def mentioned_in(people: List[Person], text: Optional[str]) -> List[str]:
    """Ids of the people whose name appears in text (case-insensitive)"""
    if not text:
        return []
    lowered = text.lower()
    return [p.id for p in people if p.name and p.name.lower() in lowered]


class PersonResolver:
    """Maps a proposal's detected people onto Person rows"""

    def __init__(self, store: SiftStore):
        self._store = store

    def resolve(self, user_id: str, proposal: Proposal) -> List[Person]:
        """
        Resolve every person a proposal refers to.

        Failures for one person are logged and skipped; the rest still resolve.
        """
        resolved: Dict[str, Person] = {}

        if (proposal.category or "").lower() == "school":
            for person in self._match_children_by_grade(user_id, proposal):
                resolved.setdefault(person.id, person)

        for detected in proposal.people:
            try:
                person = self._resolve_one(user_id, detected)
            except Exception as e:
                logger.error("Error resolving person %r for user %s: %s", detected.name, user_id, e)
                continue
            if person is not None:
                resolved.setdefault(person.id, person)

        return list(resolved.values())

    def _resolve_one(self, user_id: str, detected: DetectedPerson) -> Optional[Person]:
        person = None
        if detected.person_id:
            person = self._store.get_person(user_id, detected.person_id)
        if person is None and detected.name:
            person = self._store.find_person_by_name(user_id, detected.name)

        metadata = detected.metadata()

        if person is None:
            if not (detected.is_new or (not detected.person_id and not detected.name)):
                # Mapped to an id we do not know and not marked new
                logger.debug("Ignoring unmatched person %r", detected.name)
                return None
            person = self._store.upsert_person_by_name(
                user_id,
                detected.name or "Unknown",
                relationship=detected.relationship,
                category=detected.category,
                metadata=metadata,
                notes=detected.notes,
            )
            logger.info("Created person %s for user %s", person.name, user_id)
            return person

        if detected.relationship or detected.category or detected.notes or metadata:
            person = self._store.upsert_person_by_name(
                user_id,
                person.name,
                relationship=detected.relationship,
                category=detected.category,
                metadata=metadata,
                notes=detected.notes,
            )
        return person

    def _match_children_by_grade(self, user_id: str, proposal: Proposal) -> List[Person]:
        grade = find_grade(proposal.to_proposed_data().model_dump_json())
        if grade is None:
            return []

        matches = []
        for child in self._store.list_people(user_id, relationships=CHILD_RELATIONSHIPS):
            child_grade = _DIGITS.search(child.metadata.get("grade", ""))
            if child_grade and str(int(child_grade.group(0))) == grade:
                logger.info("Matched %s by grade %s", child.name, grade)
                matches.append(child)
        return matches


# =============================================================================
# Contact CRUD
# =============================================================================

class PersonInput(BaseModel):
    """Create-or-update payload; id selects update, otherwise upsert by name"""
    id: Optional[str] = None
    name: Optional[str] = None
    relationship: Optional[str] = None
    category: Optional[str] = None
    metadata: Optional[Dict[str, str]] = None
    notes: Optional[str] = None
    is_important: Optional[bool] = None
    pinned_order: Optional[int] = Field(default=None, ge=0)


class PeopleService:
    def __init__(self, store: SiftStore):
        self._store = store

    def list(self, user_id: str) -> List[Person]:
        return self._store.list_people(user_id)

    def get(self, user_id: str, person_id: str) -> Person:
        person = self._store.get_person(user_id, person_id)
        if person is None:
            raise PersonNotFoundError(person_id)
        return person

    def save(self, user_id: str, data: PersonInput) -> Person:
        """
        Update by id, or upsert by name.

        Raises:
            PersonNotFoundError: id given but not owned by the user
            DuplicatePersonError: rename onto an existing name
            InvalidRequestError: neither id nor name given
        """
        fields = data.model_dump(exclude={"id"})

        if data.id:
            self.get(user_id, data.id)
            return self._store.update_person(user_id, data.id, **fields)

        if not data.name or not data.name.strip():
            raise InvalidRequestError("name is required")
        fields["name"] = data.name.strip()
        return self._store.upsert_person_by_name(user_id, **fields)

    def delete(self, user_id: str, person_id: str) -> None:
        if not self._store.delete_person(user_id, person_id):
            raise PersonNotFoundError(person_id)
