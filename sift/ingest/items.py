"""
Actionable Items

Todo and info lists. Every read applies the archive rules first, so what
the user sees is never stale.
"""

import logging
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..common.errors import ItemNotFoundError
from ..common.schemas import ActionableItem, ArchiveReason, ItemKind
from ..common.store import SiftStore
from .archive import enforce_archive_rules

logger = logging.getLogger("sift.ingest.items")


class ItemInput(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    kind: ItemKind = ItemKind.TODO
    due_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    priority: Optional[str] = None
    category: Optional[str] = None
    person_ids: List[str] = Field(default_factory=list)


class ItemService:
    def __init__(self, store: SiftStore):
        self._store = store

    def list_active(
        self,
        user_id: str,
        kind: Optional[ItemKind] = None,
        person_id: Optional[str] = None,
    ) -> List[ActionableItem]:
        enforce_archive_rules(self._store, user_id)
        return self._store.list_items(user_id, archived=False, kind=kind, person_id=person_id)

    def list_archived(self, user_id: str) -> List[ActionableItem]:
        enforce_archive_rules(self._store, user_id)
        return self._store.list_items(user_id, archived=True)

    def get(self, user_id: str, item_id: str) -> ActionableItem:
        enforce_archive_rules(self._store, user_id)
        item = self._store.get_item(user_id, item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def create(self, user_id: str, data: ItemInput) -> ActionableItem:
        # Only link people the user owns
        person_ids = [pid for pid in data.person_ids if self._store.get_person(user_id, pid)]
        return self._store.insert_item(
            user_id,
            title=data.title,
            description=data.description,
            kind=data.kind,
            due_date=data.due_date,
            expires_at=data.expires_at,
            priority=data.priority,
            category=data.category,
            person_ids=person_ids,
        )

    def set_completed(self, user_id: str, item_id: str, completed: bool) -> ActionableItem:
        """Completing archives as user_completed; reopening restores it"""
        if not self._store.set_item_completed(user_id, item_id, completed):
            raise ItemNotFoundError(item_id)
        return self._store.get_item(user_id, item_id)

    def archive(self, user_id: str, item_id: str) -> ActionableItem:
        if not self._store.archive_item(user_id, item_id, ArchiveReason.USER_ARCHIVED):
            raise ItemNotFoundError(item_id)
        return self._store.get_item(user_id, item_id)

    def unarchive(self, user_id: str, item_id: str) -> ActionableItem:
        """Clears archived_at and archived_reason together"""
        if not self._store.unarchive_item(user_id, item_id):
            raise ItemNotFoundError(item_id)
        logger.debug("Unarchived item %s", item_id)
        return self._store.get_item(user_id, item_id)
