"""
Sift Store using SQLite.

The per-user relational store for dumps, people, events, inbox entries and
actionable items. Every query is scoped by user_id.

Writes are single statements (inserts, stamps, bulk updates keyed by a
predicate) so concurrent pipeline runs and on-read archival never
read-then-write the same rows.
"""

import json
import sqlite3
import threading
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import DuplicatePersonError
from .schemas import (
    ActionableItem,
    ArchiveReason,
    Dump,
    Event,
    EventDraft,
    InboxEntry,
    InboxStatus,
    ItemKind,
    Person,
    ProposedData,
    SourceKind,
)
from .timeutil import from_db, to_db, utcnow

# Events without an end time occupy this much of the calendar
DEFAULT_EVENT_LENGTH = timedelta(hours=1)

LINK_KINDS = ("dump", "event", "inbox", "item")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS dumps (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    source_kind TEXT NOT NULL,
    content_text TEXT,
    media_url TEXT,
    embedding_json TEXT,
    created_at TEXT NOT NULL,
    processed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_dumps_user_created ON dumps(user_id, created_at);

CREATE TABLE IF NOT EXISTS people (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    relationship TEXT,
    category TEXT,
    metadata_json TEXT NOT NULL DEFAULT '{}',
    notes TEXT,
    is_important INTEGER NOT NULL DEFAULT 0,
    pinned_order INTEGER,
    created_at TEXT NOT NULL,
    UNIQUE (user_id, name)
);

CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT,
    location TEXT,
    category TEXT,
    external_id TEXT,
    origin_dump_id TEXT REFERENCES dumps(id),
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_user_start ON events(user_id, start_time);

CREATE TABLE IF NOT EXISTS inbox_entries (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    dump_id TEXT NOT NULL UNIQUE REFERENCES dumps(id),
    proposed_data_json TEXT NOT NULL,
    confidence_score REAL NOT NULL CHECK (confidence_score >= 0 AND confidence_score <= 1),
    flag_reason TEXT,
    status TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_inbox_user_status ON inbox_entries(user_id, status);

CREATE TABLE IF NOT EXISTS actionable_items (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    dump_id TEXT REFERENCES dumps(id),
    title TEXT NOT NULL,
    description TEXT,
    kind TEXT NOT NULL DEFAULT 'todo',
    due_date TEXT,
    expires_at TEXT,
    priority TEXT,
    category TEXT,
    completed INTEGER NOT NULL DEFAULT 0,
    completed_at TEXT,
    archived_at TEXT,
    archived_reason TEXT,
    created_at TEXT NOT NULL,
    CHECK ((archived_at IS NULL) = (archived_reason IS NULL))
);
CREATE INDEX IF NOT EXISTS idx_items_user_archived ON actionable_items(user_id, archived_at);

CREATE TABLE IF NOT EXISTS person_links (
    person_id TEXT NOT NULL REFERENCES people(id) ON DELETE CASCADE,
    target_kind TEXT NOT NULL,
    target_id TEXT NOT NULL,
    PRIMARY KEY (person_id, target_kind, target_id)
);
CREATE INDEX IF NOT EXISTS idx_person_links_target ON person_links(target_kind, target_id);
"""


def _new_id() -> str:
    return str(uuid.uuid4())


class SiftStore:
    """
    SQLite-backed store for all Sift records.

    One connection shared across threads, serialized by a lock. Callers get
    pydantic records back, never rows.
    """

    def __init__(self, db_path: Path):
        """
        Args:
            db_path: Path to SQLite database file (":memory:" for tests)
        """
        self._db_path = db_path
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        if str(self._db_path) != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _execute(self, sql: str, params: Iterable = ()) -> sqlite3.Cursor:
        with self._lock:
            cursor = self._conn.execute(sql, tuple(params))
            self._conn.commit()
            return cursor

    def _query(self, sql: str, params: Iterable = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, tuple(params)).fetchall()

    def _query_one(self, sql: str, params: Iterable = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, tuple(params)).fetchone()

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    def _linked_people(self, kind: str, target_id: str) -> List[str]:
        rows = self._query(
            "SELECT person_id FROM person_links WHERE target_kind = ? AND target_id = ? ORDER BY person_id",
            (kind, target_id),
        )
        return [r["person_id"] for r in rows]

    def _row_to_dump(self, row: sqlite3.Row) -> Dump:
        return Dump(
            id=row["id"],
            user_id=row["user_id"],
            source_kind=SourceKind(row["source_kind"]),
            content_text=row["content_text"],
            media_url=row["media_url"],
            embedding=json.loads(row["embedding_json"]) if row["embedding_json"] else None,
            created_at=from_db(row["created_at"]),
            processed_at=from_db(row["processed_at"]),
        )

    def _row_to_person(self, row: sqlite3.Row) -> Person:
        return Person(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            relationship=row["relationship"],
            category=row["category"],
            metadata=json.loads(row["metadata_json"] or "{}"),
            notes=row["notes"],
            is_important=bool(row["is_important"]),
            pinned_order=row["pinned_order"],
            created_at=from_db(row["created_at"]),
        )

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        return Event(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            start_time=from_db(row["start_time"]),
            end_time=from_db(row["end_time"]),
            location=row["location"],
            category=row["category"],
            external_id=row["external_id"],
            origin_dump_id=row["origin_dump_id"],
            created_at=from_db(row["created_at"]),
            person_ids=self._linked_people("event", row["id"]),
        )

    def _row_to_inbox(self, row: sqlite3.Row) -> InboxEntry:
        return InboxEntry(
            id=row["id"],
            user_id=row["user_id"],
            dump_id=row["dump_id"],
            proposed_data=ProposedData.model_validate_json(row["proposed_data_json"]),
            confidence_score=row["confidence_score"],
            flag_reason=row["flag_reason"],
            status=InboxStatus(row["status"]),
            created_at=from_db(row["created_at"]),
            person_ids=self._linked_people("inbox", row["id"]),
        )

    def _row_to_item(self, row: sqlite3.Row) -> ActionableItem:
        return ActionableItem(
            id=row["id"],
            user_id=row["user_id"],
            dump_id=row["dump_id"],
            title=row["title"],
            description=row["description"],
            kind=ItemKind(row["kind"]),
            due_date=from_db(row["due_date"]),
            expires_at=from_db(row["expires_at"]),
            priority=row["priority"],
            category=row["category"],
            completed=bool(row["completed"]),
            completed_at=from_db(row["completed_at"]),
            archived_at=from_db(row["archived_at"]),
            archived_reason=ArchiveReason(row["archived_reason"]) if row["archived_reason"] else None,
            created_at=from_db(row["created_at"]),
            person_ids=self._linked_people("item", row["id"]),
        )

    # -------------------------------------------------------------------------
    # Person links
    # -------------------------------------------------------------------------

    def link_people(self, kind: str, target_id: str, person_ids: Iterable[str]) -> None:
        """Attach people to a dump, event, inbox entry or item (idempotent)"""
        if kind not in LINK_KINDS:
            raise ValueError(f"Unknown link kind: {kind}")
        rows = [(pid, kind, target_id) for pid in dict.fromkeys(person_ids)]
        if not rows:
            return
        with self._lock:
            self._conn.executemany(
                "INSERT OR IGNORE INTO person_links (person_id, target_kind, target_id) VALUES (?, ?, ?)",
                rows,
            )
            self._conn.commit()

    # -------------------------------------------------------------------------
    # Dumps
    # -------------------------------------------------------------------------

    def create_dump(
        self,
        user_id: str,
        source_kind: SourceKind = SourceKind.MANUAL,
        content_text: Optional[str] = None,
        media_url: Optional[str] = None,
    ) -> Dump:
        dump_id = _new_id()
        now = utcnow()
        self._execute(
            """
            INSERT INTO dumps (id, user_id, source_kind, content_text, media_url, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (dump_id, user_id, SourceKind(source_kind).value, content_text, media_url, to_db(now)),
        )
        return self.get_dump(dump_id)

    def get_dump(self, dump_id: str, user_id: Optional[str] = None) -> Optional[Dump]:
        """Point lookup; scoped to user_id when given"""
        if user_id is None:
            row = self._query_one("SELECT * FROM dumps WHERE id = ?", (dump_id,))
        else:
            row = self._query_one("SELECT * FROM dumps WHERE id = ? AND user_id = ?", (dump_id, user_id))
        return self._row_to_dump(row) if row else None

    def set_dump_embedding(self, dump_id: str, embedding: List[float]) -> bool:
        cursor = self._execute(
            "UPDATE dumps SET embedding_json = ? WHERE id = ?",
            (json.dumps(list(embedding)), dump_id),
        )
        return cursor.rowcount > 0

    def set_dump_text(self, dump_id: str, text: str) -> bool:
        """Fill in transcribed text; never overwrites text the user typed"""
        cursor = self._execute(
            "UPDATE dumps SET content_text = ? WHERE id = ? AND content_text IS NULL",
            (text, dump_id),
        )
        return cursor.rowcount > 0

    def mark_dump_processed(self, dump_id: str, when: Optional[datetime] = None) -> bool:
        cursor = self._execute(
            "UPDATE dumps SET processed_at = ? WHERE id = ?",
            (to_db(when or utcnow()), dump_id),
        )
        return cursor.rowcount > 0

    def list_embedded_dumps(
        self,
        user_id: str,
        exclude_dump_id: Optional[str] = None,
    ) -> List[Tuple[str, str, List[float]]]:
        """(dump_id, text, embedding) for the user's dumps that carry both"""
        sql = """
            SELECT id, content_text, embedding_json FROM dumps
            WHERE user_id = ? AND embedding_json IS NOT NULL AND content_text IS NOT NULL
        """
        params: List = [user_id]
        if exclude_dump_id:
            sql += " AND id != ?"
            params.append(exclude_dump_id)
        rows = self._query(sql, params)
        return [(r["id"], r["content_text"], json.loads(r["embedding_json"])) for r in rows]

    def list_unembedded_dumps(self, user_id: Optional[str] = None) -> List[Dump]:
        sql = "SELECT * FROM dumps WHERE embedding_json IS NULL AND content_text IS NOT NULL"
        params: List = []
        if user_id:
            sql += " AND user_id = ?"
            params.append(user_id)
        sql += " ORDER BY created_at"
        return [self._row_to_dump(r) for r in self._query(sql, params)]

    def list_dumps_since(self, user_id: str, since: datetime) -> List[Dump]:
        rows = self._query(
            "SELECT * FROM dumps WHERE user_id = ? AND created_at >= ? ORDER BY created_at ASC",
            (user_id, to_db(since)),
        )
        return [self._row_to_dump(r) for r in rows]

    def list_dump_history(
        self,
        user_id: str,
        limit: int = 50,
        person_id: Optional[str] = None,
    ) -> List[Tuple[Dump, str]]:
        """
        Most recent dumps with the outcome they produced.

        Outcome is one of: event, inbox, none (processed, nothing usable),
        pending (not processed yet).
        """
        sql = """
            SELECT d.*,
                   EXISTS (SELECT 1 FROM events e WHERE e.origin_dump_id = d.id) AS has_event,
                   EXISTS (SELECT 1 FROM inbox_entries i WHERE i.dump_id = d.id) AS has_inbox
            FROM dumps d
            WHERE d.user_id = ?
        """
        params: List = [user_id]
        if person_id:
            sql += """ AND d.id IN (
                SELECT target_id FROM person_links WHERE target_kind = 'dump' AND person_id = ?
            )"""
            params.append(person_id)
        sql += " ORDER BY d.created_at DESC LIMIT ?"
        params.append(limit)

        history = []
        for row in self._query(sql, params):
            if row["has_event"]:
                outcome = "event"
            elif row["has_inbox"]:
                outcome = "inbox"
            elif row["processed_at"]:
                outcome = "none"
            else:
                outcome = "pending"
            history.append((self._row_to_dump(row), outcome))
        return history

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def insert_event(
        self,
        user_id: str,
        draft: EventDraft,
        external_id: Optional[str] = None,
        origin_dump_id: Optional[str] = None,
        person_ids: Iterable[str] = (),
    ) -> Event:
        event_id = _new_id()
        self._execute(
            """
            INSERT INTO events
            (id, user_id, title, start_time, end_time, location, category,
             external_id, origin_dump_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event_id, user_id, draft.title, to_db(draft.start_time), to_db(draft.end_time),
                draft.location, draft.category, external_id, origin_dump_id, to_db(utcnow()),
            ),
        )
        self.link_people("event", event_id, person_ids)
        return self.get_event(user_id, event_id)

    def get_event(self, user_id: str, event_id: str) -> Optional[Event]:
        row = self._query_one("SELECT * FROM events WHERE id = ? AND user_id = ?", (event_id, user_id))
        return self._row_to_event(row) if row else None

    def list_events(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        person_id: Optional[str] = None,
    ) -> List[Event]:
        """Events ordered by start time; start/end bound the start time inclusively"""
        sql = "SELECT * FROM events WHERE user_id = ?"
        params: List = [user_id]
        if start is not None:
            sql += " AND start_time >= ?"
            params.append(to_db(start))
        if end is not None:
            sql += " AND start_time <= ?"
            params.append(to_db(end))
        if person_id:
            sql += " AND id IN (SELECT target_id FROM person_links WHERE target_kind = 'event' AND person_id = ?)"
            params.append(person_id)
        sql += " ORDER BY start_time ASC"
        return [self._row_to_event(r) for r in self._query(sql, params)]

    def recent_events(self, user_id: str, limit: int = 20) -> List[Event]:
        rows = self._query(
            "SELECT * FROM events WHERE user_id = ? ORDER BY start_time DESC LIMIT ?",
            (user_id, limit),
        )
        return [self._row_to_event(r) for r in rows]

    def find_overlapping_events(self, user_id: str, start: datetime, end: datetime) -> List[Event]:
        """Events whose window intersects [start, end)"""
        rows = self._query(
            """
            SELECT * FROM events
            WHERE user_id = ?
              AND start_time < ?
              AND ((end_time IS NOT NULL AND end_time > ?)
                   OR (end_time IS NULL AND start_time > ?))
            ORDER BY start_time ASC
            """,
            (user_id, to_db(end), to_db(start), to_db(start - DEFAULT_EVENT_LENGTH)),
        )
        return [self._row_to_event(r) for r in rows]

    def delete_event(self, user_id: str, event_id: str) -> bool:
        with self._lock:
            cursor = self._conn.execute("DELETE FROM events WHERE id = ? AND user_id = ?", (event_id, user_id))
            if cursor.rowcount:
                self._conn.execute(
                    "DELETE FROM person_links WHERE target_kind = 'event' AND target_id = ?", (event_id,)
                )
            self._conn.commit()
            return cursor.rowcount > 0

    # -------------------------------------------------------------------------
    # Inbox
    # -------------------------------------------------------------------------

    def insert_inbox_entry(
        self,
        user_id: str,
        dump_id: str,
        proposed_data: ProposedData,
        confidence_score: float,
        flag_reason: Optional[str],
        status: InboxStatus,
        person_ids: Iterable[str] = (),
    ) -> InboxEntry:
        entry_id = _new_id()
        self._execute(
            """
            INSERT INTO inbox_entries
            (id, user_id, dump_id, proposed_data_json, confidence_score, flag_reason, status, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry_id, user_id, dump_id, proposed_data.model_dump_json(), confidence_score,
                flag_reason, InboxStatus(status).value, to_db(utcnow()),
            ),
        )
        self.link_people("inbox", entry_id, person_ids)
        return self.get_inbox_entry(user_id, entry_id)

    def get_inbox_entry(self, user_id: str, entry_id: str) -> Optional[InboxEntry]:
        row = self._query_one(
            "SELECT * FROM inbox_entries WHERE id = ? AND user_id = ?", (entry_id, user_id)
        )
        return self._row_to_inbox(row) if row else None

    def list_open_inbox(self, user_id: str, person_id: Optional[str] = None) -> List[InboxEntry]:
        """Entries still awaiting review, newest first"""
        closed = [s.value for s in InboxStatus.closed()]
        sql = f"""
            SELECT * FROM inbox_entries
            WHERE user_id = ? AND status NOT IN ({",".join("?" * len(closed))})
        """
        params: List = [user_id, *closed]
        if person_id:
            sql += " AND id IN (SELECT target_id FROM person_links WHERE target_kind = 'inbox' AND person_id = ?)"
            params.append(person_id)
        sql += " ORDER BY created_at DESC"
        return [self._row_to_inbox(r) for r in self._query(sql, params)]

    def set_inbox_status(self, user_id: str, entry_id: str, status: InboxStatus) -> bool:
        cursor = self._execute(
            "UPDATE inbox_entries SET status = ? WHERE id = ? AND user_id = ?",
            (InboxStatus(status).value, entry_id, user_id),
        )
        return cursor.rowcount > 0

    def claim_inbox_entry(self, user_id: str, entry_id: str, status: InboxStatus) -> bool:
        """
        Move an open entry to ``status`` in one conditional UPDATE.

        Returns False when the entry is missing or already closed, so only
        one of several concurrent callers wins.
        """
        closed = [s.value for s in InboxStatus.closed()]
        cursor = self._execute(
            f"""
            UPDATE inbox_entries SET status = ?
            WHERE id = ? AND user_id = ? AND status NOT IN ({",".join("?" * len(closed))})
            """,
            (InboxStatus(status).value, entry_id, user_id, *closed),
        )
        return cursor.rowcount == 1

    def inbox_status_counts(self, user_id: str) -> Dict[str, int]:
        rows = self._query(
            "SELECT status, COUNT(*) AS n FROM inbox_entries WHERE user_id = ? GROUP BY status",
            (user_id,),
        )
        return {r["status"]: r["n"] for r in rows}

    # -------------------------------------------------------------------------
    # People
    # -------------------------------------------------------------------------

    def get_person(self, user_id: str, person_id: str) -> Optional[Person]:
        row = self._query_one("SELECT * FROM people WHERE id = ? AND user_id = ?", (person_id, user_id))
        return self._row_to_person(row) if row else None

    def find_person_by_name(self, user_id: str, name: str) -> Optional[Person]:
        row = self._query_one("SELECT * FROM people WHERE user_id = ? AND name = ?", (user_id, name))
        return self._row_to_person(row) if row else None

    def list_people(self, user_id: str, relationships: Optional[Iterable[str]] = None) -> List[Person]:
        sql = "SELECT * FROM people WHERE user_id = ?"
        params: List = [user_id]
        if relationships is not None:
            rels = list(relationships)
            sql += f" AND relationship IN ({','.join('?' * len(rels))})"
            params.extend(rels)
        sql += " ORDER BY name ASC"
        return [self._row_to_person(r) for r in self._query(sql, params)]

    def create_person(
        self,
        user_id: str,
        name: str,
        relationship: Optional[str] = None,
        category: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        notes: Optional[str] = None,
        is_important: bool = False,
        pinned_order: Optional[int] = None,
    ) -> Person:
        """Insert a new person; raises DuplicatePersonError on a name collision"""
        person_id = _new_id()
        try:
            self._execute(
                """
                INSERT INTO people
                (id, user_id, name, relationship, category, metadata_json, notes,
                 is_important, pinned_order, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    person_id, user_id, name, relationship, category, json.dumps(metadata or {}),
                    notes, int(is_important), pinned_order, to_db(utcnow()),
                ),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicatePersonError(user_id, name) from e
        return self.get_person(user_id, person_id)

    def upsert_person_by_name(
        self,
        user_id: str,
        name: str,
        relationship: Optional[str] = None,
        category: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        notes: Optional[str] = None,
        is_important: Optional[bool] = None,
        pinned_order: Optional[int] = None,
    ) -> Person:
        """
        Create the person or update the existing row with the same name.

        Non-null arguments overwrite; metadata is merged key by key. A single
        INSERT ... ON CONFLICT statement, so concurrent upserts never duplicate.
        """
        self._execute(
            """
            INSERT INTO people
            (id, user_id, name, relationship, category, metadata_json, notes,
             is_important, pinned_order, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (user_id, name) DO UPDATE SET
                relationship = COALESCE(excluded.relationship, people.relationship),
                category = COALESCE(excluded.category, people.category),
                metadata_json = json_patch(people.metadata_json, excluded.metadata_json),
                notes = COALESCE(excluded.notes, people.notes),
                is_important = CASE WHEN ? IS NULL THEN people.is_important ELSE excluded.is_important END,
                pinned_order = COALESCE(excluded.pinned_order, people.pinned_order)
            """,
            (
                _new_id(), user_id, name, relationship, category, json.dumps(metadata or {}),
                notes, int(bool(is_important)), pinned_order, to_db(utcnow()),
                None if is_important is None else int(is_important),
            ),
        )
        return self.find_person_by_name(user_id, name)

    def update_person(self, user_id: str, person_id: str, **fields) -> Optional[Person]:
        """
        Update columns of an existing person by id.

        Only keys present with a non-None value are written; metadata replaces.
        Raises DuplicatePersonError when renaming onto an existing name.
        """
        columns = {
            "name": lambda v: v,
            "relationship": lambda v: v,
            "category": lambda v: v,
            "notes": lambda v: v,
            "metadata": lambda v: json.dumps(v),
            "is_important": lambda v: int(bool(v)),
            "pinned_order": lambda v: v,
        }
        assignments = []
        params: List = []
        for key, convert in columns.items():
            value = fields.get(key)
            if value is None:
                continue
            column = "metadata_json" if key == "metadata" else key
            assignments.append(f"{column} = ?")
            params.append(convert(value))

        if assignments:
            try:
                self._execute(
                    f"UPDATE people SET {', '.join(assignments)} WHERE id = ? AND user_id = ?",
                    (*params, person_id, user_id),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicatePersonError(user_id, fields.get("name", "")) from e
        return self.get_person(user_id, person_id)

    def delete_person(self, user_id: str, person_id: str) -> bool:
        with self._lock:
            cursor = self._conn.execute("DELETE FROM people WHERE id = ? AND user_id = ?", (person_id, user_id))
            self._conn.commit()
            return cursor.rowcount > 0

    # -------------------------------------------------------------------------
    # Actionable items
    # -------------------------------------------------------------------------

    def insert_item(
        self,
        user_id: str,
        title: str,
        description: Optional[str] = None,
        kind: ItemKind = ItemKind.TODO,
        due_date: Optional[datetime] = None,
        expires_at: Optional[datetime] = None,
        priority: Optional[str] = None,
        category: Optional[str] = None,
        dump_id: Optional[str] = None,
        person_ids: Iterable[str] = (),
    ) -> ActionableItem:
        item_id = _new_id()
        self._execute(
            """
            INSERT INTO actionable_items
            (id, user_id, dump_id, title, description, kind, due_date, expires_at,
             priority, category, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                item_id, user_id, dump_id, title, description, ItemKind(kind).value,
                to_db(due_date), to_db(expires_at), priority, category, to_db(utcnow()),
            ),
        )
        self.link_people("item", item_id, person_ids)
        return self.get_item(user_id, item_id)

    def get_item(self, user_id: str, item_id: str) -> Optional[ActionableItem]:
        row = self._query_one(
            "SELECT * FROM actionable_items WHERE id = ? AND user_id = ?", (item_id, user_id)
        )
        return self._row_to_item(row) if row else None

    def list_items(
        self,
        user_id: str,
        archived: bool = False,
        completed: Optional[bool] = None,
        kind: Optional[ItemKind] = None,
        person_id: Optional[str] = None,
        due_before: Optional[datetime] = None,
        include_undated: bool = False,
        limit: Optional[int] = None,
    ) -> List[ActionableItem]:
        """
        Filtered item list.

        Active lists order open items first, then by due date (undated last),
        then newest first. Archive lists are newest-archived first.
        """
        sql = "SELECT * FROM actionable_items WHERE user_id = ?"
        params: List = [user_id]
        sql += " AND archived_at IS NOT NULL" if archived else " AND archived_at IS NULL"
        if completed is not None:
            sql += " AND completed = ?"
            params.append(int(completed))
        if kind is not None:
            sql += " AND kind = ?"
            params.append(ItemKind(kind).value)
        if due_before is not None:
            if include_undated:
                sql += " AND (due_date <= ? OR due_date IS NULL)"
            else:
                sql += " AND due_date <= ?"
            params.append(to_db(due_before))
        if person_id:
            sql += " AND id IN (SELECT target_id FROM person_links WHERE target_kind = 'item' AND person_id = ?)"
            params.append(person_id)
        if archived:
            sql += " ORDER BY archived_at DESC, created_at DESC"
        else:
            sql += " ORDER BY completed ASC, due_date IS NULL, due_date ASC, created_at DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [self._row_to_item(r) for r in self._query(sql, params)]

    def set_item_completed(
        self,
        user_id: str,
        item_id: str,
        completed: bool,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Complete or reopen an item in one statement.

        Completing archives with reason user_completed; reopening clears a
        user_completed archive and leaves other archive reasons alone.
        """
        stamp = to_db(now or utcnow())
        if completed:
            cursor = self._execute(
                """
                UPDATE actionable_items
                SET completed = 1,
                    completed_at = ?,
                    archived_reason = CASE WHEN archived_at IS NULL THEN ? ELSE archived_reason END,
                    archived_at = COALESCE(archived_at, ?)
                WHERE id = ? AND user_id = ?
                """,
                (stamp, ArchiveReason.USER_COMPLETED.value, stamp, item_id, user_id),
            )
        else:
            cursor = self._execute(
                """
                UPDATE actionable_items
                SET completed = 0,
                    completed_at = NULL,
                    archived_at = CASE WHEN archived_reason = ? THEN NULL ELSE archived_at END,
                    archived_reason = CASE WHEN archived_reason = ? THEN NULL ELSE archived_reason END
                WHERE id = ? AND user_id = ?
                """,
                (ArchiveReason.USER_COMPLETED.value, ArchiveReason.USER_COMPLETED.value, item_id, user_id),
            )
        return cursor.rowcount > 0

    def archive_item(
        self,
        user_id: str,
        item_id: str,
        reason: ArchiveReason,
        now: Optional[datetime] = None,
    ) -> bool:
        cursor = self._execute(
            "UPDATE actionable_items SET archived_at = ?, archived_reason = ? WHERE id = ? AND user_id = ?",
            (to_db(now or utcnow()), ArchiveReason(reason).value, item_id, user_id),
        )
        return cursor.rowcount > 0

    def unarchive_item(self, user_id: str, item_id: str) -> bool:
        cursor = self._execute(
            "UPDATE actionable_items SET archived_at = NULL, archived_reason = NULL WHERE id = ? AND user_id = ?",
            (item_id, user_id),
        )
        return cursor.rowcount > 0

    def archive_overdue_todos(self, user_id: str, cutoff: datetime, now: datetime) -> int:
        """Bulk-archive open items whose due date is strictly before cutoff"""
        cursor = self._execute(
            """
            UPDATE actionable_items
            SET archived_at = ?, archived_reason = ?
            WHERE user_id = ?
              AND archived_at IS NULL
              AND completed = 0
              AND due_date IS NOT NULL
              AND due_date < ?
            """,
            (to_db(now), ArchiveReason.OVERDUE_12H.value, user_id, to_db(cutoff)),
        )
        return cursor.rowcount

    def archive_expired_infos(self, user_id: str, now: datetime) -> int:
        """Bulk-archive info items whose expiry has passed"""
        cursor = self._execute(
            """
            UPDATE actionable_items
            SET archived_at = ?, archived_reason = ?
            WHERE user_id = ?
              AND archived_at IS NULL
              AND kind = 'info'
              AND expires_at IS NOT NULL
              AND expires_at < ?
            """,
            (to_db(now), ArchiveReason.EXPIRED.value, user_id, to_db(now)),
        )
        return cursor.rowcount
