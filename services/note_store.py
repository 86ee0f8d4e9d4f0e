# ──────────────────────────────────────────────────────────────────────────────
# File: services/note_store.py
# ──────────────────────────────────────────────────────────────────────────────
"""
Note persistence and full-text search over SQLite FTS5.
- Every read and write is scoped by (id, user_id)
- The notes_fts index is kept in step by triggers inside the same transaction
- Storage failures surface as Conflict / Internal domain errors
"""
from __future__ import annotations
import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from database import DatabaseManager
from models import DEFAULT_CATEGORY, Note, NoteIn
from services.errors import Conflict, Internal, NotFound

logger = logging.getLogger(__name__)

NOTE_COLUMNS = "id, user_id, title, content, category, tags, pinned, created_at, updated_at"


def _now() -> str:
    """UTC timestamp in the millisecond ISO form clients already parse."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_match_query(q: str) -> str:
    """Quote user text as a single FTS5 prefix phrase.

    Embedded double quotes are doubled so they stay literal inside the phrase.
    """
    escaped = q.replace('"', '""')
    return f'"{escaped}"*'


def _decode_tags(raw: Optional[str]) -> List[str]:
    try:
        tags = json.loads(raw or "[]")
    except ValueError:
        logger.warning(f"Unreadable tags column: {raw!r}")
        return []
    return tags if isinstance(tags, list) else []


def row_to_note(row: sqlite3.Row) -> Note:
    return Note(
        id=row["id"],
        title=row["title"] or "",
        content=row["content"] or "",
        category=row["category"] or DEFAULT_CATEGORY,
        tags=_decode_tags(row["tags"]),
        pinned=bool(row["pinned"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class NoteStore:
    """Owner-scoped CRUD and ranked search over notes."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    @contextmanager
    def _write(self, operation: str):
        try:
            with self.db.transaction() as conn:
                yield conn
        except sqlite3.IntegrityError as e:
            logger.warning(f"{operation} rejected by constraint: {e}")
            raise Conflict(f"{operation} conflicts with an existing record") from e
        except sqlite3.Error as e:
            logger.error(f"{operation} failed: {e}")
            raise Internal(f"{operation} failed") from e

    # ─── Reads ───────────────────────────────────────────────────────────────
    def list_notes(self, user_id: str, query: Optional[str] = None) -> List[Note]:
        """All of a user's notes, or those matching ``query``; pinned first."""
        if query is None or not query.strip():
            return self._list_recent(user_id)
        return self._search(user_id, query)

    def _list_recent(self, user_id: str) -> List[Note]:
        try:
            rows = self.db.get_connection().execute(
                f"""
                SELECT {NOTE_COLUMNS} FROM notes
                WHERE user_id = ?
                ORDER BY pinned DESC, updated_at DESC, rowid DESC
                """, (user_id,)).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Listing notes for user {user_id} failed: {e}")
            raise Internal("Failed to read notes") from e
        return [row_to_note(r) for r in rows]

    def _search(self, user_id: str, query: str) -> List[Note]:
        match = build_match_query(query.strip())
        try:
            rows = self.db.get_connection().execute(
                """
                SELECT n.id, n.user_id, n.title, n.content, n.category, n.tags,
                       n.pinned, n.created_at, n.updated_at
                FROM notes_fts f
                JOIN notes n ON n.rowid = f.rowid
                WHERE f.user_id = ? AND f.notes_fts MATCH ?
                ORDER BY n.pinned DESC, f.rank
                """, (user_id, match)).fetchall()
        except sqlite3.OperationalError as e:
            # Malformed MATCH expression; treat as no hits rather than an error
            logger.warning(f"FTS query failed for {match!r}: {e}")
            return []
        except sqlite3.Error as e:
            logger.error(f"Search for user {user_id} failed: {e}")
            raise Internal("Failed to search notes") from e
        logger.debug(f"Search {match!r} for user {user_id}: {len(rows)} hits")
        return [row_to_note(r) for r in rows]

    def get_note(self, user_id: str, note_id: str) -> Note:
        try:
            row = self.db.get_connection().execute(
                f"SELECT {NOTE_COLUMNS} FROM notes WHERE id = ? AND user_id = ?",
                (note_id, user_id)).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Reading note {note_id} failed: {e}")
            raise Internal("Failed to read note") from e
        if row is None:
            raise NotFound("Note not found")
        return row_to_note(row)

    def count_notes(self) -> int:
        try:
            return self.db.get_connection().execute("SELECT COUNT(*) FROM notes").fetchone()[0]
        except sqlite3.Error as e:
            raise Internal("Failed to count notes") from e

    # ─── Writes ──────────────────────────────────────────────────────────────
    def save_note(self, user_id: str, note: NoteIn) -> Note:
        """Insert when ``note.id`` is empty, otherwise update the owned row."""
        now = _now()
        with self._write("Save note") as conn:
            if note.id:
                existing = conn.execute(
                    f"SELECT {NOTE_COLUMNS} FROM notes WHERE id = ? AND user_id = ?",
                    (note.id, user_id)).fetchone()
                if existing is None:
                    raise NotFound("Note not found")
                current = row_to_note(existing)
                note_id = note.id
                conn.execute(
                    """
                    UPDATE notes
                    SET title = ?, content = ?, category = ?, tags = ?, pinned = ?, updated_at = ?
                    WHERE id = ? AND user_id = ?
                    """, (
                        current.title if note.title is None else note.title,
                        current.content if note.content is None else note.content,
                        current.category if note.category is None else note.category,
                        json.dumps(current.tags if note.tags is None else note.tags, ensure_ascii=False),
                        int(current.pinned if note.pinned is None else note.pinned),
                        now, note_id, user_id))
            else:
                note_id = str(uuid.uuid4())
                conn.execute(
                    f"INSERT INTO notes ({NOTE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        note_id, user_id,
                        note.title or "",
                        note.content or "",
                        note.category or DEFAULT_CATEGORY,
                        json.dumps(note.tags or [], ensure_ascii=False),
                        int(bool(note.pinned)),
                        now, now))
            row = conn.execute(
                f"SELECT {NOTE_COLUMNS} FROM notes WHERE id = ?", (note_id,)).fetchone()

        logger.debug(f"Saved note {note_id} for user {user_id}")
        return row_to_note(row)

    def delete_note(self, user_id: str, note_id: str) -> None:
        with self._write("Delete note") as conn:
            deleted = conn.execute(
                "DELETE FROM notes WHERE id = ? AND user_id = ?", (note_id, user_id)).rowcount
        if deleted == 0:
            raise NotFound("Note not found")
        logger.debug(f"Deleted note {note_id} for user {user_id}")

    def import_notes(self, user_id: str, notes: Iterable[dict]) -> int:
        """Bulk insert legacy note dicts in one transaction; returns the count."""
        count = 0
        with self._write("Import notes") as conn:
            for item in notes:
                now = _now()
                conn.execute(
                    f"INSERT INTO notes ({NOTE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        item.get("id") or str(uuid.uuid4()),
                        user_id,
                        item.get("title") or "",
                        item.get("content") or "",
                        item.get("category") or DEFAULT_CATEGORY,
                        json.dumps(item.get("tags") or [], ensure_ascii=False),
                        int(bool(item.get("pinned"))),
                        item.get("createdAt") or now,
                        item.get("updatedAt") or now))
                count += 1
        logger.info(f"Imported {count} notes for user {user_id}")
        return count
