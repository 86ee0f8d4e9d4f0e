#!/usr/bin/env python3
"""Initialize the database and import the legacy notes.json export"""

import json
import logging
from pathlib import Path
from typing import Optional

from config import Settings, get_settings
from database import DatabaseManager
from services.auth_service import UserStore
from services.errors import NotesError
from services.note_store import NoteStore

logger = logging.getLogger(__name__)


def initialize(settings: Settings) -> DatabaseManager:
    """Create the schema and search index at ``settings.db_path``."""
    db = DatabaseManager(settings.db_path)
    db.initialize_database()
    return db


def get_legacy_owner(settings: Settings, users: UserStore) -> str:
    """Return the id of the account that owns imported notes, creating it if needed"""
    existing = users.get_by_username(settings.legacy_admin_username)
    if existing:
        return existing.id
    user = users.create_user(settings.legacy_admin_username, settings.legacy_admin_password)
    logger.info(f"Created legacy owner account '{user.username}'")
    return user.id


def migrate_legacy_notes(settings: Settings, store: NoteStore, users: UserStore) -> Optional[int]:
    """Import ``notes.json`` into an empty notes table, then rename it to ``.bak``.

    Returns the number of imported notes, or None when nothing was imported.
    A failed import leaves the database and the JSON file untouched.
    """
    path = Path(settings.legacy_notes_path)
    if not path.exists():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        imported = None
        if data and store.count_notes() == 0:
            logger.info("Detected legacy JSON data. Starting migration...")
            owner_id = get_legacy_owner(settings, users)
            imported = store.import_notes(owner_id, data)
            logger.info(f"Successfully migrated {imported} notes to SQLite")
        path.rename(path.with_name(path.name + ".bak"))
        return imported
    except (OSError, ValueError, AttributeError, NotesError) as e:
        logger.error(f"Migration failed: {e}")
        return None


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    settings = get_settings()
    print("🔧 Initializing notes database...")
    db = initialize(settings)
    count = migrate_legacy_notes(settings, NoteStore(db), UserStore(db))
    if count:
        print(f"✅ Imported {count} legacy notes")
    db.close_all_connections()
    print("✅ Database initialization complete!")
