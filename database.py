"""
Database connection management and schema for the notes service.

This module provides:
- Per-thread SQLite connections with WAL and foreign keys enabled
- Transaction scoping that commits on success and rolls back on error
- Schema creation, including the FTS5 shadow index and its sync triggers
- Connection health monitoring
"""

import sqlite3
import threading
import time
import logging
import os
from typing import Dict, Any
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    username TEXT UNIQUE NOT NULL,
    password_hash TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS notes (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT DEFAULT '',
    content TEXT DEFAULT '',
    category TEXT DEFAULT 'default',
    tags TEXT DEFAULT '[]',
    pinned INTEGER DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS ix_notes_user_updated ON notes(user_id, pinned, updated_at);

-- Own copy of the text so uuid ids never collide with FTS internals
CREATE VIRTUAL TABLE IF NOT EXISTS notes_fts USING fts5(
    id UNINDEXED,
    user_id UNINDEXED,
    title,
    content
);

CREATE TRIGGER IF NOT EXISTS notes_ai AFTER INSERT ON notes BEGIN
    INSERT INTO notes_fts(rowid, id, user_id, title, content)
    VALUES (new.rowid, new.id, new.user_id, new.title, new.content);
END;

CREATE TRIGGER IF NOT EXISTS notes_ad AFTER DELETE ON notes BEGIN
    DELETE FROM notes_fts WHERE rowid = old.rowid;
END;

CREATE TRIGGER IF NOT EXISTS notes_au AFTER UPDATE ON notes BEGIN
    DELETE FROM notes_fts WHERE rowid = old.rowid;
    INSERT INTO notes_fts(rowid, id, user_id, title, content)
    VALUES (new.rowid, new.id, new.user_id, new.title, new.content);
END;
"""

# Rows written before the triggers existed
BACKFILL_SQL = """
INSERT INTO notes_fts(rowid, id, user_id, title, content)
SELECT rowid, id, user_id, title, content FROM notes
WHERE rowid NOT IN (SELECT rowid FROM notes_fts)
"""


class DatabaseManager:
    """Database connection manager with per-thread connections and health monitoring."""

    def __init__(self, db_path):
        self.db_path = str(db_path)
        self._connections = {}
        self._lock = threading.RLock()
        self._health_stats = {
            'total_connections': 0,
            'active_connections': 0,
            'failed_connections': 0,
            'last_health_check': None
        }

    def get_connection(self) -> sqlite3.Connection:
        """Get the calling thread's connection, creating it on first use."""
        thread_id = threading.get_ident()

        with self._lock:
            try:
                if thread_id in self._connections:
                    conn = self._connections[thread_id]
                    try:
                        conn.execute("SELECT 1")
                        return conn
                    except sqlite3.Error:
                        # Connection is dead, remove it
                        del self._connections[thread_id]
                        self._health_stats['active_connections'] -= 1

                conn = sqlite3.connect(self.db_path, timeout=30.0)

                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys=ON")
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("PRAGMA synchronous=NORMAL")
                conn.execute("PRAGMA temp_store=memory")

                self._connections[thread_id] = conn
                self._health_stats['total_connections'] += 1
                self._health_stats['active_connections'] += 1

                logger.debug(f"Created new database connection for thread {thread_id}")
                return conn

            except sqlite3.Error as e:
                self._health_stats['failed_connections'] += 1
                logger.error(f"Failed to create database connection: {e}")
                raise

    @contextmanager
    def transaction(self):
        """Run the enclosed statements as one atomic unit."""
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            logger.warning(f"Database transaction rolled back: {e}")
            raise

    def close_connection(self, thread_id: int = None):
        """Close connection for specific thread."""
        if thread_id is None:
            thread_id = threading.get_ident()

        with self._lock:
            if thread_id in self._connections:
                try:
                    self._connections[thread_id].close()
                    del self._connections[thread_id]
                    self._health_stats['active_connections'] -= 1
                    logger.debug(f"Closed database connection for thread {thread_id}")
                except sqlite3.Error as e:
                    logger.error(f"Error closing database connection: {e}")

    def close_all_connections(self):
        """Close all active connections."""
        with self._lock:
            for thread_id, conn in list(self._connections.items()):
                try:
                    conn.close()
                except sqlite3.Error as e:
                    logger.warning(f"Error closing connection for thread {thread_id}: {e}")
            self._connections.clear()
            self._health_stats['active_connections'] = 0
            logger.info("Closed all database connections")

    def health_check(self) -> Dict[str, Any]:
        """Perform health check and return statistics."""
        health_info = {
            'database_path': self.db_path,
            'database_exists': os.path.exists(self.db_path),
            'database_size_mb': 0,
            'writable': False,
            'connection_test': False,
            'notes': None,
            'fts_rows': None,
            'stats': self._health_stats.copy()
        }

        try:
            if health_info['database_exists']:
                health_info['database_size_mb'] = round(
                    os.path.getsize(self.db_path) / (1024 * 1024), 2
                )
                health_info['writable'] = os.access(self.db_path, os.W_OK)

            conn = self.get_connection()
            conn.execute("SELECT 1")
            health_info['connection_test'] = True
            health_info['notes'] = conn.execute("SELECT COUNT(*) FROM notes").fetchone()[0]
            health_info['fts_rows'] = conn.execute("SELECT COUNT(*) FROM notes_fts").fetchone()[0]

            self._health_stats['last_health_check'] = time.time()

        except sqlite3.Error as e:
            logger.error(f"Database health check failed: {e}")
            health_info['error'] = str(e)

        return health_info

    def initialize_database(self):
        """Create tables, the search index and its triggers if needed."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = self.get_connection()
            conn.executescript(SCHEMA_SQL)
            with self.transaction() as tx:
                backfilled = tx.execute(BACKFILL_SQL).rowcount
            if backfilled:
                logger.info(f"Backfilled {backfilled} notes into the search index")
            logger.info("Database initialization completed")

        except sqlite3.Error as e:
            logger.error(f"Database initialization failed: {e}")
            raise


__all__ = [
    'DatabaseManager',
    'SCHEMA_SQL',
]
