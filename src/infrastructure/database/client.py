"""
SQLite connection management for the video record layer.

Using the repository pattern means most code never touches this module
directly - it goes through VideoRepository, which handles the
translation between VideoRecord and table rows.
"""

import logging
import sqlite3
from contextlib import contextmanager
from typing import Generator

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS videos (
    id TEXT PRIMARY KEY,
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    thumbnail_url TEXT,
    video_url TEXT,
    user_id TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_videos_user_id ON videos(user_id);
"""


class DatabaseConnectionError(Exception):
    """Raised when the database can't be opened."""
    pass


@contextmanager
def create_sqlite_connection(database_path: str) -> Generator[sqlite3.Connection, None, None]:
    """
    Provide a SQLite connection with automatic cleanup.

    The schema is created on first use. One connection per request keeps
    request threads from sharing a connection object.

    Usage:
        with create_sqlite_connection(path) as conn:
            repo = VideoRepository(conn)
    """
    conn = None
    try:
        conn = sqlite3.connect(database_path, check_same_thread=False)
        conn.executescript(SCHEMA)
    except sqlite3.Error as e:
        if conn:
            conn.close()
        logger.error(
            "SQLite connection failed",
            extra={"database_path": database_path, "error": str(e)}
        )
        raise DatabaseConnectionError(f"Database connection failed: {e}") from e

    try:
        yield conn
    finally:
        try:
            conn.close()
        except sqlite3.Error as e:
            logger.warning(
                "Error closing SQLite connection",
                extra={"error": str(e)}
            )
