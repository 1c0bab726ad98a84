"""
Record layer persistence (SQLite).
"""

from .client import DatabaseConnectionError, create_sqlite_connection
from .repositories import VideoNotFoundError, VideoRepository

__all__ = [
    "DatabaseConnectionError",
    "VideoNotFoundError",
    "VideoRepository",
    "create_sqlite_connection",
]
