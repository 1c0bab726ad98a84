"""
SQLite repository for video records.

The repository translates between VideoRecord and the videos table.
Storage references are persisted exactly as the storage backend returned
them; this layer never interprets them.
"""

import logging
import sqlite3
from datetime import datetime
from typing import Optional
from uuid import UUID

from src.core.media.models import VideoRecord

logger = logging.getLogger(__name__)


class VideoNotFoundError(Exception):
    """Raised when a requested video doesn't exist."""
    pass


_COLUMNS = """
    id, created_at, updated_at, title, description,
    thumbnail_url, video_url, user_id
"""


class VideoRepository:
    """
    Repository for video record persistence.

    - create_video: Insert a new record
    - get_video: Load a record by ID
    - update_video: Persist changed metadata and storage references
    - delete_video: Remove a record
    - list_videos_for_user: A user's records, newest first
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection

    def create_video(self, video: VideoRecord) -> VideoRecord:
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO videos ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, self._to_row(video))
            self._conn.commit()
        except sqlite3.Error as e:
            logger.error(
                "Failed to create video",
                extra={"video_id": str(video.id), "error": str(e)}
            )
            raise
        finally:
            cursor.close()

        return video

    def get_video(self, video_id: UUID) -> VideoRecord:
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {_COLUMNS}
                FROM videos
                WHERE id = ?
            """, (str(video_id),))
            row = cursor.fetchone()
        finally:
            cursor.close()

        if not row:
            raise VideoNotFoundError(f"Video {video_id} not found")

        return self._from_row(row)

    def update_video(self, video: VideoRecord) -> None:
        """
        Persist all mutable fields, including cleared references.

        Bumps updated_at.
        """
        video.touch()
        cursor = self._conn.cursor()

        try:
            cursor.execute("""
                UPDATE videos
                SET updated_at = ?,
                    title = ?,
                    description = ?,
                    thumbnail_url = ?,
                    video_url = ?
                WHERE id = ?
            """, (
                video.updated_at.isoformat(),
                video.title,
                video.description,
                video.thumbnail_ref,
                video.video_ref,
                str(video.id),
            ))
            if cursor.rowcount == 0:
                raise VideoNotFoundError(f"Video {video.id} not found")
            self._conn.commit()
        except sqlite3.Error as e:
            logger.error(
                "Failed to update video",
                extra={"video_id": str(video.id), "error": str(e)}
            )
            raise
        finally:
            cursor.close()

    def delete_video(self, video_id: UUID) -> None:
        cursor = self._conn.cursor()

        try:
            cursor.execute("DELETE FROM videos WHERE id = ?", (str(video_id),))
            if cursor.rowcount == 0:
                raise VideoNotFoundError(f"Video {video_id} not found")
            self._conn.commit()
        except sqlite3.Error as e:
            logger.error(
                "Failed to delete video",
                extra={"video_id": str(video_id), "error": str(e)}
            )
            raise
        finally:
            cursor.close()

    def list_videos_for_user(self, user_id: str, limit: Optional[int] = None) -> list[VideoRecord]:
        cursor = self._conn.cursor()

        try:
            query = f"""
                SELECT {_COLUMNS}
                FROM videos
                WHERE user_id = ?
                ORDER BY created_at DESC
            """
            params: tuple = (user_id,)
            if limit is not None:
                query += " LIMIT ?"
                params = (user_id, limit)
            cursor.execute(query, params)
            rows = cursor.fetchall()
        finally:
            cursor.close()

        return [self._from_row(row) for row in rows]

    @staticmethod
    def _to_row(video: VideoRecord) -> tuple:
        return (
            str(video.id),
            video.created_at.isoformat(),
            video.updated_at.isoformat(),
            video.title,
            video.description,
            video.thumbnail_ref,
            video.video_ref,
            video.user_id,
        )

    @staticmethod
    def _from_row(row: tuple) -> VideoRecord:
        return VideoRecord(
            id=UUID(row[0]),
            created_at=datetime.fromisoformat(row[1]),
            updated_at=datetime.fromisoformat(row[2]),
            title=row[3],
            description=row[4] or "",
            thumbnail_ref=row[5],
            video_ref=row[6],
            user_id=row[7],
        )
