"""
Chapters Service Module

This module provides specialized database operations for manuscript chapters:
creation, listing in reading order, partial updates and deletion. Deleting a
chapter also deletes every annotation attached to it.
"""

import logging
import sqlite3
from typing import Any

from ..models.chapters import PUBLISHED_STATUSES
from .base_database_service import BaseDatabaseService

# Configure logger for this module
logger = logging.getLogger(__name__)


class ChaptersService(BaseDatabaseService):
    """
    Service class for managing chapters using SQLite.
    """

    def __init__(self, db_path: str | None = None):
        super().__init__(db_path)
        self._init_table()

    def _init_table(self):
        """
        Initialize the chapters table and indexes.
        """
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS chapters (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,  -- Unique identifier for each chapter
                    title TEXT NOT NULL,                   -- Chapter title shown on the dashboard
                    content_md TEXT NOT NULL,              -- Markdown body; frozen once annotated
                    status TEXT NOT NULL DEFAULT 'planned'
                        CHECK (status IN ('planned', 'awaiting_feedback', 'validated')),
                    sort_order INTEGER NOT NULL DEFAULT 0, -- Position in the table of contents
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_chapters_order
                ON chapters(sort_order)
            """)

            conn.commit()

    def _row_to_dict(self, row) -> dict[str, Any]:
        return {key: row[key] for key in row.keys()}

    def create_chapter(
        self,
        title: str,
        content_md: str,
        status: str = "planned",
        sort_order: int = 0,
    ) -> int | None:
        """
        Create a chapter.

        Returns:
            int | None: The new chapter ID, or None if creation failed
        """
        query = """
            INSERT INTO chapters (title, content_md, status, sort_order, created_at)
            VALUES (?, ?, ?, ?, ?)
        """
        chapter_id = self.execute_insert(
            query,
            (title, content_md, status, sort_order, self.get_current_timestamp()),
        )
        if chapter_id:
            logger.info(f"Created chapter {chapter_id} '{title}' ({status})")
        return chapter_id

    def list_chapters(self) -> list[dict[str, Any]]:
        """
        List chapters without their bodies, in table-of-contents order.
        """
        query = """
            SELECT id, title, status, sort_order, created_at
            FROM chapters
            ORDER BY sort_order ASC, id ASC
        """
        rows = self.execute_query(query, fetch_all=True)
        return [self._row_to_dict(row) for row in rows or []]

    def get_chapter(self, chapter_id: int) -> dict[str, Any] | None:
        query = """
            SELECT id, title, content_md, status, sort_order, created_at
            FROM chapters
            WHERE id = ?
        """
        row = self.execute_query(query, (chapter_id,), fetch_one=True)
        return self._row_to_dict(row) if row else None

    def update_chapter(
        self,
        chapter_id: int,
        title: str | None = None,
        content_md: str | None = None,
        status: str | None = None,
        sort_order: int | None = None,
    ) -> bool:
        """
        Partially update a chapter; None leaves a field unchanged.

        Returns:
            bool: True if the chapter was updated
        """
        query = """
            UPDATE chapters
            SET title = COALESCE(?, title),
                content_md = COALESCE(?, content_md),
                status = COALESCE(?, status),
                sort_order = COALESCE(?, sort_order)
            WHERE id = ?
        """
        updated = self.execute_update_delete(
            query, (title, content_md, status, sort_order, chapter_id)
        )
        if updated:
            logger.info(f"Updated chapter {chapter_id}")
        return updated

    def delete_chapter(self, chapter_id: int) -> int | None:
        """
        Delete a chapter together with all of its annotations, atomically.

        Returns:
            int | None: Number of annotations deleted, or None if the chapter
            did not exist or deletion failed
        """

        def delete(conn: sqlite3.Connection) -> int | None:
            if conn.execute(
                "SELECT 1 FROM chapters WHERE id = ?", (chapter_id,)
            ).fetchone() is None:
                return None
            # Replies can go through the parent_id cascade, which rowcount
            # does not report, so count up front
            annotations_deleted = conn.execute(
                "SELECT COUNT(*) FROM annotations WHERE chapter_id = ?",
                (chapter_id,),
            ).fetchone()[0]
            conn.execute("DELETE FROM annotations WHERE chapter_id = ?", (chapter_id,))
            conn.execute("DELETE FROM chapters WHERE id = ?", (chapter_id,))
            return annotations_deleted

        annotations_deleted = self.run_in_transaction(
            delete, f"Error deleting chapter {chapter_id}"
        )
        if annotations_deleted is not None:
            logger.info(
                f"Deleted chapter {chapter_id} and {annotations_deleted} annotations"
            )
        return annotations_deleted

    def count_published(self) -> int:
        """Chapters that readers can open (awaiting feedback or validated)."""
        placeholders = ", ".join("?" for _ in PUBLISHED_STATUSES)
        query = f"SELECT COUNT(*) AS count FROM chapters WHERE status IN ({placeholders})"
        row = self.execute_query(query, PUBLISHED_STATUSES, fetch_one=True)
        return row["count"] if row else 0
