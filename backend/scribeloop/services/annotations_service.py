"""
Annotations Service Module

This module provides specialized database operations for reader annotations.
Root annotations anchor a normalized character range of a chapter; replies
reference a parent annotation and store no offsets. Annotations are never
edited. Deleting one removes its entire reply subtree.

Schema:
    annotations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        chapter_id INTEGER NOT NULL REFERENCES chapters(id),
        parent_id INTEGER REFERENCES annotations(id) ON DELETE CASCADE,
        pseudo TEXT NOT NULL,
        comment TEXT NOT NULL,
        selected_text TEXT,
        start_offset INTEGER,
        end_offset INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""

import logging
import sqlite3
from typing import Any

from .base_database_service import BaseDatabaseService

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, chapter_id, parent_id, pseudo, comment, selected_text,
    start_offset, end_offset, created_at
"""


class AnnotationsService(BaseDatabaseService):
    """SQLite helper for annotations and their reply chains."""

    def __init__(self, db_path: str | None = None):
        super().__init__(db_path)
        self._init_table()

    def _init_table(self) -> None:
        """Ensure the annotations table & indexes exist."""
        with self.get_connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS annotations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    chapter_id INTEGER NOT NULL,
                    parent_id INTEGER DEFAULT NULL,
                    pseudo TEXT NOT NULL,
                    comment TEXT NOT NULL,
                    selected_text TEXT,
                    start_offset INTEGER,
                    end_offset INTEGER,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY(chapter_id) REFERENCES chapters(id) ON DELETE CASCADE,
                    FOREIGN KEY(parent_id) REFERENCES annotations(id) ON DELETE CASCADE
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_annotations_chapter
                ON annotations(chapter_id)
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_annotations_parent
                ON annotations(parent_id)
                """
            )
            conn.commit()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------
    def create_annotation(
        self,
        chapter_id: int,
        pseudo: str,
        comment: str,
        start_offset: int | None = None,
        end_offset: int | None = None,
        selected_text: str | None = None,
    ) -> int | None:
        """
        Insert a root annotation.

        Returns:
            int | None: The new annotation ID, or None if the insert failed
        """
        query = """
            INSERT INTO annotations (
                chapter_id, pseudo, comment, start_offset, end_offset,
                selected_text, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """
        annotation_id = self.execute_insert(
            query,
            (
                chapter_id,
                pseudo,
                comment,
                start_offset,
                end_offset,
                selected_text,
                self.get_current_timestamp(),
            ),
        )
        if annotation_id:
            logger.info(
                f"Saved annotation {annotation_id} on chapter {chapter_id} "
                f"[{start_offset}, {end_offset})"
            )
        return annotation_id

    def create_reply(
        self, parent_id: int, chapter_id: int, pseudo: str, comment: str
    ) -> int | None:
        """
        Insert a reply. Replies inherit the parent's chapter and carry no offsets.
        """
        query = """
            INSERT INTO annotations (chapter_id, parent_id, pseudo, comment, created_at)
            VALUES (?, ?, ?, ?, ?)
        """
        reply_id = self.execute_insert(
            query,
            (chapter_id, parent_id, pseudo, comment, self.get_current_timestamp()),
        )
        if reply_id:
            logger.info(f"Saved reply {reply_id} to annotation {parent_id}")
        return reply_id

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    def get_annotation(self, annotation_id: int) -> dict[str, Any] | None:
        row = self.execute_query(
            f"SELECT {_COLUMNS} FROM annotations WHERE id = ?",
            (annotation_id,),
            fetch_one=True,
        )
        return dict(row) if row else None

    def get_annotations_for_chapter(self, chapter_id: int) -> list[dict[str, Any]]:
        """
        Flat list of every annotation (roots and replies) of a chapter,
        in creation order.
        """
        rows = self.execute_query(
            f"""
            SELECT {_COLUMNS}
            FROM annotations
            WHERE chapter_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            (chapter_id,),
            fetch_all=True,
        )
        return [dict(row) for row in rows or []]

    def count_for_chapter(self, chapter_id: int) -> int:
        """Roots and replies attached to a chapter."""
        row = self.execute_query(
            "SELECT COUNT(*) AS count FROM annotations WHERE chapter_id = ?",
            (chapter_id,),
            fetch_one=True,
        )
        return row["count"] if row else 0

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------
    def delete_annotation(self, annotation_id: int) -> list[int]:
        """
        Delete an annotation and all of its descendants, at any depth.

        Returns:
            list[int]: IDs that were deleted (empty if nothing matched or on error)
        """
        subtree_query = """
            WITH RECURSIVE subtree(id) AS (
                SELECT id FROM annotations WHERE id = ?
                UNION
                SELECT a.id FROM annotations a JOIN subtree s ON a.parent_id = s.id
            )
            SELECT id FROM subtree
        """

        def delete(conn: sqlite3.Connection) -> list[int]:
            ids = [row[0] for row in conn.execute(subtree_query, (annotation_id,))]
            if ids:
                placeholders = ", ".join("?" for _ in ids)
                conn.execute(
                    f"DELETE FROM annotations WHERE id IN ({placeholders})", tuple(ids)
                )
            return ids

        ids = self.run_in_transaction(delete, f"Error deleting annotation {annotation_id}")
        if ids:
            logger.info(f"Deleted annotation {annotation_id} and {len(ids) - 1} replies")
        return ids or []
