"""
Database Service Module

This module provides the database facade used by the routers. It coordinates
the specialized services for each data domain:
1. Chapters - manuscript chapters and their publication status
2. Annotations - offset-anchored reader comments and their reply chains
3. Metadata - book-level settings and publication progress
"""

import logging
import math
from typing import Any

from .. import config
from .anchoring.thread_assembler import ThreadAssembler
from .annotations_service import AnnotationsService
from .chapters_service import ChaptersService
from .metadata_service import MetadataService

# Configure logger for this module
logger = logging.getLogger(__name__)


class DatabaseService:
    """
    A facade over the chapter, annotation and metadata services.

    The schema is created on first use; every specialized service shares the
    same SQLite file.
    """

    def __init__(self, db_path: str | None = None):
        """
        Initialize the database service and its specialized services.

        Args:
            db_path (str | None): Path to the SQLite database file. Defaults to
                                  config.DB_PATH.
        """
        self.db_path = db_path or config.DB_PATH

        self.chapters = ChaptersService(self.db_path)
        self.annotations = AnnotationsService(self.db_path)
        self.metadata = MetadataService(self.db_path)

    # ========================================
    # CHAPTERS
    # ========================================

    def create_chapter(
        self, title: str, content_md: str, status: str = "planned", sort_order: int = 0
    ) -> int | None:
        return self.chapters.create_chapter(title, content_md, status, sort_order)

    def list_chapters(self) -> list[dict[str, Any]]:
        return self.chapters.list_chapters()

    def get_chapter(self, chapter_id: int) -> dict[str, Any] | None:
        return self.chapters.get_chapter(chapter_id)

    def update_chapter(self, chapter_id: int, **fields: Any) -> bool:
        return self.chapters.update_chapter(chapter_id, **fields)

    def delete_chapter(self, chapter_id: int) -> int | None:
        return self.chapters.delete_chapter(chapter_id)

    # ========================================
    # ANNOTATIONS
    # ========================================

    def create_annotation(
        self,
        chapter_id: int,
        pseudo: str,
        comment: str,
        start_offset: int | None = None,
        end_offset: int | None = None,
        selected_text: str | None = None,
    ) -> int | None:
        return self.annotations.create_annotation(
            chapter_id, pseudo, comment, start_offset, end_offset, selected_text
        )

    def create_reply(
        self, parent_id: int, chapter_id: int, pseudo: str, comment: str
    ) -> int | None:
        return self.annotations.create_reply(parent_id, chapter_id, pseudo, comment)

    def get_annotation(self, annotation_id: int) -> dict[str, Any] | None:
        return self.annotations.get_annotation(annotation_id)

    def get_annotations_for_chapter(self, chapter_id: int) -> list[dict[str, Any]]:
        return self.annotations.get_annotations_for_chapter(chapter_id)

    def count_annotations(self, chapter_id: int) -> int:
        return self.annotations.count_for_chapter(chapter_id)

    def get_annotation_forest(self, chapter_id: int):
        """All threads of a chapter, roots in text order."""
        records = self.annotations.get_annotations_for_chapter(chapter_id)
        return ThreadAssembler(records).assemble_all()

    def get_annotation_thread(self, chapter_id: int, annotation_id: int):
        records = self.annotations.get_annotations_for_chapter(chapter_id)
        return ThreadAssembler(records).assemble(annotation_id)

    def delete_annotation(self, annotation_id: int) -> list[int]:
        return self.annotations.delete_annotation(annotation_id)

    # ========================================
    # METADATA
    # ========================================

    def get_metadata(self) -> dict[str, Any]:
        return self.metadata.get_all()

    def set_metadata(self, key: str, value: Any) -> bool:
        return self.metadata.set_value(key, value)

    def get_project_metadata(self) -> dict[str, Any]:
        """
        Stored settings plus publication progress.

        progress_percent is published / total_chapters, rounded half up, or 0
        when no total has been set.
        """
        stored = self.metadata.get_all()
        published = self.chapters.count_published()
        total = stored.get("total_chapters") or 0
        if not isinstance(total, int) or isinstance(total, bool):
            total = 0

        return {
            "book_title": stored.get("book_title") or config.DEFAULT_BOOK_TITLE,
            "total_chapters": total,
            "published_chapters": published,
            "progress_percent": (
                math.floor(published * 100 / total + 0.5) if total > 0 else 0
            ),
        }


# Global database service instance
db_service = DatabaseService()
