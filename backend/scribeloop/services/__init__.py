"""
Services Package

This package contains the database services for chapters, annotations and
project metadata, the facade that coordinates them, and the chapter renderer.
The annotation anchoring engine lives in the `anchoring` subpackage.
"""

from .annotations_service import AnnotationsService
from .base_database_service import BaseDatabaseService
from .chapter_renderer import ChapterRenderer
from .chapters_service import ChaptersService
from .database_service import DatabaseService, db_service
from .metadata_service import MetadataService

__all__ = [
    "DatabaseService",
    "db_service",
    "ChaptersService",
    "AnnotationsService",
    "MetadataService",
    "ChapterRenderer",
    "BaseDatabaseService",
]
