from typing import Any

from pydantic import BaseModel


class ProjectMetadata(BaseModel):
    """Book-level settings plus computed publication progress"""

    book_title: str
    total_chapters: int
    published_chapters: int
    progress_percent: int


class MetadataUpdate(BaseModel):
    # Any so that wrong types reach the router's own checks (400, not 422)
    book_title: Any = None
    total_chapters: Any = None
