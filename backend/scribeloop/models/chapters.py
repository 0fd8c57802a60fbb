"""
Chapter Type Models
"""

from typing import Literal

from pydantic import BaseModel

ChapterStatus = Literal["planned", "awaiting_feedback", "validated"]

# Statuses that count as published on the reader dashboard
PUBLISHED_STATUSES: tuple[str, ...] = ("awaiting_feedback", "validated")


class ChapterSummary(BaseModel):
    """Chapter list entry (no body)"""

    id: int
    title: str
    status: ChapterStatus
    sort_order: int
    created_at: str


class Chapter(ChapterSummary):
    """Full chapter with markdown body"""

    content_md: str


class ChapterCreate(BaseModel):
    title: str | None = None
    content_md: str | None = None
    status: ChapterStatus = "planned"
    sort_order: int = 0


class ChapterUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value"""

    title: str | None = None
    content_md: str | None = None
    status: ChapterStatus | None = None
    sort_order: int | None = None


class RenderedChapter(BaseModel):
    """Chapter body rendered to HTML with highlight markers applied"""

    chapter_id: int
    html: str
    text_length: int
