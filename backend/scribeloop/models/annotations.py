"""
Annotation Type Models

Pydantic models for reader annotations. A root annotation anchors a
character range of the rendered chapter text; a reply points at its parent
and carries no offsets of its own.

Ids are opaque: SQLite hands out integers, document stores hand out strings.
Timestamps arrive either as SQLite text or as datetime objects.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel

RecordId = int | str


class Annotation(BaseModel):
    """A stored annotation record (root highlight or reply)"""

    id: RecordId
    chapter_id: RecordId | None = None
    parent_id: RecordId | None = None

    pseudo: str | None = None
    comment: str | None = None
    selected_text: str | None = None

    # Half-open [start_offset, end_offset) in normalized characters
    start_offset: int | None = None
    end_offset: int | None = None

    created_at: datetime | str | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_anchored(self) -> bool:
        """True for root annotations that carry both offsets"""
        return (
            self.is_root and self.start_offset is not None and self.end_offset is not None
        )


class AnnotationNode(Annotation):
    """An annotation with its nested replies, as returned by the API"""

    replies: list["AnnotationNode"] = []


class AnnotationThread(BaseModel):
    """A root annotation and its replies, ordered by creation time at each level"""

    annotation: Annotation
    replies: list["AnnotationThread"] = []

    def walk(self):
        """Yield every annotation in the thread, depth first, parents before replies"""
        stack = [self]
        while stack:
            thread = stack.pop()
            yield thread.annotation
            stack.extend(reversed(thread.replies))

    def to_node(self) -> AnnotationNode:
        return AnnotationNode(
            **self.annotation.model_dump(),
            replies=[reply.to_node() for reply in self.replies],
        )


class AnnotationCreate(BaseModel):
    """Request model for creating a root annotation"""

    pseudo: str | None = None
    comment: str | None = None
    start_offset: int | None = None
    end_offset: int | None = None
    selected_text: str | None = None


class ReplyCreate(BaseModel):
    """Request model for replying to an annotation"""

    pseudo: str | None = None
    comment: str | None = None


class CreatedResponse(BaseModel):
    id: int
    message: str


class SelectionOffsets(BaseModel):
    """Normalized offsets of a text selection within a chapter container"""

    start: int
    end: int
    text: str


def as_annotation(record: Annotation | Mapping[str, Any]) -> Annotation:
    """Accept either a model or a raw record dict as returned by the services."""
    if isinstance(record, Annotation):
        return record
    return Annotation.model_validate(dict(record))
