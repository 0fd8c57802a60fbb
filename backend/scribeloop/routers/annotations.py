import logging

from fastapi import APIRouter, Header, HTTPException

from ..models.annotations import (
    AnnotationCreate,
    AnnotationNode,
    CreatedResponse,
    ReplyCreate,
)
from ..services.chapter_renderer import chapter_renderer
from ..services.database_service import db_service
from .auth import is_admin
from .chapters import get_chapter_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["annotations"])


def _require_author_fields(pseudo: str | None, comment: str | None) -> None:
    if not pseudo or not pseudo.strip() or not comment or not comment.strip():
        raise HTTPException(status_code=400, detail="Pseudo and comment are required")


def _validate_offsets(payload: AnnotationCreate, content_md: str) -> None:
    """
    Offsets are optional, but when given they must describe a non-empty
    range inside the rendered chapter text.
    """
    start, end = payload.start_offset, payload.end_offset
    if start is None and end is None:
        return
    if start is None or end is None:
        raise HTTPException(
            status_code=400, detail="start_offset and end_offset go together"
        )
    if start < 0 or end <= start:
        raise HTTPException(status_code=400, detail="Invalid offsets")
    if end > chapter_renderer.text_length(content_md):
        raise HTTPException(
            status_code=400, detail="Offsets exceed the chapter text length"
        )


@router.get(
    "/chapters/{chapter_id}/annotations", response_model=list[AnnotationNode]
)
async def get_chapter_annotations(chapter_id: int) -> list[AnnotationNode]:
    """
    Get every annotation of a chapter as a nested tree.

    Roots are ordered by position in the text; replies by creation time.
    """
    try:
        threads = db_service.get_annotation_forest(chapter_id)
        return [thread.to_node() for thread in threads]
    except Exception as e:
        raise HTTPException(
            status_code=500, detail=f"Error retrieving annotations: {str(e)}"
        )


@router.get(
    "/chapters/{chapter_id}/annotations/{annotation_id}/thread",
    response_model=AnnotationNode,
)
async def get_annotation_thread(chapter_id: int, annotation_id: int) -> AnnotationNode:
    """Get one annotation with its nested replies."""
    thread = db_service.get_annotation_thread(chapter_id, annotation_id)
    if thread is None:
        raise HTTPException(status_code=404, detail="Annotation not found")
    return thread.to_node()


@router.post(
    "/chapters/{chapter_id}/annotations",
    response_model=CreatedResponse,
    status_code=201,
)
async def create_annotation(
    chapter_id: int, payload: AnnotationCreate
) -> CreatedResponse:
    """Create a root annotation, usually anchored to a text selection."""
    _require_author_fields(payload.pseudo, payload.comment)

    chapter = get_chapter_or_404(chapter_id)
    if chapter["status"] == "validated":
        raise HTTPException(
            status_code=400, detail="Cannot annotate a validated chapter"
        )

    _validate_offsets(payload, chapter["content_md"])

    annotation_id = db_service.create_annotation(
        chapter_id=chapter_id,
        pseudo=payload.pseudo.strip(),
        comment=payload.comment,
        start_offset=payload.start_offset,
        end_offset=payload.end_offset,
        selected_text=payload.selected_text,
    )
    if annotation_id is None:
        raise HTTPException(status_code=500, detail="Failed to create annotation")

    return CreatedResponse(id=annotation_id, message="Annotation created")


@router.post(
    "/annotations/{annotation_id}/reply",
    response_model=CreatedResponse,
    status_code=201,
)
async def reply_to_annotation(
    annotation_id: int, payload: ReplyCreate
) -> CreatedResponse:
    """Reply to an annotation or to another reply."""
    _require_author_fields(payload.pseudo, payload.comment)

    parent = db_service.get_annotation(annotation_id)
    if not parent:
        raise HTTPException(status_code=404, detail="Parent annotation not found")

    chapter = get_chapter_or_404(parent["chapter_id"])
    if chapter["status"] == "validated":
        raise HTTPException(
            status_code=400, detail="Cannot reply on a validated chapter"
        )

    reply_id = db_service.create_reply(
        parent_id=annotation_id,
        chapter_id=parent["chapter_id"],
        pseudo=payload.pseudo.strip(),
        comment=payload.comment,
    )
    if reply_id is None:
        raise HTTPException(status_code=500, detail="Failed to create reply")

    return CreatedResponse(id=reply_id, message="Reply created")


@router.delete("/annotations/{annotation_id}")
async def delete_annotation(
    annotation_id: int,
    pseudo: str | None = None,
    x_admin_token: str | None = Header(default=None),
) -> dict:
    """
    Delete an annotation and all of its replies.

    Allowed for the annotation's author (matched by pseudo) or an admin.
    """
    annotation = db_service.get_annotation(annotation_id)
    if not annotation:
        raise HTTPException(status_code=404, detail="Annotation not found")

    if annotation["pseudo"] != pseudo and not is_admin(x_admin_token):
        raise HTTPException(
            status_code=403,
            detail="Unauthorized: You can only delete your own comments",
        )

    deleted_ids = db_service.delete_annotation(annotation_id)
    if not deleted_ids:
        raise HTTPException(status_code=500, detail="Failed to delete annotation")

    return {"message": "Annotation deleted", "deleted_ids": deleted_ids}
