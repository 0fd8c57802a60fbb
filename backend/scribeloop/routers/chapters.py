import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from ..models.annotations import CreatedResponse
from ..models.chapters import (
    Chapter,
    ChapterCreate,
    ChapterSummary,
    ChapterUpdate,
    RenderedChapter,
)
from ..services.chapter_renderer import chapter_renderer
from ..services.database_service import db_service
from .auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chapters", tags=["chapters"])


# Helper function to get a chapter by ID or raise 404
def get_chapter_or_404(chapter_id: int) -> dict[str, Any]:
    """
    Look up a chapter by ID and return it, or raise HTTPException(404) if not found.
    """
    chapter = db_service.get_chapter(chapter_id)
    if not chapter:
        raise HTTPException(status_code=404, detail="Chapter not found")
    return chapter


@router.get("", response_model=list[ChapterSummary])
async def list_chapters() -> list[ChapterSummary]:
    """List all chapters in table-of-contents order (without bodies)."""
    try:
        return [ChapterSummary(**chapter) for chapter in db_service.list_chapters()]
    except Exception as e:
        raise HTTPException(
            status_code=500, detail=f"Error retrieving chapters: {str(e)}"
        )


@router.get("/{chapter_id}", response_model=Chapter)
async def get_chapter(chapter_id: int) -> Chapter:
    """Get a single chapter with its markdown body."""
    return Chapter(**get_chapter_or_404(chapter_id))


@router.get("/{chapter_id}/rendered", response_model=RenderedChapter)
async def get_rendered_chapter(chapter_id: int) -> RenderedChapter:
    """
    Get the chapter body rendered to HTML with highlight markers applied.

    Markers are `<mark class="highlight" data-annotation-id="...">` elements;
    annotation offsets index into the normalized text of this HTML.
    """
    chapter = get_chapter_or_404(chapter_id)
    try:
        annotations = db_service.get_annotations_for_chapter(chapter_id)
        html, text_length = chapter_renderer.render_with_highlights(
            chapter["content_md"], annotations
        )
        return RenderedChapter(chapter_id=chapter_id, html=html, text_length=text_length)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error rendering chapter {chapter_id}: {e}")
        raise HTTPException(
            status_code=500, detail=f"Error rendering chapter: {str(e)}"
        )


@router.post(
    "",
    response_model=CreatedResponse,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def create_chapter(payload: ChapterCreate) -> CreatedResponse:
    """Create a new chapter (admin only)."""
    if not payload.title or not payload.content_md:
        raise HTTPException(
            status_code=400, detail="Title and content_md are required"
        )

    chapter_id = db_service.create_chapter(
        title=payload.title,
        content_md=payload.content_md,
        status=payload.status,
        sort_order=payload.sort_order,
    )
    if chapter_id is None:
        raise HTTPException(status_code=500, detail="Failed to create chapter")

    return CreatedResponse(id=chapter_id, message="Chapter created")


@router.put("/{chapter_id}", dependencies=[Depends(require_admin)])
async def update_chapter(chapter_id: int, payload: ChapterUpdate) -> dict[str, str]:
    """
    Update a chapter (admin only).

    The body is frozen while the chapter awaits feedback and as soon as any
    annotation exists against it, whatever the status: stored offsets point
    into that exact text.
    """
    chapter = get_chapter_or_404(chapter_id)

    changes_body = (
        payload.content_md is not None and payload.content_md != chapter["content_md"]
    )
    if changes_body:
        if chapter["status"] == "awaiting_feedback":
            raise HTTPException(
                status_code=400,
                detail="Cannot modify content of a chapter awaiting feedback (immutability rule)",
            )
        if db_service.count_annotations(chapter_id) > 0:
            raise HTTPException(
                status_code=400,
                detail="Cannot modify content of an annotated chapter (immutability rule)",
            )

    updated = db_service.update_chapter(
        chapter_id,
        title=payload.title,
        content_md=payload.content_md,
        status=payload.status,
        sort_order=payload.sort_order,
    )
    if not updated:
        raise HTTPException(status_code=500, detail="Failed to update chapter")

    return {"message": "Chapter updated"}


@router.delete("/{chapter_id}", dependencies=[Depends(require_admin)])
async def delete_chapter(chapter_id: int) -> dict[str, str]:
    """Delete a chapter and all of its annotations (admin only)."""
    get_chapter_or_404(chapter_id)

    deleted = db_service.delete_chapter(chapter_id)
    if deleted is None:
        raise HTTPException(status_code=500, detail="Failed to delete chapter")

    return {
        "message": f"Chapter and {deleted} associated annotations deleted."
    }
