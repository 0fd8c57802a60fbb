from fastapi import APIRouter, Depends, HTTPException

from ..models.metadata import MetadataUpdate, ProjectMetadata
from ..services.database_service import db_service
from .auth import require_admin

router = APIRouter(prefix="/api/metadata", tags=["metadata"])


@router.get("", response_model=ProjectMetadata)
async def get_metadata() -> ProjectMetadata:
    """Book title, planned chapter count and publication progress."""
    try:
        return ProjectMetadata(**db_service.get_project_metadata())
    except Exception as e:
        raise HTTPException(
            status_code=500, detail=f"Error retrieving metadata: {str(e)}"
        )


@router.put("", dependencies=[Depends(require_admin)])
async def update_metadata(payload: MetadataUpdate) -> dict:
    """Update book-level settings (admin only). Omitted fields are kept."""
    book_title = payload.book_title
    total_chapters = payload.total_chapters

    if book_title is not None:
        if not isinstance(book_title, str) or not book_title.strip():
            raise HTTPException(
                status_code=400, detail="book_title must be a non-empty string"
            )
    if total_chapters is not None:
        if (
            not isinstance(total_chapters, int)
            or isinstance(total_chapters, bool)
            or total_chapters < 0
        ):
            raise HTTPException(
                status_code=400,
                detail="total_chapters must be a non-negative integer",
            )

    if book_title is not None and not db_service.set_metadata(
        "book_title", book_title.strip()
    ):
        raise HTTPException(status_code=500, detail="Failed to save book_title")
    if total_chapters is not None and not db_service.set_metadata(
        "total_chapters", total_chapters
    ):
        raise HTTPException(status_code=500, detail="Failed to save total_chapters")

    return {"message": "Metadata updated", **db_service.get_metadata()}
