"""
Notes feature: API routes for notes, public notes, tags and note images.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from supabase import Client

from notesai.config import get_settings
from notesai.core.dependencies import (
    get_current_user_id,
    get_db,
    get_media_store,
    get_optional_user_id,
)
from notesai.core.responses import paginated_response, success_response
from notesai.core.storage import MediaStore
from notesai.features.bookmarks.service import BookmarkService
from notesai.features.notes.schemas import (
    ListQuery,
    NoteCreate,
    NoteSortField,
    NoteUpdate,
    SortOrder,
    parse_tags,
)
from notesai.features.notes.service import NotesService

router = APIRouter()


def note_list_query(
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
    search: str | None = None,
    tags: list[str] | None = Query(None),
    sort_by: NoteSortField = "created_at",
    sort_order: SortOrder = "desc",
) -> ListQuery:
    """Query params for note listings; page_size is clamped to MAX_PAGE_SIZE."""
    settings = get_settings()
    return ListQuery(
        page=page,
        page_size=min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE),
        search=search.strip() if search and search.strip() else None,
        tags=parse_tags(tags),
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("")
async def list_notes(
    params: ListQuery = Depends(note_list_query),
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """List the current user's notes."""
    service = NotesService(db)
    notes, total = service.list_notes(user_id, params)
    return paginated_response(notes, total, params.page, params.page_size, key="notes")


@router.get("/public")
async def list_public_notes(
    params: ListQuery = Depends(note_list_query),
    viewer_id: str | None = Depends(get_optional_user_id),
    db: Client = Depends(get_db),
):
    """List public notes of every user. No login required."""
    service = NotesService(db)
    notes, total = service.list_public_notes(params, viewer_id)
    return paginated_response(notes, total, params.page, params.page_size, key="notes")


@router.get("/tags")
async def list_tags(
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """All distinct tags used in the current user's notes."""
    service = NotesService(db)
    return success_response({"tags": service.list_tags(user_id)})


@router.post("/public/{note_id}/bookmark")
async def toggle_bookmark(
    note_id: str,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Add a public note to bookmarks, or remove it if already bookmarked."""
    service = BookmarkService(db)
    result = service.toggle_bookmark(user_id, note_id)
    if result["is_bookmarked"]:
        response.status_code = status.HTTP_201_CREATED
        return success_response(result, "Note added to bookmarks.")
    return success_response(result, "Note removed from bookmarks.")


@router.get("/{note_id}")
async def get_note(
    note_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Get one of the current user's notes."""
    service = NotesService(db)
    return success_response(service.get_note(user_id, note_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_note(
    data: NoteCreate,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Create a new note."""
    service = NotesService(db)
    note = service.create_note(user_id, data.model_dump(mode="json"))
    return success_response(note, "Note created.")


@router.put("/{note_id}")
async def update_note(
    note_id: str,
    data: NoteUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Update an existing note. Only the fields present in the body change."""
    service = NotesService(db)
    # Only top-level fields that were sent; images are dumped whole, defaults included
    patch = data.model_dump(mode="json", include=data.model_fields_set)
    note = service.update_note(user_id, note_id, patch)
    return success_response(note, "Note updated.")


@router.delete("/{note_id}")
async def delete_note(
    note_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
    media: MediaStore = Depends(get_media_store),
):
    """Delete a note together with its image files."""
    service = NotesService(db, media)
    service.delete_note(user_id, note_id)
    return success_response(message="Note deleted.")


@router.get("/{note_id}/image/{file_name}")
async def get_note_image(
    note_id: str,
    file_name: str,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
    media: MediaStore = Depends(get_media_store),
):
    """Serve an image of one of the current user's notes."""
    service = NotesService(db, media)
    data, content_type = service.get_note_image(user_id, note_id, file_name)
    return Response(
        content=data,
        media_type=content_type,
        headers={"Cache-Control": "private, max-age=31536000"},
    )
