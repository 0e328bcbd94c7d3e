"""
Bookmarks feature: API routes.

Bookmarks are created/removed through POST /api/notes/public/{id}/bookmark;
this router only lists them.
"""

from fastapi import APIRouter, Depends, Query
from supabase import Client

from notesai.config import get_settings
from notesai.core.dependencies import get_current_user_id, get_db
from notesai.core.responses import paginated_response
from notesai.features.bookmarks.service import BookmarkService
from notesai.features.notes.schemas import BookmarkSortField, ListQuery, SortOrder, parse_tags

router = APIRouter()


def bookmark_list_query(
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
    search: str | None = None,
    tags: list[str] | None = Query(None),
    sort_by: BookmarkSortField = "bookmarked_at",
    sort_order: SortOrder = "desc",
) -> ListQuery:
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
async def list_bookmarks(
    params: ListQuery = Depends(bookmark_list_query),
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """List the current user's bookmarked public notes."""
    service = BookmarkService(db)
    bookmarks, total = service.list_bookmarks(user_id, params)
    return paginated_response(bookmarks, total, params.page, params.page_size, key="bookmarks")
