"""
Notes feature: Schemas for request/response models.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

MAX_TAGS = 5
TITLE_MAX_LENGTH = 200

NoteSortField = Literal["created_at", "updated_at", "title"]
BookmarkSortField = Literal["bookmarked_at", "created_at"]
SortOrder = Literal["asc", "desc"]


class NoteImage(BaseModel):
    """Image metadata embedded in a note (as returned by /api/ai/upload-image)."""
    file_name: str  # storage key
    file_url: str
    original_name: str | None = None
    mime_type: str
    file_size: int = Field(ge=0)
    width: int | None = None
    height: int | None = None
    position: int | None = None
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NoteCreate(BaseModel):
    """Request to create a new note. At least one of title/content/images is required."""
    title: str | None = Field(default=None, max_length=TITLE_MAX_LENGTH)
    content: str | None = None
    images: list[NoteImage] = []
    tags: list[str] = []
    is_public: bool = False


class NoteUpdate(BaseModel):
    """Request to update an existing note. Omitted fields keep their value."""
    title: str | None = Field(default=None, max_length=TITLE_MAX_LENGTH)
    content: str | None = None
    images: list[NoteImage] | None = None
    tags: list[str] | None = None
    is_public: bool | None = None


class ListQuery(BaseModel):
    """Normalized listing parameters shared by notes, public notes and bookmarks."""
    page: int = 1
    page_size: int = 10
    search: str | None = None
    tags: list[str] = []
    sort_by: str = "created_at"
    sort_order: SortOrder = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def descending(self) -> bool:
        return self.sort_order == "desc"


def parse_tags(raw: list[str] | None) -> list[str]:
    """Accept both ?tags=a&tags=b and ?tags=a,b."""
    if not raw:
        return []
    tags = []
    for value in raw:
        tags.extend(t.strip() for t in value.split(","))
    return [t for t in tags if t]
