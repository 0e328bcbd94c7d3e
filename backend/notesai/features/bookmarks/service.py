"""
Bookmarks feature: toggle and list bookmarks of public notes.

A bookmark only points at a note id. When the note later goes private or is
deleted the row stays, but it is left out of listings.
"""

import logging
from datetime import datetime, timezone

from postgrest.exceptions import APIError
from supabase import Client

from notesai.core.exceptions import ConflictError, NotFoundError, is_unique_violation
from notesai.features.notes.schemas import ListQuery
from notesai.features.notes.service import (
    NOTES_TABLE,
    apply_note_filters,
    fetch_authors,
    is_valid_id,
    present_public_note,
)

logger = logging.getLogger(__name__)

BOOKMARKS_TABLE = "bookmarks"
BOOKMARKED_NOTE_COLUMNS = "id, user_id, title, content, tags, images, created_at"


class BookmarkService:
    """Per-user bookmarks on public notes, with toggle semantics."""

    def __init__(self, db: Client):
        self.db = db

    def _get_public_note(self, note_id: str) -> dict:
        if not is_valid_id(note_id):
            raise NotFoundError("Public note not found.")
        result = (
            self.db.table(NOTES_TABLE)
            .select("id, title")
            .eq("id", note_id)
            .eq("is_public", True)
            .execute()
        )
        if not result.data:
            raise NotFoundError("Public note not found.")
        return result.data[0]

    def _insert_bookmark(self, user_id: str, note_id: str) -> dict:
        """Insert a bookmark row; the UNIQUE(user_id, note_id) constraint decides races."""
        try:
            result = (
                self.db.table(BOOKMARKS_TABLE)
                .insert({
                    "user_id": user_id,
                    "note_id": note_id,
                    "bookmarked_at": datetime.now(timezone.utc).isoformat(),
                })
                .execute()
            )
        except APIError as e:
            if is_unique_violation(e):
                raise ConflictError("Note is already bookmarked.")
            raise
        return result.data[0]

    def toggle_bookmark(self, user_id: str, note_id: str) -> dict:
        """Bookmark a public note, or remove the bookmark if it already exists.

        Returns:
            dict with is_bookmarked and, when a bookmark was created, its id and timestamp.

        Raises:
            NotFoundError: If the note does not exist or is not public.
            ConflictError: If a concurrent request created the same bookmark first.
        """
        note = self._get_public_note(note_id)

        existing = (
            self.db.table(BOOKMARKS_TABLE)
            .select("id")
            .eq("user_id", user_id)
            .eq("note_id", note_id)
            .execute()
        )

        if existing.data:
            self.db.table(BOOKMARKS_TABLE).delete().eq("id", existing.data[0]["id"]).execute()
            logger.info(f"User {user_id} removed bookmark on note {note_id}")
            return {
                "is_bookmarked": False,
                "note_id": note["id"],
                "note_title": note.get("title"),
            }

        bookmark = self._insert_bookmark(user_id, note_id)
        logger.info(f"User {user_id} bookmarked note {note_id}")
        return {
            "is_bookmarked": True,
            "bookmark_id": bookmark["id"],
            "note_id": note["id"],
            "note_title": note.get("title"),
            "bookmarked_at": bookmark["bookmarked_at"],
        }

    def list_bookmarks(self, user_id: str, params: ListQuery) -> tuple[list[dict], int]:
        """List a user's bookmarks joined to their still-public notes.

        Filters (search/tags) apply to the notes. The returned total counts every
        bookmark row of the user, including ones whose note is hidden.
        """
        result = (
            self.db.table(BOOKMARKS_TABLE)
            .select("*", count="exact")
            .eq("user_id", user_id)
            .order(params.sort_by, desc=params.descending)
            .range(params.offset, params.offset + params.page_size - 1)
            .execute()
        )
        bookmarks = result.data
        total = result.count or 0
        if not bookmarks:
            return [], total

        notes_query = (
            self.db.table(NOTES_TABLE)
            .select(BOOKMARKED_NOTE_COLUMNS)
            .in_("id", [b["note_id"] for b in bookmarks])
            .eq("is_public", True)
        )
        notes_query = apply_note_filters(notes_query, params.search, params.tags)
        notes = {n["id"]: n for n in notes_query.execute().data}
        authors = fetch_authors(self.db, (n["user_id"] for n in notes.values()))

        items = []
        for bookmark in bookmarks:
            note = notes.get(bookmark["note_id"])
            if note is None:
                continue
            items.append({
                "id": bookmark["id"],
                "bookmarked_at": bookmark["bookmarked_at"],
                "note": present_public_note(note, authors),
            })
        return items, total

    def delete_all_for_user(self, user_id: str) -> None:
        """Remove every bookmark a user made (account deletion)."""
        self.db.table(BOOKMARKS_TABLE).delete().eq("user_id", user_id).execute()
