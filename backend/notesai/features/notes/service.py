"""
Notes feature: Service layer for notes, public listing and note images.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable

from supabase import Client

from notesai.core.exceptions import NotFoundError, ValidationError
from notesai.core.storage import MediaStore
from notesai.features.notes.schemas import ListQuery, MAX_TAGS

logger = logging.getLogger(__name__)

NOTES_TABLE = "notes"


# ── Helpers shared with the bookmarks feature ────────────

def is_valid_id(value: str) -> bool:
    try:
        uuid.UUID(str(value))
        return True
    except ValueError:
        return False


def _quote(value: str) -> str:
    # PostgREST or=() values: double-quote so commas/parentheses stay literal
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def escape_like(text: str) -> str:
    """Make LIKE wildcards in user text match literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def ilike_any(columns: Iterable[str], text: str) -> str:
    """Build an or_() filter matching `text` case-insensitively in any column."""
    pattern = _quote(f"%{escape_like(text)}%")
    return ",".join(f"{column}.ilike.{pattern}" for column in columns)


def apply_note_filters(query, search: str | None, tags: list[str] | None):
    """Search matches title OR content; tags match if the note has ANY of them."""
    if search:
        query = query.or_(ilike_any(("title", "content"), search))
    if tags:
        query = query.overlaps("tags", tags)
    return query


def sort_images(images: list[dict] | None) -> list[dict]:
    """Order images by position; a missing position counts as 0."""
    return sorted(images or [], key=lambda image: image.get("position") or 0)


def fetch_authors(db: Client, user_ids: Iterable[str]) -> dict[str, dict]:
    """Display names for note owners, keyed by user id. Nothing else is exposed."""
    ids = list({uid for uid in user_ids if uid})
    if not ids:
        return {}
    result = db.table("users").select("id, first_name, last_name").in_("id", ids).execute()
    return {
        row["id"]: {"first_name": row["first_name"], "last_name": row["last_name"]}
        for row in result.data
    }


def present_note(note: dict) -> dict:
    note = dict(note)
    note["images"] = sort_images(note.get("images"))
    note["tags"] = note.get("tags") or []
    return note


def present_public_note(note: dict, authors: dict[str, dict]) -> dict:
    item = present_note(note)
    owner_id = item.pop("user_id", None)
    item["author"] = authors.get(owner_id)
    return item


def _strip(value: str | None) -> str | None:
    return value.strip() if isinstance(value, str) else value


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


def validate_note(doc: dict) -> None:
    """Check the note invariants on a complete document. First violation wins."""
    if not (_has_text(doc.get("title")) or _has_text(doc.get("content")) or doc.get("images")):
        raise ValidationError("At least one field (title, content or image) must be filled in.")
    if len(doc.get("tags") or []) > MAX_TAGS:
        raise ValidationError(f"A note can have at most {MAX_TAGS} tags.")


class NotesService:
    """CRUD operations for notes, the public listing and per-owner tags."""

    def __init__(self, db: Client, media: MediaStore | None = None):
        self.db = db
        self.media = media

    # ── Owner operations ─────────────────────────────────

    def list_notes(self, user_id: str, params: ListQuery) -> tuple[list[dict], int]:
        """List a user's notes with search, tag filter, sorting and paging."""
        query = (
            self.db.table(NOTES_TABLE)
            .select("*", count="exact")
            .eq("user_id", user_id)
        )
        query = apply_note_filters(query, params.search, params.tags)

        result = (
            query
            .order(params.sort_by, desc=params.descending)
            .range(params.offset, params.offset + params.page_size - 1)
            .execute()
        )
        return [present_note(n) for n in result.data], result.count or 0

    def get_note(self, user_id: str, note_id: str) -> dict:
        """Get a single note. Notes of other users are reported as not found."""
        if not is_valid_id(note_id):
            raise NotFoundError("Note not found.")

        result = (
            self.db.table(NOTES_TABLE)
            .select("*")
            .eq("id", note_id)
            .eq("user_id", user_id)
            .execute()
        )
        if not result.data:
            raise NotFoundError("Note not found.")
        return present_note(result.data[0])

    def create_note(self, user_id: str, data: dict) -> dict:
        """Create a note after checking the content and tag invariants."""
        doc = {
            "title": _strip(data.get("title")),
            "content": _strip(data.get("content")),
            "images": sort_images(data.get("images")),
            "tags": [t.strip() for t in data.get("tags") or []],
            "is_public": bool(data.get("is_public", False)),
        }
        validate_note(doc)

        doc["user_id"] = user_id
        result = self.db.table(NOTES_TABLE).insert(doc).execute()
        note = result.data[0]
        logger.info(f"Note {note['id']} created by {user_id}")
        return present_note(note)

    def update_note(self, user_id: str, note_id: str, patch: dict) -> dict:
        """Replace only the supplied fields, validating the resulting note."""
        existing = self.get_note(user_id, note_id)

        changes = {}
        for field in ("title", "content"):
            if field in patch:
                changes[field] = _strip(patch[field])
        if "images" in patch:
            changes["images"] = sort_images(patch["images"])
        if "tags" in patch:
            changes["tags"] = [t.strip() for t in patch["tags"] or []]
        if patch.get("is_public") is not None:
            changes["is_public"] = bool(patch["is_public"])

        validate_note({**existing, **changes})
        if not changes:
            return existing

        changes["updated_at"] = datetime.now(timezone.utc).isoformat()
        result = (
            self.db.table(NOTES_TABLE)
            .update(changes)
            .eq("id", note_id)
            .eq("user_id", user_id)
            .execute()
        )
        if not result.data:
            raise NotFoundError("Note not found.")
        return present_note(result.data[0])

    def delete_note(self, user_id: str, note_id: str) -> None:
        """Hard delete a note and its image files."""
        note = self.get_note(user_id, note_id)

        self._discard_media(image["file_name"] for image in note["images"])
        (
            self.db.table(NOTES_TABLE)
            .delete()
            .eq("id", note_id)
            .eq("user_id", user_id)
            .execute()
        )
        logger.info(f"Note {note_id} deleted by {user_id}")

    def get_note_image(self, user_id: str, note_id: str, file_name: str) -> tuple[bytes, str]:
        """Serve an image only if the caller owns the note and the note references it."""
        note = self.get_note(user_id, note_id)
        if not any(image.get("file_name") == file_name for image in note["images"]):
            raise NotFoundError("Image does not belong to this note.")
        return self.media.fetch(file_name)

    def list_tags(self, user_id: str) -> list[str]:
        """Distinct, trimmed, non-empty tags across all of a user's notes."""
        result = self.db.table(NOTES_TABLE).select("tags").eq("user_id", user_id).execute()
        tags = set()
        for row in result.data:
            for tag in row.get("tags") or []:
                if tag and tag.strip():
                    tags.add(tag.strip())
        return sorted(tags)

    def delete_all_for_user(self, user_id: str) -> int:
        """Remove every note of a user and their image files (account deletion)."""
        result = self.db.table(NOTES_TABLE).select("id, images").eq("user_id", user_id).execute()
        for note in result.data:
            self._discard_media(image["file_name"] for image in note.get("images") or [])

        self.db.table(NOTES_TABLE).delete().eq("user_id", user_id).execute()
        return len(result.data)

    # ── Public listing ───────────────────────────────────

    def list_public_notes(
        self,
        params: ListQuery,
        viewer_id: str | None = None,
    ) -> tuple[list[dict], int]:
        """List public notes of all users, annotated with the author's name.

        When a viewer is known, each item also says whether they bookmarked it.
        """
        query = (
            self.db.table(NOTES_TABLE)
            .select("*", count="exact")
            .eq("is_public", True)
        )
        query = apply_note_filters(query, params.search, params.tags)

        result = (
            query
            .order(params.sort_by, desc=params.descending)
            .range(params.offset, params.offset + params.page_size - 1)
            .execute()
        )
        notes = result.data
        authors = fetch_authors(self.db, (n["user_id"] for n in notes))

        bookmarked: set[str] = set()
        if viewer_id and notes:
            rows = (
                self.db.table("bookmarks")
                .select("note_id")
                .eq("user_id", viewer_id)
                .in_("note_id", [n["id"] for n in notes])
                .execute()
            )
            bookmarked = {row["note_id"] for row in rows.data}

        items = []
        for note in notes:
            item = present_public_note(note, authors)
            if viewer_id:
                item["is_bookmarked"] = note["id"] in bookmarked
            items.append(item)
        return items, result.count or 0

    # ── Internals ────────────────────────────────────────

    def _discard_media(self, keys: Iterable[str]) -> None:
        """Best-effort file removal: a failure is logged and never aborts the caller."""
        for key in keys:
            try:
                if not self.media.delete(key):
                    logger.debug(f"Image {key} was already missing from storage")
            except Exception as e:
                logger.warning(f"Failed to delete image {key}: {e}")
