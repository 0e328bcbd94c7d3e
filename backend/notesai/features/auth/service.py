"""
Auth feature: Business logic for user registration, login, profile management
and account deletion.
"""

import logging
from datetime import datetime, timezone

from postgrest.exceptions import APIError
from supabase import Client

from notesai.core.exceptions import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    is_unique_violation,
)
from notesai.core.security import hash_password, verify_password, create_access_token
from notesai.core.storage import MediaStore
from notesai.features.auth.schemas import RegisterRequest, LoginRequest, UserResponse
from notesai.features.bookmarks.service import BookmarkService
from notesai.features.notes.service import NotesService

logger = logging.getLogger(__name__)


def _public_user(row: dict) -> dict:
    """Strip credentials and serialize a users row."""
    return UserResponse(**row).model_dump(mode="json")


class AuthService:
    """Handles user authentication and profile management."""

    def __init__(self, db: Client, media: MediaStore | None = None):
        self.db = db
        self.media = media

    def _token_response(self, user: dict) -> dict:
        token = create_access_token(user["id"], user["email"])
        return {
            "access_token": token,
            "token_type": "bearer",
            "user": _public_user(user),
        }

    async def register(self, data: RegisterRequest) -> dict:
        """Register a new user.

        Returns:
            dict with access_token and user data.

        Raises:
            ConflictError: If email already exists.
        """
        existing = (
            self.db.table("users")
            .select("id")
            .eq("email", data.email)
            .execute()
        )
        if existing.data:
            raise ConflictError("This email address is already registered")

        user_data = {
            "first_name": data.first_name,
            "last_name": data.last_name,
            "email": data.email,
            "password_hash": hash_password(data.password),
        }
        try:
            result = self.db.table("users").insert(user_data).execute()
        except APIError as e:
            if is_unique_violation(e):
                raise ConflictError("This email address is already registered")
            raise

        user = result.data[0]
        logger.info(f"Registered user {user['id']}")
        return self._token_response(user)

    async def login(self, data: LoginRequest) -> dict:
        """Authenticate user and return JWT token.

        Raises:
            UnauthorizedError: If credentials are invalid.
        """
        result = (
            self.db.table("users")
            .select("*")
            .eq("email", data.email)
            .execute()
        )

        if not result.data:
            raise UnauthorizedError("Invalid email or password")

        user = result.data[0]

        if not verify_password(data.password, user["password_hash"]):
            raise UnauthorizedError("Invalid email or password")

        return self._token_response(user)

    async def refresh(self, user_id: str) -> dict:
        """Issue a fresh token for a user that still exists."""
        result = self.db.table("users").select("*").eq("id", user_id).execute()
        if not result.data:
            raise UnauthorizedError("Account does not exist")
        return self._token_response(result.data[0])

    async def get_profile(self, user_id: str) -> dict:
        """Get user profile by ID."""
        result = (
            self.db.table("users")
            .select("*")
            .eq("id", user_id)
            .execute()
        )
        if not result.data:
            raise NotFoundError("User not found")
        return _public_user(result.data[0])

    async def update_profile(self, user_id: str, data: dict) -> dict:
        """Update user profile fields. A new email must not belong to another user."""
        update_data = {k: v for k, v in data.items() if v is not None}

        if not update_data:
            return await self.get_profile(user_id)

        if "email" in update_data:
            taken = (
                self.db.table("users")
                .select("id")
                .eq("email", update_data["email"])
                .neq("id", user_id)
                .execute()
            )
            if taken.data:
                raise ConflictError("This email address is already in use")

        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
        try:
            result = (
                self.db.table("users")
                .update(update_data)
                .eq("id", user_id)
                .execute()
            )
        except APIError as e:
            if is_unique_violation(e):
                raise ConflictError("This email address is already in use")
            raise

        if not result.data:
            raise NotFoundError("User not found")
        return _public_user(result.data[0])

    async def delete_account(self, user_id: str) -> None:
        """Delete the account with its notes, image files, bookmarks and analysis history.

        Steps run one after another; nothing is rolled back if a later step fails.
        Image removal errors are logged and ignored.
        """
        notes_deleted = NotesService(self.db, self.media).delete_all_for_user(user_id)
        BookmarkService(self.db).delete_all_for_user(user_id)
        self.db.table("analyzed_images").delete().eq("user_id", user_id).execute()
        self.db.table("users").delete().eq("id", user_id).execute()
        logger.info(f"Deleted account {user_id} ({notes_deleted} notes)")
