"""
Auth feature: API routes.
"""

from fastapi import APIRouter, Depends, status
from supabase import Client

from notesai.core.dependencies import get_current_user_id, get_db, get_media_store
from notesai.core.responses import success_response
from notesai.core.storage import MediaStore
from notesai.features.auth.schemas import (
    RegisterRequest,
    LoginRequest,
    UpdateProfileRequest,
)
from notesai.features.auth.service import AuthService

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, db: Client = Depends(get_db)):
    """Create a new account and return a JWT token."""
    service = AuthService(db)
    result = await service.register(data)
    return success_response(result, "User registered successfully")


@router.post("/login")
async def login(data: LoginRequest, db: Client = Depends(get_db)):
    """Log in and receive a JWT token."""
    service = AuthService(db)
    result = await service.login(data)
    return success_response(result, "Login successful")


@router.get("/profile")
async def get_profile(
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Get the current user's profile."""
    service = AuthService(db)
    user = await service.get_profile(user_id)
    return success_response({"user": user}, "Profile retrieved")


@router.put("/profile")
async def update_profile(
    data: UpdateProfileRequest,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Update first name, last name or email."""
    service = AuthService(db)
    user = await service.update_profile(user_id, data.model_dump())
    return success_response({"user": user}, "Profile updated")


@router.delete("/account")
async def delete_account(
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
    media: MediaStore = Depends(get_media_store),
):
    """Delete the account together with its notes and bookmarks."""
    service = AuthService(db, media)
    await service.delete_account(user_id)
    return success_response(message="Account and notes deleted")


@router.post("/refresh")
async def refresh_token(
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Renew the JWT token. Call when the token is about to expire.

    Requires: valid Bearer token in Authorization header.
    Returns: new access_token with fresh expiry.
    """
    service = AuthService(db)
    result = await service.refresh(user_id)
    return success_response(result, "Token refreshed")
