"""
FastAPI dependency injection functions.

The Supabase client, media store and chat model are created once in the
application lifespan (see `notesai.main`) and read back from `app.state` here.
"""

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from langchain_core.language_models import BaseChatModel
from supabase import Client

from notesai.core.exceptions import UnauthorizedError, UpstreamError
from notesai.core.security import decode_access_token
from notesai.core.storage import MediaStore

# Bearer token scheme for Swagger UI; missing tokens are reported by us as 401
bearer_scheme = HTTPBearer(auto_error=False)


def get_db(request: Request) -> Client:
    """Dependency: get the process-wide Supabase client."""
    return request.app.state.db


def get_media_store(request: Request) -> MediaStore:
    """Dependency: get the note image store."""
    return request.app.state.media


def get_llm(request: Request) -> BaseChatModel:
    """Dependency: get the chat model used by the AI endpoints."""
    llm = getattr(request.app.state, "llm", None)
    if llm is None:
        raise UpstreamError("AI service is not available")
    return llm


def _resolve_user_id(token: str, db: Client) -> str:
    payload = decode_access_token(token)
    if payload is None:
        raise UnauthorizedError("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Token does not identify a user")

    # Tokens outlive deleted accounts; make sure the owner still exists
    result = db.table("users").select("id").eq("id", user_id).execute()
    if not result.data:
        raise UnauthorizedError("User not found")

    return user_id


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Client = Depends(get_db),
) -> str:
    """Dependency: extract and validate user_id from JWT token.

    Returns:
        str: The user's UUID as string.

    Raises:
        UnauthorizedError: If the token is missing, invalid, expired, or the user is gone.
    """
    if credentials is None:
        raise UnauthorizedError("Access token not found")
    return _resolve_user_id(credentials.credentials, db)


async def get_optional_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Client = Depends(get_db),
) -> str | None:
    """Dependency: like get_current_user_id, but anonymous callers get None."""
    if credentials is None:
        return None
    try:
        return _resolve_user_id(credentials.credentials, db)
    except UnauthorizedError:
        return None
