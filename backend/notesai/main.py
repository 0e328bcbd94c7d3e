"""
Notes backend - FastAPI Application Entry Point.

Feature-based modular architecture:
  Each feature in notesai/features/ has its own router, schemas and service.
  Shared clients (Supabase, media store, LLM) are built once in the lifespan
  and handed to routes through notesai.core.dependencies.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notesai.config import get_settings
from notesai.core.database import create_supabase_admin_client, create_supabase_client
from notesai.core.exceptions import register_exception_handlers
from notesai.core.llm_provider import create_llm
from notesai.core.responses import success_response
from notesai.core.storage import MediaStore

# ── Feature Routers ──────────────────────────────────────
from notesai.features.auth.router import router as auth_router
from notesai.features.notes.router import router as notes_router
from notesai.features.bookmarks.router import router as bookmarks_router
from notesai.features.ai.router import router as ai_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup & shutdown."""
    settings = get_settings()
    logger.info(f"🚀 {settings.APP_NAME} v{settings.APP_VERSION} starting...")

    db = create_supabase_client(settings)
    storage_client = create_supabase_admin_client(settings) or db
    app.state.db = db
    app.state.media = MediaStore(storage_client, settings.MEDIA_BUCKET, settings.MEDIA_JPEG_QUALITY)
    logger.info(f"🔗 Supabase: {settings.SUPABASE_URL[:40]}... (bucket '{settings.MEDIA_BUCKET}')")

    if settings.LLM_API_KEY:
        app.state.llm = create_llm(settings)
        logger.info(f"🤖 LLM Provider: {settings.LLM_PROVIDER} ({settings.LLM_MODEL})")
    else:
        app.state.llm = None
        logger.warning("LLM_API_KEY is not set; AI endpoints will be unavailable")

    yield
    logger.info("👋 Shutting down...")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        description="Personal notes with public sharing, bookmarks and AI helpers",
        lifespan=lifespan,
    )

    # ── CORS ─────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # ── Register Feature Routers ─────────────────────────
    app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
    app.include_router(notes_router, prefix="/api/notes", tags=["Notes"])
    app.include_router(bookmarks_router, prefix="/api/bookmarks", tags=["Bookmarks"])
    app.include_router(ai_router, prefix="/api/ai", tags=["AI"])

    # ── Health Check ─────────────────────────────────────
    @app.get("/health", tags=["System"])
    async def health_check():
        return success_response({
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
        })

    return app


app = create_app()
