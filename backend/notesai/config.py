"""
Application configuration using Pydantic Settings.
All config is loaded from environment variables / .env file.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # ── App ──────────────────────────────────────────────
    APP_NAME: str = "notesai-backend"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"  # comma-separated

    # ── Supabase ─────────────────────────────────────────
    SUPABASE_URL: str
    SUPABASE_KEY: str  # anon/public key
    SUPABASE_SERVICE_KEY: str = ""  # service_role key (storage uploads/deletes)

    # ── Security ─────────────────────────────────────────
    JWT_SECRET_KEY: str  # JWT signing key
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 7 * 24 * 60  # 7 days

    # ── LLM (Provider-Agnostic) ──────────────────────────
    LLM_PROVIDER: str = "gemini"  # gemini | openai | groq
    LLM_MODEL: str = "gemini-2.5-flash"
    LLM_API_KEY: str = ""
    LLM_TEMPERATURE: float = 0.4

    # ── Media (note images) ──────────────────────────────
    MEDIA_BUCKET: str = "note-images"
    MEDIA_MAX_BYTES: int = 5 * 1024 * 1024  # 5MB
    MEDIA_JPEG_QUALITY: int = 90

    # ── Listing ──────────────────────────────────────────
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance, read once per process."""
    return Settings()
