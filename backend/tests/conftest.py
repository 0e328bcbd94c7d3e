"""
Pytest configuration and fixtures for backend tests.

The app runs against an in-memory Supabase fake (see fakes.py). TestClient is
used without a context manager so the lifespan, which would build real
Supabase and LLM clients, never runs; dependencies are overridden instead.
"""

import os

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient

from factories import make_png
from fakes import FakeSupabaseClient
from notesai.core.dependencies import get_db, get_media_store
from notesai.core.storage import MediaStore
from notesai.main import app

BUCKET = "note-images"


@pytest.fixture
def fake_db() -> FakeSupabaseClient:
    return FakeSupabaseClient()


@pytest.fixture
def media(fake_db: FakeSupabaseClient) -> MediaStore:
    return MediaStore(fake_db, BUCKET)


@pytest.fixture
def bucket(fake_db: FakeSupabaseClient) -> dict[str, bytes]:
    """The stored objects of the note image bucket, keyed by file name."""
    return fake_db.storage.buckets.setdefault(BUCKET, {})


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def client(fake_db: FakeSupabaseClient, media: MediaStore):
    """Test client wired to the in-memory database and media store."""
    app.dependency_overrides[get_db] = lambda: fake_db
    app.dependency_overrides[get_media_store] = lambda: media

    yield TestClient(app)

    app.dependency_overrides.clear()
