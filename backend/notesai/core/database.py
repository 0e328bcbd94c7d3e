"""
Database connections: Supabase client setup.

Clients are built once in the application lifespan and kept on `app.state`;
request handlers receive them through the dependencies in `core.dependencies`.
"""

from supabase import create_client, Client

from notesai.config import Settings


def create_supabase_client(settings: Settings) -> Client:
    """Build the Supabase client used for table access (anon key)."""
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


def create_supabase_admin_client(settings: Settings) -> Client | None:
    """Build the service_role client (bypasses RLS), or None if no key is configured.

    Used for Storage writes and deletes on the media bucket.
    """
    if not settings.SUPABASE_SERVICE_KEY:
        return None
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
