"""
Database connection: one shared Supabase client.
"""

from functools import lru_cache
from supabase import create_client, Client

from studyhub.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Supabase client for the agent tools and study services (singleton).

    Uses the anon key; row-level security scopes every query to the caller.
    """
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
