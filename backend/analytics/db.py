"""
Supabase client factory.

Uses the Supabase REST client (PostgREST) with the service key; tenant
isolation is enforced in analytics.scope, not by row-level security.
"""

import logging

from analytics import settings

logger = logging.getLogger(__name__)

_supabase_client = None


def get_supabase():
    """Lazy-initialize the shared Supabase client."""
    global _supabase_client
    if _supabase_client is None:
        if not settings.DB_AVAILABLE:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
        from supabase import create_client
        _supabase_client = create_client(
            settings.SUPABASE_URL.strip(),
            settings.SUPABASE_KEY.strip(),
        )
        logger.info("Supabase client initialised for %s", settings.SUPABASE_URL)
    return _supabase_client
