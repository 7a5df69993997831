# catalog/core/supabase_client.py
from functools import lru_cache
from supabase import create_client, Client

from catalog.core.config import get_settings

settings = get_settings()


@lru_cache
def supabase_public() -> Client:
    """
    Create a Supabase client with the anon/public key.

    Storage calls made with this client are subject to the bucket's
    storage policies (RLS).
    """
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


@lru_cache
def supabase_admin() -> Client:
    """
    Create a Supabase client with the service role key.

    Used for catalog image uploads/removals; ownership has already been
    checked by the AuthorizationGuard before any Storage call is made.

    WARNING:
      - Never expose service role key to frontend.

    Falls back to the anon client when SUPABASE_SERVICE_ROLE_KEY is not set,
    so Storage policies decide what the anon key may do.
    """
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        return supabase_public()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
