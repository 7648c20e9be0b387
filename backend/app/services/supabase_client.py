"""Utility helpers to interact with Supabase"""
from __future__ import annotations

from functools import lru_cache

from supabase import Client, create_client

from app.core.config import settings


class SupabaseNotConfigured(RuntimeError):
    """Raised when Supabase credentials are missing."""


@lru_cache
def get_supabase_client() -> Client:
    """Instantiate a Supabase client using the service role key (anon key as fallback)."""
    key = settings.SUPABASE_SERVICE_ROLE_KEY or settings.SUPABASE_ANON_KEY
    if not settings.SUPABASE_URL or not key:
        raise SupabaseNotConfigured(
            "Supabase URL o chiave di accesso non configurati. Aggiorna le variabili d'ambiente."
        )
    return create_client(settings.SUPABASE_URL, key)
