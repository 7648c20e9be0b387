"""Store di persistenza per il modulo fatturazione"""
from functools import lru_cache

from app.core.config import settings

from .base import NOT_FOUND_CODE, Store, StoreError, fetch_one

__all__ = ["NOT_FOUND_CODE", "Store", "StoreError", "fetch_one", "get_store"]


@lru_cache
def get_store() -> Store:
    """Store configurato da STORE_BACKEND ("supabase" o "sql")."""
    if settings.STORE_BACKEND == "sql":
        from app.core.database import get_engine
        from .sql_store import SqlStore

        return SqlStore(get_engine())

    from app.services.supabase_client import get_supabase_client
    from .supabase_store import SupabaseStore

    return SupabaseStore(get_supabase_client())
