"""
Database configuration and session management

IMPORTANT: This uses DIRECT CONNECTION to Supabase (port 5432).
DO NOT use Supabase connection pooler (port 6543) as it doesn't support
all PostgreSQL features needed for migrations and transactions.
"""
import logging
import threading
from functools import lru_cache

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)


@lru_cache
def get_engine() -> Engine:
    """Create the engine on first use so that importing the models needs no DB driver."""
    if settings.DATABASE_URL.startswith("sqlite"):
        return create_engine(settings.DATABASE_URL, future=True)
    return create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=5,
        pool_recycle=300,  # Ricicla connessioni ogni 5 minuti
        pool_timeout=30,
        pool_reset_on_return='commit',
        connect_args={
            "connect_timeout": 10,
            "keepalives": 1,
            "keepalives_idle": 30,
            "keepalives_interval": 10,
            "keepalives_count": 5,
        },
        echo=False,
    )


_warmup_thread = None
_warmup_complete = False


def warmup_pool():
    """Pre-create connections to reduce cold start latency"""
    global _warmup_thread, _warmup_complete

    def _warmup_sync():
        global _warmup_complete
        try:
            with get_engine().connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("[Database] Connection pool warmed up")
        except Exception as e:
            logger.warning("[Database] Pool warmup failed: %s", e)
        finally:
            _warmup_complete = True

    # Thread daemon: non blocca l'avvio dell'app
    _warmup_thread = threading.Thread(target=_warmup_sync, daemon=True)
    _warmup_thread.start()


def wait_for_warmup_complete(timeout=5.0):
    """Attende che il warmup sia completo (opzionale, per shutdown pulito)"""
    if _warmup_thread is None:
        return True
    _warmup_thread.join(timeout)
    return _warmup_complete


# Session factory, bound lazily
SessionLocal = sessionmaker(autocommit=False, autoflush=False)

# Base class for models
Base = declarative_base()


def get_db():
    """Dependency to get database session"""
    db = SessionLocal(bind=get_engine())
    try:
        yield db
    finally:
        db.close()
