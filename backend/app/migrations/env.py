"""
Ambiente alembic per le tabelle di fatturazione.

Lo schema è quello di app.models.fatturazione. In produzione si usa
DATABASE_URL con la connessione diretta a Supabase (porta 5432): il pooler
(porta 6543) non supporta le transazioni DDL delle migrazioni.
Chi invoca alembic da codice può passare una connessione già aperta in
config.attributes["connection"] (usato dai test su SQLite).
"""
import logging
import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.exc import OperationalError

# backend/ nel path, per eseguire alembic dalla radice del progetto
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from app.core.config import settings  # noqa: E402
from app.core.database import Base  # noqa: E402
import app.models.fatturazione  # noqa: E402,F401  registra le tabelle nei metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or settings.DATABASE_URL


def _configure(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite non supporta ALTER TABLE completo
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """Genera lo SQL senza connettersi (alembic upgrade head --sql)."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connection = config.attributes.get("connection")
    if connection is not None:
        _configure(connection)
        return

    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _database_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    try:
        with connectable.connect() as connection:
            _configure(connection)
    except OperationalError as exc:
        if "could not translate host name" in str(exc) or "nodename nor servname provided" in str(exc):
            logger.error(
                "Host del database non risolvibile. Verifica che il progetto Supabase sia attivo "
                "e che DATABASE_URL usi la connessione diretta (porta 5432). "
                "Per generare lo SQL senza connessione: alembic upgrade head --sql"
            )
        raise


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
