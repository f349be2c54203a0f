"""
Entorno de Alembic para el esquema de feedsync.

La URL sale de feedsync.core.config. Los drivers async (asyncpg, aiosqlite)
se cambian por sus equivalentes sincronos porque Alembic corre sin event loop.
"""
import sys
from logging.config import fileConfig
from pathlib import Path

from sqlalchemy import create_engine, pool

from alembic import context

# api/ al path para poder importar feedsync sin instalarlo
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from feedsync.core.config import settings  # noqa: E402
from feedsync.infrastructure.database.session import Base  # noqa: E402
import feedsync.infrastructure.database  # noqa: E402,F401  (registra los modelos)

SYNC_DRIVERS = {"+asyncpg": "+psycopg", "+aiosqlite": ""}

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def migration_url() -> str:
    """URL de settings con driver sincrono."""
    url = settings.effective_database_url
    for async_driver, sync_driver in SYNC_DRIVERS.items():
        url = url.replace(async_driver, sync_driver)
    return url


def run_migrations_offline() -> None:
    """Emite el SQL sin conectarse (alembic upgrade --sql)."""
    context.configure(
        url=migration_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Aplica las migraciones contra la base configurada."""
    engine = create_engine(migration_url(), poolclass=pool.NullPool)

    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # El indice parcial y los ALTER en SQLite necesitan batch mode
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()

    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
