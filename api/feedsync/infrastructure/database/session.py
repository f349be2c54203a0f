"""
Engine y sesiones async de la base de sync.

Cada registro del pipeline se escribe en su propia sesion, asi que el
factory es lo que se inyecta en los casos de uso; get_db queda para scripts.
"""
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker
)
from sqlalchemy.orm import declarative_base

from feedsync.core.config import settings


# Base para modelos de SQLAlchemy
Base = declarative_base()


def build_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    """
    Crea un engine async para la URL dada (por defecto la de settings).

    SQLite no admite pool_size/max_overflow; con PostgreSQL el pool se dimensiona
    para el pipeline (una conexion por registro en vuelo y las consultas de estado).
    """
    url = url or settings.effective_database_url
    args = {"echo": settings.DEBUG if echo is None else echo}

    if url.startswith("postgresql"):
        args.update({
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_pre_ping": True,
        })

    return create_async_engine(url, **args)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Factory de sesiones; los objetos siguen legibles despues del commit."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False, autoflush=False)


async def create_schema(bind: AsyncEngine) -> None:
    """Crea las tablas que falten (sin migraciones)."""
    # Registrar modelos en Base.metadata antes de crear tablas
    import feedsync.infrastructure.database  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


engine = build_engine()
AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Sesion con commit al terminar y rollback si algo falla.

    Yields:
        AsyncSession: Sesión de base de datos
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Prepara la base del proceso."""
    await create_schema(engine)


async def close_db() -> None:
    """Cierra las conexiones de la base de datos."""
    await engine.dispose()
