from typing import Any, AsyncGenerator, Dict

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from core.config import config


def get_engine_config(database_url: str) -> Dict[str, Any]:
    """Build engine keyword arguments for the configured backend.

    Args:
        database_url: Database connection URL

    Returns:
        Dict of engine configuration parameters
    """
    backend = make_url(database_url).get_backend_name()
    engine_kwargs: Dict[str, Any] = {"echo": False}

    if backend == "postgresql":
        engine_kwargs.update({
            "pool_size": config.DATABASE_POOL_SIZE,
            "max_overflow": config.DATABASE_MAX_OVERFLOW,
            "pool_recycle": 3600,
            "pool_pre_ping": True,
        })
    elif backend == "sqlite":
        engine_kwargs.update({
            "connect_args": {"check_same_thread": False},
            "poolclass": NullPool,
        })

    return engine_kwargs


engine = create_async_engine(
    config.DATABASE_URL,
    **get_engine_config(config.DATABASE_URL)
)


@event.listens_for(engine.sync_engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enforce foreign keys on SQLite connections."""
    if make_url(config.DATABASE_URL).get_backend_name() == "sqlite":
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped database session.

    Anything left uncommitted when the request fails is rolled back.

    Usage:
        @router.get("/sessions")
        async def list_sessions(db_session: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
