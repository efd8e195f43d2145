"""Database engine and session factory."""

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from backend.app.config import Settings


def normalize_async_url(database_url: str) -> str:
    """Rewrite sync driver URLs to their async equivalents."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("sqlite:///"):
        return database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return database_url


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLite honour BEGIN/SAVEPOINT as emitted by SQLAlchemy.

    The sqlite3 driver manages transactions itself, which breaks nested
    transactions unless it is told to stay out of the way.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def create_async_engine_from_url(database_url: str, **kwargs: Any) -> AsyncEngine:
    """Create async engine, applying SQLite transaction fixes where needed."""
    url = normalize_async_url(database_url)
    engine = create_async_engine(url, echo=False, **kwargs)
    if url.startswith("sqlite"):
        enable_sqlite_savepoints(engine)
    return engine


def create_async_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create async SQLAlchemy engine from settings.

    Raises:
        ValueError: If DATABASE_URL is unset or empty.
    """
    if not settings.database_url:
        raise ValueError(
            "DATABASE_URL must be set to a valid connection string. "
            "Please configure the database_url setting."
        )

    return create_async_engine_from_url(settings.database_url, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create sessionmaker for creating async database sessions.

    Args:
        engine: Async SQLAlchemy engine

    Returns:
        Sessionmaker bound to the engine
    """
    return async_sessionmaker(bind=engine, expire_on_commit=False)
