"""Database setup and connection management."""

from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from ..config import get_config


MEMORY_DATABASE_URL = "sqlite+aiosqlite://"


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


_engine = None
_async_session_factory = None


def get_database_url() -> str:
    """Get the database URL from configuration."""
    config = get_config()
    db_path = config.database.path

    if db_path == ":memory:":
        return MEMORY_DATABASE_URL

    # Ensure directory exists
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    return f"sqlite+aiosqlite:///{db_path}"


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async SQLite engine with working SAVEPOINT support.

    The sqlite driver defers BEGIN on its own, which breaks nested
    transactions; the listeners hand transaction control to SQLAlchemy.
    """
    engine_kwargs = {"echo": echo}
    if database_url == MEMORY_DATABASE_URL:
        # A single shared connection keeps the in-memory database alive
        engine_kwargs["poolclass"] = StaticPool
        engine_kwargs["connect_args"] = {"check_same_thread": False}

    engine = create_async_engine(database_url, **engine_kwargs)

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables on the given engine."""
    # Import all models to register them
    from . import board, email  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Initialize the database, creating tables if needed."""
    global _engine, _async_session_factory

    _engine = build_engine(
        get_database_url(),
        echo=get_config().logging.level == "debug",
    )

    _async_session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    await create_tables(_engine)


async def close_db() -> None:
    """Dispose of the engine."""
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session_factory = None


async def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory, initializing the database on first use."""
    if _async_session_factory is None:
        await init_db()
    return _async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session."""
    if _async_session_factory is None:
        await init_db()

    async with _async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
