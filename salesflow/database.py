"""
Database configuration and session management
"""
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from salesflow.config import get_settings

settings = get_settings()


def _get_async_url(url: str) -> str:
    """Convert database URL to async variant"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    return url


def _configure_sqlite(engine: AsyncEngine) -> None:
    """
    Make SQLite transactions explicit.

    The driver's implicit BEGIN is disabled and every transaction starts with
    BEGIN IMMEDIATE, so header + items writes are atomic and concurrent writers
    wait on the busy timeout instead of failing a lock upgrade.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given URL with dialect-specific setup"""
    database_url = _get_async_url(url)
    engine_kwargs = {
        "echo": echo,
        "future": True,
    }

    # SQLite doesn't support pool_size
    if not database_url.startswith("sqlite"):
        engine_kwargs["pool_size"] = 20
        engine_kwargs["max_overflow"] = 10

    engine = create_async_engine(database_url, **engine_kwargs)
    if database_url.startswith("sqlite"):
        _configure_sqlite(engine)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


# Default engine for the application process
engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

AsyncSessionLocal = build_session_factory(engine)

# Base class for models
Base = declarative_base()
