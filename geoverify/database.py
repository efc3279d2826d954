from collections.abc import AsyncIterator
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from starlette.requests import Request


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def create_engine(database_url: str, **kwargs) -> AsyncEngine:
    """Build the async engine for ``database_url``.

    PostgreSQL gets connection pool settings; SQLite gets WAL mode and a
    busy timeout so concurrent request sessions do not fail on lock.
    """
    is_sqlite = database_url.startswith("sqlite")

    # Render provides postgres:// URLs; asyncpg needs postgresql+asyncpg://
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif database_url.startswith("postgresql://") and "+asyncpg" not in database_url:
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine_kwargs: dict = {"echo": False}
    if not is_sqlite:
        engine_kwargs.update({
            "pool_size": 5,
            "max_overflow": 10,
            "pool_timeout": 30,
            "pool_pre_ping": True,
            "pool_recycle": 1800,
        })
    engine_kwargs.update(kwargs)

    engine = create_async_engine(database_url, **engine_kwargs)
    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _set_sqlite_pragma)
    return engine


def ensure_database_dir(database_url) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return
    db_file = url.database
    if db_file and db_file != ":memory:" and not db_file.startswith("file:"):
        Path(db_file).parent.mkdir(parents=True, exist_ok=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields a database session."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables."""
    # Register models on Base.metadata before create_all
    import geoverify.models  # noqa: F401

    ensure_database_dir(engine.url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(engine: AsyncEngine) -> None:
    """Drop all tables."""
    import geoverify.models  # noqa: F401

    ensure_database_dir(engine.url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def dispose_engine(engine: AsyncEngine) -> None:
    """Dispose of the engine connection pool. Call on shutdown."""
    await engine.dispose()
