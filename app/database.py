"""
Database Connection Module
Handles the relational store using the SQLAlchemy async engine.

The kiosk default is a local SQLite file (aiosqlite); PostgreSQL (psycopg)
is supported for multi-instance deployments.
"""

import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _enable_sqlite_write_transactions(engine: AsyncEngine) -> None:
    """
    Make every SQLite transaction take the write lock up front.

    pysqlite otherwise defers BEGIN until the first DML statement, so two
    transactions could both read the same counter value before either
    writes it. BEGIN IMMEDIATE makes the second writer wait for the first
    to commit.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, *, echo: bool = False, null_pool: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    Args:
        url: SQLAlchemy async URL
        echo: Log SQL statements
        null_pool: Open a fresh connection per checkout (Celery worker,
            where each task runs in its own event loop)
    """
    kwargs = {"echo": echo}

    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"timeout": 30}
        if null_pool:
            kwargs["poolclass"] = NullPool
    elif null_pool:
        kwargs["poolclass"] = NullPool
    else:
        kwargs["pool_size"] = 5  # Connection pool size
        kwargs["max_overflow"] = 10  # Extra connections when pool is full

    engine = create_async_engine(url, **kwargs)

    if url.startswith("sqlite"):
        _enable_sqlite_write_transactions(engine)

    return engine


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False  # Objects remain accessible after commit
    )


engine = build_engine(settings.database_url, echo=settings.database_echo)

# Session factory - creates new database sessions
async_session_maker = build_session_maker(engine)


# Base class for all our models
class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """
    Dependency injection for FastAPI routes.
    Yields a database session and ensures cleanup.
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(target: AsyncEngine = engine) -> None:
    """
    Create all tables and seed the default settings keys.
    Called once at application startup.
    """
    # Import models so they register on Base.metadata
    from app import models  # noqa: F401
    from app.services.settings_store import seed_default_settings

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_session_maker if target is engine else build_session_maker(target)
    async with session_maker() as session:
        async with session.begin():
            created = await seed_default_settings(session)

    logger.info(f"Database tables ready ({created} default settings created)")
