"""
Postgres engine and sessions for the payments service.

Hosted Postgres providers hand out URLs like postgres://...?sslmode=require.
asyncpg understands neither the scheme nor the sslmode parameter, so the URL
is rewritten for asyncpg and sslmode becomes the connect-time ssl flag.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Tuple

from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

logger = logging.getLogger(__name__)

ASYNC_DRIVER = "postgresql+asyncpg"
SYNC_POSTGRES_DRIVERS = {"postgres", "postgresql", "postgresql+psycopg", "postgresql+psycopg2"}
SSL_OFF_MODES = {"disable", "allow"}


def normalize_database_url(raw: str, default_ssl: bool = True) -> Tuple[Optional[URL], bool]:
    """
    Return (asyncpg URL, use_ssl) for a configured DATABASE_URL.

    sslmode in the URL wins over default_ssl. Non-Postgres URLs are
    returned unchanged and never use ssl.
    """
    if not raw:
        return None, False

    url = make_url(raw)
    if url.drivername in SYNC_POSTGRES_DRIVERS:
        url = url.set(drivername=ASYNC_DRIVER)
    if url.drivername != ASYNC_DRIVER:
        return url, False

    sslmode = url.query.get("sslmode")
    if isinstance(sslmode, tuple):
        sslmode = sslmode[-1]
    use_ssl = default_ssl if sslmode is None else sslmode not in SSL_OFF_MODES

    return url.difference_update_query(["sslmode"]), use_ssl


def create_engine_if_configured() -> Optional[AsyncEngine]:
    """Create async engine only if DATABASE_URL is configured."""
    url, use_ssl = normalize_database_url(settings.database_url, settings.database_ssl)
    if url is None:
        logger.warning("DATABASE_URL not configured. Database features disabled.")
        return None

    options = {"echo": settings.debug, "pool_pre_ping": True}
    if url.drivername == ASYNC_DRIVER:
        options.update(pool_size=5, max_overflow=10, connect_args={"ssl": True} if use_ssl else {})

    logger.info(f"Database engine for {url.render_as_string(hide_password=True)} (ssl={use_ssl})")
    return create_async_engine(url, **options)


# May be None if not configured
engine = create_engine_if_configured()

async_session_maker = (
    async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    if engine
    else None
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


@asynccontextmanager
async def get_db_context(isolation_level: Optional[str] = None) -> AsyncGenerator[AsyncSession, None]:
    """
    One unit of work: commit on success, roll back on error.

    isolation_level pins the transaction's isolation (e.g. "REPEATABLE READ"
    for jobs that read a set of rows and then update based on it).
    """
    if not async_session_maker:
        raise RuntimeError("Database not configured. Set DATABASE_URL environment variable.")

    async with async_session_maker() as session:
        if isolation_level:
            await session.connection(execution_options={"isolation_level": isolation_level})
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    async with get_db_context() as session:
        yield session


async def init_db() -> None:
    """Create tables directly (local setup; production uses alembic)."""
    if not engine:
        logger.warning("Skipping database initialization - DATABASE_URL not configured")
        return

    # Register models on Base.metadata
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    if engine:
        await engine.dispose()
