"""Shared SQLAlchemy base, engine lifecycle and session factory.

Every store operation opens its own AsyncSession from the factory and closes
it on exit; nothing holds a session across requests.
"""

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from discovery.core.config import get_settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for ``url``.

    In-memory SQLite (tests, local experiments) must share one connection,
    otherwise each session would see an empty database.
    """
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        return create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


def session_factory_for(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows stay readable after commit; the store returns them to callers
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create any missing tables for every registered model."""
    import discovery.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db(url: str | None = None) -> None:
    """Install the process-wide engine. A no-op when already initialized."""
    global _engine, _session_factory

    if _engine is not None:
        return

    settings = get_settings()
    engine = build_engine(url or settings.database_url, echo=settings.debug)
    await create_schema(engine)
    _engine, _session_factory = engine, session_factory_for(engine)


async def close_db() -> None:
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Factory bound to the shared engine. Raises RuntimeError before init_db()."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


async def database_is_healthy() -> bool:
    """Readiness check: True when the database answers SELECT 1."""
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        return True
    except (RuntimeError, SQLAlchemyError) as exc:
        logger.error("database_health_check_failed", error=str(exc), error_type=type(exc).__name__)
        return False
