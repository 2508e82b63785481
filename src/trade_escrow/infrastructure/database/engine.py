"""Async database engine and session management.

Provides:
    - get_engine / get_session_factory: lazily created singletons.
    - create_engine_from_url: builds an engine with backend-appropriate pooling.
    - init_db / close_db: lifecycle hooks for FastAPI's lifespan.

The deal service opens one session per operation, so there is no
per-request session dependency here.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from trade_escrow.config import get_settings
from trade_escrow.logging_config import get_logger

logger = get_logger(__name__)

# Module-level singletons (initialized lazily)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or "mode=memory" in url)


def create_engine_from_url(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with backend-appropriate pooling.

    An in-memory SQLite database lives only as long as its connection, so it
    gets one connection shared by every session (StaticPool). File-backed
    SQLite uses the default pool.
    """
    if _is_memory_sqlite(url):
        return create_async_engine(
            url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    settings = get_settings()
    return create_async_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,
        echo=echo,
    )


def shares_single_connection(engine: AsyncEngine) -> bool:
    """True when every session on this engine runs on the same DBAPI connection.

    Transactions on such an engine are not isolated from each other, so
    callers must run their units of work one at a time.
    """
    return isinstance(engine.sync_engine.pool, StaticPool)


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return a session factory bound to an engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Get or create the async engine (lazy singleton)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine_from_url(settings.database_url, echo=settings.db_echo_sql)
        logger.info("database.engine_created", backend=_engine.dialect.name)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory (lazy singleton)."""
    global _session_factory
    if _session_factory is None:
        _session_factory = make_session_factory(get_engine())
    return _session_factory


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables that don't exist yet."""
    from trade_escrow.infrastructure.database.orm_models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Initialize the database engine and create tables in development.

    Called during FastAPI's lifespan startup. Other environments are
    expected to manage the schema out of band.
    """
    engine = get_engine()
    settings = get_settings()

    if settings.is_development or settings.is_sqlite:
        await create_tables(engine)
        logger.info("database.tables_created")
    else:
        logger.info("database.skipping_create_all", reason="not in development mode")


async def close_db() -> None:
    """Dispose of the database engine. Called during FastAPI's lifespan shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("database.engine_disposed")
        _engine = None
        _session_factory = None
