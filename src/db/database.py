"""Async SQLAlchemy engine, session factory and schema bootstrap."""

from collections.abc import AsyncGenerator

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.config import settings

logger = structlog.get_logger()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
)

# Shared by request-scoped sessions and the SQL-backed scoring collaborators
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a request-scoped async session for read endpoints."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db(seed_rules: bool = True) -> None:
    """Create the engine's tables and seed the default fraud rules when missing."""
    from src.db.models import Base
    from src.domains.fraud.store import SqlRuleRepository

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    inserted = 0
    if seed_rules:
        inserted = await SqlRuleRepository(async_session_factory).seed_defaults()
    logger.info("database_initialized", rules_seeded=inserted)


async def dispose_db() -> None:
    await engine.dispose()
    logger.info("database_disposed")


async def check_db() -> bool:
    """Check database connectivity."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as exc:
        logger.warning("database_check_failed", error=str(exc))
        return False
