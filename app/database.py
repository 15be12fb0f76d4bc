"""
Database connection and session management.

One async engine for the whole process: PostgreSQL via asyncpg in
production, any other SQLAlchemy async URL (the test suite uses
``sqlite+aiosqlite``) otherwise.
"""
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from typing import Any, AsyncGenerator, Dict
import logging

from app.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> Dict[str, Any]:
    """Engine kwargs for the configured backend."""
    options: Dict[str, Any] = {"echo": False, "poolclass": NullPool}
    if make_url(url).get_backend_name() == "postgresql":
        options["pool_pre_ping"] = True
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session. Commits after the route returns (routes also
    commit explicitly before building their response), rolls back and
    re-raises when it fails.

    Example:
        @router.get("/theses")
        async def list_theses(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Thesis))
            return result.scalars().all()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error("Database session error: %s", e)
            raise


async def ping_database(session: AsyncSession) -> bool:
    """Run ``SELECT 1``; False (logged) when the database does not answer."""
    try:
        await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database ping failed: %s", e)
        return False


async def init_db() -> None:
    """Create any missing tables (Alembic owns real migrations)."""
    try:
        async with engine.begin() as conn:
            from app.models import database_models  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created/verified (%s)", engine.dialect.name)

    except Exception as e:
        logger.error("Error initializing database: %s", e)
        raise


async def close_db() -> None:
    """Close database connections gracefully."""
    await engine.dispose()
    logger.info("Database connections closed")
