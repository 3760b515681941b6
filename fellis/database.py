import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from fellis.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def enable_sqlite_foreign_keys(async_engine: AsyncEngine) -> None:
    """SQLite ignores ON DELETE clauses unless foreign keys are switched on per connection."""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def engine_options(database_url: str, environment: str, debug: bool) -> dict[str, Any]:
    """Pool settings per deployment. SQLite (tests, local dev) gets no pool tuning."""
    if database_url.startswith("sqlite"):
        return {"echo": debug}
    if environment == "production":
        return {"pool_size": 20, "max_overflow": 40, "pool_timeout": 60, "pool_recycle": 1800, "pool_pre_ping": True}
    return {"echo": debug, "pool_size": 5, "max_overflow": 10, "pool_timeout": 30}


def build_engine(database_url: str = settings.database_url) -> AsyncEngine:
    async_engine = create_async_engine(
        database_url, **engine_options(database_url, settings.environment, settings.debug)
    )
    if database_url.startswith("sqlite"):
        enable_sqlite_foreign_keys(async_engine)
    return async_engine


engine = build_engine()

AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


async def get_db():
    """Request-scoped session. Work left uncommitted when the request fails is rolled back."""
    async with AsyncSessionLocal() as db:
        try:
            yield db
        except Exception:
            logger.warning("Rolling back database session after request error")
            await db.rollback()
            raise
