"""
Database Layer - Async SQLAlchemy engine + session factory.
"""
import logging
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from app import config

logger = logging.getLogger("pms-db")


class Base(DeclarativeBase):
    pass


engine = create_async_engine(
    config.DATABASE_URL,
    pool_size=config.DB_POOL_SIZE,
    max_overflow=config.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
    echo=False,
    pool_timeout=5,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db():
    """Create tables. Skips gracefully in dev mode when no DB is configured."""
    if not config.DATABASE_CONFIGURED:
        logger.warning("DATABASE_URL not set — skipping init_db() (dev mode)")
        return
    from app.models import orm_models  # noqa: F401
    try:
        async with engine.begin() as conn:
            if config.DB_RESET_ON_STARTUP:
                logger.warning("DB_RESET_ON_STARTUP=true — dropping all tables")
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialized.")
    except Exception as e:
        logger.warning(f"init_db skipped (DB not available): {e}")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_session_factory() -> async_sessionmaker:
    """Session factory for fan-out loads that need one session per query."""
    return AsyncSessionLocal
