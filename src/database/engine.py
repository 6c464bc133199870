"""
Database engine configuration for the trading settlement service

Async SQLAlchemy 2.0 setup with connection pooling. Engines and session
makers are built explicitly and handed to the services that need them.
"""

from typing import Optional

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool

from config.config import DATABASE_URL, ENVIRONMENT, DB_POOL_SIZE, DB_MAX_OVERFLOW
from src.database.models import Base


def build_engine(url: Optional[str] = None, **overrides) -> AsyncEngine:
    """
    Create and configure async database engine

    Args:
        url: Database URL (defaults to DATABASE_URL)
        overrides: Extra create_async_engine kwargs (tests pass StaticPool etc.)

    Returns:
        Configured AsyncEngine instance
    """
    url = url or DATABASE_URL
    is_production = ENVIRONMENT == "production"

    options = dict(
        poolclass=AsyncAdaptedQueuePool,
        pool_size=DB_POOL_SIZE * 2 if is_production else DB_POOL_SIZE,
        max_overflow=DB_MAX_OVERFLOW * 2 if is_production else DB_MAX_OVERFLOW,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600,  # Recycle connections every hour
        echo=False,
        echo_pool=False,
    )

    if url.startswith("postgresql+asyncpg"):
        # Conditional balance updates rely on READ COMMITTED re-evaluation
        options["isolation_level"] = "READ COMMITTED"
        options["connect_args"] = {
            "statement_cache_size": 0,
            "server_settings": {"application_name": "trading_settlement"},
        }

    if "poolclass" in overrides:
        # Sizing only applies to the queue pool
        options.pop("pool_size")
        options.pop("max_overflow")

    options.update(overrides)
    engine = create_async_engine(url, **options)

    logger.info(f"Database engine created - Environment: {ENVIRONMENT}")
    return engine


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create async session maker bound to `engine`
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Important for async!
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Create all tables

    WARNING: For production the schema is managed by migrations.
    """
    logger.info("Creating database tables...")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created successfully")


async def drop_db(engine: AsyncEngine) -> None:
    """
    Drop all database tables

    WARNING: This deletes all data! Only for development/testing.
    """
    if ENVIRONMENT == "production":
        raise RuntimeError("Cannot drop database in production environment!")

    logger.warning("Dropping all database tables...")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    logger.warning("Database tables dropped")


async def check_connection(engine: AsyncEngine) -> bool:
    """
    Check database connection

    Returns:
        True if connection successful, False otherwise
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection check: OK")
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
