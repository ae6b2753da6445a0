from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text
from dotenv import load_dotenv
from pathlib import Path
import logging

from config import get_settings

logger = logging.getLogger(__name__)

# Load environment variables
ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

settings = get_settings()

# Get database URL
DATABASE_URL = settings.get_database_url()


def build_engine(url: str) -> AsyncEngine:
    """
    Create the async engine for a database URL.

    SQLite (local development and tests) takes no pool sizing or SSL
    arguments; PostgreSQL gets the configured pool and sslmode.
    """
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.DB_ECHO)

    connect_args = {}
    if settings.POSTGRES_SSLMODE:
        connect_args["ssl"] = settings.POSTGRES_SSLMODE

    return create_async_engine(
        url,
        echo=settings.DB_ECHO,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=settings.DB_POOL_RECYCLE_SECONDS,
        connect_args=connect_args
    )


engine = build_engine(DATABASE_URL)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)


class Base(DeclarativeBase):
    pass


async def init_db():
    """Verify the database connection and create missing tables"""
    # Register models on Base.metadata
    import identity.models  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            logger.info("Database connection successful")

            await conn.run_sync(Base.metadata.create_all)
            logger.info(f"Available tables: {sorted(Base.metadata.tables)}")

            return True
    except Exception as e:
        logger.error(f"Database initialization error: {e}")
        raise


async def close_db():
    """Dispose of pooled connections on shutdown"""
    await engine.dispose()
    logger.info("Database engine disposed")
