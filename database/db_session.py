from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from contextlib import asynccontextmanager
import logging
from loguru import logger

# Import Base for database initialization
from .models_base import Base
from config import get_database_url

# Keep SQLAlchemy's own logger quiet; our messages go through loguru
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

DATABASE_URL = get_database_url()

# Create engine
# - timeout=30: Wait up to 30 seconds for sqlite locks
engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    connect_args={"timeout": 30} if DATABASE_URL.startswith("sqlite") else {}
)

# Create session factory
AsyncSessionLocal = sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession
)

def get_session_factory():
    """
    Factory function to get the session maker.
    This allows tests to inject a different session factory.
    """
    return AsyncSessionLocal

@asynccontextmanager
async def db_session():
    """Context manager for database sessions with automatic commit/rollback"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database error: {e}")
            raise

async def init_db():
    """Initialize the database, create tables if they don't exist"""
    # Make sure every model is registered on Base.metadata
    import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")
