from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from syncpay.core.config import settings
from typing import AsyncGenerator
import asyncio
import logging

from syncpay.models.base import Base

import syncpay.models

logger = logging.getLogger(__name__)


class DatabaseManager:
    def __init__(self, database_url: str = None):
        """Initializes the database engine and session maker upon creation."""
        self.engine = create_async_engine(database_url or settings.DATABASE_URL, echo=False, pool_pre_ping=True)
        self.async_session_maker = async_sessionmaker(
            self.engine, expire_on_commit=False, class_=AsyncSession
        )

    async def close(self):
        """Closes the database engine connections."""
        if self.engine:
            await self.engine.dispose()

    async def get_db_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provides a database session."""
        async with self.async_session_maker() as session:
            yield session

db_manager = DatabaseManager()


async def init_db():
    """
    Creates all database tables. Production schemas are managed by alembic;
    this is meant for local development.
    """
    logger.info("Initializing database...")
    async with db_manager.engine.begin() as conn:
        logger.info(f"Tables known to Base.metadata: {list(Base.metadata.tables.keys())}")
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialization finished successfully.")

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_db())
