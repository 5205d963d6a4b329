import logging
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import BigInteger, Integer
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


# Base class for declarative models
class Base(DeclarativeBase):
    pass


class Database:
    """
    Storage handle owning the engine and its session factory.

    Created by the process entry point (API lifespan, Celery task, tests)
    and passed to the services that need it.
    """

    def __init__(self, url: str, echo: bool = False, engine: Optional[AsyncEngine] = None):
        self.url = url
        connect_args = {"timeout": 30} if url.startswith("sqlite") else {}
        self.engine = engine or create_async_engine(url, echo=echo, connect_args=connect_args)
        # Create async session maker to be used throughout the application
        self.sessionmaker = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    def session(self) -> AsyncSession:
        return self.sessionmaker()

    async def init_db(self) -> None:
        """Create tables. Migrations own the schema outside of dev and tests."""
        # Registers every model on Base.metadata
        import database.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def close(self) -> None:
        """Close database engine and connections."""
        await self.engine.dispose()


def build_database(settings) -> Database:
    logger.info("Creating database engine")
    return Database(settings.database_url, echo=settings.database_echo)


# Dependency to get DB session
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
