"""
Database Initialization

Creates the async engine, session factory and tables for Storefront.
Tables: users, orders, payment_transactions
"""
import asyncio
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import settings
from .models import Base

logger = logging.getLogger(__name__)


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Create an async engine for the configured database.

    In-memory SQLite gets a StaticPool so every session shares the one
    connection that holds the data (use a file for concurrent writers);
    file-backed SQLite gets a lock timeout.
    """
    url = database_url or settings.database_url

    if url.startswith("sqlite") and (":memory:" in url or url.endswith("://")):
        return create_async_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    connect_args = {"timeout": 30, "check_same_thread": False} if url.startswith("sqlite") else {}
    return create_async_engine(
        url,
        echo=False,
        connect_args=connect_args,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600  # Recycle connections after 1 hour
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by DatabaseClient; one session per operation."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


async def initialize_database(engine: AsyncEngine) -> None:
    """
    Create all tables if they do not exist.

    File-backed SQLite is switched to WAL mode for better read concurrency.
    Called during FastAPI startup.
    """
    async with engine.begin() as conn:
        if engine.dialect.name == "sqlite" and engine.url.database not in (None, "", ":memory:"):
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.execute(text("PRAGMA synchronous=NORMAL"))
        await conn.run_sync(Base.metadata.create_all)

    logger.info(f"Database initialized: {engine.url.render_as_string(hide_password=True)}")


async def _initialize_default_database() -> None:
    engine = create_engine()
    try:
        await initialize_database(engine)
    finally:
        await engine.dispose()


def main():
    """CLI entry point for initializing database."""
    logging.basicConfig(level=getattr(logging, settings.log_level))
    asyncio.run(_initialize_default_database())


if __name__ == "__main__":
    main()
