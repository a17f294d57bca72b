"""
Database handle, session dependency, and declarative base.

SQLAlchemy 2.0 with async support. Key components:

  - Database: owns the async engine and session factory. One instance is
    constructed in the application lifespan (see app/main.py), stored on
    ``app.state.db`` and disposed at shutdown. Nothing in the codebase
    creates an engine at import time.
  - Base: declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request

Session lifecycle:
  Each API request gets its own session via get_db(). The session commits
  when the handler returns and rolls back on ANY exception. Service
  functions never commit themselves, so a wallet transaction row and the
  balance change it implies are either both persisted or neither is.
"""

from collections.abc import AsyncIterator
from pathlib import Path

from fastapi import Request
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


class Database:
    """
    Explicitly constructed data-access handle.

    Usage:
        db = Database("sqlite+aiosqlite:///./data/wallet.db")
        await db.create_all()
        async with db.session() as session:
            ...
        await db.dispose()
    """

    def __init__(self, url: str, echo: bool = False, **engine_kwargs):
        parsed = make_url(url)
        if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
            # SQLite creates the file but not its directory
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

        self.engine: AsyncEngine = create_async_engine(url, echo=echo, **engine_kwargs)
        # expire_on_commit=False prevents lazy-load errors after commit -
        # attribute access on an expired object would need a synchronous
        # DB call, which fails in async context.
        self.sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def session(self) -> AsyncSession:
        return self.sessionmaker()

    async def create_all(self) -> None:
        """Create missing tables. Development convenience; use migrations in production."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...

    Committed on success, rolled back on any exception, then closed.
    """
    database: Database = request.app.state.db
    async with database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
