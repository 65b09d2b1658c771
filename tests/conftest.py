"""Shared test fixtures."""

from __future__ import annotations

import itertools
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from commstats.database import close_db, get_engine, get_session_factory, init_db
from commstats.db.base import Base
from commstats.db.models import CommunityUser
from commstats.main import create_app

MemberFactory = Callable[..., Awaitable[CommunityUser]]


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory database with the full schema."""
    await init_db(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield get_session_factory()

    await close_db()


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for test setup and assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def make_member(db_session: AsyncSession) -> MemberFactory:
    """Insert a community_users row. Unspecified counters default to 0."""
    seq = itertools.count(1)

    async def _make(username: str | None = None, **fields: Any) -> CommunityUser:
        n = next(seq)
        user = CommunityUser(
            user_id=fields.pop("user_id", f"9000{n}"),
            username=username or f"member{n}",
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app and the in-memory database."""
    app = create_app(manage_db=False)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
