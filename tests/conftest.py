"""Shared test fixtures for mailboard."""
from __future__ import annotations

from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from mailboard.config import reset_config
from mailboard.models.database import MEMORY_DATABASE_URL, build_engine, create_tables


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Any:
    """Point configuration at a missing file so defaults apply."""
    monkeypatch.setenv("MAILBOARD_CONFIG", str(tmp_path / "config.yml"))
    monkeypatch.setenv("MAILBOARD_DB_PATH", ":memory:")
    monkeypatch.delenv("MAILBOARD_ORPHAN_POLICY", raising=False)
    reset_config()
    yield
    reset_config()


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    engine = build_engine(MEMORY_DATABASE_URL)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
