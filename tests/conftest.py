"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from urlaudit.billing.credits import ensure_user
from urlaudit.db.session import create_engine, init_db, make_session_factory
from urlaudit.schemas.config import Settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")


@pytest_asyncio.fixture
async def engine(settings: Settings):
    eng = create_engine(settings.database_url)
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def sessions(engine):
    return make_session_factory(engine)


@pytest.fixture
def make_user(sessions):
    """Create a user with an exact starting balance."""

    async def _make(user_id: str = "user-1", credits: int = 10):
        async with sessions() as session:
            async with session.begin():
                user = await ensure_user(session, user_id, default_credits=credits)
        return user

    return _make
