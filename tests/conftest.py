"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

# Settings are read at import time by learnhub.main; configure them first.
os.environ["LEARNHUB_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LEARNHUB_REDIS_URL"] = ""
os.environ["LEARNHUB_JWT_ALGORITHM"] = "HS256"
os.environ["LEARNHUB_JWT_SECRET"] = "learnhub-test-secret-with-enough-bytes-for-hs256"
os.environ["LEARNHUB_LOG_FORMAT"] = "console"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.auth.jwt import create_access_token, reset_keys
from learnhub.config import get_settings
from learnhub.database import close_db, get_session_factory, init_db
from learnhub.db.models import RewardDefinition
from learnhub.gamification.point_values import PointValuesStore
from learnhub.gamification.points import PointValues
from learnhub.main import create_app

get_settings.cache_clear()
reset_keys()


@pytest.fixture
def rates() -> PointValues:
    """Default point rates."""
    return PointValues()


@pytest.fixture
def day_one() -> datetime:
    return datetime(2024, 3, 4, 9, 30, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database with all tables, and a session on it."""
    settings = get_settings()
    await init_db(settings.database_url, create_tables=True)
    async with get_session_factory()() as session:
        yield session
    await close_db()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the app, sharing the db_session database."""
    app = create_app()
    app.state.point_values = PointValuesStore(PointValues.from_settings(get_settings()))

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth_headers(user_id: str = "user-1", role: str = "user") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest.fixture
def user_headers() -> dict[str, str]:
    return auth_headers("user-1")


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth_headers("admin-1", "admin")


async def make_reward(db: AsyncSession, **overrides) -> RewardDefinition:
    """Insert a reward definition with sensible defaults."""
    data = {
        "name": "First Lesson",
        "description": "Complete one lesson",
        "type": "badge",
        "category": "learning",
        "icon": "book",
        "color": "#CD7F32",
        "points": 5.0,
        "tier": "bronze",
        "criteria_type": "lessons_completed",
        "criteria_target": 1,
    }
    data.update(overrides)
    reward = RewardDefinition(**data)
    db.add(reward)
    await db.commit()
    return reward
