from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base
from main import app
from models.folder import Folder
from models.plan import Plan
from models.plan_item import PlanItem
from models.test_case import TestCase
from models.user import User
from routers import rate_limit


OWNER_USER_ID = "owner-user"


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "tms.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with maker() as session:
        session.add(User(id=OWNER_USER_ID, email="owner@example.com"))
        await session.commit()

    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_plan(session_maker):
    """Plan "release-1" with three items in folders A and A/B.

    Items are ordered tc-login (A), tc-export (A/B), tc-logout (A).
    """
    async with session_maker() as session:
        session.add_all(
            [
                Folder(id="folder-a", name="A"),
                Folder(id="folder-b", name="B", parent_id="folder-a"),
                TestCase(id="tc-login", case_number=1, title="Login", folder_id="folder-a", sequence=1),
                TestCase(id="tc-export", case_number=2, title="Export", folder_id="folder-b", sequence=1),
                TestCase(id="tc-logout", case_number=3, title="Logout", folder_id="folder-a", sequence=2),
                Plan(id="release-1", name="Release 1", created_by_user_id=OWNER_USER_ID),
            ]
        )
        await session.flush()
        session.add_all(
            [
                PlanItem(
                    id="item-1",
                    plan_id="release-1",
                    test_case_id="tc-login",
                    order=1,
                    result="PASS",
                    executed_at=datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc),
                ),
                PlanItem(
                    id="item-2",
                    plan_id="release-1",
                    test_case_id="tc-export",
                    order=2,
                    result="FAIL",
                    defects="https://tracker.example.com/browse/QA-12",
                ),
                PlanItem(id="item-3", plan_id="release-1", test_case_id="tc-logout", order=3),
            ]
        )
        await session.commit()
    return "release-1"
