import os

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

# Make sure importing routine_bot.config doesn't fail during test collection.
os.environ.setdefault("BOT_TOKEN", "TEST_TOKEN")

from routine_bot.db.models import Base
from routine_bot.timetable.loader import parse_dataset

# Use in-memory SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


@pytest_asyncio.fixture
async def engine():
    # StaticPool keeps the in-memory database alive across connections
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session
        await session.rollback()


def classes_doc(**overrides) -> dict:
    doc = {
        "days": list(DAY_NAMES),
        "slots": ["9.00AM-10.20AM", "11.00AM-12.20PM", "2.00PM-3.20PM"],
        "subjects": ["CSE110", "MAT110", "PHY111"],
        "faculties": ["Dr. X", "Dr. Y", "Dr. Z"],
        "rooms": ["301", "302", "UB1020"],
        "sections": ["S01", "S02", "S03"],
        "patterns": [
            {
                "days": [0, 2],
                "assignments": [
                    {"section": 0, "subject": 0, "faculty": 0, "room": 0, "slot": 0},
                    {"section": 1, "subject": 1, "faculty": 1, "room": 1, "slot": 0},
                ],
            },
            {
                "days": [1, 3],
                "assignments": [
                    {"section": 0, "subject": 1, "faculty": 1, "room": 1, "slot": 2},
                    {"section": 0, "subject": 2, "faculty": 2, "room": 2, "slot": 1},
                ],
            },
        ],
    }
    doc.update(overrides)
    return doc


def dining_doc(**overrides) -> dict:
    doc = {
        "days": list(DAY_NAMES),
        "timeRanges": ["7.00AM-7.50AM", "1.00PM-1.50PM", "8.00PM-8.50PM"],
        "meals": ["Breakfast", "Lunch", "Dinner"],
        "patterns": [{"days": [0, 1, 2, 3, 4], "slots": [0, 1, 2]}],
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def dataset():
    """Three sections; S01 has classes Sun-Wed, S03 has none; shared dining Sun-Thu."""
    return parse_dataset(classes_doc(), dining_doc())
