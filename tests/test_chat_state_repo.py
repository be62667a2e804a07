from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from routine_bot.db.models import Base
from routine_bot.db.repos.chat_state_repo import ChatStateRepo


@pytest.mark.asyncio
async def test_last_section_roundtrip(session):
    repo = ChatStateRepo(session)

    assert await repo.get_last_section(1) is None

    await repo.save_last_section(1, "S05")
    assert await repo.get_last_section(1) == "S05"

    await repo.save_last_section(1, "S07")
    assert await repo.get_last_section(1) == "S07"

    await repo.clear_last_section(1)
    assert await repo.get_last_section(1) is None
    # the row stays, only the section is forgotten
    state = await repo.get_state(1)
    assert state is not None
    assert state.last_section is None


@pytest.mark.asyncio
async def test_chats_are_independent(session):
    repo = ChatStateRepo(session)
    await repo.save_last_section(10, "S01")
    await repo.save_last_section(-20, "S02")

    await repo.clear_last_section(10)

    assert await repo.get_last_section(10) is None
    assert await repo.get_last_section(-20) == "S02"


@pytest.mark.asyncio
async def test_last_section_persists_across_process_restart(tmp_path) -> None:
    """
    Regression: file-based SQLite DB must keep the cached section between restarts.
    """
    chat_id = 424242
    db_file = tmp_path / "routine.db"
    db_url = f"sqlite+aiosqlite:///{db_file.resolve().as_posix()}"

    engine1 = create_async_engine(db_url, echo=False)
    try:
        async with engine1.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        session_maker1 = async_sessionmaker(engine1, class_=AsyncSession, expire_on_commit=False)
        async with session_maker1() as session:
            await ChatStateRepo(session).save_last_section(chat_id, "S12")
            await session.commit()
    finally:
        await engine1.dispose()

    assert db_file.exists()
    assert db_file.stat().st_size > 0

    engine2 = create_async_engine(db_url, echo=False)
    try:
        session_maker2 = async_sessionmaker(engine2, class_=AsyncSession, expire_on_commit=False)
        async with session_maker2() as session:
            repo = ChatStateRepo(session)
            assert await repo.get_last_section(chat_id) == "S12"
            state = await repo.get_state(chat_id)
            assert state.updated_at
    finally:
        await engine2.dispose()
