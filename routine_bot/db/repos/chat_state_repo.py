from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from routine_bot.db.models import ChatState


class ChatStateRepo:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_state(self, chat_id: int) -> ChatState | None:
        stmt = select(ChatState).where(ChatState.chat_id == chat_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_last_section(self, chat_id: int) -> str | None:
        state = await self.get_state(chat_id)
        if state is None:
            return None
        return (state.last_section or "").strip() or None

    async def save_last_section(self, chat_id: int, section: str) -> None:
        await self._upsert(chat_id, section)

    async def clear_last_section(self, chat_id: int) -> None:
        await self._upsert(chat_id, None)

    async def _upsert(self, chat_id: int, section: str | None) -> None:
        now = datetime.now().isoformat()
        stmt = sqlite_insert(ChatState).values(
            chat_id=chat_id, last_section=section, updated_at=now
        ).on_conflict_do_update(
            index_elements=["chat_id"],
            set_={"last_section": section, "updated_at": now},
        )
        await self.session.execute(stmt)
