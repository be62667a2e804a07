from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import Integer, Text
from typing import Optional

class Base(DeclarativeBase):
    pass

class ChatState(Base):
    __tablename__ = "chat_state"

    chat_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Last section the chat looked at; NULL after "Back".
    last_section: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)
