# src/league_chat/models/chat.py
"""SQLAlchemy models for chats and their participants."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from league_chat.db.session import Base
from league_chat.db.time import EPOCH, utcnow
from league_chat.models.user import new_id


class ChatKind(str, Enum):
    """Kinds of conversation supported by the chat core."""

    DIRECT = "DIRECT"
    GROUP = "GROUP"


def direct_key_for(user_a: str, user_b: str) -> str:
    """Return the order-independent key identifying a direct chat between two users."""
    low, high = sorted((user_a, user_b))
    return f"{low}:{high}"


class Chat(Base):
    """A conversation between two users (direct) or many users (group)."""

    __tablename__ = "chat"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    kind: Mapped[ChatKind] = mapped_column(
        SAEnum(ChatKind, native_enum=False, length=16), nullable=False
    )
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Informational only; admin permissions live outside the chat core.
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # Set for direct chats only. The unique index keeps one direct chat per pair.
    direct_key: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    # Bumped on every new message so chat lists sort by recency.
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    participants: Mapped[list[ChatParticipant]] = relationship(
        "ChatParticipant",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="ChatParticipant.joined_at",
    )


class ChatParticipant(Base):
    """Membership of a user in a chat plus that user's per-chat settings."""

    __tablename__ = "chat_participant"
    __table_args__ = (
        UniqueConstraint("chat_id", "user_id", name="uq_chat_participant_chat_user"),
        Index("ix_chat_participant_user_id", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    chat_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("chat.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("chat_user.id"),
        nullable=False,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    # Read watermark: messages created after this instant count as unread.
    last_read_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=EPOCH
    )
    read_receipts_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    chat: Mapped[Chat] = relationship("Chat", back_populates="participants")
