# src/league_chat/models/message.py
"""Models describing chat messages, including ephemeral media."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from league_chat.db.session import Base
from league_chat.db.time import utcnow
from league_chat.models.user import new_id

# Ephemeral view duration codes:
# None = unlimited/looping, -1 = play once, 1..EPHEMERAL_MAX_SECONDS = timed.
EPHEMERAL_PLAY_ONCE = -1
EPHEMERAL_MIN_SECONDS = 1
EPHEMERAL_MAX_SECONDS = 300


class MessageType(str, Enum):
    """Content kinds a message can carry."""

    TEXT = "TEXT"
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    FILE = "FILE"
    VOICE = "VOICE"


class Message(Base):
    """A message posted to a chat.

    Messages are immutable once written; the only columns that ever change
    are the ephemeral reveal fields, and those change at most once.
    """

    __tablename__ = "chat_message"
    __table_args__ = (
        Index("ix_chat_message_chat_created", "chat_id", "created_at", "id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    chat_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("chat.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("chat_user.id"),
        nullable=False,
    )

    type: Mapped[MessageType] = mapped_column(
        SAEnum(MessageType, native_enum=False, length=16),
        nullable=False,
        default=MessageType.TEXT,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    media_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    reply_to_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("chat_message.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Voice notes: playback length in seconds and bar heights for the waveform.
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    waveform: Mapped[list[float] | None] = mapped_column(JSON, nullable=True)

    is_ephemeral: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ephemeral_view_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ephemeral_viewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    ephemeral_viewed_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
