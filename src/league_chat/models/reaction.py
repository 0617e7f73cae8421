# src/league_chat/models/reaction.py
"""Models capturing emoji reactions and read receipts on messages."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from league_chat.db.session import Base
from league_chat.db.time import utcnow
from league_chat.models.user import new_id


class MessageReaction(Base):
    """Emoji reaction left by a user on a message."""

    __tablename__ = "message_reaction"
    __table_args__ = (
        # Reacting twice with the same emoji refreshes the row instead of duplicating it.
        UniqueConstraint(
            "message_id", "user_id", "emoji", name="uq_message_reaction_message_user_emoji"
        ),
        Index("ix_message_reaction_message_id", "message_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    message_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("chat_message.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("chat_user.id"),
        nullable=False,
    )
    emoji: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class ReadReceipt(Base):
    """Per-message proof that a participant has seen a message."""

    __tablename__ = "message_read_receipt"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_message_read_receipt_message_user"),
        Index("ix_message_read_receipt_message_id", "message_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    message_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("chat_message.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("chat_user.id"),
        nullable=False,
    )
    read_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
