# src/league_chat/models/user.py
"""SQLAlchemy model mirroring identities issued by the identity provider."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from league_chat.db.session import Base
from league_chat.db.time import utcnow


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return str(uuid.uuid4())


class User(Base):
    """Display and presence data for a verified user.

    Rows are provisioned by the identity side; the chat core only reads them
    and maintains the presence columns.
    """

    __tablename__ = "chat_user"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    username: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    avatar: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
