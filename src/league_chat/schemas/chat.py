"""Chat and membership Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from league_chat.models.chat import ChatKind
from league_chat.schemas.message import MessageOut


class DirectChatCreate(BaseModel):
    """Schema for opening a direct chat with another user."""

    friend_id: str = Field(..., min_length=1, description="User to chat with")


class GroupChatCreate(BaseModel):
    """Schema for creating a group chat; the caller is always included."""

    name: str = Field(..., description="Group display name")
    description: str | None = None
    participant_ids: list[str] = Field(default_factory=list)


class GroupChatUpdate(BaseModel):
    """Partial update of a group chat's descriptive fields."""

    name: str | None = None
    description: str | None = None


class ParticipantsAdd(BaseModel):
    """Schema for adding members to a group chat."""

    participant_ids: list[str] = Field(..., min_length=1)


class ReadReceiptsToggle(BaseModel):
    """Schema for switching per-chat read receipts on or off."""

    enabled: bool


class ParticipantOut(BaseModel):
    """Membership row joined with the member's public profile."""

    user_id: str
    username: str | None = None
    avatar: str | None = None
    is_online: bool = False
    joined_at: datetime
    last_read_at: datetime
    read_receipts_enabled: bool


class ChatOut(BaseModel):
    """Chat as returned by the API and carried by live events."""

    id: str
    kind: ChatKind
    name: str | None
    description: str | None
    created_by: str | None
    created_at: datetime
    updated_at: datetime
    participants: list[ParticipantOut]
    last_message: MessageOut | None = None
    unread_count: int | None = None


class UnreadTotal(BaseModel):
    """Unread messages summed over every chat of the caller."""

    unread_count: int
