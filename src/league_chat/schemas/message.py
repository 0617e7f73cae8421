"""Message, reaction and receipt Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from league_chat.models.message import MessageType


class UserSummary(BaseModel):
    """Public profile fields shown next to a message or participant."""

    id: str
    username: str
    avatar: str | None = None

    model_config = ConfigDict(from_attributes=True)


class MessageCreate(BaseModel):
    """Schema for posting a new message to a chat.

    Range checks on the ephemeral duration are enforced by the message
    pipeline so that clients receive a dedicated error code.
    """

    content: str = Field("", max_length=10_000, description="Text body; required for TEXT")
    type: MessageType = Field(MessageType.TEXT, description="Content kind")
    media_url: str | None = Field(None, description="Blob store URL; required for media types")
    reply_to_id: str | None = Field(None, description="Message in the same chat being replied to")
    is_ephemeral: bool = False
    ephemeral_view_duration: int | None = Field(
        None,
        description="-1 = play once, null = unlimited, 1..300 = seconds",
    )
    duration: int | None = Field(None, ge=0, description="Voice note length in seconds")
    waveform: list[float] | None = Field(None, max_length=512)


class ReactionGroup(BaseModel):
    """Reactions on a message aggregated by emoji."""

    emoji: str
    count: int
    users: list[str]


class MessagePreview(BaseModel):
    """Compact view of the message being replied to."""

    id: str
    sender_id: str
    type: MessageType
    content: str
    created_at: datetime


class MessageOut(BaseModel):
    """Message as returned by the API and carried by live events."""

    id: str
    chat_id: str
    sender_id: str
    sender: UserSummary | None = None
    type: MessageType
    content: str
    media_url: str | None
    reply_to_id: str | None
    reply_to: MessagePreview | None = None
    duration: int | None = None
    waveform: list[float] | None = None
    is_ephemeral: bool
    ephemeral_view_duration: int | None
    ephemeral_viewed_at: datetime | None
    ephemeral_viewed_by: str | None
    created_at: datetime
    reactions: list[ReactionGroup] = Field(default_factory=list)


class MarkMessagesRead(BaseModel):
    """Schema for acknowledging individual messages."""

    message_ids: list[str] = Field(..., min_length=1, max_length=500)


class MarkMessagesReadResponse(BaseModel):
    """Outcome of a read-receipt request."""

    success: bool = True
    read_receipts_disabled: bool = False
    message_ids: list[str] = Field(default_factory=list)
    read_at: datetime | None = None


class ReadReceiptOut(BaseModel):
    """Single read receipt."""

    user_id: str
    read_at: datetime


class ReactionCreate(BaseModel):
    """Schema for reacting to a message."""

    emoji: str = Field(..., min_length=1)


class ReactionOut(BaseModel):
    """A single stored reaction."""

    id: str
    message_id: str
    user_id: str
    emoji: str
    created_at: datetime


class EphemeralViewOut(BaseModel):
    """Result of revealing an ephemeral message."""

    message_id: str
    viewed_by: str
    viewed_at: datetime
