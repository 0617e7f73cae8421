"""Closed set of live events exchanged over WebSocket sessions.

Outbound events are published to topics (``chat:{id}`` or ``user:{id}``) and
framed on the wire as ``{"topic": ..., "event": ..., "data": {...}}``.
Inbound client frames use ``{"event": ..., "data": {...}}``. Both directions
are tagged unions keyed on ``event``; anything outside them fails validation
and is dropped by the receiver.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from league_chat.schemas.chat import ChatOut
from league_chat.schemas.message import MessageOut, ReactionOut


class _Event(BaseModel):
    model_config = ConfigDict(extra="forbid")


class NewMessageEvent(_Event):
    event: Literal["newMessage"] = "newMessage"
    message: MessageOut


class TypingEvent(_Event):
    event: Literal["typing"] = "typing"
    chat_id: str
    user_id: str
    is_typing: bool


class ReactionAddedEvent(_Event):
    event: Literal["reactionAdded"] = "reactionAdded"
    message_id: str
    user_id: str
    emoji: str
    reaction: ReactionOut


class ReactionRemovedEvent(_Event):
    event: Literal["reactionRemoved"] = "reactionRemoved"
    message_id: str
    user_id: str
    emoji: str


class MessagesReadEvent(_Event):
    event: Literal["messagesRead"] = "messagesRead"
    chat_id: str
    user_id: str
    message_ids: list[str]
    read_at: datetime


class EphemeralViewedEvent(_Event):
    event: Literal["ephemeralViewed"] = "ephemeralViewed"
    message_id: str
    chat_id: str
    viewed_by: str
    viewed_at: datetime


class UnreadCountUpdateEvent(_Event):
    event: Literal["unreadCountUpdate"] = "unreadCountUpdate"
    user_id: str
    chat_id: str
    unread_count: int
    total_unread_count: int


class UserOnlineEvent(_Event):
    event: Literal["user:online"] = "user:online"
    user_id: str
    timestamp: datetime


class UserOfflineEvent(_Event):
    event: Literal["user:offline"] = "user:offline"
    user_id: str
    timestamp: datetime


class ChatCreatedEvent(_Event):
    event: Literal["chatCreated"] = "chatCreated"
    chat: ChatOut


class ChatUpdatedEvent(_Event):
    event: Literal["chatUpdated"] = "chatUpdated"
    chat: ChatOut


class ParticipantsAddedEvent(_Event):
    event: Literal["participantsAdded"] = "participantsAdded"
    chat_id: str
    user_ids: list[str]


class ParticipantRemovedEvent(_Event):
    event: Literal["participantRemoved"] = "participantRemoved"
    chat_id: str
    user_id: str


LiveEvent = Annotated[
    Union[
        NewMessageEvent,
        TypingEvent,
        ReactionAddedEvent,
        ReactionRemovedEvent,
        MessagesReadEvent,
        EphemeralViewedEvent,
        UnreadCountUpdateEvent,
        UserOnlineEvent,
        UserOfflineEvent,
        ChatCreatedEvent,
        ChatUpdatedEvent,
        ParticipantsAddedEvent,
        ParticipantRemovedEvent,
    ],
    Field(discriminator="event"),
]

live_event_adapter: TypeAdapter[LiveEvent] = TypeAdapter(LiveEvent)


def encode_frame(topic: str, event: BaseModel) -> dict[str, Any]:
    """Return the JSON-ready wire frame for an event published on ``topic``."""
    data = event.model_dump(mode="json")
    name = data.pop("event")
    return {"topic": topic, "event": name, "data": data}


def decode_frame(frame: dict[str, Any]) -> tuple[str, BaseModel]:
    """Rebuild ``(topic, event)`` from a wire frame.

    Raises:
        pydantic.ValidationError: If the frame is not a known event.
        KeyError: If the frame lacks the envelope keys.
    """
    data = dict(frame["data"])
    data["event"] = frame["event"]
    return frame["topic"], live_event_adapter.validate_python(data)


# --- replies sent only to the session that issued a client frame ------------------
class SubscribedReply(_Event):
    event: Literal["subscribed"] = "subscribed"
    topic: str


class UnsubscribedReply(_Event):
    event: Literal["unsubscribed"] = "unsubscribed"
    topic: str


class ErrorReply(_Event):
    event: Literal["error"] = "error"
    code: str
    message: str


# --- inbound client frames -------------------------------------------------------
class JoinChatFrame(_Event):
    event: Literal["joinChat"]
    chat_id: str


class LeaveChatFrame(_Event):
    event: Literal["leaveChat"]
    chat_id: str


class JoinUserFrame(_Event):
    event: Literal["joinUser"]


class LeaveUserFrame(_Event):
    event: Literal["leaveUser"]


class TypingFrame(_Event):
    event: Literal["typing"]
    chat_id: str
    is_typing: bool


ClientFrame = Annotated[
    Union[JoinChatFrame, LeaveChatFrame, JoinUserFrame, LeaveUserFrame, TypingFrame],
    Field(discriminator="event"),
]

client_frame_adapter: TypeAdapter[ClientFrame] = TypeAdapter(ClientFrame)


def parse_client_frame(frame: Any) -> BaseModel:
    """Validate an inbound ``{"event": ..., "data": {...}}`` frame.

    Raises:
        pydantic.ValidationError: If the frame is not a known client event.
    """
    if not isinstance(frame, dict):
        return client_frame_adapter.validate_python(frame)
    data = frame.get("data") or {}
    if not isinstance(data, dict):
        data = {}
    return client_frame_adapter.validate_python({**data, "event": frame.get("event")})
