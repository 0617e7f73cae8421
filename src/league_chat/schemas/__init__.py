# src/league_chat/schemas/__init__.py
"""
Pydantic schemas for API request/response models and live events.

These schemas define the structure of API data for serialization and validation.
"""

from .chat import (
    ChatOut,
    DirectChatCreate,
    GroupChatCreate,
    GroupChatUpdate,
    ParticipantOut,
    ParticipantsAdd,
    ReadReceiptsToggle,
    UnreadTotal,
)
from .events import LiveEvent, decode_frame, encode_frame, parse_client_frame
from .message import (
    EphemeralViewOut,
    MarkMessagesRead,
    MarkMessagesReadResponse,
    MessageCreate,
    MessageOut,
    ReactionCreate,
    ReactionGroup,
    ReactionOut,
    ReadReceiptOut,
)

__all__ = [
    "ChatOut", "DirectChatCreate", "GroupChatCreate", "GroupChatUpdate",
    "ParticipantOut", "ParticipantsAdd", "ReadReceiptsToggle", "UnreadTotal",
    "EphemeralViewOut", "MarkMessagesRead", "MarkMessagesReadResponse",
    "MessageCreate", "MessageOut", "ReactionCreate", "ReactionGroup",
    "ReactionOut", "ReadReceiptOut",
    "LiveEvent", "decode_frame", "encode_frame", "parse_client_frame",
]
