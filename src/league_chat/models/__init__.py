# src/league_chat/models/__init__.py
"""SQLAlchemy models for the League Chat application."""

from .chat import Chat, ChatKind, ChatParticipant
from .message import Message, MessageType
from .reaction import MessageReaction, ReadReceipt
from .user import User

__all__ = [
    "Chat", "ChatKind", "ChatParticipant",
    "Message", "MessageType",
    "MessageReaction", "ReadReceipt",
    "User",
]
