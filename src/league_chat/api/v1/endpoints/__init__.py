# src/league_chat/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .chats import router as chats_router
from .live import router as live_router
from .messages import router as messages_router

__all__ = [
    "chats_router",
    "messages_router",
    "live_router",
]
