"""Online/offline presence driven by live session lifecycle."""
from __future__ import annotations

import logging

from league_chat.db.time import utcnow
from league_chat.repositories.chat_repo import ChatRepository
from league_chat.schemas.events import UserOfflineEvent, UserOnlineEvent
from league_chat.services.live import LiveHub, chat_topic

logger = logging.getLogger(__name__)


class PresenceService:
    """Marks users online on their first session and offline after their last."""

    def __init__(self, repo: ChatRepository, hub: LiveHub) -> None:
        self.repo = repo
        self.hub = hub

    async def went_online(self, user_id: str) -> None:
        self.repo.set_presence(user_id, online=True)
        logger.info("User %s is online", user_id)
        event = UserOnlineEvent(user_id=user_id, timestamp=utcnow())
        await self.hub.publish_many(
            (chat_topic(chat_id) for chat_id in self.repo.participant_chat_ids(user_id)), event
        )

    async def went_offline(self, user_id: str) -> None:
        """Record ``last_seen`` and tell the user's chats they left."""
        self.repo.set_presence(user_id, online=False)
        logger.info("User %s is offline", user_id)
        event = UserOfflineEvent(user_id=user_id, timestamp=utcnow())
        await self.hub.publish_many(
            (chat_topic(chat_id) for chat_id in self.repo.participant_chat_ids(user_id)), event
        )
