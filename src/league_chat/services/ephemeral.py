"""One-way reveal of ephemeral messages.

An ephemeral message moves from unviewed to viewed exactly once. The early
check gives a fast, descriptive error; the store's conditional update is what
actually decides between concurrent viewers.
"""
from __future__ import annotations

import logging

from league_chat.db.time import utcnow
from league_chat.repositories.chat_repo import ChatRepository
from league_chat.schemas.events import EphemeralViewedEvent
from league_chat.schemas.message import EphemeralViewOut
from league_chat.services.errors import AlreadyViewedError, NotEphemeralError, NotFoundError
from league_chat.services.live import LiveHub, chat_topic, user_topic
from league_chat.services.membership import require_participant

logger = logging.getLogger(__name__)


class EphemeralService:
    def __init__(self, repo: ChatRepository, hub: LiveHub) -> None:
        self.repo = repo
        self.hub = hub

    async def mark_viewed(self, message_id: str, user_id: str) -> EphemeralViewOut:
        """Reveal an ephemeral message to ``user_id``.

        Raises:
            NotFoundError: If the message does not exist.
            NotEphemeralError: If the message is a regular one.
            NotAParticipantError: If the caller is not in the message's chat.
            AlreadyViewedError: If someone has already viewed it.
        """
        message = self.repo.get_message(message_id, refresh=True)
        if message is None:
            raise NotFoundError("Message not found")
        if not message.is_ephemeral:
            raise NotEphemeralError()
        require_participant(self.repo, message.chat_id, user_id)
        if message.ephemeral_viewed_at is not None:
            raise AlreadyViewedError()

        viewed_at = utcnow()
        if not self.repo.mark_ephemeral_viewed(message_id, user_id, viewed_at):
            raise AlreadyViewedError()
        logger.info("Ephemeral message %s viewed by %s", message_id, user_id)

        event = EphemeralViewedEvent(
            message_id=message_id,
            chat_id=message.chat_id,
            viewed_by=user_id,
            viewed_at=viewed_at,
        )
        await self.hub.publish_many(
            (chat_topic(message.chat_id), user_topic(message.sender_id)), event
        )
        return EphemeralViewOut(message_id=message_id, viewed_by=user_id, viewed_at=viewed_at)
