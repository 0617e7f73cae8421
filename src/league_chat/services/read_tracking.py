"""Read watermarks, unread counts and per-message read receipts.

Unread counts are never stored. For a user in a chat they are the number of
messages from other senders newer than the participant's ``last_read_at``
watermark, so concurrent sends cannot leave a counter out of step.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

from league_chat.db.time import as_utc, utcnow
from league_chat.repositories.chat_repo import ChatRepository
from league_chat.schemas.events import MessagesReadEvent, UnreadCountUpdateEvent
from league_chat.schemas.message import MarkMessagesReadResponse, ReadReceiptOut
from league_chat.services.errors import NotFoundError
from league_chat.services.live import LiveHub, chat_topic, user_topic
from league_chat.services.membership import require_chat, require_participant

logger = logging.getLogger(__name__)


class ReadTrackingService:
    """Tracks what each participant has read."""

    def __init__(self, repo: ChatRepository, hub: LiveHub) -> None:
        self.repo = repo
        self.hub = hub

    def unread_count(self, chat_id: str, user_id: str) -> int:
        require_participant(self.repo, chat_id, user_id)
        return self.repo.count_unread(chat_id, user_id)

    def total_unread(self, user_id: str) -> int:
        return self.repo.total_unread(user_id)

    async def mark_chat_read(self, chat_id: str, user_id: str) -> None:
        """Move the caller's watermark to now.

        No receipt rows are written; the caller's other sessions are told the
        chat's badge is clear.
        """
        require_chat(self.repo, chat_id)
        participant = require_participant(self.repo, chat_id, user_id)
        self.repo.set_last_read(participant, utcnow())
        await self.hub.publish(
            user_topic(user_id),
            UnreadCountUpdateEvent(
                user_id=user_id,
                chat_id=chat_id,
                unread_count=0,
                total_unread_count=self.repo.total_unread(user_id),
            ),
        )

    async def mark_messages_as_read(
        self, chat_id: str, user_id: str, message_ids: Sequence[str]
    ) -> MarkMessagesReadResponse:
        """Record receipts for messages of this chat, unless the caller opted out.

        Ids that belong to other chats are ignored. Re-marking a message
        refreshes its ``read_at``.
        """
        require_chat(self.repo, chat_id)
        participant = require_participant(self.repo, chat_id, user_id)
        if not participant.read_receipts_enabled:
            return MarkMessagesReadResponse(read_receipts_disabled=True)

        ids = self.repo.chat_message_ids(chat_id, message_ids)
        if not ids:
            return MarkMessagesReadResponse()
        read_at = utcnow()
        self.repo.upsert_read_receipts(ids, user_id, read_at)
        logger.debug("%s read %d message(s) in chat %s", user_id, len(ids), chat_id)
        await self.hub.publish(
            chat_topic(chat_id),
            MessagesReadEvent(chat_id=chat_id, user_id=user_id, message_ids=ids, read_at=read_at),
        )
        return MarkMessagesReadResponse(message_ids=ids, read_at=read_at)

    def toggle_read_receipts(self, chat_id: str, user_id: str, enabled: bool) -> bool:
        """Turn the caller's receipts for a chat on or off; existing receipts stay."""
        require_chat(self.repo, chat_id)
        participant = require_participant(self.repo, chat_id, user_id)
        self.repo.set_read_receipts(participant, enabled)
        return enabled

    def list_read_receipts(self, message_id: str, caller_id: str) -> list[ReadReceiptOut]:
        """Return who has read a message, earliest first."""
        message = self.repo.get_message(message_id)
        if message is None:
            raise NotFoundError("Message not found")
        require_participant(self.repo, message.chat_id, caller_id)
        return [
            ReadReceiptOut(user_id=receipt.user_id, read_at=as_utc(receipt.read_at))
            for receipt in self.repo.list_read_receipts(message_id)
        ]
