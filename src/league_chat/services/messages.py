"""Message pipeline: validate, persist, then deliver.

A message is only published once its row is committed. Live delivery is
best effort; validation and storage failures are raised to the caller.
"""
from __future__ import annotations

import logging

from league_chat.core.settings import settings
from league_chat.db.time import utcnow
from league_chat.models import Message, MessageType
from league_chat.models.message import EPHEMERAL_MIN_SECONDS, EPHEMERAL_PLAY_ONCE
from league_chat.models.user import new_id
from league_chat.repositories.chat_repo import ChatRepository
from league_chat.schemas.events import NewMessageEvent, UnreadCountUpdateEvent
from league_chat.schemas.message import MessageCreate, MessageOut
from league_chat.services.errors import (
    InvalidEphemeralDuration,
    InvalidMediaURL,
    InvalidReply,
    NotFoundError,
    ValidationError,
)
from league_chat.services.live import LiveHub, chat_topic, user_topic
from league_chat.services.media import MediaUrlValidator, get_media_validator
from league_chat.services.membership import require_chat, require_participant
from league_chat.services.serializers import build_message_outs

logger = logging.getLogger(__name__)


def validate_ephemeral_duration(duration: int | None) -> None:
    """Accept unlimited (None), play-once (-1) or a whole number of seconds in range."""
    if duration is None or duration == EPHEMERAL_PLAY_ONCE:
        return
    if not EPHEMERAL_MIN_SECONDS <= duration <= settings.ephemeral_max_seconds:
        raise InvalidEphemeralDuration(
            "Ephemeral view duration must be -1, unset, or between "
            f"{EPHEMERAL_MIN_SECONDS} and {settings.ephemeral_max_seconds} seconds"
        )


class MessageService:
    """Sends and reads chat messages."""

    def __init__(
        self,
        repo: ChatRepository,
        hub: LiveHub,
        media: MediaUrlValidator | None = None,
    ) -> None:
        self.repo = repo
        self.hub = hub
        self.media = media or get_media_validator()

    def _validate(self, chat_id: str, draft: MessageCreate) -> None:
        if draft.type == MessageType.TEXT:
            if not draft.content.strip():
                raise ValidationError("Text messages need content")
            if draft.media_url:
                raise ValidationError("Text messages cannot carry media")
        elif not draft.media_url:
            raise ValidationError(f"{draft.type.value} messages need a media URL")

        if draft.media_url and not self.media.is_owned_media_url(draft.media_url):
            raise InvalidMediaURL()

        if draft.reply_to_id:
            target = self.repo.get_message(draft.reply_to_id)
            if target is None or target.chat_id != chat_id:
                raise InvalidReply()

        # Play-once is accepted for every message type.
        if draft.is_ephemeral:
            validate_ephemeral_duration(draft.ephemeral_view_duration)

    async def send_message(self, chat_id: str, sender_id: str, draft: MessageCreate) -> MessageOut:
        """Validate and store a message, then fan it out.

        Raises:
            NotFoundError: If the chat does not exist.
            NotAParticipantError: If the sender is not in the chat.
            InvalidMediaURL: If the media URL was not issued by the blob store.
            InvalidReply: If the reply target is missing or in another chat.
            InvalidEphemeralDuration: If the ephemeral duration is out of range.
            StorageError: If the message could not be stored.
        """
        chat = require_chat(self.repo, chat_id)
        require_participant(self.repo, chat_id, sender_id)
        self._validate(chat_id, draft)

        message = self.repo.create_message(
            Message(
                id=new_id(),
                chat_id=chat_id,
                sender_id=sender_id,
                type=draft.type,
                content=draft.content,
                media_url=draft.media_url,
                reply_to_id=draft.reply_to_id,
                duration=draft.duration,
                waveform=draft.waveform,
                is_ephemeral=draft.is_ephemeral,
                ephemeral_view_duration=(
                    draft.ephemeral_view_duration if draft.is_ephemeral else None
                ),
                created_at=utcnow(),
            )
        )
        logger.info("Stored %s message %s in chat %s", message.type.value, message.id, chat_id)
        out = build_message_outs(self.repo, [message])[0]

        await self.hub.publish_many(
            (chat_topic(chat_id), user_topic(sender_id)), NewMessageEvent(message=out)
        )
        for participant in chat.participants:
            if participant.user_id == sender_id:
                continue
            await self.hub.publish(
                user_topic(participant.user_id),
                UnreadCountUpdateEvent(
                    user_id=participant.user_id,
                    chat_id=chat_id,
                    unread_count=self.repo.count_unread(chat_id, participant.user_id),
                    total_unread_count=self.repo.total_unread(participant.user_id),
                ),
            )
        return out

    def list_messages(
        self,
        chat_id: str,
        caller_id: str,
        *,
        limit: int | None = None,
        before: str | None = None,
    ) -> list[MessageOut]:
        """Return chat history newest first, starting below the ``before`` message."""
        require_chat(self.repo, chat_id)
        require_participant(self.repo, chat_id, caller_id)
        limit = max(1, min(limit or settings.message_page_size, settings.message_page_max))
        cursor = None
        if before is not None:
            cursor = self.repo.get_message(before)
            if cursor is None or cursor.chat_id != chat_id:
                raise NotFoundError("Cursor message not found in this chat")
        messages = self.repo.list_messages(chat_id, limit=limit, before=cursor)
        return build_message_outs(self.repo, messages)

    def get_message(self, message_id: str, caller_id: str) -> MessageOut:
        """Return one message rendered exactly like the history view."""
        message = self.repo.get_message(message_id, refresh=True)
        if message is None:
            raise NotFoundError("Message not found")
        require_participant(self.repo, message.chat_id, caller_id)
        return build_message_outs(self.repo, [message])[0]
