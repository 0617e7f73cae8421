"""Emoji reactions: upsert, removal and the shared grouping function."""
from __future__ import annotations

import logging
from collections.abc import Iterable

from league_chat.core.settings import settings
from league_chat.db.time import as_utc
from league_chat.models import MessageReaction
from league_chat.repositories.chat_repo import ChatRepository
from league_chat.schemas.events import ReactionAddedEvent, ReactionRemovedEvent
from league_chat.schemas.message import ReactionGroup, ReactionOut
from league_chat.services.errors import NotAParticipantError, NotFoundError, ValidationError
from league_chat.services.live import LiveHub, chat_topic

logger = logging.getLogger(__name__)


def group_reactions(reactions: Iterable[MessageReaction]) -> list[ReactionGroup]:
    """Group reactions by emoji.

    Groups appear in the order of their first reaction, so ``reactions`` must
    already be sorted by ascending ``created_at``. Every place that renders
    reactions goes through this function.
    """
    groups: dict[str, list[str]] = {}
    for reaction in reactions:
        users = groups.setdefault(reaction.emoji, [])
        if reaction.user_id not in users:
            users.append(reaction.user_id)
    return [
        ReactionGroup(emoji=emoji, count=len(users), users=users)
        for emoji, users in groups.items()
    ]


def to_reaction_out(reaction: MessageReaction) -> ReactionOut:
    """Convert a MessageReaction ORM instance to an API schema."""
    return ReactionOut(
        id=reaction.id,
        message_id=reaction.message_id,
        user_id=reaction.user_id,
        emoji=reaction.emoji,
        created_at=as_utc(reaction.created_at),
    )


class ReactionService:
    """Adds, removes and lists reactions on chat messages."""

    def __init__(self, repo: ChatRepository, hub: LiveHub) -> None:
        self.repo = repo
        self.hub = hub

    def _message_chat_id(self, message_id: str, user_id: str) -> str:
        message = self.repo.get_message(message_id)
        if message is None:
            raise NotFoundError("Message not found")
        if self.repo.get_participant(message.chat_id, user_id) is None:
            raise NotAParticipantError()
        return message.chat_id

    @staticmethod
    def _clean_emoji(emoji: str) -> str:
        emoji = emoji.strip()
        if not emoji or len(emoji) > settings.max_emoji_length:
            raise ValidationError("Emoji must be a short non-empty string")
        return emoji

    async def add_reaction(self, message_id: str, user_id: str, emoji: str) -> ReactionOut:
        """React to a message; reacting again only refreshes the timestamp."""
        emoji = self._clean_emoji(emoji)
        chat_id = self._message_chat_id(message_id, user_id)
        reaction = to_reaction_out(self.repo.upsert_reaction(message_id, user_id, emoji))
        await self.hub.publish(
            chat_topic(chat_id),
            ReactionAddedEvent(
                message_id=message_id, user_id=user_id, emoji=emoji, reaction=reaction
            ),
        )
        return reaction

    async def remove_reaction(self, message_id: str, user_id: str, emoji: str) -> None:
        """Remove the caller's reaction; succeeds whether or not it existed."""
        emoji = emoji.strip()
        chat_id = self._message_chat_id(message_id, user_id)
        if not self.repo.delete_reaction(message_id, user_id, emoji):
            logger.debug("No %r reaction from %s on %s to remove", emoji, user_id, message_id)
        await self.hub.publish(
            chat_topic(chat_id),
            ReactionRemovedEvent(message_id=message_id, user_id=user_id, emoji=emoji),
        )

    def get_reactions(self, message_id: str, user_id: str) -> list[ReactionGroup]:
        """Return the grouped reactions of a message."""
        self._message_chat_id(message_id, user_id)
        return group_reactions(self.repo.list_reactions([message_id])[message_id])
