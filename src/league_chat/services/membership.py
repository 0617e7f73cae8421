"""Direct and group chat membership.

Direct chats are unique per unordered pair of users: the store enforces this
with a unique key, so a concurrent duplicate create surfaces as
:class:`ConflictError` and the caller re-reads. Group chats always include
their creator. Who created a chat is recorded for display only; any
participant may manage a group's membership at this layer.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

from league_chat.core.settings import settings
from league_chat.models import Chat, ChatKind, ChatParticipant
from league_chat.repositories.chat_repo import ChatRepository
from league_chat.schemas.chat import ChatOut, ParticipantOut
from league_chat.schemas.events import (
    ChatCreatedEvent,
    ChatUpdatedEvent,
    ParticipantRemovedEvent,
    ParticipantsAddedEvent,
)
from league_chat.services.errors import NotAParticipantError, NotFoundError, ValidationError
from league_chat.services.live import LiveHub, chat_topic, user_topic
from league_chat.services.serializers import build_chat_out, build_message_outs, to_chat_out

logger = logging.getLogger(__name__)


def require_chat(repo: ChatRepository, chat_id: str) -> Chat:
    """Return a chat or raise :class:`NotFoundError`."""
    chat = repo.get_chat(chat_id)
    if chat is None:
        raise NotFoundError("Chat not found")
    return chat


def require_participant(repo: ChatRepository, chat_id: str, user_id: str) -> ChatParticipant:
    """Return the caller's membership row or raise :class:`NotAParticipantError`."""
    participant = repo.get_participant(chat_id, user_id)
    if participant is None:
        raise NotAParticipantError()
    return participant


def _require_group(chat: Chat) -> None:
    if chat.kind != ChatKind.GROUP:
        raise ValidationError("Direct chats have a fixed pair of participants")


def _clean_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise ValidationError("Group name must not be blank")
    if len(name) > settings.max_group_name_length:
        raise ValidationError(
            f"Group name must be at most {settings.max_group_name_length} characters"
        )
    return name


class MembershipService:
    """Creates chats and manages who belongs to them."""

    def __init__(self, repo: ChatRepository, hub: LiveHub) -> None:
        self.repo = repo
        self.hub = hub

    def _require_users(self, user_ids: Sequence[str]) -> None:
        missing = set(user_ids) - self.repo.existing_user_ids(user_ids)
        if missing:
            raise NotFoundError(f"Unknown user(s): {', '.join(sorted(missing))}")

    async def create_direct_chat(self, caller_id: str, friend_id: str) -> ChatOut:
        """Return the direct chat between two users, creating it on first use.

        Raises:
            ValidationError: If a user tries to open a chat with themselves.
            NotFoundError: If ``friend_id`` is not a known user.
            ConflictError: If the same pair was created concurrently.
        """
        if caller_id == friend_id:
            raise ValidationError("Cannot open a direct chat with yourself")
        existing = self.repo.get_direct_chat(caller_id, friend_id)
        if existing is not None:
            return build_chat_out(self.repo, existing)
        self._require_users([friend_id])

        chat = self.repo.create_chat(
            kind=ChatKind.DIRECT, member_ids=[caller_id, friend_id], created_by=caller_id
        )
        logger.info("Created direct chat %s for %s and %s", chat.id, caller_id, friend_id)
        out = build_chat_out(self.repo, chat)
        await self.hub.publish_many(
            (user_topic(caller_id), user_topic(friend_id)), ChatCreatedEvent(chat=out)
        )
        return out

    async def create_group_chat(
        self,
        admin_id: str,
        name: str,
        description: str | None = None,
        participant_ids: Sequence[str] = (),
    ) -> ChatOut:
        """Create a group chat containing its creator and ``participant_ids``."""
        name = _clean_name(name)
        member_ids = list(dict.fromkeys([admin_id, *participant_ids]))
        self._require_users(member_ids)

        chat = self.repo.create_chat(
            kind=ChatKind.GROUP,
            member_ids=member_ids,
            name=name,
            description=description,
            created_by=admin_id,
        )
        logger.info("Created group chat %s with %d members", chat.id, len(member_ids))
        out = build_chat_out(self.repo, chat)
        await self.hub.publish_many(
            (user_topic(user_id) for user_id in member_ids), ChatCreatedEvent(chat=out)
        )
        return out

    async def update_group_chat(
        self,
        chat_id: str,
        caller_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> ChatOut:
        """Rename a group or change its description."""
        chat = require_chat(self.repo, chat_id)
        _require_group(chat)
        require_participant(self.repo, chat_id, caller_id)
        if name is not None:
            name = _clean_name(name)
        self.repo.update_chat(chat, name=name, description=description)
        out = build_chat_out(self.repo, chat)
        await self.hub.publish(chat_topic(chat_id), ChatUpdatedEvent(chat=out))
        return out

    async def add_participants(
        self, chat_id: str, caller_id: str, user_ids: Sequence[str]
    ) -> list[str]:
        """Add users to a group; returns only the ids that were not members yet."""
        chat = require_chat(self.repo, chat_id)
        _require_group(chat)
        require_participant(self.repo, chat_id, caller_id)
        user_ids = list(dict.fromkeys(user_ids))
        self._require_users(user_ids)

        added = self.repo.add_participants(chat_id, user_ids)
        if not added:
            return added
        logger.info("Added %d participant(s) to chat %s", len(added), chat_id)
        await self.hub.publish(
            chat_topic(chat_id), ParticipantsAddedEvent(chat_id=chat_id, user_ids=added)
        )
        out = build_chat_out(self.repo, require_chat(self.repo, chat_id))
        await self.hub.publish_many(
            (user_topic(user_id) for user_id in added), ChatCreatedEvent(chat=out)
        )
        return added

    async def remove_participant(self, chat_id: str, caller_id: str, user_id: str) -> None:
        """Remove a member from a group; removing yourself leaves the chat.

        Messages, reactions and receipts the member already produced are kept.
        """
        chat = require_chat(self.repo, chat_id)
        _require_group(chat)
        require_participant(self.repo, chat_id, caller_id)
        if not self.repo.delete_participant(chat_id, user_id):
            raise NotFoundError("Participant not found")
        logger.info("Removed %s from chat %s", user_id, chat_id)
        event = ParticipantRemovedEvent(chat_id=chat_id, user_id=user_id)
        await self.hub.publish_many((chat_topic(chat_id), user_topic(user_id)), event)

    def list_participants(self, chat_id: str, caller_id: str) -> list[ParticipantOut]:
        """Return the members of a chat in join order."""
        chat = require_chat(self.repo, chat_id)
        require_participant(self.repo, chat_id, caller_id)
        return build_chat_out(self.repo, chat).participants

    def get_chat(self, chat_id: str, caller_id: str) -> ChatOut:
        """Return a chat with its last message and the caller's unread count."""
        chat = require_chat(self.repo, chat_id)
        require_participant(self.repo, chat_id, caller_id)
        return self._summaries([chat], caller_id)[0]

    def list_user_chats(self, user_id: str) -> list[ChatOut]:
        """Return the caller's chats, most recently active first."""
        return self._summaries(self.repo.list_user_chats(user_id), user_id)

    def _summaries(self, chats: Sequence[Chat], user_id: str) -> list[ChatOut]:
        if not chats:
            return []
        users = self.repo.list_users(
            participant.user_id for chat in chats for participant in chat.participants
        )
        last = self.repo.last_messages(chat.id for chat in chats)
        last_outs = {
            out.chat_id: out for out in build_message_outs(self.repo, list(last.values()))
        }
        unread = self.repo.unread_by_chat(user_id)
        return [
            to_chat_out(
                chat,
                users=users,
                last_message=last_outs.get(chat.id),
                unread_count=unread.get(chat.id, 0),
            )
            for chat in chats
        ]
