"""Conversion of chat ORM rows into API and live-event schemas."""
from __future__ import annotations

from collections.abc import Sequence

from league_chat.db.time import as_utc
from league_chat.models import Chat, Message, MessageReaction, User
from league_chat.repositories.chat_repo import ChatRepository
from league_chat.schemas.chat import ChatOut, ParticipantOut
from league_chat.schemas.message import MessageOut, MessagePreview, UserSummary
from league_chat.services.reactions import group_reactions

__all__ = ["to_message_out", "build_message_outs", "to_chat_out", "build_chat_out"]


def _preview(message: Message | None) -> MessagePreview | None:
    if message is None:
        return None
    return MessagePreview(
        id=message.id,
        sender_id=message.sender_id,
        type=message.type,
        content=message.content,
        created_at=as_utc(message.created_at),
    )


def to_message_out(
    message: Message,
    *,
    reactions: Sequence[MessageReaction] = (),
    sender: User | None = None,
    reply_to: Message | None = None,
) -> MessageOut:
    """Convert a Message ORM instance to an API schema."""
    return MessageOut(
        id=message.id,
        chat_id=message.chat_id,
        sender_id=message.sender_id,
        sender=UserSummary.model_validate(sender) if sender is not None else None,
        type=message.type,
        content=message.content,
        media_url=message.media_url,
        reply_to_id=message.reply_to_id,
        reply_to=_preview(reply_to),
        duration=message.duration,
        waveform=message.waveform,
        is_ephemeral=message.is_ephemeral,
        ephemeral_view_duration=message.ephemeral_view_duration,
        ephemeral_viewed_at=as_utc(message.ephemeral_viewed_at),
        ephemeral_viewed_by=message.ephemeral_viewed_by,
        created_at=as_utc(message.created_at),
        reactions=group_reactions(reactions),
    )


def build_message_outs(repo: ChatRepository, messages: Sequence[Message]) -> list[MessageOut]:
    """Serialize messages with their senders, reply previews and grouped reactions.

    Related rows are fetched in one query per kind rather than per message.
    """
    if not messages:
        return []
    senders = repo.list_users(message.sender_id for message in messages)
    replies = repo.get_messages(
        message.reply_to_id for message in messages if message.reply_to_id
    )
    reactions = repo.list_reactions(message.id for message in messages)
    return [
        to_message_out(
            message,
            reactions=reactions.get(message.id, ()),
            sender=senders.get(message.sender_id),
            reply_to=replies.get(message.reply_to_id) if message.reply_to_id else None,
        )
        for message in messages
    ]


def to_chat_out(
    chat: Chat,
    *,
    users: dict[str, User] | None = None,
    last_message: MessageOut | None = None,
    unread_count: int | None = None,
) -> ChatOut:
    """Convert a Chat ORM instance (participants loaded) to an API schema."""
    users = users or {}
    participants = []
    for participant in chat.participants:
        user = users.get(participant.user_id)
        participants.append(
            ParticipantOut(
                user_id=participant.user_id,
                username=user.username if user else None,
                avatar=user.avatar if user else None,
                is_online=bool(user.is_online) if user else False,
                joined_at=as_utc(participant.joined_at),
                last_read_at=as_utc(participant.last_read_at),
                read_receipts_enabled=participant.read_receipts_enabled,
            )
        )
    return ChatOut(
        id=chat.id,
        kind=chat.kind,
        name=chat.name,
        description=chat.description,
        created_by=chat.created_by,
        created_at=as_utc(chat.created_at),
        updated_at=as_utc(chat.updated_at),
        participants=participants,
        last_message=last_message,
        unread_count=unread_count,
    )


def build_chat_out(repo: ChatRepository, chat: Chat) -> ChatOut:
    """Serialize a chat with participant profiles loaded from the store."""
    users = repo.list_users(participant.user_id for participant in chat.participants)
    return to_chat_out(chat, users=users)
