"""Data access helpers for chats, participants, messages, reactions and receipts."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timedelta

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from league_chat.db.time import utcnow
from league_chat.models import (
    Chat,
    ChatKind,
    ChatParticipant,
    Message,
    MessageReaction,
    ReadReceipt,
    User,
)
from league_chat.models.chat import direct_key_for
from league_chat.models.user import new_id
from league_chat.services.errors import ConflictError, StorageError

__all__ = ["ChatRepository"]

logger = logging.getLogger(__name__)


class ChatRepository:
    """Thin wrapper around database access for chat entities.

    Mutating helpers commit on success. Any SQLAlchemy failure rolls the
    session back and is re-raised as :class:`StorageError`; retries are left
    to the caller.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Record store failure during %s", operation)
            raise StorageError(f"Record store failure during {operation}") from exc

    def _insert(self, model: type):
        if self.session.get_bind().dialect.name == "postgresql":
            return pg_insert(model)
        return sqlite_insert(model)

    # --- users -------------------------------------------------------------------
    def get_user(self, user_id: str) -> User | None:
        """Return a user by identifier."""
        with self._guard("get_user"):
            return self.session.get(User, user_id)

    def existing_user_ids(self, user_ids: Iterable[str]) -> set[str]:
        """Return the subset of ``user_ids`` that exist."""
        ids = set(user_ids)
        if not ids:
            return set()
        with self._guard("existing_user_ids"):
            rows = self.session.execute(select(User.id).where(User.id.in_(ids)))
            return set(rows.scalars())

    def list_users(self, user_ids: Iterable[str]) -> dict[str, User]:
        """Return users keyed by id."""
        ids = set(user_ids)
        if not ids:
            return {}
        with self._guard("list_users"):
            rows = self.session.execute(select(User).where(User.id.in_(ids)))
            return {user.id: user for user in rows.scalars()}

    def set_presence(self, user_id: str, *, online: bool) -> None:
        """Record whether a user currently has a live session."""
        with self._guard("set_presence"):
            self.session.execute(
                update(User)
                .where(User.id == user_id)
                .values(is_online=online, last_seen=utcnow())
                .execution_options(synchronize_session=False)
            )
            self.session.commit()

    # --- chats -------------------------------------------------------------------
    def get_chat(self, chat_id: str) -> Chat | None:
        """Return a chat with its participants loaded."""
        with self._guard("get_chat"):
            result = self.session.execute(
                select(Chat)
                .where(Chat.id == chat_id)
                .options(selectinload(Chat.participants))
                .execution_options(populate_existing=True)
            )
            return result.scalars().first()

    def get_direct_chat(self, user_a: str, user_b: str) -> Chat | None:
        """Return the direct chat between two users, whichever order they are given in."""
        with self._guard("get_direct_chat"):
            result = self.session.execute(
                select(Chat)
                .where(Chat.direct_key == direct_key_for(user_a, user_b))
                .options(selectinload(Chat.participants))
                .execution_options(populate_existing=True)
            )
            return result.scalars().first()

    def create_chat(
        self,
        *,
        kind: ChatKind,
        member_ids: Sequence[str],
        name: str | None = None,
        description: str | None = None,
        created_by: str | None = None,
    ) -> Chat:
        """Insert a chat and its participants in a single transaction.

        Raises:
            ConflictError: If a direct chat for the same pair was created concurrently.
        """
        now = utcnow()
        chat = Chat(
            id=new_id(),
            kind=kind,
            name=name,
            description=description,
            created_by=created_by,
            direct_key=(
                direct_key_for(member_ids[0], member_ids[1]) if kind == ChatKind.DIRECT else None
            ),
            created_at=now,
            updated_at=now,
        )
        # Distinct join timestamps keep the given member order when listed.
        for offset, user_id in enumerate(member_ids):
            chat.participants.append(
                ChatParticipant(
                    id=new_id(),
                    user_id=user_id,
                    joined_at=now + timedelta(microseconds=offset),
                )
            )
        with self._guard("create_chat"):
            self.session.add(chat)
            try:
                self.session.commit()
            except IntegrityError as exc:
                self.session.rollback()
                if kind == ChatKind.DIRECT:
                    raise ConflictError("Direct chat already exists for this pair") from exc
                raise
        return chat

    def update_chat(
        self, chat: Chat, *, name: str | None = None, description: str | None = None
    ) -> Chat:
        """Apply partial updates to a chat's descriptive fields."""
        with self._guard("update_chat"):
            if name is not None:
                chat.name = name
            if description is not None:
                chat.description = description
            chat.updated_at = utcnow()
            self.session.commit()
        return chat

    def list_user_chats(self, user_id: str) -> list[Chat]:
        """Return every chat the user participates in, most recently active first."""
        with self._guard("list_user_chats"):
            result = self.session.execute(
                select(Chat)
                .join(ChatParticipant, ChatParticipant.chat_id == Chat.id)
                .where(ChatParticipant.user_id == user_id)
                .options(selectinload(Chat.participants))
                .execution_options(populate_existing=True)
                .order_by(Chat.updated_at.desc(), Chat.id.desc())
            )
            return list(result.scalars().unique())

    # --- participants ------------------------------------------------------------
    def get_participant(self, chat_id: str, user_id: str) -> ChatParticipant | None:
        """Return the membership row for a user in a chat."""
        with self._guard("get_participant"):
            result = self.session.execute(
                select(ChatParticipant).where(
                    ChatParticipant.chat_id == chat_id,
                    ChatParticipant.user_id == user_id,
                ).execution_options(populate_existing=True)
            )
            return result.scalars().first()

    def list_participants(self, chat_id: str) -> list[ChatParticipant]:
        """Return a chat's participants in join order."""
        with self._guard("list_participants"):
            result = self.session.execute(
                select(ChatParticipant)
                .where(ChatParticipant.chat_id == chat_id)
                .order_by(ChatParticipant.joined_at, ChatParticipant.id)
                .execution_options(populate_existing=True)
            )
            return list(result.scalars())

    def participant_chat_ids(self, user_id: str) -> list[str]:
        """Return ids of all chats a user belongs to."""
        with self._guard("participant_chat_ids"):
            result = self.session.execute(
                select(ChatParticipant.chat_id).where(ChatParticipant.user_id == user_id)
            )
            return list(result.scalars())

    def add_participants(self, chat_id: str, user_ids: Sequence[str]) -> list[str]:
        """Insert memberships that do not exist yet and return the newly added user ids."""
        if not user_ids:
            return []
        added: list[str] = []
        with self._guard("add_participants"):
            for user_id in user_ids:
                stmt = (
                    self._insert(ChatParticipant)
                    .values(id=new_id(), chat_id=chat_id, user_id=user_id, joined_at=utcnow())
                    .on_conflict_do_nothing(index_elements=["chat_id", "user_id"])
                )
                if self.session.execute(stmt).rowcount:
                    added.append(user_id)
            self.session.commit()
        return added

    def delete_participant(self, chat_id: str, user_id: str) -> bool:
        """Delete a membership; return whether a row was removed."""
        with self._guard("delete_participant"):
            result = self.session.execute(
                delete(ChatParticipant)
                .where(
                    ChatParticipant.chat_id == chat_id,
                    ChatParticipant.user_id == user_id,
                )
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
            return bool(result.rowcount)

    def set_last_read(self, participant: ChatParticipant, at: datetime) -> None:
        """Move a participant's read watermark."""
        with self._guard("set_last_read"):
            participant.last_read_at = at
            self.session.commit()

    def set_read_receipts(self, participant: ChatParticipant, enabled: bool) -> None:
        """Flip a participant's read-receipt preference."""
        with self._guard("set_read_receipts"):
            participant.read_receipts_enabled = enabled
            self.session.commit()

    # --- messages ----------------------------------------------------------------
    def get_message(self, message_id: str, *, refresh: bool = False) -> Message | None:
        """Return a message; ``refresh`` bypasses any stale identity-map copy."""
        with self._guard("get_message"):
            return self.session.get(Message, message_id, populate_existing=refresh)

    def create_message(self, message: Message) -> Message:
        """Persist a message and bump its chat's ``updated_at`` in one commit."""
        with self._guard("create_message"):
            self.session.add(message)
            self.session.execute(
                update(Chat)
                .where(Chat.id == message.chat_id)
                .values(updated_at=message.created_at)
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
        return message

    def list_messages(
        self, chat_id: str, *, limit: int, before: Message | None = None
    ) -> list[Message]:
        """Return a page of chat history, newest first.

        Ties on ``created_at`` are broken by id so pages never overlap or skip.
        """
        stmt = select(Message).where(Message.chat_id == chat_id)
        if before is not None:
            stmt = stmt.where(
                or_(
                    Message.created_at < before.created_at,
                    and_(Message.created_at == before.created_at, Message.id < before.id),
                )
            )
        stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit)
        with self._guard("list_messages"):
            return list(self.session.execute(stmt).scalars())

    def get_messages(self, message_ids: Iterable[str]) -> dict[str, Message]:
        """Return messages keyed by id."""
        ids = set(message_ids)
        if not ids:
            return {}
        with self._guard("get_messages"):
            rows = self.session.execute(select(Message).where(Message.id.in_(ids)))
            return {message.id: message for message in rows.scalars()}

    def last_messages(self, chat_ids: Iterable[str]) -> dict[str, Message]:
        """Return the newest message of each chat."""
        ids = list(chat_ids)
        if not ids:
            return {}
        ranked = (
            select(
                Message.id,
                func.row_number()
                .over(
                    partition_by=Message.chat_id,
                    order_by=(Message.created_at.desc(), Message.id.desc()),
                )
                .label("rank"),
            )
            .where(Message.chat_id.in_(ids))
            .subquery()
        )
        stmt = select(Message).join(ranked, ranked.c.id == Message.id).where(ranked.c.rank == 1)
        with self._guard("last_messages"):
            return {message.chat_id: message for message in self.session.execute(stmt).scalars()}

    def chat_message_ids(self, chat_id: str, message_ids: Iterable[str]) -> list[str]:
        """Filter ``message_ids`` down to those that belong to ``chat_id``."""
        ids = list(dict.fromkeys(message_ids))
        if not ids:
            return []
        with self._guard("chat_message_ids"):
            rows = self.session.execute(
                select(Message.id).where(Message.chat_id == chat_id, Message.id.in_(ids))
            )
            found = set(rows.scalars())
        return [message_id for message_id in ids if message_id in found]

    def mark_ephemeral_viewed(self, message_id: str, user_id: str, at: datetime) -> bool:
        """Set the reveal fields only if the message has not been viewed yet.

        This is a single conditional UPDATE, so concurrent callers cannot both
        win. Returns True for the caller whose update applied.
        """
        with self._guard("mark_ephemeral_viewed"):
            result = self.session.execute(
                update(Message)
                .where(
                    Message.id == message_id,
                    Message.is_ephemeral.is_(True),
                    Message.ephemeral_viewed_at.is_(None),
                )
                .values(ephemeral_viewed_at=at, ephemeral_viewed_by=user_id)
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
            return result.rowcount == 1

    # --- unread ------------------------------------------------------------------
    def _unread_query(self, user_id: str):
        return (
            select(Message.chat_id, func.count(Message.id))
            .join(
                ChatParticipant,
                and_(
                    ChatParticipant.chat_id == Message.chat_id,
                    ChatParticipant.user_id == user_id,
                ),
            )
            .where(
                Message.sender_id != user_id,
                Message.created_at > ChatParticipant.last_read_at,
            )
            .group_by(Message.chat_id)
        )

    def count_unread(self, chat_id: str, user_id: str) -> int:
        """Count messages from others newer than the user's watermark in one chat."""
        with self._guard("count_unread"):
            row = self.session.execute(
                self._unread_query(user_id).where(Message.chat_id == chat_id)
            ).first()
            return int(row[1]) if row else 0

    def unread_by_chat(self, user_id: str) -> dict[str, int]:
        """Return unread counts for every chat of a user that has any."""
        with self._guard("unread_by_chat"):
            rows = self.session.execute(self._unread_query(user_id))
            return {chat_id: int(count) for chat_id, count in rows}

    def total_unread(self, user_id: str) -> int:
        """Sum of unread counts across all of a user's chats."""
        return sum(self.unread_by_chat(user_id).values())

    # --- reactions ---------------------------------------------------------------
    def upsert_reaction(self, message_id: str, user_id: str, emoji: str) -> MessageReaction:
        """Insert a reaction or refresh the timestamp of an identical one."""
        now = utcnow()
        stmt = self._insert(MessageReaction).values(
            id=new_id(), message_id=message_id, user_id=user_id, emoji=emoji, created_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["message_id", "user_id", "emoji"],
            set_={"created_at": now},
        )
        with self._guard("upsert_reaction"):
            self.session.execute(stmt)
            self.session.commit()
            result = self.session.execute(
                select(MessageReaction)
                .where(
                    MessageReaction.message_id == message_id,
                    MessageReaction.user_id == user_id,
                    MessageReaction.emoji == emoji,
                )
                .execution_options(populate_existing=True)
            )
            return result.scalars().one()

    def delete_reaction(self, message_id: str, user_id: str, emoji: str) -> bool:
        """Delete a reaction if present; return whether a row was removed."""
        with self._guard("delete_reaction"):
            result = self.session.execute(
                delete(MessageReaction)
                .where(
                    MessageReaction.message_id == message_id,
                    MessageReaction.user_id == user_id,
                    MessageReaction.emoji == emoji,
                )
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
            return bool(result.rowcount)

    def list_reactions(self, message_ids: Iterable[str]) -> dict[str, list[MessageReaction]]:
        """Return reactions per message in ascending ``created_at`` order."""
        ids = list(message_ids)
        grouped: dict[str, list[MessageReaction]] = {message_id: [] for message_id in ids}
        if not ids:
            return grouped
        with self._guard("list_reactions"):
            rows = self.session.execute(
                select(MessageReaction)
                .where(MessageReaction.message_id.in_(ids))
                .order_by(MessageReaction.created_at, MessageReaction.id)
                .execution_options(populate_existing=True)
            )
            for reaction in rows.scalars():
                grouped[reaction.message_id].append(reaction)
        return grouped

    # --- read receipts -----------------------------------------------------------
    def upsert_read_receipts(
        self, message_ids: Sequence[str], user_id: str, at: datetime
    ) -> None:
        """Record (or refresh) that ``user_id`` read each message."""
        with self._guard("upsert_read_receipts"):
            for message_id in message_ids:
                stmt = self._insert(ReadReceipt).values(
                    id=new_id(), message_id=message_id, user_id=user_id, read_at=at
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["message_id", "user_id"],
                    set_={"read_at": at},
                )
                self.session.execute(stmt)
            self.session.commit()

    def list_read_receipts(self, message_id: str) -> list[ReadReceipt]:
        """Return receipts for a message, earliest first."""
        with self._guard("list_read_receipts"):
            rows = self.session.execute(
                select(ReadReceipt)
                .where(ReadReceipt.message_id == message_id)
                .order_by(ReadReceipt.read_at, ReadReceipt.id)
                .execution_options(populate_existing=True)
            )
            return list(rows.scalars())
