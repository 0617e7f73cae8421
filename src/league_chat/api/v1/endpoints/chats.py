# src/league_chat/api/v1/endpoints/chats.py
"""Chat, membership and chat-scoped message endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, status

from league_chat.schemas.chat import (
    ChatOut,
    DirectChatCreate,
    GroupChatCreate,
    GroupChatUpdate,
    ParticipantOut,
    ParticipantsAdd,
    ReadReceiptsToggle,
    UnreadTotal,
)
from league_chat.schemas.message import (
    MarkMessagesRead,
    MarkMessagesReadResponse,
    MessageCreate,
    MessageOut,
)

from ..dependencies import CurrentUserDep, MembershipDep, MessagesDep, ReadTrackingDep

router = APIRouter(prefix="/chats", tags=["chats"])


@router.post("/direct", response_model=ChatOut)
async def create_direct_chat(
    payload: DirectChatCreate,
    current_user: CurrentUserDep,
    membership: MembershipDep,
) -> ChatOut:
    """Open (or return the existing) direct chat with another user."""
    return await membership.create_direct_chat(current_user.id, payload.friend_id)


@router.post("/group", response_model=ChatOut, status_code=status.HTTP_201_CREATED)
async def create_group_chat(
    payload: GroupChatCreate,
    current_user: CurrentUserDep,
    membership: MembershipDep,
) -> ChatOut:
    """Create a group chat; the caller is always a member."""
    return await membership.create_group_chat(
        current_user.id,
        payload.name,
        payload.description,
        payload.participant_ids,
    )


@router.get("", response_model=list[ChatOut])
async def list_chats(current_user: CurrentUserDep, membership: MembershipDep) -> list[ChatOut]:
    """List the caller's chats, most recently active first."""
    return membership.list_user_chats(current_user.id)


@router.get("/unread", response_model=UnreadTotal)
async def total_unread(current_user: CurrentUserDep, reads: ReadTrackingDep) -> UnreadTotal:
    """Total unread messages across all of the caller's chats."""
    return UnreadTotal(unread_count=reads.total_unread(current_user.id))


@router.get("/{chat_id}", response_model=ChatOut)
async def get_chat(chat_id: str, current_user: CurrentUserDep, membership: MembershipDep) -> ChatOut:
    return membership.get_chat(chat_id, current_user.id)


@router.put("/{chat_id}", response_model=ChatOut)
async def update_chat(
    chat_id: str,
    payload: GroupChatUpdate,
    current_user: CurrentUserDep,
    membership: MembershipDep,
) -> ChatOut:
    """Rename a group chat or change its description."""
    return await membership.update_group_chat(
        chat_id, current_user.id, name=payload.name, description=payload.description
    )


@router.get("/{chat_id}/participants", response_model=list[ParticipantOut])
async def list_participants(
    chat_id: str, current_user: CurrentUserDep, membership: MembershipDep
) -> list[ParticipantOut]:
    return membership.list_participants(chat_id, current_user.id)


@router.post("/{chat_id}/participants")
async def add_participants(
    chat_id: str,
    payload: ParticipantsAdd,
    current_user: CurrentUserDep,
    membership: MembershipDep,
) -> dict[str, list[str]]:
    """Add members to a group chat and report who was newly added."""
    added = await membership.add_participants(chat_id, current_user.id, payload.participant_ids)
    return {"added": added}


@router.delete("/{chat_id}/participants/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_participant(
    chat_id: str,
    user_id: str,
    current_user: CurrentUserDep,
    membership: MembershipDep,
) -> None:
    """Remove a member from a group chat, or leave it when ``user_id`` is the caller."""
    await membership.remove_participant(chat_id, current_user.id, user_id)


@router.post("/{chat_id}/read")
async def mark_chat_read(
    chat_id: str, current_user: CurrentUserDep, reads: ReadTrackingDep
) -> dict[str, bool]:
    """Mark everything in the chat as read for the caller."""
    await reads.mark_chat_read(chat_id, current_user.id)
    return {"success": True}


@router.put("/{chat_id}/read-receipts")
async def toggle_read_receipts(
    chat_id: str,
    payload: ReadReceiptsToggle,
    current_user: CurrentUserDep,
    reads: ReadTrackingDep,
) -> dict[str, bool]:
    enabled = reads.toggle_read_receipts(chat_id, current_user.id, payload.enabled)
    return {"read_receipts_enabled": enabled}


@router.get("/{chat_id}/messages", response_model=list[MessageOut])
async def list_messages(
    chat_id: str,
    current_user: CurrentUserDep,
    messages: MessagesDep,
    limit: Annotated[int | None, Query(ge=1)] = None,
    before: Annotated[str | None, Query(description="Return messages older than this id")] = None,
) -> list[MessageOut]:
    """Return chat history, newest first."""
    return messages.list_messages(chat_id, current_user.id, limit=limit, before=before)


@router.post(
    "/{chat_id}/messages",
    response_model=MessageOut,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    chat_id: str,
    payload: MessageCreate,
    current_user: CurrentUserDep,
    messages: MessagesDep,
) -> MessageOut:
    """Send a text, media, reply or ephemeral message to a chat."""
    return await messages.send_message(chat_id, current_user.id, payload)


@router.post("/{chat_id}/messages/read", response_model=MarkMessagesReadResponse)
async def mark_messages_read(
    chat_id: str,
    payload: MarkMessagesRead,
    current_user: CurrentUserDep,
    reads: ReadTrackingDep,
) -> MarkMessagesReadResponse:
    """Record read receipts for specific messages."""
    return await reads.mark_messages_as_read(chat_id, current_user.id, payload.message_ids)
