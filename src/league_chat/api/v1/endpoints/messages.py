# src/league_chat/api/v1/endpoints/messages.py
"""Single-message endpoints: fetch, receipts, reactions and ephemeral reveal."""

from __future__ import annotations

from fastapi import APIRouter, status

from league_chat.schemas.message import (
    EphemeralViewOut,
    MessageOut,
    ReactionCreate,
    ReactionGroup,
    ReactionOut,
    ReadReceiptOut,
)

from ..dependencies import (
    CurrentUserDep,
    EphemeralDep,
    MessagesDep,
    ReactionsDep,
    ReadTrackingDep,
)

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/{message_id}", response_model=MessageOut)
async def get_message(
    message_id: str, current_user: CurrentUserDep, messages: MessagesDep
) -> MessageOut:
    return messages.get_message(message_id, current_user.id)


@router.get("/{message_id}/receipts", response_model=list[ReadReceiptOut])
async def list_read_receipts(
    message_id: str, current_user: CurrentUserDep, reads: ReadTrackingDep
) -> list[ReadReceiptOut]:
    """List who has read a message."""
    return reads.list_read_receipts(message_id, current_user.id)


@router.get("/{message_id}/reactions", response_model=list[ReactionGroup])
async def get_reactions(
    message_id: str, current_user: CurrentUserDep, reactions: ReactionsDep
) -> list[ReactionGroup]:
    return reactions.get_reactions(message_id, current_user.id)


@router.post(
    "/{message_id}/reactions",
    response_model=ReactionOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_reaction(
    message_id: str,
    payload: ReactionCreate,
    current_user: CurrentUserDep,
    reactions: ReactionsDep,
) -> ReactionOut:
    """React to a message; repeating the same emoji is harmless."""
    return await reactions.add_reaction(message_id, current_user.id, payload.emoji)


@router.delete("/{message_id}/reactions/{emoji}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_reaction(
    message_id: str,
    emoji: str,
    current_user: CurrentUserDep,
    reactions: ReactionsDep,
) -> None:
    await reactions.remove_reaction(message_id, current_user.id, emoji)


@router.post("/{message_id}/ephemeral/view", response_model=EphemeralViewOut)
async def mark_ephemeral_viewed(
    message_id: str, current_user: CurrentUserDep, ephemeral: EphemeralDep
) -> EphemeralViewOut:
    """Reveal a view-once message; only the first viewer succeeds."""
    return await ephemeral.mark_viewed(message_id, current_user.id)
