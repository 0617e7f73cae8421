"""Tests for direct and group chat membership."""

import pytest

from league_chat.models import ChatKind
from league_chat.services.errors import (
    ConflictError,
    NotAParticipantError,
    NotFoundError,
    ValidationError,
)


@pytest.mark.asyncio
async def test_direct_chat_is_idempotent_in_either_order(membership, alice, bob) -> None:
    first = await membership.create_direct_chat(alice.id, bob.id)
    second = await membership.create_direct_chat(bob.id, alice.id)
    third = await membership.create_direct_chat(alice.id, bob.id)

    assert first.id == second.id == third.id
    assert first.kind == ChatKind.DIRECT
    assert [p.user_id for p in first.participants] == [alice.id, bob.id]


@pytest.mark.asyncio
async def test_direct_chat_announced_once_to_both_users(membership, hub, alice, bob) -> None:
    await membership.create_direct_chat(alice.id, bob.id)
    await membership.create_direct_chat(bob.id, alice.id)

    assert sorted(hub.topics("chatCreated")) == sorted([f"user:{alice.id}", f"user:{bob.id}"])


@pytest.mark.asyncio
async def test_racing_direct_chat_conflicts_then_retry_finds_it(
    membership, repo, hub, alice, bob, mocker
) -> None:
    """A creator that missed the other side's insert hits the pair key, then reads it."""
    existing = await membership.create_direct_chat(alice.id, bob.id)
    mocker.patch.object(repo, "get_direct_chat", return_value=None)

    with pytest.raises(ConflictError):
        await membership.create_direct_chat(bob.id, alice.id)

    mocker.stopall()
    retry = await membership.create_direct_chat(bob.id, alice.id)

    assert retry.id == existing.id
    assert len(hub.events("chatCreated")) == 2
    assert len(repo.list_user_chats(alice.id)) == 1


@pytest.mark.asyncio
async def test_direct_chat_with_self_rejected(membership, alice) -> None:
    with pytest.raises(ValidationError):
        await membership.create_direct_chat(alice.id, alice.id)


@pytest.mark.asyncio
async def test_direct_chat_with_unknown_user(membership, alice) -> None:
    with pytest.raises(NotFoundError):
        await membership.create_direct_chat(alice.id, "no-such-user")


@pytest.mark.asyncio
async def test_group_includes_admin_first_and_deduplicates(membership, alice, bob, carol) -> None:
    chat = await membership.create_group_chat(
        alice.id, "  Squad  ", "Weekend league", [bob.id, carol.id, bob.id, alice.id]
    )

    assert chat.kind == ChatKind.GROUP
    assert chat.name == "Squad"
    assert chat.created_by == alice.id
    assert [p.user_id for p in chat.participants] == [alice.id, bob.id, carol.id]
    assert all(p.read_receipts_enabled for p in chat.participants)


@pytest.mark.asyncio
async def test_group_requires_name_and_known_members(membership, alice) -> None:
    with pytest.raises(ValidationError):
        await membership.create_group_chat(alice.id, "   ")
    with pytest.raises(NotFoundError):
        await membership.create_group_chat(alice.id, "Squad", None, ["ghost"])


@pytest.mark.asyncio
async def test_add_participants_skips_existing_members(
    membership, hub, alice, bob, carol
) -> None:
    chat = await membership.create_group_chat(alice.id, "Squad", None, [bob.id])

    added = await membership.add_participants(chat.id, alice.id, [bob.id, carol.id])

    assert added == [carol.id]
    participants = membership.list_participants(chat.id, alice.id)
    assert [p.user_id for p in participants] == [alice.id, bob.id, carol.id]
    [event] = hub.events("participantsAdded", f"chat:{chat.id}")
    assert event.user_ids == [carol.id]
    assert f"user:{carol.id}" in hub.topics("chatCreated")


@pytest.mark.asyncio
async def test_add_participants_to_missing_chat(membership, alice, bob) -> None:
    with pytest.raises(NotFoundError):
        await membership.add_participants("missing", alice.id, [bob.id])


@pytest.mark.asyncio
async def test_add_participants_to_direct_chat_rejected(membership, alice, bob, carol) -> None:
    chat = await membership.create_direct_chat(alice.id, bob.id)
    with pytest.raises(ValidationError):
        await membership.add_participants(chat.id, alice.id, [carol.id])


@pytest.mark.asyncio
async def test_outsider_cannot_manage_group(membership, alice, bob, carol) -> None:
    chat = await membership.create_group_chat(alice.id, "Squad", None, [bob.id])
    with pytest.raises(NotAParticipantError):
        await membership.add_participants(chat.id, carol.id, [carol.id])


@pytest.mark.asyncio
async def test_remove_participant_keeps_messages(
    membership, messages, hub, alice, bob, carol
) -> None:
    from league_chat.schemas.message import MessageCreate

    chat = await membership.create_group_chat(alice.id, "Squad", None, [bob.id, carol.id])
    sent = await messages.send_message(chat.id, carol.id, MessageCreate(content="gg"))

    await membership.remove_participant(chat.id, alice.id, carol.id)

    assert [p.user_id for p in membership.list_participants(chat.id, alice.id)] == [
        alice.id,
        bob.id,
    ]
    history = messages.list_messages(chat.id, alice.id)
    assert [m.id for m in history] == [sent.id]
    assert set(hub.topics("participantRemoved")) == {f"chat:{chat.id}", f"user:{carol.id}"}


@pytest.mark.asyncio
async def test_remove_missing_participant_or_chat(membership, alice, bob, carol) -> None:
    chat = await membership.create_group_chat(alice.id, "Squad", None, [bob.id])
    with pytest.raises(NotFoundError):
        await membership.remove_participant(chat.id, alice.id, carol.id)
    with pytest.raises(NotFoundError):
        await membership.remove_participant("missing", alice.id, bob.id)


@pytest.mark.asyncio
async def test_leaving_a_group(membership, alice, bob) -> None:
    chat = await membership.create_group_chat(alice.id, "Squad", None, [bob.id])

    await membership.remove_participant(chat.id, bob.id, bob.id)

    with pytest.raises(NotAParticipantError):
        membership.get_chat(chat.id, bob.id)


@pytest.mark.asyncio
async def test_update_group_chat(membership, hub, alice, bob) -> None:
    chat = await membership.create_group_chat(alice.id, "Squad", None, [bob.id])

    updated = await membership.update_group_chat(chat.id, bob.id, name="Finals", description="GL")

    assert updated.name == "Finals"
    assert updated.description == "GL"
    [event] = hub.events("chatUpdated", f"chat:{chat.id}")
    assert event.chat.name == "Finals"


@pytest.mark.asyncio
async def test_list_user_chats_sorted_by_activity(membership, messages, alice, bob, carol) -> None:
    from league_chat.schemas.message import MessageCreate

    direct = await membership.create_direct_chat(alice.id, bob.id)
    group = await membership.create_group_chat(alice.id, "Squad", None, [carol.id])
    await messages.send_message(direct.id, bob.id, MessageCreate(content="first"))

    chats = membership.list_user_chats(alice.id)

    assert [c.id for c in chats] == [direct.id, group.id]
    assert chats[0].last_message is not None
    assert chats[0].last_message.content == "first"
    assert chats[0].unread_count == 1
    assert chats[1].last_message is None
    assert chats[1].unread_count == 0
