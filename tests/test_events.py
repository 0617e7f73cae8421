"""Tests for the closed live event unions."""

import pytest
from pydantic import ValidationError

from league_chat.schemas.events import (
    JoinChatFrame,
    LeaveUserFrame,
    MessagesReadEvent,
    TypingFrame,
    decode_frame,
    encode_frame,
    parse_client_frame,
)


def test_encode_frame_moves_event_name_to_envelope() -> None:
    event = MessagesReadEvent(
        chat_id="c1", user_id="u1", message_ids=["m1"], read_at="2026-03-01T12:00:00Z"
    )

    frame = encode_frame("chat:c1", event)

    assert frame["topic"] == "chat:c1"
    assert frame["event"] == "messagesRead"
    assert "event" not in frame["data"]
    topic, decoded = decode_frame(frame)
    assert topic == "chat:c1"
    assert decoded == event


def test_decode_rejects_unknown_events_and_extra_fields() -> None:
    with pytest.raises(ValidationError):
        decode_frame({"topic": "chat:c1", "event": "poke", "data": {}})
    with pytest.raises(ValidationError):
        decode_frame(
            {
                "topic": "chat:c1",
                "event": "typing",
                "data": {"chat_id": "c1", "user_id": "u1", "is_typing": True, "admin": True},
            }
        )


@pytest.mark.parametrize(
    ("frame", "expected"),
    [
        ({"event": "joinChat", "data": {"chat_id": "c1"}}, JoinChatFrame),
        ({"event": "leaveUser"}, LeaveUserFrame),
        ({"event": "typing", "data": {"chat_id": "c1", "is_typing": False}}, TypingFrame),
    ],
)
def test_parse_client_frame(frame, expected) -> None:
    assert isinstance(parse_client_frame(frame), expected)


@pytest.mark.parametrize(
    "frame",
    [
        {"event": "joinChat"},
        {"event": "typing", "data": {"chat_id": "c1", "is_typing": True, "user_id": "spoof"}},
        {"event": "dropTables", "data": {}},
        ["joinChat"],
    ],
)
def test_parse_client_frame_rejects_unknown_shapes(frame) -> None:
    with pytest.raises(ValidationError):
        parse_client_frame(frame)
