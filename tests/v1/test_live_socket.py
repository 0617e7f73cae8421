"""WebSocket tests for /api/v1/ws."""

import pytest
from fastapi import WebSocketDisconnect, status

from league_chat.core.security import create_access_token


def _socket(client, user):
    return client.websocket_connect(f"/api/v1/ws?token={create_access_token(user.id)}")


@pytest.fixture()
def chat_id(client, auth_headers, alice, bob) -> str:
    response = client.post(
        "/api/v1/chats/direct", json={"friend_id": bob.id}, headers=auth_headers(alice)
    )
    return response.json()["id"]


def test_missing_or_bad_token_closes_socket(client) -> None:
    for path in ("/api/v1/ws", "/api/v1/ws?token=garbage"):
        with pytest.raises(WebSocketDisconnect) as excinfo:
            with client.websocket_connect(path):
                pass
        assert excinfo.value.code == status.WS_1008_POLICY_VIOLATION


def test_token_for_unknown_user_closes_socket(client) -> None:
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect(f"/api/v1/ws?token={create_access_token('ghost')}"):
            pass
    assert excinfo.value.code == status.WS_1008_POLICY_VIOLATION


def test_join_chat_and_receive_new_messages(client, auth_headers, chat_id, alice, bob) -> None:
    with _socket(client, alice) as ws:
        ws.send_json({"event": "joinChat", "data": {"chat_id": chat_id}})
        assert ws.receive_json() == {
            "topic": f"user:{alice.id}",
            "event": "subscribed",
            "data": {"topic": f"chat:{chat_id}"},
        }

        sent = client.post(
            f"/api/v1/chats/{chat_id}/messages",
            json={"content": "gl hf"},
            headers=auth_headers(bob),
        ).json()

        frame = ws.receive_json()
        assert frame["topic"] == f"chat:{chat_id}"
        assert frame["event"] == "newMessage"
        assert frame["data"]["message"]["id"] == sent["id"]

        badge = ws.receive_json()
        assert badge["topic"] == f"user:{alice.id}"
        assert badge["event"] == "unreadCountUpdate"
        assert badge["data"]["unread_count"] == 1


def test_non_member_cannot_join_chat(client, chat_id, carol) -> None:
    with _socket(client, carol) as ws:
        ws.send_json({"event": "joinChat", "data": {"chat_id": chat_id}})
        reply = ws.receive_json()

    assert reply["event"] == "error"
    assert reply["data"]["code"] == "not_a_participant"


def test_typing_is_relayed_under_authenticated_identity(client, chat_id, alice, bob) -> None:
    with _socket(client, alice) as alice_ws:
        alice_ws.send_json({"event": "joinChat", "data": {"chat_id": chat_id}})
        alice_ws.receive_json()

        with _socket(client, bob) as bob_ws:
            online = alice_ws.receive_json()
            assert online["event"] == "user:online"
            assert online["data"]["user_id"] == bob.id

            bob_ws.send_json({"event": "joinChat", "data": {"chat_id": chat_id}})
            bob_ws.receive_json()
            bob_ws.send_json(
                {"event": "typing", "data": {"chat_id": chat_id, "is_typing": True}}
            )

            typing = alice_ws.receive_json()
            assert typing == {
                "topic": f"chat:{chat_id}",
                "event": "typing",
                "data": {"chat_id": chat_id, "user_id": bob.id, "is_typing": True},
            }

            bob_ws.send_json(
                {
                    "event": "typing",
                    "data": {"chat_id": chat_id, "is_typing": True, "user_id": alice.id},
                }
            )
            # The first typing frame was not echoed back to bob.
            rejected = bob_ws.receive_json()
            assert rejected["event"] == "error"
            assert rejected["data"]["code"] == "invalid_frame"

        offline = alice_ws.receive_json()
        assert offline["event"] == "user:offline"
        assert offline["data"]["user_id"] == bob.id


def test_leave_chat_stops_delivery(client, auth_headers, chat_id, alice, bob) -> None:
    with _socket(client, alice) as ws:
        ws.send_json({"event": "joinChat", "data": {"chat_id": chat_id}})
        ws.receive_json()
        ws.send_json({"event": "leaveChat", "data": {"chat_id": chat_id}})
        assert ws.receive_json()["event"] == "unsubscribed"

        client.post(
            f"/api/v1/chats/{chat_id}/messages",
            json={"content": "anyone?"},
            headers=auth_headers(bob),
        )

        # Only the personal badge update is still delivered.
        frame = ws.receive_json()
        assert frame["event"] == "unreadCountUpdate"


def test_removed_member_stops_receiving_chat_events(
    client, auth_headers, alice, bob, carol
) -> None:
    group = client.post(
        "/api/v1/chats/group",
        json={"name": "Scrims", "participant_ids": [bob.id, carol.id]},
        headers=auth_headers(alice),
    ).json()

    with _socket(client, carol) as ws:
        ws.send_json({"event": "joinChat", "data": {"chat_id": group["id"]}})
        assert ws.receive_json()["event"] == "subscribed"

        removed = client.delete(
            f"/api/v1/chats/{group['id']}/participants/{carol.id}", headers=auth_headers(alice)
        )
        assert removed.status_code == status.HTTP_204_NO_CONTENT
        notices = [ws.receive_json(), ws.receive_json()]
        assert [n["event"] for n in notices] == ["participantRemoved", "participantRemoved"]
        assert [n["topic"] for n in notices] == [f"chat:{group['id']}", f"user:{carol.id}"]

        client.post(
            f"/api/v1/chats/{group['id']}/messages",
            json={"content": "secret after removal"},
            headers=auth_headers(alice),
        )
        ws.send_json({"event": "joinUser"})

        # The next frame is the reply, not the message sent after removal.
        assert ws.receive_json()["event"] == "subscribed"
