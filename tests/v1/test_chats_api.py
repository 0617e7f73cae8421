"""HTTP tests for the /api/v1/chats routes."""

from fastapi import status


def _direct(client, auth_headers, caller, friend) -> dict:
    response = client.post(
        "/api/v1/chats/direct", json={"friend_id": friend.id}, headers=auth_headers(caller)
    )
    assert response.status_code == status.HTTP_200_OK
    return response.json()


def _send(client, auth_headers, chat_id, sender, **payload) -> dict:
    response = client.post(
        f"/api/v1/chats/{chat_id}/messages", json=payload, headers=auth_headers(sender)
    )
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


def _history_key(message: dict) -> tuple[str, str]:
    return message["created_at"], message["id"]


def test_requests_without_credentials_are_rejected(client) -> None:
    response = client.get("/api/v1/chats")
    # HTTPBearer answers 403 on older FastAPI releases and 401 on newer ones.
    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


def test_invalid_token_is_unauthorized(client) -> None:
    response = client.get("/api/v1/chats", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_direct_chat_is_opened_once(client, auth_headers, alice, bob) -> None:
    first = _direct(client, auth_headers, alice, bob)
    again = _direct(client, auth_headers, bob, alice)

    assert first["id"] == again["id"]
    assert first["kind"] == "DIRECT"
    assert {p["user_id"] for p in first["participants"]} == {alice.id, bob.id}


def test_direct_chat_with_self_is_a_validation_error(client, auth_headers, alice) -> None:
    response = client.post(
        "/api/v1/chats/direct", json={"friend_id": alice.id}, headers=auth_headers(alice)
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "validation_error"


def test_direct_chat_with_unknown_user(client, auth_headers, alice) -> None:
    response = client.post(
        "/api/v1/chats/direct", json={"friend_id": "ghost"}, headers=auth_headers(alice)
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["code"] == "not_found"


def test_group_lifecycle(client, auth_headers, alice, bob, carol) -> None:
    created = client.post(
        "/api/v1/chats/group",
        json={"name": "Raid night", "participant_ids": [bob.id]},
        headers=auth_headers(alice),
    )
    assert created.status_code == status.HTTP_201_CREATED
    chat = created.json()
    assert chat["created_by"] == alice.id
    assert [p["user_id"] for p in chat["participants"]] == [alice.id, bob.id]

    added = client.post(
        f"/api/v1/chats/{chat['id']}/participants",
        json={"participant_ids": [carol.id, bob.id]},
        headers=auth_headers(bob),
    )
    assert added.json() == {"added": [carol.id]}

    renamed = client.put(
        f"/api/v1/chats/{chat['id']}",
        json={"name": "Raid night (EU)"},
        headers=auth_headers(carol),
    )
    assert renamed.json()["name"] == "Raid night (EU)"

    left = client.delete(
        f"/api/v1/chats/{chat['id']}/participants/{carol.id}", headers=auth_headers(carol)
    )
    assert left.status_code == status.HTTP_204_NO_CONTENT

    participants = client.get(
        f"/api/v1/chats/{chat['id']}/participants", headers=auth_headers(alice)
    ).json()
    assert [p["user_id"] for p in participants] == [alice.id, bob.id]

    forbidden = client.get(f"/api/v1/chats/{chat['id']}", headers=auth_headers(carol))
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN
    assert forbidden.json() == {
        "detail": "Caller is not a participant of this chat.",
        "code": "not_a_participant",
    }


def test_direct_chats_have_fixed_membership(client, auth_headers, alice, bob, carol) -> None:
    chat = _direct(client, auth_headers, alice, bob)

    response = client.post(
        f"/api/v1/chats/{chat['id']}/participants",
        json={"participant_ids": [carol.id]},
        headers=auth_headers(alice),
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_missing_chat_is_not_found(client, auth_headers, alice) -> None:
    response = client.get("/api/v1/chats/nope", headers=auth_headers(alice))
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["code"] == "not_found"


def test_send_and_page_history(client, auth_headers, alice, bob) -> None:
    chat = _direct(client, auth_headers, alice, bob)
    sent = [_send(client, auth_headers, chat["id"], alice, content=f"gg {i}") for i in range(5)]

    newest = client.get(
        f"/api/v1/chats/{chat['id']}/messages", params={"limit": 2}, headers=auth_headers(bob)
    ).json()
    older = client.get(
        f"/api/v1/chats/{chat['id']}/messages",
        params={"limit": 2, "before": newest[-1]["id"]},
        headers=auth_headers(bob),
    ).json()

    expected = [m["id"] for m in sorted(sent, key=_history_key, reverse=True)]
    assert [m["id"] for m in newest + older] == expected[:4]
    assert newest[0]["sender"]["username"] == "alice"
    assert sent[0]["type"] == "TEXT"


def test_invalid_message_payloads(client, auth_headers, alice, bob) -> None:
    chat = _direct(client, auth_headers, alice, bob)
    url = f"/api/v1/chats/{chat['id']}/messages"

    blank = client.post(url, json={"content": "   "}, headers=auth_headers(alice))
    foreign = client.post(
        url,
        json={"type": "IMAGE", "media_url": "https://elsewhere.example.com/x.png"},
        headers=auth_headers(alice),
    )
    too_long = client.post(
        url,
        json={"content": "boo", "is_ephemeral": True, "ephemeral_view_duration": 301},
        headers=auth_headers(alice),
    )
    bad_reply = client.post(
        url, json={"content": "re", "reply_to_id": "missing"}, headers=auth_headers(alice)
    )

    assert blank.json()["code"] == "validation_error"
    assert foreign.json()["code"] == "invalid_media_url"
    assert too_long.json()["code"] == "invalid_ephemeral_duration"
    assert bad_reply.json()["code"] == "invalid_reply"
    assert {r.status_code for r in (blank, foreign, too_long, bad_reply)} == {400}


def test_unread_counts_and_mark_read(client, auth_headers, alice, bob) -> None:
    chat = _direct(client, auth_headers, alice, bob)
    sent = [_send(client, auth_headers, chat["id"], alice, content=t) for t in ("a", "b", "c")]

    listed = client.get("/api/v1/chats", headers=auth_headers(bob)).json()
    assert listed[0]["unread_count"] == 3
    assert listed[0]["last_message"]["id"] == max(sent, key=_history_key)["id"]
    assert client.get("/api/v1/chats/unread", headers=auth_headers(bob)).json() == {
        "unread_count": 3
    }

    marked = client.post(f"/api/v1/chats/{chat['id']}/read", headers=auth_headers(bob))
    assert marked.json() == {"success": True}
    assert client.get("/api/v1/chats/unread", headers=auth_headers(bob)).json() == {
        "unread_count": 0
    }


def test_read_receipts_can_be_disabled(client, auth_headers, alice, bob) -> None:
    chat = _direct(client, auth_headers, alice, bob)
    message = _send(client, auth_headers, chat["id"], alice, content="seen?")

    toggled = client.put(
        f"/api/v1/chats/{chat['id']}/read-receipts",
        json={"enabled": False},
        headers=auth_headers(bob),
    )
    assert toggled.json() == {"read_receipts_enabled": False}

    response = client.post(
        f"/api/v1/chats/{chat['id']}/messages/read",
        json={"message_ids": [message["id"]]},
        headers=auth_headers(bob),
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["read_receipts_disabled"] is True
    receipts = client.get(
        f"/api/v1/messages/{message['id']}/receipts", headers=auth_headers(alice)
    ).json()
    assert receipts == []
