# src/league_chat/api/v1/endpoints/live.py
"""WebSocket endpoint for live chat events."""

from __future__ import annotations

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from league_chat.core.security import InvalidTokenError, decode_access_token
from league_chat.repositories.chat_repo import ChatRepository
from league_chat.schemas.events import (
    ErrorReply,
    JoinChatFrame,
    JoinUserFrame,
    LeaveChatFrame,
    LeaveUserFrame,
    SubscribedReply,
    TypingEvent,
    TypingFrame,
    UnsubscribedReply,
    encode_frame,
    parse_client_frame,
)
from league_chat.services.live import LiveConnection, LiveHub, chat_topic, user_topic
from league_chat.services.presence import PresenceService

from ..dependencies import LiveHubDep, SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])


class LiveSession:
    """Handles the client frames of one connected session."""

    def __init__(self, connection: LiveConnection, hub: LiveHub, repo: ChatRepository) -> None:
        self.connection = connection
        self.hub = hub
        self.repo = repo

    @property
    def user_id(self) -> str:
        return self.connection.user_id

    def reply(self, message: BaseModel) -> None:
        self.connection.enqueue(encode_frame(user_topic(self.user_id), message))

    def _is_member(self, chat_id: str) -> bool:
        return self.repo.get_participant(chat_id, self.user_id) is not None

    async def handle(self, raw: str) -> None:
        try:
            frame = parse_client_frame(json.loads(raw))
        except (ValueError, PydanticValidationError) as exc:
            logger.warning("Ignoring malformed frame from user %s: %s", self.user_id, exc)
            self.reply(ErrorReply(code="invalid_frame", message="Unknown or malformed frame"))
            return

        if isinstance(frame, JoinChatFrame):
            if not self._is_member(frame.chat_id):
                logger.warning("User %s tried to join chat %s", self.user_id, frame.chat_id)
                self.reply(
                    ErrorReply(code="not_a_participant", message="Not a participant of this chat")
                )
                return
            topic = chat_topic(frame.chat_id)
            self.hub.subscribe(self.connection, topic)
            self.reply(SubscribedReply(topic=topic))
        elif isinstance(frame, LeaveChatFrame):
            topic = chat_topic(frame.chat_id)
            self.hub.unsubscribe(self.connection, topic)
            self.reply(UnsubscribedReply(topic=topic))
        elif isinstance(frame, JoinUserFrame):
            topic = user_topic(self.user_id)
            self.hub.subscribe(self.connection, topic)
            self.reply(SubscribedReply(topic=topic))
        elif isinstance(frame, LeaveUserFrame):
            topic = user_topic(self.user_id)
            self.hub.unsubscribe(self.connection, topic)
            self.reply(UnsubscribedReply(topic=topic))
        elif isinstance(frame, TypingFrame):
            # Typing is only relayed for members, under the authenticated identity,
            # and never echoed to the session that sent it.
            if not self._is_member(frame.chat_id):
                return
            await self.hub.publish(
                chat_topic(frame.chat_id),
                TypingEvent(chat_id=frame.chat_id, user_id=self.user_id, is_typing=frame.is_typing),
                skip=self.connection.id,
            )


@router.websocket("/ws")
async def live_socket(
    websocket: WebSocket,
    db: SessionDep,
    hub: LiveHubDep,
    token: Annotated[str | None, Query()] = None,
) -> None:
    """Authenticate with ``?token=`` and stream events for the caller's topics."""
    repo = ChatRepository(db)
    try:
        user_id = decode_access_token(token or "")
    except InvalidTokenError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if repo.get_user(user_id) is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    connection, first = await hub.connect(user_id, websocket.send_json)
    presence = PresenceService(repo, hub)
    session = LiveSession(connection, hub, repo)
    try:
        if first:
            await presence.went_online(user_id)
        while True:
            await session.handle(await websocket.receive_text())
    except WebSocketDisconnect:
        pass
    finally:
        if await hub.disconnect(connection):
            await presence.went_offline(user_id)
