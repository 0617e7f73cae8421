"""Live delivery fan-out for connected WebSocket sessions.

This module provides the pub/sub layer that pushes chat events to clients:

- ``LiveConnection``: one connected session with its own ordered send queue
- Session registries mapping connection ids to user ids, either in process
  or shared through Redis so several instances agree on who is online
- ``LiveHub``: topic subscriptions and best-effort publishing
- ``RedisLiveHub``: cross-instance fan-out through Redis pub/sub

Delivery is at-most-once. A session that is disconnected, slow or broken
simply misses events; persisted state is the source of truth on resync.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import redis.asyncio as redis
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from league_chat.core.settings import settings
from league_chat.schemas.events import decode_frame, encode_frame

# Configure logger for this module
logger = logging.getLogger(__name__)

REDIS_CHANNEL_PREFIX = "live:"
REDIS_SESSIONS_KEY = "live:sessions"
REDIS_USER_SESSIONS_PREFIX = "live:user-sessions:"

SendFunc = Callable[[dict[str, Any]], Awaitable[None]]


def chat_topic(chat_id: str) -> str:
    """Return the room-scoped topic of a chat."""
    return f"chat:{chat_id}"


def user_topic(user_id: str) -> str:
    """Return the personal topic of a user."""
    return f"user:{user_id}"


class LiveConnection:
    """A single connected session.

    Frames are queued and written by one task, so the session receives events
    in the order they were published to it.
    """

    def __init__(
        self,
        user_id: str,
        send: SendFunc,
        *,
        queue_size: int | None = None,
        send_timeout: float | None = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.user_id = user_id
        self.topics: set[str] = set()
        self._send = send
        self._send_timeout = (
            settings.live_send_timeout_seconds if send_timeout is None else send_timeout
        )
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue(
            maxsize=settings.live_queue_size if queue_size is None else queue_size
        )
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Start the writer task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._writer())

    async def close(self) -> None:
        """Stop the writer after it drains already queued frames."""
        if self._task is None:
            return
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def enqueue(self, frame: dict[str, Any]) -> bool:
        """Queue a frame for delivery; drop it if the session is falling behind."""
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning(
                "Dropping %s for session %s of user %s: send queue full",
                frame.get("event"),
                self.id,
                self.user_id,
            )
            return False
        return True

    async def _writer(self) -> None:
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            try:
                await asyncio.wait_for(self._send(frame), timeout=self._send_timeout)
            except Exception as exc:  # closed sockets raise transport-specific errors
                logger.warning(
                    "Stopping writer for session %s of user %s: %s", self.id, self.user_id, exc
                )
                return


class SessionRegistry:
    """Maps live connection ids to user ids."""

    async def register(self, connection_id: str, user_id: str) -> bool:
        """Record a session; return True if it is the user's first one."""
        raise NotImplementedError

    async def unregister(self, connection_id: str) -> tuple[str | None, bool]:
        """Forget a session; return its user id and whether it was the user's last."""
        raise NotImplementedError

    async def is_online(self, user_id: str) -> bool:
        """Return True if the user has at least one registered session."""
        raise NotImplementedError


class MemorySessionRegistry(SessionRegistry):
    """Registry held in process memory; only valid for a single instance."""

    def __init__(self) -> None:
        self._users: dict[str, str] = {}
        self._sessions: dict[str, set[str]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def register(self, connection_id: str, user_id: str) -> bool:
        async with self._lock:
            self._users[connection_id] = user_id
            first = not self._sessions[user_id]
            self._sessions[user_id].add(connection_id)
            return first

    async def unregister(self, connection_id: str) -> tuple[str | None, bool]:
        async with self._lock:
            user_id = self._users.pop(connection_id, None)
            if user_id is None:
                return None, False
            sessions = self._sessions[user_id]
            sessions.discard(connection_id)
            if not sessions:
                del self._sessions[user_id]
                return user_id, True
            return user_id, False

    async def is_online(self, user_id: str) -> bool:
        async with self._lock:
            return bool(self._sessions.get(user_id))


class RedisSessionRegistry(SessionRegistry):
    """Registry shared between instances through Redis.

    ``live:sessions`` hashes connection id to user id and
    ``live:user-sessions:{user_id}`` holds the set of a user's connections.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    async def register(self, connection_id: str, user_id: str) -> bool:
        pipe = self._redis.pipeline()
        pipe.hset(REDIS_SESSIONS_KEY, connection_id, user_id)
        pipe.sadd(f"{REDIS_USER_SESSIONS_PREFIX}{user_id}", connection_id)
        pipe.scard(f"{REDIS_USER_SESSIONS_PREFIX}{user_id}")
        _, _, count = await pipe.execute()
        return int(count) == 1

    async def unregister(self, connection_id: str) -> tuple[str | None, bool]:
        user_id = await self._redis.hget(REDIS_SESSIONS_KEY, connection_id)
        if user_id is None:
            return None, False
        if isinstance(user_id, bytes):
            user_id = user_id.decode()
        pipe = self._redis.pipeline()
        pipe.hdel(REDIS_SESSIONS_KEY, connection_id)
        pipe.srem(f"{REDIS_USER_SESSIONS_PREFIX}{user_id}", connection_id)
        pipe.scard(f"{REDIS_USER_SESSIONS_PREFIX}{user_id}")
        _, _, remaining = await pipe.execute()
        return user_id, int(remaining) == 0

    async def is_online(self, user_id: str) -> bool:
        return bool(await self._redis.scard(f"{REDIS_USER_SESSIONS_PREFIX}{user_id}"))


class LiveHub:
    """Topic-based fan-out to the sessions connected to this process."""

    def __init__(self, registry: SessionRegistry | None = None) -> None:
        self.registry = registry or MemorySessionRegistry()
        self._connections: dict[str, LiveConnection] = {}
        self._topics: dict[str, set[str]] = defaultdict(set)

    async def start(self) -> None:
        """Start background work; the in-process hub has none."""

    async def stop(self) -> None:
        """Close every local session writer."""
        for connection in list(self._connections.values()):
            await connection.close()
        self._connections.clear()
        self._topics.clear()

    async def connect(self, user_id: str, send: SendFunc) -> tuple[LiveConnection, bool]:
        """Register a session and subscribe it to its user's personal topic.

        Returns the connection and whether it is the user's first live session.
        """
        connection = LiveConnection(user_id, send)
        # Nothing is held locally until the registry has accepted the session.
        first = await self.registry.register(connection.id, user_id)
        connection.start()
        self._connections[connection.id] = connection
        self.subscribe(connection, user_topic(user_id))
        logger.info("Session %s connected for user %s", connection.id, user_id)
        return connection, first

    async def disconnect(self, connection: LiveConnection) -> bool:
        """Tear down a session; return True if the user has no sessions left."""
        for topic in list(connection.topics):
            self.unsubscribe(connection, topic)
        self._connections.pop(connection.id, None)
        await connection.close()
        _, last = await self.registry.unregister(connection.id)
        logger.info("Session %s disconnected for user %s", connection.id, connection.user_id)
        return last

    def subscribe(self, connection: LiveConnection, topic: str) -> None:
        """Route events published on ``topic`` to ``connection``."""
        self._topics[topic].add(connection.id)
        connection.topics.add(topic)

    def unsubscribe(self, connection: LiveConnection, topic: str) -> None:
        """Stop routing ``topic`` to ``connection``."""
        members = self._topics.get(topic)
        if members is not None:
            members.discard(connection.id)
            if not members:
                del self._topics[topic]
        connection.topics.discard(topic)

    async def publish(self, topic: str, event: BaseModel, *, skip: str | None = None) -> None:
        """Publish an event to a topic.

        ``skip`` names a connection id that must not receive the event, such
        as the session a typing signal came from.

        Never raises: a failed publish is logged and the triggering mutation
        still succeeds.
        """
        try:
            await self._dispatch(topic, encode_frame(topic, event), skip)
        except Exception:
            logger.exception("Failed to publish %s to %s", getattr(event, "event", "?"), topic)

    async def publish_many(self, topics: Iterable[str], event: BaseModel) -> None:
        """Publish the same event to several topics, each at most once."""
        for topic in dict.fromkeys(topics):
            await self.publish(topic, event)

    async def _dispatch(self, topic: str, frame: dict[str, Any], skip: str | None) -> None:
        self.deliver_local(topic, frame, skip=skip)

    def deliver_local(self, topic: str, frame: dict[str, Any], *, skip: str | None = None) -> int:
        """Queue a frame on every local session subscribed to ``topic``."""
        delivered = 0
        for connection_id in list(self._topics.get(topic, ())):
            if connection_id == skip:
                continue
            connection = self._connections.get(connection_id)
            if connection is not None and connection.enqueue(frame):
                delivered += 1
        if frame.get("event") == "participantRemoved" and topic.startswith("user:"):
            self._leave_removed_chat(topic, frame["data"]["chat_id"])
        return delivered

    def _leave_removed_chat(self, personal_topic: str, chat_id: str) -> None:
        # Sessions on the removed user's personal topic stop following the chat.
        for connection_id in list(self._topics.get(personal_topic, ())):
            connection = self._connections.get(connection_id)
            if connection is not None:
                self.unsubscribe(connection, chat_topic(chat_id))


class RedisLiveHub(LiveHub):
    """Hub that relays every publish through Redis so all instances deliver it."""

    def __init__(self, client: redis.Redis, registry: SessionRegistry | None = None) -> None:
        super().__init__(registry or RedisSessionRegistry(client))
        self._redis = client
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    async def start(self) -> None:
        """Start the pattern-subscriber loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._listen())

    async def stop(self) -> None:
        """Stop the subscriber loop and close local sessions."""
        if self._task is not None:
            self._stopping.set()
            await self._task
            self._task = None
        await super().stop()
        await self._redis.aclose()

    async def _dispatch(self, topic: str, frame: dict[str, Any], skip: str | None) -> None:
        payload = frame if skip is None else {**frame, "skip": skip}
        await self._redis.publish(f"{REDIS_CHANNEL_PREFIX}{topic}", json.dumps(payload))

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        await pubsub.psubscribe(f"{REDIS_CHANNEL_PREFIX}*")
        try:
            while not self._stopping.is_set():
                try:
                    message = await pubsub.get_message(timeout=1.0)
                except (OSError, ConnectionError, redis.RedisError) as exc:
                    logger.warning("Live relay lost its Redis subscription: %s", exc)
                    await asyncio.sleep(1.0)
                    continue
                if message is None or message.get("type") != "pmessage":
                    continue
                self._relay(message.get("data"))
        finally:
            await pubsub.aclose()

    def _relay(self, raw: Any) -> None:
        try:
            frame = json.loads(raw)
            topic, _ = decode_frame(frame)
            skip = frame.pop("skip", None)
        except (TypeError, ValueError, KeyError, PydanticValidationError) as exc:
            logger.warning("Ignoring unknown live frame from Redis: %s", exc)
            return
        self.deliver_local(topic, frame, skip=skip)


_hub: LiveHub | None = None


def build_live_hub() -> LiveHub:
    """Build a hub for the configured backend."""
    if settings.live_backend == "redis":
        client = redis.from_url(settings.redis_url, decode_responses=True)
        return RedisLiveHub(client)
    return LiveHub()


def get_live_hub() -> LiveHub:
    """Return the process-wide live hub."""
    global _hub
    if _hub is None:
        _hub = build_live_hub()
    return _hub
