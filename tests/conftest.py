# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from itertools import count

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LIVE_BACKEND", "memory")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from league_chat.core.security import create_access_token
from league_chat.core.settings import settings
from league_chat.db.session import Base
from league_chat.db.session import get_db as app_get_session
from league_chat.main import app as fastapi_app
from league_chat.models import User
from league_chat.repositories.chat_repo import ChatRepository
from league_chat.services.ephemeral import EphemeralService
from league_chat.services.live import LiveHub, get_live_hub
from league_chat.services.membership import MembershipService
from league_chat.services.messages import MessageService
from league_chat.services.reactions import ReactionService
from league_chat.services.read_tracking import ReadTrackingService

TEST_DB_URL = "sqlite://"

_USER_COUNTER = count(1)


class RecordingHub(LiveHub):
    """In-process hub that also remembers every publish for assertions."""

    def __init__(self) -> None:
        super().__init__()
        self.published: list[tuple[str, BaseModel]] = []

    async def publish(self, topic: str, event: BaseModel, *, skip: str | None = None) -> None:
        self.published.append((topic, event))
        await super().publish(topic, event, skip=skip)

    def events(self, name: str, topic: str | None = None) -> list[BaseModel]:
        return [
            event
            for event_topic, event in self.published
            if event.event == name and (topic is None or event_topic == topic)
        ]

    def topics(self, name: str) -> list[str]:
        return [topic for topic, event in self.published if event.event == name]


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def hub() -> RecordingHub:
    return RecordingHub()


@pytest.fixture()
def repo(db_session: Session) -> ChatRepository:
    return ChatRepository(db_session)


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(app: FastAPI, db_session: Session, hub: RecordingHub) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_live_hub] = lambda: hub
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_live_hub, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory that persists users with unique names."""

    def _make(username: str | None = None) -> User:
        user = User(username=username or f"player{next(_USER_COUNTER)}")
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def alice(make_user: Callable[..., User]) -> User:
    return make_user("alice")


@pytest.fixture()
def bob(make_user: Callable[..., User]) -> User:
    return make_user("bob")


@pytest.fixture()
def carol(make_user: Callable[..., User]) -> User:
    return make_user("carol")


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Return a helper building bearer headers for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest.fixture()
def membership(repo: ChatRepository, hub: RecordingHub) -> MembershipService:
    return MembershipService(repo, hub)


@pytest.fixture()
def messages(repo: ChatRepository, hub: RecordingHub) -> MessageService:
    return MessageService(repo, hub)


@pytest.fixture()
def reads(repo: ChatRepository, hub: RecordingHub) -> ReadTrackingService:
    return ReadTrackingService(repo, hub)


@pytest.fixture()
def reactions(repo: ChatRepository, hub: RecordingHub) -> ReactionService:
    return ReactionService(repo, hub)


@pytest.fixture()
def ephemeral(repo: ChatRepository, hub: RecordingHub) -> EphemeralService:
    return EphemeralService(repo, hub)


@pytest.fixture()
def media_url() -> str:
    """A URL the blob store would have issued."""
    return f"{settings.media_bucket_url}uploads/photo.jpg"
