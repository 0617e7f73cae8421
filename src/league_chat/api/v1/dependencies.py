"""Shared API dependencies for authentication and service wiring."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from league_chat.core.security import InvalidTokenError, decode_access_token
from league_chat.db.session import get_db
from league_chat.models import User
from league_chat.repositories.chat_repo import ChatRepository
from league_chat.services.ephemeral import EphemeralService
from league_chat.services.live import LiveHub, get_live_hub
from league_chat.services.membership import MembershipService
from league_chat.services.messages import MessageService
from league_chat.services.reactions import ReactionService
from league_chat.services.read_tracking import ReadTrackingService

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
LiveHubDep = Annotated[LiveHub, Depends(get_live_hub)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer token credentials
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        HTTPException: If token is invalid or user not found
    """
    try:
        user_id = decode_access_token(credentials.credentials)
    except InvalidTokenError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_repository(db: SessionDep) -> ChatRepository:
    return ChatRepository(db)


RepoDep = Annotated[ChatRepository, Depends(get_repository)]


def get_membership_service(repo: RepoDep, hub: LiveHubDep) -> MembershipService:
    return MembershipService(repo, hub)


def get_message_service(repo: RepoDep, hub: LiveHubDep) -> MessageService:
    return MessageService(repo, hub)


def get_read_tracking_service(repo: RepoDep, hub: LiveHubDep) -> ReadTrackingService:
    return ReadTrackingService(repo, hub)


def get_reaction_service(repo: RepoDep, hub: LiveHubDep) -> ReactionService:
    return ReactionService(repo, hub)


def get_ephemeral_service(repo: RepoDep, hub: LiveHubDep) -> EphemeralService:
    return EphemeralService(repo, hub)


MembershipDep = Annotated[MembershipService, Depends(get_membership_service)]
MessagesDep = Annotated[MessageService, Depends(get_message_service)]
ReadTrackingDep = Annotated[ReadTrackingService, Depends(get_read_tracking_service)]
ReactionsDep = Annotated[ReactionService, Depends(get_reaction_service)]
EphemeralDep = Annotated[EphemeralService, Depends(get_ephemeral_service)]
