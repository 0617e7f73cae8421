"""Exception hierarchy shared by the chat services.

Every error carries a stable ``code`` that the API layer echoes back to
clients next to the human-readable message, and an HTTP status used by the
exception handler registered in ``league_chat.main``.
"""

from __future__ import annotations


class ChatError(Exception):
    """Base class for failures raised by the chat core."""

    code = "chat_error"
    status_code = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code).strip()


class ValidationError(ChatError):
    """Request input is malformed or out of range."""

    code = "validation_error"
    status_code = 400


class InvalidMediaURL(ValidationError):
    """Media URL was not issued by the blob store."""

    code = "invalid_media_url"


class InvalidReply(ValidationError):
    """Reply target does not exist in this chat."""

    code = "invalid_reply"


class InvalidEphemeralDuration(ValidationError):
    """Ephemeral view duration must be -1, unset, or between 1 and 300 seconds."""

    code = "invalid_ephemeral_duration"


class NotEphemeralError(ValidationError):
    """Message is not ephemeral."""

    code = "not_ephemeral"


class NotFoundError(ChatError):
    """Referenced chat, message, participant or user does not exist."""

    code = "not_found"
    status_code = 404


class ConflictError(ChatError):
    """Request conflicts with the current state of the record."""

    code = "conflict"
    status_code = 409


class AlreadyViewedError(ConflictError):
    """Ephemeral message has already been viewed."""

    code = "already_viewed"


class PermissionDeniedError(ChatError):
    """Caller is not allowed to perform this action."""

    code = "permission_denied"
    status_code = 403


class NotAParticipantError(PermissionDeniedError):
    """Caller is not a participant of this chat."""

    code = "not_a_participant"


class StorageError(ChatError):
    """The record store failed to complete the operation."""

    code = "storage_error"
    status_code = 500
