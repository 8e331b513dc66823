"""Exceptions raised by EventBoard operations.

Each error carries the HTTP status and the client-facing message; the
FastAPI handlers in :mod:`eventboard.api` turn them into ``{"message": ...}``
responses.
"""

from __future__ import annotations


class EventBoardError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(EventBoardError):
    """Raised when the caller has no valid session."""

    status_code = 401
    default_message = "Unauthorized"


class ValidationError(EventBoardError):
    """Raised for missing, malformed, or contradictory input."""

    status_code = 400
    default_message = "Invalid request"


class ForbiddenError(EventBoardError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(EventBoardError):
    status_code = 404
    default_message = "Not found"


class EventFullError(EventBoardError):
    """Raised when an event is at capacity for GOING RSVPs."""

    status_code = 400
    default_message = "This event has reached its maximum number of attendees."
