"""
Domain errors raised by the service layer.

Each error carries the HTTP status and machine-readable code it maps to;
the API layer renders them in one place (see api/error_handlers.py).
"""

from fastapi import status


class InsightNotesError(Exception):
    """Base class for all application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    default_message: str = "An internal error occurred."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthenticatedError(InsightNotesError):
    """No resolvable session for an operation that needs one."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    default_message = "User not authenticated"


class SessionUnknownError(InsightNotesError):
    """The session could not be checked (lookup failed), as opposed to being absent."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "session_unknown"
    default_message = "Could not verify the session, please retry"


class NotFoundError(InsightNotesError):
    """Entity absent or not owned by the caller."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Resource not found"


class EntityValidationError(InsightNotesError):
    """A required field is missing or invalid."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"
    default_message = "Invalid request payload"


class ConflictError(InsightNotesError):
    """The entity changed since it was read (stale version)."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "The resource was modified by another request"


class StoreFailureError(InsightNotesError):
    """The data store rejected or failed an operation. Message passed through."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "store_failure"
    default_message = "Database error"


class AIConfigurationError(InsightNotesError):
    """The generative-language API credential is missing or invalid."""

    code = "ai_configuration"
    default_message = "The AI assistant is not configured: ANTHROPIC_API_KEY is not set"


class AITransportError(InsightNotesError):
    """Network, quota or model error from the generative-language API."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "ai_transport"
    default_message = "Failed to generate response. Please try again."
