"""Error taxonomy shared by services and the HTTP layer.

Services raise these typed errors; the FastAPI exception handlers registered
in :mod:`eventpass.main` translate them into JSON responses using the
``status_code`` carried by each class.
"""

from __future__ import annotations

from datetime import datetime


class EventPassError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def name(self) -> str:
        return type(self).__name__


class ValidationError(EventPassError):
    """Malformed or semantically invalid input."""

    status_code = 400
    default_message = "Invalid request data"


class AuthenticationError(EventPassError):
    """Missing, invalid or expired session, or bad credentials."""

    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(EventPassError):
    """Valid session with insufficient role."""

    status_code = 403
    default_message = "Insufficient permissions"


class NotFoundError(EventPassError):
    status_code = 404
    default_message = "Resource not found"


class CSRFViolation(EventPassError):
    """Double-submit CSRF token missing or mismatched."""

    status_code = 400
    default_message = "CSRF token missing"


class RateLimitError(EventPassError):
    """Too many requests inside the current fixed window."""

    status_code = 429
    default_message = "Too many requests"

    def __init__(self, message: str | None = None, *, reset_at: datetime, limit: int) -> None:
        super().__init__(message)
        self.reset_at = reset_at
        self.limit = limit


class InternalError(EventPassError):
    status_code = 500


# Token errors. Both are authentication failures; the access layer collapses
# them into one uninformative response.


class InvalidTokenError(AuthenticationError):
    default_message = "Invalid token"


class TokenExpiredError(AuthenticationError):
    default_message = "Token expired"


class MalformedSignatureError(ValidationError):
    """Signature bytes cannot be decoded or recovered."""

    default_message = "Malformed signature"


# Challenge lifecycle errors


class ChallengeNotFoundError(NotFoundError):
    default_message = "Challenge not found"


class ChallengeConsumedError(ValidationError):
    default_message = "Challenge already verified"


class ChallengeExpiredError(ValidationError):
    default_message = "Challenge has expired"


class ChallengeUnconfirmedError(ValidationError):
    default_message = "Deposit for challenge has not been confirmed"
