"""Domain exception classes for the relay.

These exceptions are raised by service-layer code and translated into
``{"errorMessage": ...}`` acknowledgements by ``RelayHub.handle`` in
``services/relay.py``. They never escape a WebSocket handler.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for every error reported back to a single connection.

    ``code`` is a short machine-readable reason (e.g. ``"SessionLocked"``),
    ``message`` is the human-readable text sent to the client.
    """

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or type(self).__name__


class ValidationError(RelayError):
    """Raised when a payload field is missing or malformed."""


class AuthorizationError(RelayError):
    """Raised when the caller does not hold (or cannot claim) leadership."""


class NotFoundError(RelayError):
    """Raised when a requested session does not exist."""


class StateError(RelayError):
    """Raised when an action conflicts with the caller's membership state."""


class DisconnectedError(RelayError):
    """Raised when a handler runs for an identity that was already torn down."""

    def __init__(self, message: str = "Disconnected.") -> None:
        super().__init__(message, code="Disconnected")


class RequestTimeoutError(RelayError):
    """Raised when a leader does not answer a time request in time."""
