"""Error types raised by the relay and mapped to HTTP responses in main."""

from __future__ import annotations

MISSING_FIELDS_MESSAGE = "Missing required fields: sessionId and message"
INTERNAL_ERROR_MESSAGE = "Internal server error"


class RelayError(Exception):
    """Base error carrying the message and status code returned to the caller."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class BadRequestError(RelayError):
    def __init__(self, message: str = MISSING_FIELDS_MESSAGE) -> None:
        super().__init__(message, status_code=400)


class InternalError(RelayError):
    def __init__(self, message: str = INTERNAL_ERROR_MESSAGE) -> None:
        super().__init__(message, status_code=500)


class HistoryCorruptedError(Exception):
    """Stored history could not be decoded into a list of turns."""


class InferenceError(Exception):
    """The language-model backend failed or is not configured."""
