"""Common exceptions for the subscription lifecycle."""
from __future__ import annotations


class WebSubError(Exception):
    """Base error for the subscriber."""


class ValidationError(WebSubError):
    """Raised when a request or identifier has an invalid shape."""


class NotFoundError(WebSubError):
    """Raised when no subscription exists for a topic."""


class ProviderError(WebSubError):
    """Structured rejection returned by the hub."""

    def __init__(self, error: str, status: int, message: str):
        super().__init__(message)
        self.error = error
        self.status = status
        self.message = message

    def __str__(self) -> str:
        return self.message


class TransportError(WebSubError):
    """Raised when the hub (or the token endpoint) cannot be reached."""


class MalformedResponseError(TransportError):
    """Raised when the hub answers with a body that cannot be parsed."""


class CryptoSourceError(WebSubError):
    """Raised when the random source is unavailable."""
