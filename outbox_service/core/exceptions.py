"""Custom exception classes for the outbox service.

Business-operation and driver exceptions are never wrapped by these types;
they propagate to the caller unchanged. The classes below only describe
misuse of the library or missing configuration.
"""

from __future__ import annotations

from typing import Any


class OutboxError(Exception):
    """Base outbox exception.

    All custom exceptions should inherit from this class.

    Attributes:
        detail: Human-readable error message.
        extra: Additional context-specific information about the error.

    Example:
            raise OutboxError(
            detail="Outbox collection is not configured",
            extra={"backend": "mongo"},
        )
    """

    def __init__(self, detail: str, extra: dict[str, Any] | None = None) -> None:
        """Initialize outbox exception.

        Args:
            detail: Human-readable error message.
            extra: Additional context about the error.
        """
        self.detail = detail
        self.extra = extra or {}
        super().__init__(detail)


class OutboxValidationError(OutboxError):
    """Raised when execute_with_outbox receives invalid arguments."""


class OutboxNotConnectedError(OutboxError):
    """Raised when an outbox is used before connect() was awaited."""

    def __init__(self, backend: str) -> None:
        super().__init__(
            detail=f"{backend} outbox is not connected; call connect() first",
            extra={"backend": backend},
        )


class OutboxConfigurationError(OutboxError):
    """Raised when required configuration is missing or invalid."""


class PublishError(OutboxError):
    """Raised when the queue publisher cannot attempt a send."""


__all__ = [
    "OutboxConfigurationError",
    "OutboxError",
    "OutboxNotConnectedError",
    "OutboxValidationError",
    "PublishError",
]
