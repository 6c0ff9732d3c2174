"""
Core domain package.

This package contains business logic which should be independent of any UI layer
(web, CLI, etc.): the store, the queue service and the playlist store.

We intentionally keep exports minimal; consumers should usually import from the
specific module they need (e.g. `wavshare.core.queue`). The exception taxonomy
lives here so that every layer can catch it without importing the services.
"""

from __future__ import annotations

__all__: list[str] = [
    "CoreError",
    "ValidationError",
    "NotFoundError",
    "DuplicateError",
    "QueueFullError",
    "EmptyPlaylistError",
    "AllDuplicatesError",
    "NotPlayableError",
    "AuthenticationError",
]


class CoreError(Exception):
    """Base class for core-layer exceptions.

    The message is meant to be shown to the user as-is.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CoreError):
    """Raised when an argument has the wrong shape or is out of range."""


class NotFoundError(CoreError):
    """Raised when an entity (queue item/post/playlist/user) cannot be found."""


class DuplicateError(CoreError):
    """Raised when a post is already in the user's queue or playlist."""


class QueueFullError(CoreError):
    """Raised when a queue or playlist would exceed its capacity ceiling."""


class EmptyPlaylistError(CoreError):
    """Raised when a playlist has no playable audio tracks."""


class AllDuplicatesError(CoreError):
    """Raised when every playable track of a playlist is already queued."""


class NotPlayableError(CoreError):
    """Raised when a post has no stored audio file."""


class AuthenticationError(CoreError):
    """Raised when a bearer token is missing or unknown."""
