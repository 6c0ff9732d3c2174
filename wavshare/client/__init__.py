"""
wavshare playback client.

The client tier mirrors a user's server-side queue and plays it:

- WavshareApiClient: async REST client (httpx)
- AudioPlaybackController: transport state machine around one media element
- HeadlessMediaElement: media element that plays local files on an asyncio clock
- QueueSync: keeps the controller's track list in step with the server queue
  and removes finished tracks from it

Exceptions raised by the client live here so callers can catch them without
importing the individual modules.
"""

from __future__ import annotations


class ClientError(Exception):
    """Base class for client-side failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NetworkError(ClientError):
    """The server could not be reached or the request timed out."""


class ApiError(ClientError):
    """The server answered with an error status and a `{message}` body."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        return f"{self.message} (HTTP {self.status_code})"


class MediaError(ClientError):
    """A media element could not load or play its source."""


__all__ = ["ApiError", "ClientError", "MediaError", "NetworkError"]
