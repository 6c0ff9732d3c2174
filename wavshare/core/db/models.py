"""
DB models (DTOs) and small normalization helpers.

This module is intentionally lightweight:
- No DB connection knowledge
- No SQL
- Pure dataclasses + helper functions

`to_dict()` produces the camelCase JSON shape used by the REST API.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PostType(Enum):
    """Kind of content a post carries."""

    AUDIO_FILE = "AUDIO_FILE"
    YOUTUBE_LINK = "YOUTUBE_LINK"


class RepeatMode(Enum):
    """Repeat mode stored in the queue settings."""

    OFF = "off"  # No repeat
    ONE = "one"  # Repeat current track
    ALL = "all"  # Repeat entire queue


@dataclass(frozen=True, slots=True)
class UserRow:
    """User record as stored in SQLite."""

    id: int
    username: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "username": self.username}


@dataclass(frozen=True, slots=True)
class PostRow:
    """
    Post record as stored in SQLite.

    Notes:
    - `file_path` is relative to the uploads root and doubles as the URL path.
    - `parent_post_id` records a one-hop remix relation.
    - `user` is denormalized for list queries that join the uploader.
    """

    id: int
    user_id: int
    title: str
    post_type: PostType
    created_at: str
    updated_at: str
    description: str | None = None
    file_path: str | None = None
    youtube_url: str | None = None
    cover_art: str | None = None
    parent_post_id: int | None = None
    user: UserRow | None = None

    @property
    def is_playable(self) -> bool:
        """Only posts with a stored audio file can be queued."""
        return self.post_type == PostType.AUDIO_FILE and bool(self.file_path)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description,
            "postType": self.post_type.value,
            "filePath": self.file_path,
            "youtubeUrl": self.youtube_url,
            "coverArt": self.cover_art,
            "parentPostId": self.parent_post_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.user is not None:
            result["user"] = self.user.to_dict()
        return result


@dataclass(frozen=True, slots=True)
class QueueItemRow:
    """One post enqueued by one user."""

    id: int
    user_id: int
    post_id: int
    position: int
    created_at: str
    updated_at: str
    post: PostRow | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "userId": self.user_id,
            "postId": self.post_id,
            "position": self.position,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.post is not None:
            result["post"] = self.post.to_dict()
        return result


@dataclass(frozen=True, slots=True)
class QueueSettingsRow:
    """Per-user shuffle/repeat flags, independent of the queue contents."""

    user_id: int
    shuffle_mode: bool = False
    repeat_mode: RepeatMode = RepeatMode.OFF
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "shuffleMode": self.shuffle_mode,
            "repeatMode": self.repeat_mode.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True, slots=True)
class PlaylistTrackRow:
    """A post placed in a playlist."""

    id: int
    playlist_id: int
    post_id: int
    position: int
    added_at: str
    post: PostRow | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "playlistId": self.playlist_id,
            "postId": self.post_id,
            "position": self.position,
            "addedAt": self.added_at,
        }
        if self.post is not None:
            result["post"] = self.post.to_dict()
        return result


@dataclass(frozen=True, slots=True)
class PlaylistRow:
    """Playlist record, optionally with its ordered tracks."""

    id: int
    user_id: int
    name: str
    is_public: bool
    created_at: str
    updated_at: str
    description: str | None = None
    track_count: int = 0
    tracks: tuple[PlaylistTrackRow, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "description": self.description,
            "isPublic": self.is_public,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "trackCount": self.track_count,
            "tracks": [t.to_dict() for t in self.tracks],
        }


def normalize_text(value: str | None) -> str | None:
    """
    Normalize optional text fields:
    - strip whitespace
    - coerce empty strings to None
    """
    if value is None:
        return None
    v = value.strip()
    return v if v else None
