"""
User playlists.

Playlists are persistent, named and ordered collections of audio posts.
Track positions follow the same dense 0..N-1 rule as the queue and are
renumbered through `wavshare.core.db.ordering`.

Access rule: a playlist is visible to its owner, and to everybody else
only when it is public. Only the owner may change it.
"""

from __future__ import annotations

import logging
from typing import Final

from wavshare.core import (
    DuplicateError,
    NotFoundError,
    NotPlayableError,
    QueueFullError,
    ValidationError,
)
from wavshare.core.db import queries_playlists, queries_posts
from wavshare.core.db.models import PlaylistRow, PlaylistTrackRow, normalize_text
from wavshare.core.db.ordering import check_index, move_item, renumber
from wavshare.core.store import WavshareDb

logger = logging.getLogger(__name__)

MAX_PLAYLISTS_PER_USER: Final = 50
MAX_NAME_LENGTH: Final = 100
MAX_DESCRIPTION_LENGTH: Final = 500
MAX_TRACKS_PER_PLAYLIST: Final = 500


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Marks "field not supplied" for partial updates where None means "clear".
UNSET: Final = _Unset()


def _check_description(description: str | None) -> str | None:
    clean = normalize_text(description)
    if clean is not None and len(clean) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Description must be {MAX_DESCRIPTION_LENGTH} characters or less"
        )
    return clean


def _check_name(name: str | None, *, empty_message: str) -> str:
    clean = normalize_text(name)
    if not clean:
        raise ValidationError(empty_message)
    if len(clean) > MAX_NAME_LENGTH:
        raise ValidationError(f"Playlist name must be {MAX_NAME_LENGTH} characters or less")
    return clean


class PlaylistStore:
    """Playlist CRUD and track ordering on top of `WavshareDb`."""

    def __init__(self, db: WavshareDb) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Playlists
    # ------------------------------------------------------------------

    async def create(
        self,
        user_id: int,
        name: str,
        *,
        description: str | None = None,
        is_public: bool = False,
    ) -> PlaylistRow:
        clean_name = _check_name(name, empty_message="Playlist name is required")
        clean_description = _check_description(description)

        async with self._db.transaction() as conn:
            count = await queries_playlists.count_playlists(conn, user_id)
            if count >= MAX_PLAYLISTS_PER_USER:
                raise ValidationError(
                    f"Maximum {MAX_PLAYLISTS_PER_USER} playlists allowed per user"
                )
            playlist_id = await queries_playlists.insert_playlist(
                conn,
                user_id=user_id,
                name=clean_name,
                description=clean_description,
                is_public=is_public,
            )
            playlist = await queries_playlists.get_playlist(conn, playlist_id)

        if playlist is None:
            raise RuntimeError("Playlist row not found after insert.")
        logger.info("User %d created playlist %d: %s", user_id, playlist.id, playlist.name)
        return playlist

    async def update(
        self,
        user_id: int,
        playlist_id: int,
        *,
        name: str | None = None,
        description: str | None | _Unset = UNSET,
        is_public: bool | None = None,
    ) -> PlaylistRow:
        """
        Patch the supplied fields of an owned playlist.

        Passing `description=None` (or an empty string) clears it; leaving
        it UNSET keeps the stored value.
        """
        clean_name = (
            _check_name(name, empty_message="Playlist name cannot be empty")
            if name is not None
            else None
        )
        clean_description = None
        if not isinstance(description, _Unset):
            clean_description = _check_description(description)

        async with self._db.transaction() as conn:
            await self._require_owned(conn, user_id, playlist_id)
            await queries_playlists.update_playlist(
                conn,
                playlist_id,
                name=clean_name,
                description=clean_description,
                clear_description=(
                    not isinstance(description, _Unset) and clean_description is None
                ),
                is_public=is_public,
            )
            playlist = await queries_playlists.get_playlist(conn, playlist_id)

        if playlist is None:
            raise RuntimeError("Playlist row not found after update.")
        logger.debug("User %d updated playlist %d", user_id, playlist_id)
        return playlist

    async def delete(self, user_id: int, playlist_id: int) -> None:
        async with self._db.transaction() as conn:
            await self._require_owned(conn, user_id, playlist_id)
            await queries_playlists.delete_playlist(conn, playlist_id)
        logger.info("User %d deleted playlist %d", user_id, playlist_id)

    async def get(self, playlist_id: int, viewer_id: int) -> PlaylistRow:
        """A playlist with tracks, if the viewer may see it."""
        async with self._db.read() as conn:
            playlist = await queries_playlists.get_accessible_playlist(
                conn, playlist_id, viewer_id
            )
        if playlist is None:
            raise NotFoundError("Playlist not found")
        return playlist

    async def list_own(self, user_id: int) -> list[PlaylistRow]:
        async with self._db.read() as conn:
            return await queries_playlists.list_playlists_for_user(conn, user_id)

    async def list_by_user(self, owner_id: int, viewer_id: int | None) -> list[PlaylistRow]:
        """Playlists of a user: all of them for the owner, public ones otherwise (or anonymously)."""
        async with self._db.read() as conn:
            return await queries_playlists.list_playlists_for_user(
                conn, owner_id, public_only=owner_id != viewer_id
            )

    async def ordered_tracks(self, playlist_id: int, viewer_id: int) -> list[PlaylistTrackRow]:
        """Tracks of a visible playlist in position order."""
        playlist = await self.get(playlist_id, viewer_id)
        return list(playlist.tracks)

    # ------------------------------------------------------------------
    # Tracks
    # ------------------------------------------------------------------

    async def add_track(self, user_id: int, playlist_id: int, post_id: int) -> PlaylistTrackRow:
        async with self._db.transaction() as conn:
            await self._require_owned(conn, user_id, playlist_id)
            post = await queries_posts.get_post_by_id(conn, post_id)
            if post is None:
                raise NotFoundError("Post not found")
            if not post.is_playable:
                raise NotPlayableError("Only audio posts can be added to playlists")
            if await queries_playlists.get_track(conn, playlist_id, post_id) is not None:
                raise DuplicateError("Track already in playlist")
            count = await queries_playlists.count_tracks(conn, playlist_id)
            if count >= MAX_TRACKS_PER_PLAYLIST:
                raise QueueFullError(
                    f"Playlist is full (maximum {MAX_TRACKS_PER_PLAYLIST} tracks)"
                )
            await queries_playlists.insert_track(conn, playlist_id, post_id, count)
            await queries_playlists.touch_playlist(conn, playlist_id)
            track = await queries_playlists.get_track(conn, playlist_id, post_id)

        if track is None:
            raise RuntimeError("Playlist track not found after insert.")
        logger.info("Added post %d to playlist %d", post_id, playlist_id)
        return track

    async def remove_track(self, user_id: int, playlist_id: int, post_id: int) -> None:
        async with self._db.transaction() as conn:
            await self._require_owned(conn, user_id, playlist_id)
            track = await queries_playlists.get_track(conn, playlist_id, post_id)
            if track is None:
                raise NotFoundError("Track not found in playlist")
            await queries_playlists.delete_track(conn, track.id)
            remaining = await queries_playlists.list_track_ids(conn, playlist_id)
            await renumber(conn, "playlist", playlist_id, remaining)
            await queries_playlists.touch_playlist(conn, playlist_id)
        logger.info("Removed post %d from playlist %d", post_id, playlist_id)

    async def reorder_tracks(
        self, user_id: int, playlist_id: int, from_index: int, to_index: int
    ) -> list[PlaylistTrackRow]:
        async with self._db.transaction() as conn:
            await self._require_owned(conn, user_id, playlist_id)
            ids = await queries_playlists.list_track_ids(conn, playlist_id)
            if not check_index(from_index, len(ids)) or not check_index(to_index, len(ids)):
                raise ValidationError("Invalid index values")
            if from_index != to_index:
                await renumber(conn, "playlist", playlist_id, move_item(ids, from_index, to_index))
                await queries_playlists.touch_playlist(conn, playlist_id)
            return await queries_playlists.list_tracks(conn, playlist_id)

    async def _require_owned(self, conn, user_id: int, playlist_id: int) -> PlaylistRow:
        playlist = await queries_playlists.get_playlist(conn, playlist_id, with_tracks=False)
        if playlist is None or playlist.user_id != user_id:
            raise NotFoundError("Playlist not found")
        return playlist
