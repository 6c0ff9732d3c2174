"""
Per-user playback queue.

`QueueService` is the authoritative owner of the `queue_items` rows. Every
mutation runs inside a single `WavshareDb.transaction()`, ends with a full
renumbering pass and only publishes its event after the commit, so the
queue observed by anyone else always satisfies:

- positions of a user's items are exactly 0..N-1
- a post appears at most once per user
- at most `capacity` items per user

Repeat and shuffle flags are stored per user but never change the order
kept here; they are hints for the playback tier.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Sequence

import aiosqlite

from wavshare.core import (
    AllDuplicatesError,
    DuplicateError,
    EmptyPlaylistError,
    NotFoundError,
    NotPlayableError,
    QueueFullError,
    ValidationError,
)
from wavshare.core.db import queries_playlists, queries_posts, queries_queue
from wavshare.core.db.models import QueueItemRow, QueueSettingsRow, RepeatMode
from wavshare.core.db.ordering import (
    assign_positions,
    check_index,
    move_item,
    park_positions,
    renumber,
)
from wavshare.core.events import EventBus, QueueChangedEvent, QueueSettingsEvent, event_bus
from wavshare.core.store import WavshareDb

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_CAPACITY = 100


@dataclass(frozen=True, slots=True)
class QueueSnapshot:
    """Ordered queue plus the settings of one user."""

    items: tuple[QueueItemRow, ...]
    settings: QueueSettingsRow

    @property
    def post_ids(self) -> list[int]:
        return [item.post_id for item in self.items]

    def to_dict(self) -> dict[str, Any]:
        return {
            "queue": [item.to_dict() for item in self.items],
            "settings": self.settings.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class BulkAddResult:
    """Outcome of adding a playlist to the queue."""

    added_count: int
    skipped_count: int
    shuffled: bool = False
    post_ids: tuple[int, ...] = ()

    @property
    def message(self) -> str:
        suffix = " (shuffled)" if self.shuffled else ""
        return f"Added {self.added_count} tracks from playlist to queue{suffix}"


def parse_repeat_mode(value: RepeatMode | str) -> RepeatMode:
    """Accept a RepeatMode or its wire value ("off", "one", "all")."""
    if isinstance(value, RepeatMode):
        return value
    try:
        return RepeatMode(value)
    except ValueError:
        raise ValidationError('Invalid repeat mode. Must be "off", "one", or "all"') from None


class QueueService:
    """
    Queue operations for all users.

    Dependencies are passed in so tests can use an in-memory DB, a private
    event bus and a seeded random generator.
    """

    def __init__(
        self,
        db: WavshareDb,
        *,
        capacity: int = DEFAULT_QUEUE_CAPACITY,
        events: EventBus | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._db = db
        self._capacity = capacity
        self._events = events if events is not None else event_bus
        self._rng = rng if rng is not None else random.Random()

    @property
    def capacity(self) -> int:
        return self._capacity

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_queue(self, user_id: int) -> QueueSnapshot:
        """Ordered queue and settings; missing settings are reported as defaults."""
        async with self._db.read() as conn:
            items = await queries_queue.list_items(conn, user_id)
            settings = await queries_queue.get_settings(conn, user_id)
        if settings is None:
            settings = QueueSettingsRow(user_id=user_id)
        return QueueSnapshot(items=tuple(items), settings=settings)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def enqueue(self, user_id: int, post_id: int, *, front: bool = False) -> QueueItemRow:
        """
        Add a post to the queue, at the end or (front=True) at position 0.

        Raises, in this order: NotFoundError, NotPlayableError,
        DuplicateError, QueueFullError.
        """
        async with self._db.transaction() as conn:
            post = await queries_posts.get_post_by_id(conn, post_id)
            if post is None:
                raise NotFoundError("Post not found")
            if not post.is_playable:
                raise NotPlayableError("Only audio posts can be added to queue")
            if await queries_queue.get_item(conn, user_id, post_id) is not None:
                raise DuplicateError("Track already in queue")

            count = await queries_queue.count_items(conn, user_id)
            if count >= self._capacity:
                raise QueueFullError(f"Queue is full (maximum {self._capacity} tracks)")

            if front:
                existing = await queries_queue.list_item_ids(conn, user_id)
                await self._insert_block_at_front(conn, user_id, [post_id], existing)
            else:
                last = await queries_queue.max_position(conn, user_id)
                await queries_queue.insert_item(
                    conn, user_id, post_id, 0 if last is None else last + 1
                )

            item = await queries_queue.get_item(conn, user_id, post_id)
            count += 1

        if item is None:
            raise RuntimeError("Queue item not found after insert.")
        action = "add_next" if front else "add"
        logger.info("User %d queued post %d (%s, size=%d)", user_id, post_id, action, count)
        await self._events.publish(
            QueueChangedEvent(user_id=user_id, action=action, count=count, post_ids=(post_id,))
        )
        return item

    async def remove(self, user_id: int, post_id: int) -> QueueItemRow:
        """Remove a post from the queue and close the gap it leaves."""
        async with self._db.transaction() as conn:
            item = await queries_queue.get_item(conn, user_id, post_id)
            if item is None:
                raise NotFoundError("Track not found in queue")
            await queries_queue.delete_item(conn, item.id)
            remaining = await queries_queue.list_item_ids(conn, user_id)
            await renumber(conn, "queue", user_id, remaining)

        logger.info("User %d removed post %d from queue (size=%d)", user_id, post_id, len(remaining))
        await self._events.publish(
            QueueChangedEvent(
                user_id=user_id, action="remove", count=len(remaining), post_ids=(post_id,)
            )
        )
        return item

    async def reorder(self, user_id: int, from_index: int, to_index: int) -> list[QueueItemRow]:
        """
        Move the item at `from_index` to `to_index` and rewrite all positions.

        Both indexes must address existing items. Moving an item onto itself
        writes nothing.
        """
        async with self._db.transaction() as conn:
            ids = await queries_queue.list_item_ids(conn, user_id)
            if not check_index(from_index, len(ids)) or not check_index(to_index, len(ids)):
                raise ValidationError("Invalid index values")
            if from_index != to_index:
                await renumber(conn, "queue", user_id, move_item(ids, from_index, to_index))
            items = await queries_queue.list_items(conn, user_id)

        if from_index == to_index:
            return items

        logger.info("User %d moved queue item %d -> %d", user_id, from_index, to_index)
        await self._events.publish(
            QueueChangedEvent(user_id=user_id, action="reorder", count=len(items))
        )
        return items

    async def clear(self, user_id: int) -> int:
        """Remove every item of the user's queue; returns how many were removed."""
        async with self._db.transaction() as conn:
            removed = await queries_queue.delete_all(conn, user_id)

        logger.info("User %d cleared queue (%d items)", user_id, removed)
        await self._events.publish(QueueChangedEvent(user_id=user_id, action="clear", count=0))
        return removed

    async def add_playlist_to_queue(
        self,
        user_id: int,
        playlist_id: int,
        *,
        shuffle: bool = False,
        play_next: bool = False,
    ) -> BulkAddResult:
        """
        Add the playable tracks of a playlist as one block.

        Tracks already in the queue are skipped and counted. The block keeps
        playlist order unless `shuffle` is set, and lands at the front of the
        queue (`play_next`) or after the last item.
        """
        async with self._db.transaction() as conn:
            playlist = await queries_playlists.get_accessible_playlist(
                conn, playlist_id, user_id
            )
            if playlist is None:
                raise NotFoundError("Playlist not found")
            if not playlist.tracks:
                raise EmptyPlaylistError("Playlist is empty")

            playable = [t.post_id for t in playlist.tracks if t.post and t.post.is_playable]
            if not playable:
                raise EmptyPlaylistError("No audio tracks found in playlist")

            queued = await queries_queue.queued_post_ids(conn, user_id, playable)
            to_add = [post_id for post_id in playable if post_id not in queued]
            if not to_add:
                raise AllDuplicatesError(
                    "All tracks from this playlist are already in your queue"
                )

            if shuffle:
                self._rng.shuffle(to_add)

            existing = await queries_queue.list_item_ids(conn, user_id)
            if len(existing) + len(to_add) > self._capacity:
                raise QueueFullError(
                    f"Cannot add playlist. Queue would exceed maximum of {self._capacity} "
                    f"tracks (current: {len(existing)}, adding: {len(to_add)})"
                )

            if play_next:
                await self._insert_block_at_front(conn, user_id, to_add, existing)
            else:
                last = await queries_queue.max_position(conn, user_id)
                await queries_queue.insert_items(
                    conn, user_id, to_add, 0 if last is None else last + 1
                )

        result = BulkAddResult(
            added_count=len(to_add),
            skipped_count=len(playable) - len(to_add),
            shuffled=shuffle,
            post_ids=tuple(to_add),
        )
        logger.info(
            "User %d added playlist %d to queue: %d added, %d skipped%s",
            user_id,
            playlist_id,
            result.added_count,
            result.skipped_count,
            " (shuffled)" if shuffle else "",
        )
        await self._events.publish(
            QueueChangedEvent(
                user_id=user_id,
                action="add_playlist",
                count=len(existing) + len(to_add),
                post_ids=result.post_ids,
            )
        )
        return result

    async def _insert_block_at_front(
        self,
        conn: aiosqlite.Connection,
        user_id: int,
        post_ids: Sequence[int],
        existing_ids: Sequence[int],
    ) -> list[int]:
        """
        Insert `post_ids` ahead of `existing_ids` (both in order).

        Existing rows are parked on -1..-N first and the new rows go to
        -(N+K)..-(N+1), so no intermediate state violates the unique
        position constraint. A single assign pass then writes 0..N+K-1.
        """
        await park_positions(conn, "queue", user_id)
        start = -(len(existing_ids) + len(post_ids))
        new_ids = await queries_queue.insert_items(conn, user_id, post_ids, start)
        await assign_positions(conn, "queue", user_id, [*new_ids, *existing_ids])
        return new_ids

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_settings(self, user_id: int) -> QueueSettingsRow:
        """Stored settings, creating the default row on first access."""
        async with self._db.transaction() as conn:
            return await queries_queue.ensure_settings(conn, user_id)

    async def update_settings(
        self,
        user_id: int,
        *,
        shuffle_mode: bool | None = None,
        repeat_mode: RepeatMode | str | None = None,
    ) -> QueueSettingsRow:
        """Patch only the supplied fields."""
        mode = parse_repeat_mode(repeat_mode) if repeat_mode is not None else None
        async with self._db.transaction() as conn:
            await queries_queue.ensure_settings(conn, user_id)
            await queries_queue.update_settings(
                conn, user_id, shuffle_mode=shuffle_mode, repeat_mode=mode
            )
            settings = await queries_queue.ensure_settings(conn, user_id)

        logger.info(
            "User %d queue settings: shuffle=%s repeat=%s",
            user_id,
            settings.shuffle_mode,
            settings.repeat_mode.value,
        )
        await self._events.publish(
            QueueSettingsEvent(
                user_id=user_id,
                shuffle_mode=settings.shuffle_mode,
                repeat_mode=settings.repeat_mode.value,
            )
        )
        return settings
