"""
Queue sync between the server and the playback controller.

`QueueSync` holds the last known server queue, pushes it into the
controller after every successful change and removes finished tracks from
the server queue. Two paths detect a finished track:

- event-driven: the controller's `playback.track_ended` event; the track is
  removed before the controller advances
- polling: every `poll_interval` seconds the previous and current
  `(current_track, is_playing)` pairs are compared; a track that was playing
  and stopped without another track taking its place counts as finished

A track is only removed while it is still in the local queue, so both paths
together remove it once. Removal failures are logged, never raised.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from wavshare.client import ClientError
from wavshare.client.api import WavshareApiClient
from wavshare.client.player import AudioPlaybackController, PlaybackState, PlaybackTrack
from wavshare.core.db.ordering import check_index, move_item
from wavshare.core.events import Event, EventBus, PlaybackTrackEndedEvent, event_bus

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[ClientError], None]


class QueueSync:
    """
    Keeps a controller's track list in step with the user's server queue.

    Args:
        api: Authenticated API client.
        controller: Controller whose queue mirrors the server queue.
        events: Bus the controller publishes on.
        poll_interval: Seconds between completion checks.
        track_url: Maps a post's file path to the URL handed to the media
            element (default: the server's /uploads URL).
        on_error: Called with the error when a user action fails.
    """

    def __init__(
        self,
        api: WavshareApiClient,
        controller: AudioPlaybackController,
        *,
        events: EventBus | None = None,
        poll_interval: float = 1.0,
        track_url: Callable[[str], str] | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._api = api
        self._controller = controller
        self._events = events if events is not None else event_bus
        self._poll_interval = poll_interval
        self._track_url = track_url or api.track_url
        self._on_error = on_error

        self._items: list[dict[str, Any]] = []
        self._settings: dict[str, Any] | None = None
        self._pending_removals: set[int] = set()

        self._previous: tuple[PlaybackTrack | None, bool] = (None, False)
        self._poll_task: asyncio.Task | None = None
        self._subscribed = False

    # ------------------------------------------------------------------
    # Local state
    # ------------------------------------------------------------------

    @property
    def items(self) -> list[dict[str, Any]]:
        return list(self._items)

    @property
    def settings(self) -> dict[str, Any] | None:
        return self._settings

    @property
    def post_ids(self) -> list[int]:
        return [int(item["postId"]) for item in self._items]

    def is_queued(self, post_id: int) -> bool:
        return any(int(item["postId"]) == post_id for item in self._items)

    def position_of(self, post_id: int) -> int | None:
        for index, item in enumerate(self._items):
            if int(item["postId"]) == post_id:
                return index
        return None

    def _apply(self, items: list[dict[str, Any]], *, index: int = -1) -> None:
        self._items = list(items)
        tracks = [
            PlaybackTrack.from_queue_item(item, self._track_url(item["post"]["filePath"]))
            for item in self._items
        ]
        self._controller.set_queue(tracks, index=index)

    def _report(self, error: ClientError) -> None:
        if self._on_error is not None:
            try:
                self._on_error(error)
            except Exception:
                logger.exception("Error in queue error callback")

    async def _call(self, coro) -> dict[str, Any]:
        try:
            return await coro
        except ClientError as e:
            self._report(e)
            raise

    # ------------------------------------------------------------------
    # Server operations
    # ------------------------------------------------------------------

    async def load(self) -> list[dict[str, Any]]:
        """Fetch the queue and settings and push the queue into the controller."""
        data = await self._call(self._api.get_queue())
        self._settings = data.get("settings")
        self._apply(data.get("queue", []))
        return self.items

    async def add(self, post_id: int) -> dict[str, Any]:
        data = await self._call(self._api.add_to_queue(post_id))
        await self.load()
        return data["queueItem"]

    async def add_next(self, post_id: int) -> dict[str, Any]:
        data = await self._call(self._api.add_to_queue_next(post_id))
        await self.load()
        return data["queueItem"]

    async def remove(self, post_id: int) -> None:
        await self._call(self._api.remove_from_queue(post_id))
        self._apply([item for item in self._items if int(item["postId"]) != post_id])

    async def clear(self) -> None:
        await self._call(self._api.clear_queue())
        self._apply([])

    async def add_playlist(
        self, playlist_id: int, *, shuffle: bool = False, play_next: bool = False
    ) -> dict[str, Any]:
        data = await self._call(
            self._api.add_playlist_to_queue(playlist_id, shuffle=shuffle, play_next=play_next)
        )
        await self.load()
        return data

    async def update_settings(
        self, *, shuffle_mode: bool | None = None, repeat_mode: str | None = None
    ) -> dict[str, Any]:
        self._settings = await self._call(
            self._api.update_queue_settings(shuffle_mode=shuffle_mode, repeat_mode=repeat_mode)
        )
        return self._settings

    async def reorder(self, from_index: int, to_index: int) -> None:
        """
        Move an item locally first, then confirm with the server.

        On failure the previous order is restored (and pushed into the
        controller again), the error callback is told and the error re-raised.
        """
        snapshot = list(self._items)
        if check_index(from_index, len(snapshot)) and check_index(to_index, len(snapshot)):
            self._apply(move_item(snapshot, from_index, to_index))
        try:
            await self._api.reorder_queue(from_index, to_index)
        except ClientError as e:
            logger.warning("Reorder %d -> %d rejected, rolling back: %s", from_index, to_index, e)
            self._apply(snapshot)
            self._report(e)
            raise

    # ------------------------------------------------------------------
    # Completed tracks
    # ------------------------------------------------------------------

    async def remove_completed(self, post_id: int) -> bool:
        """
        Remove a finished track from the server queue.

        Returns True if it was removed. Failures are logged only.
        """
        if not self.is_queued(post_id) or post_id in self._pending_removals:
            return False
        self._pending_removals.add(post_id)
        try:
            await self._api.remove_from_queue(post_id)
        except ClientError as e:
            logger.warning("Failed to auto-remove completed track %d: %s", post_id, e)
            return False
        finally:
            self._pending_removals.discard(post_id)

        # Keep play_next() on the track that followed the finished one
        position = self.position_of(post_id)
        index = -1
        if position is not None and self._controller.state.current_track_index == position:
            index = position - 1
        self._apply(
            [item for item in self._items if int(item["postId"]) != post_id], index=index
        )
        logger.debug("Removed completed track %d from queue", post_id)
        return True

    async def check_completion(self) -> int | None:
        """
        One polling step; returns the post id removed, if any.

        Previously playing, now not playing and not paused, with no other
        track current: the previous track completed.
        """
        state = self._controller.state
        current = (state.current_track, state.is_playing)
        previous_track, was_playing = self._previous
        self._previous = current

        if previous_track is None or not was_playing or state.is_playing:
            return None
        if self._controller.playback_state == PlaybackState.PAUSED:
            return None
        if state.current_track is not None and state.current_track.post_id != previous_track.post_id:
            return None
        if await self.remove_completed(previous_track.post_id):
            return previous_track.post_id
        return None

    async def _on_track_ended(self, event: Event) -> None:
        if isinstance(event, PlaybackTrackEndedEvent) and event.post_id is not None:
            await self.remove_completed(event.post_id)

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.check_completion()
            except Exception:
                logger.exception("Completion check failed")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, *, poll: bool = True) -> None:
        """Subscribe to track-ended events and start polling."""
        if not self._subscribed:
            await self._events.subscribe("playback.track_ended", self._on_track_ended)
            self._subscribed = True
        if poll and self._poll_task is None:
            self._poll_task = asyncio.create_task(self._poll_loop())
        logger.debug("Queue sync started (poll=%s)", poll)

    async def stop(self) -> None:
        if self._subscribed:
            await self._events.unsubscribe("playback.track_ended", self._on_track_ended)
            self._subscribed = False
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        logger.debug("Queue sync stopped")
