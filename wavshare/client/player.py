"""
Audio playback controller.

`AudioPlaybackController` owns exactly one media element at a time and
advances through an in-memory track list. The list is a passive mirror of
the server queue: `QueueSync` replaces it with `set_queue()` after every
server change, which also resets the current index to -1.

Repeat and shuffle are not applied here; the controller plays the list in
order and stops after the last track.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from wavshare.client.media import HeadlessMediaElement, MediaElement, MediaFactory
from wavshare.core.events import EventBus, PlaybackStatusEvent, PlaybackTrackEndedEvent, event_bus

logger = logging.getLogger(__name__)

DEFAULT_VOLUME = 0.7
DEFAULT_ADVANCE_DELAY = 0.1


class PlaybackState(Enum):
    """Transport state derived from PlayerState."""

    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True, slots=True)
class PlaybackTrack:
    """A queue entry shaped for the player."""

    id: int
    title: str
    artist: str
    url: str
    post_id: int
    user_id: int
    cover_art: str | None = None
    duration: float | None = None

    @classmethod
    def from_queue_item(cls, item: dict[str, Any], url: str) -> PlaybackTrack:
        """Build a track from a `/queue` item (camelCase JSON)."""
        post = item["post"]
        user = post.get("user") or {}
        return cls(
            id=int(post["id"]),
            title=post["title"],
            artist=user.get("username", ""),
            url=url,
            post_id=int(item["postId"]),
            user_id=int(user.get("id", post.get("userId", 0))),
            cover_art=post.get("coverArt"),
        )


@dataclass
class PlayerState:
    """Mutable transport state, owned by the controller."""

    current_track: PlaybackTrack | None = None
    is_playing: bool = False
    paused: bool = False  # paused by pause(), as opposed to stopped or ended
    volume: float = DEFAULT_VOLUME
    current_time: float = 0.0
    duration: float = 0.0
    current_track_index: int = -1

    @property
    def state(self) -> PlaybackState:
        if self.current_track is None:
            return PlaybackState.IDLE
        if self.is_playing:
            return PlaybackState.PLAYING
        if self.paused:
            return PlaybackState.PAUSED
        return PlaybackState.IDLE


def _clamp_volume(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class AudioPlaybackController:
    """
    Transport controls over a single media element.

    Args:
        media_factory: Builds a media element for a track URL.
        events: Bus for playback.status / playback.track_ended events.
        advance_delay: Seconds between "ended" and starting the next track.
        volume: Initial volume (clamped to 0..1).
    """

    def __init__(
        self,
        media_factory: MediaFactory = HeadlessMediaElement,
        *,
        events: EventBus | None = None,
        advance_delay: float = DEFAULT_ADVANCE_DELAY,
        volume: float = DEFAULT_VOLUME,
    ) -> None:
        self._media_factory = media_factory
        self._events = events if events is not None else event_bus
        self._advance_delay = advance_delay
        self._state = PlayerState(volume=_clamp_volume(volume))
        self._queue: list[PlaybackTrack] = []
        self._element: MediaElement | None = None
        self._advance_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlayerState:
        return self._state

    @property
    def playback_state(self) -> PlaybackState:
        return self._state.state

    @property
    def queue(self) -> tuple[PlaybackTrack, ...]:
        return tuple(self._queue)

    @property
    def element(self) -> MediaElement | None:
        return self._element

    def _status_event(self) -> PlaybackStatusEvent:
        track = self._state.current_track
        return PlaybackStatusEvent(
            state=self._state.state.value,
            post_id=track.post_id if track else None,
            track_index=self._state.current_track_index,
            volume=self._state.volume,
            current_time=self._state.current_time,
            duration=self._state.duration,
        )

    async def _notify(self) -> None:
        await self._events.publish(self._status_event())

    # ------------------------------------------------------------------
    # Element lifecycle
    # ------------------------------------------------------------------

    def _teardown(self) -> None:
        if self._element is not None:
            try:
                self._element.pause()
                self._element.close()
            except Exception:
                logger.exception("Error while releasing media element")
            self._element = None

    def _cancel_advance(self) -> None:
        task = self._advance_task
        self._advance_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _bind(self, element: MediaElement) -> None:
        def on_metadata() -> None:
            if element is self._element:
                self._state.duration = float(element.duration or 0.0)

        def on_timeupdate() -> None:
            if element is self._element:
                self._state.current_time = float(element.current_time)

        def on_ended() -> None:
            if element is self._element:
                self._cancel_advance()
                self._advance_task = asyncio.create_task(self._handle_ended(element))

        element.on("loadedmetadata", on_metadata)
        element.on("timeupdate", on_timeupdate)
        element.on("ended", on_ended)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def play_track(self, track: PlaybackTrack, index: int | None = None) -> None:
        """
        Load and start a track, replacing the current element.

        `index` is the track's place in the mirrored queue; when omitted it is
        looked up by post id (-1 if the track is not queued). Start failures
        are logged and leave the state as "playing" until the next action.
        """
        self._cancel_advance()
        self._teardown()

        if index is None:
            index = next(
                (i for i, t in enumerate(self._queue) if t.post_id == track.post_id), -1
            )

        element = self._media_factory(track.url)
        element.volume = self._state.volume
        self._bind(element)
        self._element = element

        self._state.current_track = track
        self._state.current_track_index = index
        self._state.is_playing = True
        self._state.paused = False
        self._state.current_time = 0.0
        self._state.duration = float(track.duration or 0.0)

        try:
            await element.play()
        except Exception as e:
            logger.error("Failed to start %s (%s): %s", track.title, track.url, e)
        else:
            logger.debug("Playing %s (index %d)", track.title, index)
        await self._notify()

    async def pause(self) -> None:
        if self._element is None:
            return
        self._element.pause()
        self._state.is_playing = False
        self._state.paused = True
        await self._notify()

    async def resume(self) -> None:
        if self._element is None:
            return
        try:
            await self._element.play()
        except Exception as e:
            logger.error("Failed to resume playback: %s", e)
        self._state.is_playing = True
        self._state.paused = False
        await self._notify()

    async def play_next(self) -> PlaybackTrack | None:
        """Play the entry after the current index; None at the end of the list."""
        return await self.play_from_queue(self._state.current_track_index + 1)

    async def play_previous(self) -> PlaybackTrack | None:
        """Play the entry before the current index; None at the start of the list."""
        return await self.play_from_queue(self._state.current_track_index - 1)

    async def play_from_queue(self, index: int) -> PlaybackTrack | None:
        """Jump to an entry of the mirrored queue; out of range does nothing."""
        if not 0 <= index < len(self._queue):
            return None
        track = self._queue[index]
        await self.play_track(track, index=index)
        return track

    def seek(self, time: float) -> None:
        if self._element is None:
            return
        self._element.current_time = max(0.0, float(time))
        self._state.current_time = float(self._element.current_time)

    def set_volume(self, volume: float) -> None:
        self._state.volume = _clamp_volume(volume)
        if self._element is not None:
            self._element.volume = self._state.volume

    def set_queue(self, tracks: Sequence[PlaybackTrack], *, index: int = -1) -> None:
        """
        Replace the mirrored list and reset the current index.

        `index` sets the position `play_next()` continues from (clamped to
        -1..len-1); the default -1 restarts at the head of the list.
        """
        self._queue = list(tracks)
        self._state.current_track_index = max(-1, min(index, len(self._queue) - 1))

    async def stop(self) -> None:
        """Stop playback and unload the current track."""
        self._cancel_advance()
        self._teardown()
        self._reset_track()
        await self._notify()

    async def close(self) -> None:
        self._cancel_advance()
        self._teardown()
        self._reset_track()

    def _reset_track(self) -> None:
        self._state.current_track = None
        self._state.current_track_index = -1
        self._state.is_playing = False
        self._state.paused = False
        self._state.current_time = 0.0
        self._state.duration = 0.0

    # ------------------------------------------------------------------
    # Auto-advance
    # ------------------------------------------------------------------

    async def _handle_ended(self, element: MediaElement) -> None:
        track = self._state.current_track
        self._state.is_playing = False
        self._state.paused = False
        self._state.current_time = 0.0
        await self._notify()

        # Subscribers (queue sync) may replace the queue before we advance
        await self._events.publish(
            PlaybackTrackEndedEvent(
                post_id=track.post_id if track else None,
                track_index=self._state.current_track_index,
            )
        )

        await asyncio.sleep(self._advance_delay)
        if element is not self._element:
            # Another track was started meanwhile
            return

        next_track = await self.play_next()
        if next_track is None:
            logger.debug("End of queue reached")
            self._teardown()
            self._reset_track()
            await self._notify()
