"""
Media elements for the playback controller.

A media element plays exactly one source and reports progress through three
reactions, registered with `on()`:

- "loadedmetadata": the duration is known
- "timeupdate": `current_time` moved
- "ended": playback reached the end

`HeadlessMediaElement` plays local audio files (plain paths or `file://`
URLs) on an asyncio clock, without producing sound. The duration comes from
mutagen. It is what the CLI uses and what tests replace with fakes.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Protocol
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from wavshare.client import MediaError
from wavshare.core.audio import AudioProbeError, probe_audio_async

logger = logging.getLogger(__name__)

MEDIA_EVENTS = ("loadedmetadata", "timeupdate", "ended")

Reaction = Callable[[], None]


class MediaElement(Protocol):
    """What the playback controller needs from a media element."""

    volume: float
    duration: float

    @property
    def current_time(self) -> float: ...

    @current_time.setter
    def current_time(self, value: float) -> None: ...

    def on(self, event: str, callback: Reaction) -> None: ...

    async def play(self) -> None: ...

    def pause(self) -> None: ...

    def close(self) -> None: ...


MediaFactory = Callable[[str], MediaElement]


def resolve_local_source(source: str) -> Path:
    """Map a plain path or `file://` URL to a local path (MediaError otherwise)."""
    parsed = urlparse(source)
    if parsed.scheme == "file":
        return Path(url2pathname(unquote(parsed.path)))
    if len(parsed.scheme) <= 1:
        # Plain paths; a Windows drive letter parses as a one-letter scheme
        return Path(source)
    raise MediaError(f"Unsupported media source: {source}")


class HeadlessMediaElement:
    """
    Media element driven by the event loop clock.

    Args:
        source: Local path or file:// URL.
        tick: Seconds between "timeupdate" reactions.
    """

    def __init__(self, source: str, *, tick: float = 0.25) -> None:
        self.source = source
        self.volume = 1.0
        self.duration = 0.0
        self.paused = True
        self._tick = tick
        self._position = 0.0
        self._loaded = False
        self._closed = False
        self._task: asyncio.Task | None = None
        self._listeners: dict[str, list[Reaction]] = {name: [] for name in MEDIA_EVENTS}

    @property
    def current_time(self) -> float:
        return self._position

    @current_time.setter
    def current_time(self, value: float) -> None:
        upper = self.duration if self._loaded else value
        self._position = max(0.0, min(float(value), upper))

    def on(self, event: str, callback: Reaction) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown media event: {event}")
        self._listeners[event].append(callback)

    def _emit(self, event: str) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback()
            except Exception:
                logger.exception("Error in %s reaction for %s", event, self.source)

    async def _load(self) -> None:
        path = resolve_local_source(self.source)
        try:
            info = await probe_audio_async(path)
        except AudioProbeError as e:
            raise MediaError(str(e)) from e
        if not info.duration:
            raise MediaError(f"Unknown duration: {self.source}")
        self.duration = info.duration
        self._loaded = True
        self._emit("loadedmetadata")

    async def play(self) -> None:
        if self._closed:
            raise MediaError("Media element is closed")
        if not self._loaded:
            await self._load()
        if self._position >= self.duration:
            self._position = 0.0
        self.paused = False
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        last = loop.time()
        while not self.paused:
            await asyncio.sleep(min(self._tick, max(self.duration - self._position, 0.0)))
            now = loop.time()
            self._position = min(self._position + (now - last), self.duration)
            last = now
            self._emit("timeupdate")
            if self._position >= self.duration:
                self.paused = True
                self._task = None
                self._emit("ended")
                return

    def pause(self) -> None:
        self.paused = True
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def close(self) -> None:
        self.pause()
        self._closed = True
        for listeners in self._listeners.values():
            listeners.clear()
