"""
Audio file probing with mutagen.

Used by the CLI when registering local files as posts and by the headless
media element to learn a track's duration.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from mutagen import File as mutagen_file
from mutagen import MutagenError

logger = logging.getLogger(__name__)

# Extensions accepted for audio posts.
AUDIO_EXTENSIONS = frozenset({".mp3", ".flac", ".ogg", ".opus", ".m4a", ".mp4", ".aac", ".wav"})


class AudioProbeError(ValueError):
    """Raised when a file is missing or not readable as audio."""


@dataclass(frozen=True, slots=True)
class AudioInfo:
    path: str
    duration: float | None = None
    title: str | None = None
    artist: str | None = None
    bitrate: int | None = None
    sample_rate: int | None = None


def _first_text(value: Any) -> str | None:
    if value is None:
        return None
    # ID3 frames expose .text, Vorbis/MP4 tags are lists of str
    text = getattr(value, "text", value)
    if isinstance(text, (list, tuple)):
        text = text[0] if text else None
    if text is None:
        return None
    s = str(text).strip()
    return s or None


def _tags_get(tags: Any, keys: Iterable[str]) -> Any:
    if not tags:
        return None
    for key in keys:
        try:
            if key in tags:
                return tags[key]
        except (KeyError, TypeError, ValueError):
            continue
    return None


def probe_audio(path: str | Path) -> AudioInfo:
    """
    Read duration and basic tags of a local audio file.

    Synchronous; use `probe_audio_async` from the event loop.
    """
    p = Path(path)
    if not p.is_file():
        raise AudioProbeError(f"Audio file not found: {p}")
    try:
        audio = mutagen_file(p)
    except MutagenError as e:
        raise AudioProbeError(f"Cannot read audio file {p}: {e}") from e
    if audio is None:
        raise AudioProbeError(f"Unsupported or unreadable audio file: {p}")

    duration: float | None = None
    bitrate: int | None = None
    sample_rate: int | None = None
    info = getattr(audio, "info", None)
    if info is not None:
        length = getattr(info, "length", None)
        if isinstance(length, (int, float)) and length > 0:
            duration = float(length)
        br = getattr(info, "bitrate", None)
        if isinstance(br, int) and br > 0:
            bitrate = br
        sr = getattr(info, "sample_rate", None)
        if isinstance(sr, int) and sr > 0:
            sample_rate = sr

    tags = getattr(audio, "tags", None)
    # Keys: ID3=TIT2/TPE1, Vorbis=title/artist, MP4=©nam/©ART
    title = _first_text(_tags_get(tags, ("TIT2", "title", "TITLE", "©nam"))) or p.stem
    artist = _first_text(_tags_get(tags, ("TPE1", "artist", "ARTIST", "©ART")))

    logger.debug("Probed %s: duration=%s title=%s", p, duration, title)
    return AudioInfo(
        path=str(p),
        duration=duration,
        title=title,
        artist=artist,
        bitrate=bitrate,
        sample_rate=sample_rate,
    )


async def probe_audio_async(path: str | Path) -> AudioInfo:
    """Run `probe_audio` in a worker thread."""
    return await asyncio.to_thread(probe_audio, path)


def is_audio_path(path: str | Path) -> bool:
    return Path(path).suffix.lower() in AUDIO_EXTENSIONS
