"""
Tests for wavshare.core.audio and wavshare.client.media.

Audio fixtures are short silent WAV files written with the `wave` module.
"""

from __future__ import annotations

import asyncio
import wave
from pathlib import Path

import pytest

from wavshare.client import MediaError
from wavshare.client.media import HeadlessMediaElement, resolve_local_source
from wavshare.core.audio import AudioProbeError, is_audio_path, probe_audio, probe_audio_async


def _write_wav(path: Path, seconds: float, rate: int = 8000) -> Path:
    with wave.open(str(path), "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(rate)
        w.writeframes(b"\x00\x00" * int(rate * seconds))
    return path


@pytest.fixture
def short_wav(tmp_path: Path) -> Path:
    return _write_wav(tmp_path / "blip.wav", 0.2)


# =============================================================================
# Probing
# =============================================================================


class TestProbeAudio:
    """Tests for mutagen probing."""

    def test_wav_duration(self, short_wav: Path) -> None:
        info = probe_audio(short_wav)
        assert info.duration == pytest.approx(0.2, abs=0.01)
        assert info.sample_rate == 8000
        assert info.title == "blip"

    async def test_async(self, short_wav: Path) -> None:
        info = await probe_audio_async(short_wav)
        assert info.path == str(short_wav)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(AudioProbeError, match="not found"):
            probe_audio(tmp_path / "missing.mp3")

    def test_not_audio(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.wav"
        path.write_text("definitely not audio")
        with pytest.raises(AudioProbeError):
            probe_audio(path)

    def test_is_audio_path(self) -> None:
        assert is_audio_path("a/b/Song.MP3")
        assert is_audio_path(Path("x.flac"))
        assert not is_audio_path("cover.jpg")


# =============================================================================
# Media elements
# =============================================================================


class TestResolveLocalSource:
    """Tests for mapping sources to local paths."""

    def test_plain_path(self) -> None:
        assert resolve_local_source("/music/a.mp3") == Path("/music/a.mp3")

    def test_file_url(self) -> None:
        assert resolve_local_source("file:///music/My%20Song.mp3") == Path("/music/My Song.mp3")

    def test_http_is_unsupported(self) -> None:
        with pytest.raises(MediaError, match="Unsupported media source"):
            resolve_local_source("http://server/uploads/a.mp3")


class TestHeadlessMediaElement:
    """Tests for the clock-driven media element."""

    async def test_plays_to_end(self, short_wav: Path) -> None:
        element = HeadlessMediaElement(str(short_wav), tick=0.05)
        seen: list[str] = []
        ended = asyncio.Event()
        element.on("loadedmetadata", lambda: seen.append("loadedmetadata"))
        element.on("timeupdate", lambda: seen.append("timeupdate"))
        element.on("ended", ended.set)

        await element.play()
        await asyncio.wait_for(ended.wait(), timeout=5)

        assert seen[0] == "loadedmetadata"
        assert "timeupdate" in seen
        assert element.current_time == pytest.approx(element.duration)
        assert element.paused

    async def test_pause_stops_clock(self, tmp_path: Path) -> None:
        element = HeadlessMediaElement(str(_write_wav(tmp_path / "long.wav", 2.0)), tick=0.02)
        await element.play()
        await asyncio.sleep(0.1)
        element.pause()
        position = element.current_time
        await asyncio.sleep(0.1)

        assert 0 < position < element.duration
        assert element.current_time == position

    async def test_seek_is_clamped(self, tmp_path: Path) -> None:
        element = HeadlessMediaElement(str(_write_wav(tmp_path / "long.wav", 1.0)))
        await element.play()
        element.pause()

        element.current_time = 50
        assert element.current_time == pytest.approx(element.duration)
        element.current_time = -3
        assert element.current_time == 0

    async def test_unreadable_source(self, tmp_path: Path) -> None:
        element = HeadlessMediaElement(str(tmp_path / "missing.wav"))
        with pytest.raises(MediaError):
            await element.play()

    async def test_closed_element(self, short_wav: Path) -> None:
        element = HeadlessMediaElement(str(short_wav))
        element.close()
        with pytest.raises(MediaError):
            await element.play()

    def test_unknown_event(self, short_wav: Path) -> None:
        element = HeadlessMediaElement(str(short_wav))
        with pytest.raises(ValueError):
            element.on("progress", lambda: None)
