"""
Shared fixtures: an in-memory database with two users, a post factory and
fake media elements for the playback controller.
"""

from __future__ import annotations

import random
from typing import Awaitable, Callable

import pytest

from wavshare.client import MediaError
from wavshare.core.db.models import PostRow, PostType, UserRow
from wavshare.core.events import EventBus
from wavshare.core.playlists import PlaylistStore
from wavshare.core.queue import QueueService
from wavshare.core.store import WavshareDb

PostFactory = Callable[..., Awaitable[PostRow]]


@pytest.fixture
async def db() -> WavshareDb:
    """Create an in-memory database for testing."""
    db = WavshareDb(":memory:")
    await db.open()
    await db.ensure_schema()
    yield db
    await db.close()


@pytest.fixture
async def alice(db: WavshareDb) -> UserRow:
    return await db.create_user("alice")


@pytest.fixture
async def bob(db: WavshareDb) -> UserRow:
    return await db.create_user("bob")


@pytest.fixture
def make_post(db: WavshareDb, alice: UserRow) -> PostFactory:
    """Create audio posts owned by alice unless told otherwise."""
    counter = 0

    async def _make(
        title: str | None = None,
        *,
        user: UserRow | None = None,
        youtube: bool = False,
    ) -> PostRow:
        nonlocal counter
        counter += 1
        name = title or f"Track {counter}"
        if youtube:
            return await db.create_post(
                user_id=(user or alice).id,
                title=name,
                post_type=PostType.YOUTUBE_LINK,
                youtube_url=f"https://youtube.com/watch?v={counter}",
            )
        return await db.create_post(
            user_id=(user or alice).id,
            title=name,
            file_path=f"alice/track-{counter}.mp3",
        )

    return _make


@pytest.fixture
def events() -> EventBus:
    """A private event bus so tests never share subscriptions."""
    return EventBus()


@pytest.fixture
def queue_service(db: WavshareDb, events: EventBus) -> QueueService:
    return QueueService(db, events=events, rng=random.Random(1234))


@pytest.fixture
def playlist_store(db: WavshareDb) -> PlaylistStore:
    return PlaylistStore(db)


# =============================================================================
# Fake media
# =============================================================================


class FakeMediaElement:
    """Media element whose reactions are fired by the test."""

    def __init__(self, source: str, *, fail: bool = False) -> None:
        self.source = source
        self.volume = 1.0
        self.duration = 0.0
        self.playing = False
        self.closed = False
        self.play_calls = 0
        self._fail = fail
        self._time = 0.0
        self._listeners: dict[str, list] = {}

    @property
    def current_time(self) -> float:
        return self._time

    @current_time.setter
    def current_time(self, value: float) -> None:
        self._time = min(float(value), self.duration) if self.duration else float(value)

    def on(self, event: str, callback) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def emit(self, event: str) -> None:
        for callback in self._listeners.get(event, []):
            callback()

    async def play(self) -> None:
        self.play_calls += 1
        if self._fail:
            raise MediaError(f"cannot play {self.source}")
        self.playing = True

    def pause(self) -> None:
        self.playing = False

    def close(self) -> None:
        self.closed = True
        self._listeners.clear()

    def load(self, duration: float) -> None:
        self.duration = duration
        self.emit("loadedmetadata")

    def finish(self) -> None:
        self._time = self.duration
        self.playing = False
        self.emit("ended")


class FakeMediaFactory:
    """Records every element the controller creates."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.elements: list[FakeMediaElement] = []
        self.failing = failing or set()

    def __call__(self, source: str) -> FakeMediaElement:
        element = FakeMediaElement(source, fail=source in self.failing)
        self.elements.append(element)
        return element

    @property
    def last(self) -> FakeMediaElement:
        return self.elements[-1]


@pytest.fixture
def factory() -> FakeMediaFactory:
    return FakeMediaFactory()
