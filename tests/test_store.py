"""
Tests for wavshare.core.store (WavshareDb facade) and the schema.

Tests cover:
- Schema creation and versioning
- Users and API tokens
- Post registration and the playable-audio rule
- Transaction rollback
"""

from __future__ import annotations

import pytest

from wavshare.core import NotFoundError, ValidationError
from wavshare.core.db.models import PostType, UserRow
from wavshare.core.db.schema import SCHEMA_VERSION
from wavshare.core.store import WavshareDb


class TestSchema:
    """Tests for schema creation."""

    async def test_user_version_is_current(self, db: WavshareDb) -> None:
        async with db.read() as conn:
            cursor = await conn.execute("PRAGMA user_version;")
            row = await cursor.fetchone()
        assert int(row[0]) == SCHEMA_VERSION

    async def test_ensure_schema_is_idempotent(self, db: WavshareDb) -> None:
        await db.ensure_schema()
        await db.ensure_schema()
        async with db.read() as conn:
            cursor = await conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name;"
            )
            names = {r["name"] for r in await cursor.fetchall()}
        assert {"users", "posts", "playlists", "playlist_tracks", "queue_items", "queue_settings"} <= names

    async def test_require_open(self) -> None:
        db = WavshareDb(":memory:")
        with pytest.raises(RuntimeError):
            await db.get_user(1)


class TestUsersAndTokens:
    """Tests for users and bearer tokens."""

    async def test_create_user(self, db: WavshareDb) -> None:
        user = await db.create_user("  carol  ")
        assert user.username == "carol"
        assert await db.get_user(user.id) == user
        assert await db.get_user_by_username("carol") == user

    async def test_username_must_be_unique(self, db: WavshareDb, alice: UserRow) -> None:
        with pytest.raises(ValidationError):
            await db.create_user("alice")

    async def test_username_required(self, db: WavshareDb) -> None:
        with pytest.raises(ValidationError):
            await db.create_user("   ")

    async def test_issue_and_resolve_token(self, db: WavshareDb, alice: UserRow) -> None:
        token = await db.issue_token(alice.id)
        assert len(token) >= 32
        assert await db.resolve_token(token) == alice.id
        assert await db.resolve_token("nope") is None

    async def test_issue_token_for_unknown_user(self, db: WavshareDb) -> None:
        with pytest.raises(NotFoundError):
            await db.issue_token(999)


class TestPosts:
    """Tests for post registration."""

    async def test_audio_post_is_playable(self, db: WavshareDb, alice: UserRow) -> None:
        post = await db.create_post(user_id=alice.id, title="Song", file_path="a/song.mp3")
        assert post.post_type == PostType.AUDIO_FILE
        assert post.is_playable
        assert post.user is not None and post.user.username == "alice"

        fetched = await db.get_post(post.id)
        assert fetched == post
        assert await db.get_post_by_file_path("a/song.mp3") == post

    async def test_youtube_post_is_not_playable(self, db: WavshareDb, alice: UserRow) -> None:
        post = await db.create_post(
            user_id=alice.id,
            title="Video",
            post_type=PostType.YOUTUBE_LINK,
            youtube_url="https://youtube.com/watch?v=x",
        )
        assert not post.is_playable

    async def test_audio_post_requires_file(self, db: WavshareDb, alice: UserRow) -> None:
        with pytest.raises(ValidationError):
            await db.create_post(user_id=alice.id, title="Song")

    async def test_youtube_post_requires_url(self, db: WavshareDb, alice: UserRow) -> None:
        with pytest.raises(ValidationError):
            await db.create_post(
                user_id=alice.id, title="Video", post_type=PostType.YOUTUBE_LINK
            )

    async def test_unknown_user(self, db: WavshareDb) -> None:
        with pytest.raises(NotFoundError):
            await db.create_post(user_id=42, title="Song", file_path="x.mp3")

    async def test_remix_parent_must_exist(self, db: WavshareDb, alice: UserRow) -> None:
        with pytest.raises(NotFoundError):
            await db.create_post(
                user_id=alice.id, title="Remix", file_path="r.mp3", parent_post_id=77
            )

        original = await db.create_post(user_id=alice.id, title="Song", file_path="s.mp3")
        remix = await db.create_post(
            user_id=alice.id, title="Remix", file_path="r.mp3", parent_post_id=original.id
        )
        assert remix.parent_post_id == original.id

    async def test_to_dict_is_camel_case(self, db: WavshareDb, alice: UserRow) -> None:
        post = await db.create_post(user_id=alice.id, title="Song", file_path="s.mp3")
        data = post.to_dict()
        assert data["postType"] == "AUDIO_FILE"
        assert data["filePath"] == "s.mp3"
        assert data["user"] == {"id": alice.id, "username": "alice"}


class TestTransactions:
    """Tests for transaction commit/rollback."""

    async def test_rollback_on_error(self, db: WavshareDb) -> None:
        with pytest.raises(ValueError):
            async with db.transaction() as conn:
                await conn.execute("INSERT INTO users (username) VALUES ('temp');")
                raise ValueError("boom")
        assert await db.get_user_by_username("temp") is None

    async def test_commit(self, db: WavshareDb) -> None:
        async with db.transaction() as conn:
            await conn.execute("INSERT INTO users (username) VALUES ('kept');")
        assert await db.get_user_by_username("kept") is not None
