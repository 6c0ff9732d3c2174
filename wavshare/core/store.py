"""
Database access layer for wavshare.

Goals:
- Modern, minimal, and testable.
- SQLite + aiosqlite, async/await friendly.
- Keep schema small, but leave room to evolve (via user_version migrations).

This module is intentionally independent of the web layer.

Note:
- Models/DTOs and normalization helpers live in `wavshare.core.db.models`
- Schema/migrations live in `wavshare.core.db.schema`
- Query functions live in `wavshare.core.db.queries_*` modules
- `WavshareDb` remains the public facade used by the rest of the codebase
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from wavshare.core import NotFoundError, ValidationError
from wavshare.core.db import queries_posts
from wavshare.core.db.models import PostRow, PostType, UserRow, normalize_text
from wavshare.core.db.schema import ensure_schema as ensure_schema_sql

logger = logging.getLogger(__name__)


class WavshareDb:
    """
    Async access layer for the wavshare DB.

    Usage:
        db = WavshareDb("wavshare.sqlite3")
        await db.open()
        await db.ensure_schema()
        async with db.transaction() as conn:
            ... queries ...
        await db.close()

    Notes:
    - This class is designed to be injected into other components.
    - Connections are not pooled; we keep a single connection in autocommit
      mode and serialize access with an asyncio lock. Write transactions use
      BEGIN IMMEDIATE so a multi-statement mutation (e.g. a renumbering pass)
      is atomic and never interleaves with another coroutine's statements.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def path(self) -> str:
        return self._db_path

    async def open(self) -> None:
        if self._conn is not None:
            return
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path, isolation_level=None)
        self._conn.row_factory = aiosqlite.Row

        # Pragmas: modern defaults without being clever.
        await self._conn.execute("PRAGMA foreign_keys = ON;")
        await self._conn.execute("PRAGMA journal_mode = WAL;")
        await self._conn.execute("PRAGMA synchronous = NORMAL;")
        await self._conn.execute("PRAGMA temp_store = MEMORY;")
        logger.debug("Opened database %s", self._db_path)

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        logger.debug("Closed database %s", self._db_path)

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("WavshareDb is not open. Call await db.open() first.")
        return self._conn

    async def ensure_schema(self) -> None:
        """Create or migrate schema to current version."""
        conn = self._require_conn()
        async with self._lock:
            await ensure_schema_sql(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Run a block of statements as one write transaction.

        Commits on normal exit, rolls back (and re-raises) on any exception.
        Not re-entrant: do not open a transaction or `read()` inside another.
        """
        conn = self._require_conn()
        async with self._lock:
            await conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                await conn.execute("ROLLBACK;")
                raise
            else:
                await conn.execute("COMMIT;")

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Serialized read access (no write transaction)."""
        conn = self._require_conn()
        async with self._lock:
            yield conn

    # ===========================================================================
    # Users + tokens
    # ===========================================================================

    async def create_user(self, username: str) -> UserRow:
        """Create a user; usernames are unique (ValidationError on clash)."""
        name = normalize_text(username)
        if not name:
            raise ValidationError("Username is required")
        async with self.transaction() as conn:
            if await queries_posts.get_user_by_username(conn, name) is not None:
                raise ValidationError(f"Username '{name}' is already taken")
            user_id = await queries_posts.insert_user(conn, name)
            user = await queries_posts.get_user_by_id(conn, user_id)
        if user is None:
            raise RuntimeError("User row not found after insert.")
        logger.info("Created user %s (id=%d)", user.username, user.id)
        return user

    async def get_user(self, user_id: int) -> UserRow | None:
        async with self.read() as conn:
            return await queries_posts.get_user_by_id(conn, user_id)

    async def get_user_by_username(self, username: str) -> UserRow | None:
        async with self.read() as conn:
            return await queries_posts.get_user_by_username(conn, username)

    async def issue_token(self, user_id: int) -> str:
        """Create a new opaque bearer token for a user."""
        token = secrets.token_urlsafe(32)
        async with self.transaction() as conn:
            if await queries_posts.get_user_by_id(conn, user_id) is None:
                raise NotFoundError("User not found")
            await queries_posts.insert_token(conn, token, user_id)
        logger.debug("Issued token for user id=%d", user_id)
        return token

    async def resolve_token(self, token: str) -> int | None:
        """Map a bearer token to its user id (None if unknown)."""
        async with self.read() as conn:
            return await queries_posts.get_user_id_for_token(conn, token)

    # ===========================================================================
    # Posts
    # ===========================================================================

    async def create_post(
        self,
        *,
        user_id: int,
        title: str,
        post_type: PostType = PostType.AUDIO_FILE,
        description: str | None = None,
        file_path: str | None = None,
        youtube_url: str | None = None,
        cover_art: str | None = None,
        parent_post_id: int | None = None,
    ) -> PostRow:
        """
        Register a post.

        Audio posts need a stored file path (relative to the uploads root),
        YouTube posts need a URL. File upload itself happens elsewhere.
        """
        clean_title = normalize_text(title)
        if not clean_title:
            raise ValidationError("Title is required")
        file_path = normalize_text(file_path)
        youtube_url = normalize_text(youtube_url)
        if post_type == PostType.AUDIO_FILE and not file_path:
            raise ValidationError("Audio file is required for audio posts")
        if post_type == PostType.YOUTUBE_LINK and not youtube_url:
            raise ValidationError("YouTube URL is required for YouTube posts")

        async with self.transaction() as conn:
            if await queries_posts.get_user_by_id(conn, user_id) is None:
                raise NotFoundError("User not found")
            if parent_post_id is not None:
                if await queries_posts.get_post_by_id(conn, parent_post_id) is None:
                    raise NotFoundError("Original post not found")
            post_id = await queries_posts.insert_post(
                conn,
                user_id=user_id,
                title=clean_title,
                post_type=post_type,
                description=normalize_text(description),
                file_path=file_path,
                youtube_url=youtube_url,
                cover_art=normalize_text(cover_art),
                parent_post_id=parent_post_id,
            )
            post = await queries_posts.get_post_by_id(conn, post_id)
        if post is None:
            raise RuntimeError("Post row not found after insert.")
        logger.info("Created %s post %d: %s", post.post_type.value, post.id, post.title)
        return post

    async def get_post(self, post_id: int) -> PostRow | None:
        async with self.read() as conn:
            return await queries_posts.get_post_by_id(conn, post_id)

    async def get_post_by_file_path(self, file_path: str) -> PostRow | None:
        async with self.read() as conn:
            return await queries_posts.get_post_by_file_path(conn, file_path)
