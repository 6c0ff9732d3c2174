"""
User, token and post DB queries.

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`
  and return rows/materialized dataclasses.
- These functions assume `conn.row_factory = aiosqlite.Row`.
- `POST_COLUMNS` / `POST_JOINS` are shared with the queue and playlist query
  modules so every listing materializes posts (with uploader) the same way.

Important:
- Do NOT interpolate user input into SQL.
"""

from __future__ import annotations

import aiosqlite

from wavshare.core.db.models import PostRow, PostType, UserRow

# Columns selected for a joined post + uploader. Aliased so they never clash
# with the columns of the table the post is joined to.
POST_COLUMNS = """
    p.id AS post_id_, p.user_id AS post_user_id, p.title AS post_title,
    p.description AS post_description, p.post_type AS post_type,
    p.file_path AS post_file_path, p.youtube_url AS post_youtube_url,
    p.cover_art AS post_cover_art, p.parent_post_id AS post_parent_post_id,
    p.created_at AS post_created_at, p.updated_at AS post_updated_at,
    u.username AS post_username, u.created_at AS post_user_created_at
"""

POST_JOINS = "JOIN users u ON u.id = p.user_id"


def row_to_post(row: aiosqlite.Row) -> PostRow:
    """Convert a row selected with `POST_COLUMNS` to a PostRow."""
    return PostRow(
        id=int(row["post_id_"]),
        user_id=int(row["post_user_id"]),
        title=row["post_title"],
        post_type=PostType(row["post_type"]),
        created_at=row["post_created_at"],
        updated_at=row["post_updated_at"],
        description=row["post_description"],
        file_path=row["post_file_path"],
        youtube_url=row["post_youtube_url"],
        cover_art=row["post_cover_art"],
        parent_post_id=row["post_parent_post_id"],
        user=UserRow(
            id=int(row["post_user_id"]),
            username=row["post_username"],
            created_at=row["post_user_created_at"],
        ),
    )


def _row_to_user(row: aiosqlite.Row) -> UserRow:
    return UserRow(id=int(row["id"]), username=row["username"], created_at=row["created_at"])


# ---------------------------------------------------------------------------
# Users + tokens
# ---------------------------------------------------------------------------


async def insert_user(conn: aiosqlite.Connection, username: str) -> int:
    cursor = await conn.execute("INSERT INTO users (username) VALUES (?);", (username,))
    return int(cursor.lastrowid)


async def get_user_by_id(conn: aiosqlite.Connection, user_id: int) -> UserRow | None:
    cursor = await conn.execute(
        "SELECT id, username, created_at FROM users WHERE id = ?;", (int(user_id),)
    )
    row = await cursor.fetchone()
    return _row_to_user(row) if row is not None else None


async def get_user_by_username(conn: aiosqlite.Connection, username: str) -> UserRow | None:
    cursor = await conn.execute(
        "SELECT id, username, created_at FROM users WHERE username = ?;", (username,)
    )
    row = await cursor.fetchone()
    return _row_to_user(row) if row is not None else None


async def insert_token(conn: aiosqlite.Connection, token: str, user_id: int) -> None:
    await conn.execute(
        "INSERT INTO api_tokens (token, user_id) VALUES (?, ?);", (token, int(user_id))
    )


async def get_user_id_for_token(conn: aiosqlite.Connection, token: str) -> int | None:
    cursor = await conn.execute("SELECT user_id FROM api_tokens WHERE token = ?;", (token,))
    row = await cursor.fetchone()
    return int(row["user_id"]) if row is not None else None


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


async def insert_post(
    conn: aiosqlite.Connection,
    *,
    user_id: int,
    title: str,
    post_type: PostType,
    description: str | None = None,
    file_path: str | None = None,
    youtube_url: str | None = None,
    cover_art: str | None = None,
    parent_post_id: int | None = None,
) -> int:
    cursor = await conn.execute(
        """
        INSERT INTO posts (
            user_id, title, description, post_type,
            file_path, youtube_url, cover_art, parent_post_id
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
        """,
        (
            int(user_id),
            title,
            description,
            post_type.value,
            file_path,
            youtube_url,
            cover_art,
            parent_post_id,
        ),
    )
    return int(cursor.lastrowid)


async def get_post_by_id(conn: aiosqlite.Connection, post_id: int) -> PostRow | None:
    cursor = await conn.execute(
        f"""
        SELECT {POST_COLUMNS}
        FROM posts p
        {POST_JOINS}
        WHERE p.id = ?;
        """,
        (int(post_id),),
    )
    row = await cursor.fetchone()
    return row_to_post(row) if row is not None else None


async def get_post_by_file_path(conn: aiosqlite.Connection, file_path: str) -> PostRow | None:
    cursor = await conn.execute(
        f"""
        SELECT {POST_COLUMNS}
        FROM posts p
        {POST_JOINS}
        WHERE p.file_path = ?
        LIMIT 1;
        """,
        (file_path,),
    )
    row = await cursor.fetchone()
    return row_to_post(row) if row is not None else None
