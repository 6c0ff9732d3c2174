"""
Queue-related DB queries (`queue_items`, `queue_settings`).

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`
  and return rows/materialized dataclasses.
- They never commit; `QueueService` wraps them in one transaction per
  operation.
- Renumbering lives in `wavshare.core.db.ordering`.

Important:
- Do NOT interpolate user input into SQL.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import aiosqlite

from wavshare.core.db.models import QueueItemRow, QueueSettingsRow, RepeatMode
from wavshare.core.db.queries_posts import POST_COLUMNS, POST_JOINS, row_to_post


def _row_to_item(row: aiosqlite.Row, *, with_post: bool) -> QueueItemRow:
    return QueueItemRow(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        post_id=int(row["post_id"]),
        position=int(row["position"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        post=row_to_post(row) if with_post else None,
    )


async def list_items(conn: aiosqlite.Connection, user_id: int) -> list[QueueItemRow]:
    """All queue items of a user in play order, with post and uploader."""
    cursor = await conn.execute(
        f"""
        SELECT q.id, q.user_id, q.post_id, q.position, q.created_at, q.updated_at,
               {POST_COLUMNS}
        FROM queue_items q
        JOIN posts p ON p.id = q.post_id
        {POST_JOINS}
        WHERE q.user_id = ?
        ORDER BY q.position ASC;
        """,
        (int(user_id),),
    )
    rows = await cursor.fetchall()
    return [_row_to_item(r, with_post=True) for r in rows]


async def list_item_ids(conn: aiosqlite.Connection, user_id: int) -> list[int]:
    """Queue item ids of a user in play order (no joins)."""
    cursor = await conn.execute(
        "SELECT id FROM queue_items WHERE user_id = ? ORDER BY position ASC;",
        (int(user_id),),
    )
    rows = await cursor.fetchall()
    return [int(r["id"]) for r in rows]


async def get_item(
    conn: aiosqlite.Connection, user_id: int, post_id: int
) -> QueueItemRow | None:
    cursor = await conn.execute(
        f"""
        SELECT q.id, q.user_id, q.post_id, q.position, q.created_at, q.updated_at,
               {POST_COLUMNS}
        FROM queue_items q
        JOIN posts p ON p.id = q.post_id
        {POST_JOINS}
        WHERE q.user_id = ? AND q.post_id = ?;
        """,
        (int(user_id), int(post_id)),
    )
    row = await cursor.fetchone()
    return _row_to_item(row, with_post=True) if row is not None else None


async def count_items(conn: aiosqlite.Connection, user_id: int) -> int:
    cursor = await conn.execute(
        "SELECT COUNT(*) AS c FROM queue_items WHERE user_id = ?;", (int(user_id),)
    )
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0


async def max_position(conn: aiosqlite.Connection, user_id: int) -> int | None:
    cursor = await conn.execute(
        "SELECT MAX(position) AS m FROM queue_items WHERE user_id = ?;", (int(user_id),)
    )
    row = await cursor.fetchone()
    if row is None or row["m"] is None:
        return None
    return int(row["m"])


async def queued_post_ids(
    conn: aiosqlite.Connection, user_id: int, post_ids: Iterable[int] | None = None
) -> set[int]:
    """Post ids already in the user's queue (optionally restricted to `post_ids`)."""
    cursor = await conn.execute(
        "SELECT post_id FROM queue_items WHERE user_id = ?;", (int(user_id),)
    )
    rows = await cursor.fetchall()
    queued = {int(r["post_id"]) for r in rows}
    if post_ids is None:
        return queued
    return queued.intersection(int(p) for p in post_ids)


async def insert_item(
    conn: aiosqlite.Connection, user_id: int, post_id: int, position: int
) -> int:
    cursor = await conn.execute(
        "INSERT INTO queue_items (user_id, post_id, position) VALUES (?, ?, ?);",
        (int(user_id), int(post_id), int(position)),
    )
    return int(cursor.lastrowid)


async def insert_items(
    conn: aiosqlite.Connection, user_id: int, post_ids: Sequence[int], start_position: int
) -> list[int]:
    """Insert a block of items at consecutive positions; returns the new ids in order."""
    ids: list[int] = []
    for offset, post_id in enumerate(post_ids):
        ids.append(await insert_item(conn, user_id, post_id, start_position + offset))
    return ids


async def delete_item(conn: aiosqlite.Connection, item_id: int) -> None:
    await conn.execute("DELETE FROM queue_items WHERE id = ?;", (int(item_id),))


async def delete_all(conn: aiosqlite.Connection, user_id: int) -> int:
    cursor = await conn.execute("DELETE FROM queue_items WHERE user_id = ?;", (int(user_id),))
    return int(cursor.rowcount)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def _row_to_settings(row: aiosqlite.Row) -> QueueSettingsRow:
    return QueueSettingsRow(
        user_id=int(row["user_id"]),
        shuffle_mode=bool(row["shuffle_mode"]),
        repeat_mode=RepeatMode(row["repeat_mode"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


async def get_settings(conn: aiosqlite.Connection, user_id: int) -> QueueSettingsRow | None:
    cursor = await conn.execute(
        """
        SELECT user_id, shuffle_mode, repeat_mode, created_at, updated_at
        FROM queue_settings
        WHERE user_id = ?;
        """,
        (int(user_id),),
    )
    row = await cursor.fetchone()
    return _row_to_settings(row) if row is not None else None


async def ensure_settings(conn: aiosqlite.Connection, user_id: int) -> QueueSettingsRow:
    """Create the default settings row if absent and return the stored row."""
    await conn.execute(
        "INSERT OR IGNORE INTO queue_settings (user_id) VALUES (?);", (int(user_id),)
    )
    settings = await get_settings(conn, user_id)
    if settings is None:
        raise RuntimeError("Settings row not found after insert.")
    return settings


async def update_settings(
    conn: aiosqlite.Connection,
    user_id: int,
    *,
    shuffle_mode: bool | None = None,
    repeat_mode: RepeatMode | None = None,
) -> None:
    """Patch only the supplied fields (the row must exist)."""
    if shuffle_mode is not None:
        await conn.execute(
            "UPDATE queue_settings SET shuffle_mode = ? WHERE user_id = ?;",
            (1 if shuffle_mode else 0, int(user_id)),
        )
    if repeat_mode is not None:
        await conn.execute(
            "UPDATE queue_settings SET repeat_mode = ? WHERE user_id = ?;",
            (repeat_mode.value, int(user_id)),
        )
    if shuffle_mode is not None or repeat_mode is not None:
        await conn.execute(
            """
            UPDATE queue_settings
            SET updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
            WHERE user_id = ?;
            """,
            (int(user_id),),
        )
