"""
Playlist-related DB queries (`playlists`, `playlist_tracks`).

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`
  and return rows/materialized dataclasses.
- They never commit; `PlaylistStore` owns the transaction.

Important:
- Do NOT interpolate user input into SQL.
"""

from __future__ import annotations

import aiosqlite

from wavshare.core.db.models import PlaylistRow, PlaylistTrackRow
from wavshare.core.db.queries_posts import POST_COLUMNS, POST_JOINS, row_to_post

_PLAYLIST_SELECT = """
    SELECT pl.id, pl.user_id, pl.name, pl.description, pl.is_public,
           pl.created_at, pl.updated_at,
           (SELECT COUNT(*) FROM playlist_tracks t WHERE t.playlist_id = pl.id) AS track_count
    FROM playlists pl
"""


def _row_to_playlist(
    row: aiosqlite.Row, tracks: tuple[PlaylistTrackRow, ...] = ()
) -> PlaylistRow:
    return PlaylistRow(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        name=row["name"],
        description=row["description"],
        is_public=bool(row["is_public"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        track_count=int(row["track_count"]),
        tracks=tracks,
    )


async def insert_playlist(
    conn: aiosqlite.Connection,
    *,
    user_id: int,
    name: str,
    description: str | None,
    is_public: bool,
) -> int:
    cursor = await conn.execute(
        "INSERT INTO playlists (user_id, name, description, is_public) VALUES (?, ?, ?, ?);",
        (int(user_id), name, description, 1 if is_public else 0),
    )
    return int(cursor.lastrowid)


async def update_playlist(
    conn: aiosqlite.Connection,
    playlist_id: int,
    *,
    name: str | None = None,
    description: str | None = None,
    clear_description: bool = False,
    is_public: bool | None = None,
) -> None:
    if name is not None:
        await conn.execute(
            "UPDATE playlists SET name = ? WHERE id = ?;", (name, int(playlist_id))
        )
    if description is not None or clear_description:
        await conn.execute(
            "UPDATE playlists SET description = ? WHERE id = ?;",
            (description, int(playlist_id)),
        )
    if is_public is not None:
        await conn.execute(
            "UPDATE playlists SET is_public = ? WHERE id = ?;",
            (1 if is_public else 0, int(playlist_id)),
        )
    await touch_playlist(conn, playlist_id)


async def touch_playlist(conn: aiosqlite.Connection, playlist_id: int) -> None:
    await conn.execute(
        "UPDATE playlists SET updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id = ?;",
        (int(playlist_id),),
    )


async def delete_playlist(conn: aiosqlite.Connection, playlist_id: int) -> None:
    await conn.execute("DELETE FROM playlists WHERE id = ?;", (int(playlist_id),))


async def count_playlists(conn: aiosqlite.Connection, user_id: int) -> int:
    cursor = await conn.execute(
        "SELECT COUNT(*) AS c FROM playlists WHERE user_id = ?;", (int(user_id),)
    )
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0


async def get_playlist(
    conn: aiosqlite.Connection, playlist_id: int, *, with_tracks: bool = True
) -> PlaylistRow | None:
    cursor = await conn.execute(f"{_PLAYLIST_SELECT} WHERE pl.id = ?;", (int(playlist_id),))
    row = await cursor.fetchone()
    if row is None:
        return None
    tracks = tuple(await list_tracks(conn, playlist_id)) if with_tracks else ()
    return _row_to_playlist(row, tracks)


async def get_accessible_playlist(
    conn: aiosqlite.Connection,
    playlist_id: int,
    viewer_id: int,
    *,
    with_tracks: bool = True,
) -> PlaylistRow | None:
    """A playlist the viewer owns, or any public playlist (None otherwise)."""
    cursor = await conn.execute(
        f"{_PLAYLIST_SELECT} WHERE pl.id = ? AND (pl.user_id = ? OR pl.is_public = 1);",
        (int(playlist_id), int(viewer_id)),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    tracks = tuple(await list_tracks(conn, playlist_id)) if with_tracks else ()
    return _row_to_playlist(row, tracks)


async def list_playlists_for_user(
    conn: aiosqlite.Connection, user_id: int, *, public_only: bool = False
) -> list[PlaylistRow]:
    """Playlists of one user, most recently updated first, with tracks."""
    where = "WHERE pl.user_id = ?"
    if public_only:
        where += " AND pl.is_public = 1"
    cursor = await conn.execute(
        f"{_PLAYLIST_SELECT} {where} ORDER BY pl.updated_at DESC, pl.id DESC;",
        (int(user_id),),
    )
    rows = await cursor.fetchall()
    result: list[PlaylistRow] = []
    for row in rows:
        tracks = tuple(await list_tracks(conn, int(row["id"])))
        result.append(_row_to_playlist(row, tracks))
    return result


# ---------------------------------------------------------------------------
# Tracks
# ---------------------------------------------------------------------------


def _row_to_track(row: aiosqlite.Row) -> PlaylistTrackRow:
    return PlaylistTrackRow(
        id=int(row["id"]),
        playlist_id=int(row["playlist_id"]),
        post_id=int(row["post_id"]),
        position=int(row["position"]),
        added_at=row["added_at"],
        post=row_to_post(row),
    )


async def list_tracks(conn: aiosqlite.Connection, playlist_id: int) -> list[PlaylistTrackRow]:
    cursor = await conn.execute(
        f"""
        SELECT t.id, t.playlist_id, t.post_id, t.position, t.added_at,
               {POST_COLUMNS}
        FROM playlist_tracks t
        JOIN posts p ON p.id = t.post_id
        {POST_JOINS}
        WHERE t.playlist_id = ?
        ORDER BY t.position ASC;
        """,
        (int(playlist_id),),
    )
    rows = await cursor.fetchall()
    return [_row_to_track(r) for r in rows]


async def get_track(
    conn: aiosqlite.Connection, playlist_id: int, post_id: int
) -> PlaylistTrackRow | None:
    cursor = await conn.execute(
        f"""
        SELECT t.id, t.playlist_id, t.post_id, t.position, t.added_at,
               {POST_COLUMNS}
        FROM playlist_tracks t
        JOIN posts p ON p.id = t.post_id
        {POST_JOINS}
        WHERE t.playlist_id = ? AND t.post_id = ?;
        """,
        (int(playlist_id), int(post_id)),
    )
    row = await cursor.fetchone()
    return _row_to_track(row) if row is not None else None


async def count_tracks(conn: aiosqlite.Connection, playlist_id: int) -> int:
    cursor = await conn.execute(
        "SELECT COUNT(*) AS c FROM playlist_tracks WHERE playlist_id = ?;", (int(playlist_id),)
    )
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0


async def insert_track(
    conn: aiosqlite.Connection, playlist_id: int, post_id: int, position: int
) -> int:
    cursor = await conn.execute(
        "INSERT INTO playlist_tracks (playlist_id, post_id, position) VALUES (?, ?, ?);",
        (int(playlist_id), int(post_id), int(position)),
    )
    return int(cursor.lastrowid)


async def delete_track(conn: aiosqlite.Connection, track_id: int) -> None:
    await conn.execute("DELETE FROM playlist_tracks WHERE id = ?;", (int(track_id),))


async def list_track_ids(conn: aiosqlite.Connection, playlist_id: int) -> list[int]:
    cursor = await conn.execute(
        "SELECT id FROM playlist_tracks WHERE playlist_id = ? ORDER BY position ASC;",
        (int(playlist_id),),
    )
    rows = await cursor.fetchall()
    return [int(r["id"]) for r in rows]
