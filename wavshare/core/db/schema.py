"""
Database schema + migrations for wavshare.

- Connection management and the public `WavshareDb` facade live in `store.py`
- Schema creation, schema versioning, and forward-only migrations live here

Design notes:
- We use SQLite `PRAGMA user_version` as the schema version.
- Migrations are forward-only (no downgrade support).
- Keep migrations small and explicit; for huge refactors prefer a new DB.
- Ordering columns carry UNIQUE constraints; renumbering code must never
  produce a transient duplicate (see `ordering.py`).
"""

from __future__ import annotations

from typing import Final

import aiosqlite

# Bump when you change the schema and add a migration in `migrate()`.
SCHEMA_VERSION: Final[int] = 3

_NOW: Final[str] = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"


async def ensure_schema(conn: aiosqlite.Connection) -> None:
    """
    Create or migrate schema to current version.

    This function assumes:
    - `conn` is an open aiosqlite connection
    - foreign_keys pragma is enabled by the caller
    """
    # meta: reserved for key-value config/flags (and future use)
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )
    await conn.commit()

    cursor = await conn.execute("PRAGMA user_version;")
    row = await cursor.fetchone()
    current = int(row[0]) if row is not None else 0

    if current > SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema version {current} is newer than supported {SCHEMA_VERSION}."
        )

    if current == SCHEMA_VERSION:
        return

    await migrate(conn, from_version=current, to_version=SCHEMA_VERSION)
    await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
    await conn.commit()


async def migrate(conn: aiosqlite.Connection, *, from_version: int, to_version: int) -> None:
    """
    Perform forward-only migrations.

    Keep migrations small. If you need a big refactor, create a new DB.
    """
    # v0 -> v1: users, tokens, posts
    if from_version == 0 and to_version >= 1:
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                created_at TEXT NOT NULL DEFAULT {_NOW}
            )
            """
        )
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS api_tokens (
                token TEXT PRIMARY KEY,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                created_at TEXT NOT NULL DEFAULT {_NOW}
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_api_tokens_user ON api_tokens(user_id);"
        )
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS posts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                title TEXT NOT NULL,
                description TEXT,
                post_type TEXT NOT NULL CHECK (post_type IN ('AUDIO_FILE', 'YOUTUBE_LINK')),
                file_path TEXT,
                youtube_url TEXT,
                cover_art TEXT,
                parent_post_id INTEGER REFERENCES posts(id) ON DELETE SET NULL,
                created_at TEXT NOT NULL DEFAULT {_NOW},
                updated_at TEXT NOT NULL DEFAULT {_NOW}
            )
            """
        )
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_posts_user ON posts(user_id);")
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_posts_parent ON posts(parent_post_id);"
        )
        await conn.commit()
        from_version = 1

    # v1 -> v2: playlists
    if from_version == 1 and to_version >= 2:
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS playlists (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                description TEXT,
                is_public INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL DEFAULT {_NOW},
                updated_at TEXT NOT NULL DEFAULT {_NOW}
            )
            """
        )
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_playlists_user ON playlists(user_id);")
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS playlist_tracks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                playlist_id INTEGER NOT NULL REFERENCES playlists(id) ON DELETE CASCADE,
                post_id INTEGER NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
                position INTEGER NOT NULL,
                added_at TEXT NOT NULL DEFAULT {_NOW},
                UNIQUE (playlist_id, post_id),
                UNIQUE (playlist_id, position)
            )
            """
        )
        await conn.commit()
        from_version = 2

    # v2 -> v3: per-user queue + settings
    if from_version == 2 and to_version >= 3:
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS queue_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                post_id INTEGER NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
                position INTEGER NOT NULL,
                created_at TEXT NOT NULL DEFAULT {_NOW},
                updated_at TEXT NOT NULL DEFAULT {_NOW},
                UNIQUE (user_id, post_id),
                UNIQUE (user_id, position)
            )
            """
        )
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS queue_settings (
                user_id INTEGER PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
                shuffle_mode INTEGER NOT NULL DEFAULT 0,
                repeat_mode TEXT NOT NULL DEFAULT 'off' CHECK (repeat_mode IN ('off', 'one', 'all')),
                created_at TEXT NOT NULL DEFAULT {_NOW},
                updated_at TEXT NOT NULL DEFAULT {_NOW}
            )
            """
        )
        await conn.commit()
        from_version = 3

    if from_version != to_version:
        raise RuntimeError(f"No migration path from {from_version} to {to_version}.")
