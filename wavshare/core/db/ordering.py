"""
Position ordering helpers shared by the queue and playlist queries.

Both `queue_items` and `playlist_tracks` keep a dense, zero-based `position`
column per owner (user or playlist) guarded by a UNIQUE constraint. Every
mutation that changes order goes through a full renumbering pass:

1. `park_positions()` moves every row of the owner to a distinct negative
   position (`-1 - position`), which can never collide with a final one.
2. `assign_positions()` writes 0..N-1 following the given id order.

Important:
- Table and column names come from the `_ORDERED_TABLES` whitelist only.
  Do NOT interpolate user input into SQL.
- `assign_positions()` must receive *every* row id of the owner, otherwise a
  parked row keeps its negative position.
"""

from __future__ import annotations

from typing import Literal, Sequence, TypeVar

import aiosqlite

OrderedKind = Literal["queue", "playlist"]

# kind -> (table, owner column, extra SET fragment)
_ORDERED_TABLES: dict[str, tuple[str, str, str]] = {
    "queue": (
        "queue_items",
        "user_id",
        ", updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')",
    ),
    "playlist": ("playlist_tracks", "playlist_id", ""),
}

T = TypeVar("T")


def move_item(items: Sequence[T], from_index: int, to_index: int) -> list[T]:
    """
    Return a copy of `items` with one element moved, using array-splice semantics.

    The element at `from_index` is removed first, then reinserted at
    `to_index` in the shortened list (an index past the end appends).
    Callers validate both indexes beforehand.
    """
    result = list(items)
    moved = result.pop(from_index)
    result.insert(to_index, moved)
    return result


def check_index(index: int, length: int) -> bool:
    """True if `index` addresses an existing element of a list of `length`."""
    return 0 <= index < length


async def park_positions(conn: aiosqlite.Connection, kind: OrderedKind, owner_id: int) -> None:
    """Move all rows of an owner to distinct negative positions."""
    table, owner, _ = _ORDERED_TABLES[kind]
    await conn.execute(
        f"UPDATE {table} SET position = -1 - position WHERE {owner} = ?;",
        (int(owner_id),),
    )


async def assign_positions(
    conn: aiosqlite.Connection,
    kind: OrderedKind,
    owner_id: int,
    ordered_ids: Sequence[int],
) -> None:
    """Write positions 0..N-1 in the order of `ordered_ids`."""
    table, owner, extra = _ORDERED_TABLES[kind]
    await conn.executemany(
        f"UPDATE {table} SET position = ?{extra} WHERE id = ? AND {owner} = ?;",
        [(index, int(row_id), int(owner_id)) for index, row_id in enumerate(ordered_ids)],
    )


async def renumber(
    conn: aiosqlite.Connection,
    kind: OrderedKind,
    owner_id: int,
    ordered_ids: Sequence[int],
) -> None:
    """Full renumbering pass: park, then assign dense positions."""
    await park_positions(conn, kind, owner_id)
    await assign_positions(conn, kind, owner_id, ordered_ids)
