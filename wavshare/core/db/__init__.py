"""
Internal DB subpackage for wavshare.

This package splits persistence into focused units (models, schema/migrations,
ordering helpers and query groups) while keeping `WavshareDb` as the single
public connection facade that the rest of the codebase imports.

Re-exports here are primarily for convenience inside the `core` package.
External code should import `WavshareDb` from `wavshare.core.store`.
"""

from __future__ import annotations

# Models / DTOs
from .models import (
    PlaylistRow,
    PlaylistTrackRow,
    PostRow,
    PostType,
    QueueItemRow,
    QueueSettingsRow,
    RepeatMode,
    UserRow,
)

# Schema / migrations
from .schema import ensure_schema, migrate

__all__ = [
    # models
    "PlaylistRow",
    "PlaylistTrackRow",
    "PostRow",
    "PostType",
    "QueueItemRow",
    "QueueSettingsRow",
    "RepeatMode",
    "UserRow",
    # schema
    "ensure_schema",
    "migrate",
]
