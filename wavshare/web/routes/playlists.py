"""
Playlist Routes for wavshare.

Playlist CRUD, track management and the playlist-to-queue bulk add.
Private playlists are only visible to their owner; a playlist someone else
cannot see answers 404, as does one they cannot change.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from wavshare.core.playlists import UNSET
from wavshare.web.auth import current_user_id, optional_user_id
from wavshare.web.schemas import (
    PlaylistCreateBody,
    PlaylistToQueueBody,
    PlaylistUpdateBody,
    PostIdBody,
    ReorderBody,
)

if TYPE_CHECKING:
    from wavshare.core.playlists import PlaylistStore
    from wavshare.core.queue import QueueService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["playlists"])

# References set during route registration
_playlist_store: PlaylistStore | None = None
_queue_service: QueueService | None = None


def register_playlist_routes(
    app,
    playlist_store: PlaylistStore,
    queue_service: QueueService,
) -> None:
    """
    Register playlist routes with the FastAPI app.

    Args:
        app: FastAPI application instance
        playlist_store: PlaylistStore for playlist CRUD
        queue_service: QueueService for POST /playlists/{id}/queue
    """
    global _playlist_store, _queue_service
    _playlist_store = playlist_store
    _queue_service = queue_service
    app.include_router(router)


def _store() -> PlaylistStore:
    if _playlist_store is None:
        raise HTTPException(status_code=503, detail="Playlist store not initialized")
    return _playlist_store


# =============================================================================
# Playlists
# =============================================================================


@router.get("/playlists")
async def list_my_playlists(user_id: int = Depends(current_user_id)) -> dict[str, Any]:
    playlists = await _store().list_own(user_id)
    return {"playlists": [p.to_dict() for p in playlists]}


@router.post("/playlists")
async def create_playlist(
    body: PlaylistCreateBody, user_id: int = Depends(current_user_id)
) -> JSONResponse:
    playlist = await _store().create(
        user_id, body.name, description=body.description, is_public=body.is_public
    )
    return JSONResponse(
        status_code=201,
        content={"message": "Playlist created successfully", "playlist": playlist.to_dict()},
    )


@router.get("/playlists/user/{owner_id}")
async def list_user_playlists(
    owner_id: int, user_id: int | None = Depends(optional_user_id)
) -> dict[str, Any]:
    """Public playlists of a user; the owner also sees their private ones."""
    playlists = await _store().list_by_user(owner_id, user_id)
    return {"playlists": [p.to_dict() for p in playlists]}


@router.get("/playlists/{playlist_id}")
async def get_playlist(
    playlist_id: int, user_id: int = Depends(current_user_id)
) -> dict[str, Any]:
    playlist = await _store().get(playlist_id, user_id)
    return {"playlist": playlist.to_dict()}


@router.put("/playlists/{playlist_id}")
async def update_playlist(
    playlist_id: int,
    body: PlaylistUpdateBody,
    user_id: int = Depends(current_user_id),
) -> dict[str, Any]:
    # An explicit "description": null clears it, an absent key keeps it
    description = body.description if "description" in body.model_fields_set else UNSET
    playlist = await _store().update(
        user_id,
        playlist_id,
        name=body.name,
        description=description,
        is_public=body.is_public,
    )
    return {"message": "Playlist updated successfully", "playlist": playlist.to_dict()}


@router.delete("/playlists/{playlist_id}")
async def delete_playlist(
    playlist_id: int, user_id: int = Depends(current_user_id)
) -> dict[str, Any]:
    await _store().delete(user_id, playlist_id)
    return {"message": "Playlist deleted successfully"}


# =============================================================================
# Tracks
# =============================================================================


@router.post("/playlists/{playlist_id}/tracks")
async def add_playlist_track(
    playlist_id: int,
    body: PostIdBody,
    user_id: int = Depends(current_user_id),
) -> JSONResponse:
    track = await _store().add_track(user_id, playlist_id, body.post_id)
    return JSONResponse(
        status_code=201,
        content={"message": "Track added to playlist", "playlistTrack": track.to_dict()},
    )


@router.put("/playlists/{playlist_id}/tracks/reorder")
async def reorder_playlist_tracks(
    playlist_id: int,
    body: ReorderBody,
    user_id: int = Depends(current_user_id),
) -> dict[str, Any]:
    await _store().reorder_tracks(user_id, playlist_id, body.from_index, body.to_index)
    if body.from_index == body.to_index:
        return {"message": "No change needed"}
    return {"message": "Playlist tracks reordered successfully"}


@router.delete("/playlists/{playlist_id}/tracks/{post_id}")
async def remove_playlist_track(
    playlist_id: int,
    post_id: int,
    user_id: int = Depends(current_user_id),
) -> dict[str, Any]:
    await _store().remove_track(user_id, playlist_id, post_id)
    return {"message": "Track removed from playlist"}


# =============================================================================
# Playlist -> Queue
# =============================================================================


@router.post("/playlists/{playlist_id}/queue")
async def add_playlist_to_queue(
    playlist_id: int,
    body: PlaylistToQueueBody | None = None,
    user_id: int = Depends(current_user_id),
) -> dict[str, Any]:
    if _queue_service is None:
        raise HTTPException(status_code=503, detail="Queue service not initialized")
    options = body or PlaylistToQueueBody()
    result = await _queue_service.add_playlist_to_queue(
        user_id, playlist_id, shuffle=options.shuffle, play_next=options.play_next
    )
    return {
        "message": result.message,
        "addedCount": result.added_count,
        "skippedCount": result.skipped_count,
    }
