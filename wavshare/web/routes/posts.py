"""
Post and media Routes for wavshare.

- GET /posts/{post_id}        post with uploader
- GET /uploads/{file_path}    stored audio file of a post (the PlaybackTrack url)

Uploading is not handled here; files are placed under the uploads root and
registered with `wavshare add-post`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from wavshare.core import NotFoundError

if TYPE_CHECKING:
    from wavshare.core.store import WavshareDb

logger = logging.getLogger(__name__)

router = APIRouter(tags=["posts"])

# References set during route registration
_db: WavshareDb | None = None
_uploads_dir: Path | None = None


def register_post_routes(app, db: WavshareDb, uploads_dir: Path) -> None:
    """
    Register post and upload routes with the FastAPI app.

    Args:
        app: FastAPI application instance
        db: WavshareDb for post lookups
        uploads_dir: Root directory of stored audio files
    """
    global _db, _uploads_dir
    _db = db
    _uploads_dir = uploads_dir.resolve()
    app.include_router(router)


@router.get("/posts/{post_id}")
async def get_post(post_id: int) -> dict[str, Any]:
    if _db is None:
        raise HTTPException(status_code=503, detail="Database not initialized")
    post = await _db.get_post(post_id)
    if post is None:
        raise NotFoundError("Post not found")
    return {"post": post.to_dict()}


def resolve_upload(root: Path, file_path: str) -> Path:
    """
    Map a URL path below /uploads to a file inside `root`.

    Raises NotFoundError for anything outside the root or not a file.
    """
    candidate = (root / file_path).resolve()
    if not candidate.is_relative_to(root) or not candidate.is_file():
        raise NotFoundError("File not found")
    return candidate


@router.get("/uploads/{file_path:path}")
async def get_upload(file_path: str) -> FileResponse:
    """Serve an uploaded audio file (FileResponse handles Range requests)."""
    if _uploads_dir is None:
        raise HTTPException(status_code=503, detail="Uploads not configured")
    path = resolve_upload(_uploads_dir, file_path)
    logger.debug("Serving upload %s", path)
    return FileResponse(path)
