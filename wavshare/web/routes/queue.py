"""
Queue Routes for wavshare.

- GET    /queue               ordered queue + settings
- POST   /queue               append a post
- POST   /queue/next          insert a post at the front
- DELETE /queue/{post_id}     remove a post
- PUT    /queue/reorder       move one item
- DELETE /queue               clear the queue
- GET    /queue/settings      shuffle/repeat flags
- PUT    /queue/settings      patch shuffle/repeat flags
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from wavshare.web.auth import current_user_id
from wavshare.web.schemas import PostIdBody, QueueSettingsBody, ReorderBody

if TYPE_CHECKING:
    from wavshare.core.queue import QueueService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["queue"])

# Reference set during route registration
_queue_service: QueueService | None = None


def register_queue_routes(app, queue_service: QueueService) -> None:
    """
    Register queue routes with the FastAPI app.

    Args:
        app: FastAPI application instance
        queue_service: QueueService owning the per-user queues
    """
    global _queue_service
    _queue_service = queue_service
    app.include_router(router)


def _service() -> QueueService:
    if _queue_service is None:
        raise HTTPException(status_code=503, detail="Queue service not initialized")
    return _queue_service


@router.get("/queue")
async def get_queue(user_id: int = Depends(current_user_id)) -> dict[str, Any]:
    snapshot = await _service().get_queue(user_id)
    return snapshot.to_dict()


@router.post("/queue")
async def add_to_queue(
    body: PostIdBody, user_id: int = Depends(current_user_id)
) -> JSONResponse:
    item = await _service().enqueue(user_id, body.post_id)
    return JSONResponse(
        status_code=201,
        content={"message": "Track added to queue", "queueItem": item.to_dict()},
    )


@router.post("/queue/next")
async def add_to_queue_next(
    body: PostIdBody, user_id: int = Depends(current_user_id)
) -> JSONResponse:
    item = await _service().enqueue(user_id, body.post_id, front=True)
    return JSONResponse(
        status_code=201,
        content={"message": "Track added to front of queue", "queueItem": item.to_dict()},
    )


@router.put("/queue/reorder")
async def reorder_queue(
    body: ReorderBody, user_id: int = Depends(current_user_id)
) -> dict[str, Any]:
    await _service().reorder(user_id, body.from_index, body.to_index)
    if body.from_index == body.to_index:
        return {"message": "No change needed"}
    return {"message": "Queue reordered successfully"}


@router.get("/queue/settings")
async def get_queue_settings(user_id: int = Depends(current_user_id)) -> dict[str, Any]:
    settings = await _service().get_settings(user_id)
    return settings.to_dict()


@router.put("/queue/settings")
async def update_queue_settings(
    body: QueueSettingsBody, user_id: int = Depends(current_user_id)
) -> dict[str, Any]:
    settings = await _service().update_settings(
        user_id, shuffle_mode=body.shuffle_mode, repeat_mode=body.repeat_mode
    )
    return settings.to_dict()


@router.delete("/queue/{post_id}")
async def remove_from_queue(
    post_id: int, user_id: int = Depends(current_user_id)
) -> dict[str, Any]:
    await _service().remove(user_id, post_id)
    return {"message": "Track removed from queue"}


@router.delete("/queue")
async def clear_queue(user_id: int = Depends(current_user_id)) -> dict[str, Any]:
    await _service().clear(user_id)
    return {"message": "Queue cleared successfully"}
