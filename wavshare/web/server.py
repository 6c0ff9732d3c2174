"""
Web Server Module for wavshare.

This module provides the WebServer class that creates and manages the
FastAPI application, registers all routes, and maps domain errors to
`{"message": ...}` JSON responses.

The WebServer integrates:
- Queue API (per-user playback queue and settings)
- Playlist API (CRUD, tracks, playlist-to-queue)
- Post lookup and stored audio files
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from wavshare import __version__
from wavshare.core import (
    AllDuplicatesError,
    AuthenticationError,
    CoreError,
    DuplicateError,
    EmptyPlaylistError,
    NotFoundError,
    NotPlayableError,
    QueueFullError,
    ValidationError,
)
from wavshare.web.auth import configure_auth
from wavshare.web.routes import (
    register_playlist_routes,
    register_post_routes,
    register_queue_routes,
)

if TYPE_CHECKING:
    from wavshare.core.playlists import PlaylistStore
    from wavshare.core.queue import QueueService
    from wavshare.core.store import WavshareDb

logger = logging.getLogger(__name__)

# Domain error -> HTTP status. Duplicates are reported as 400, not 409.
ERROR_STATUS: dict[type[CoreError], int] = {
    ValidationError: 400,
    DuplicateError: 400,
    QueueFullError: 400,
    EmptyPlaylistError: 400,
    AllDuplicatesError: 400,
    NotPlayableError: 400,
    NotFoundError: 404,
    AuthenticationError: 401,
}


def status_for(exc: CoreError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 400


_MISSING_FIELD_MESSAGES = {
    "postId": "Post ID is required",
    "fromIndex": "Valid fromIndex and toIndex are required",
    "toIndex": "Valid fromIndex and toIndex are required",
}

# Any invalid value for these fields gets the "required" message
_INDEX_FIELDS = frozenset({"fromIndex", "toIndex"})


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "path", "query")]
    field = ".".join(loc)
    if field in _INDEX_FIELDS:
        return _MISSING_FIELD_MESSAGES[field]
    if first.get("type") == "missing" and field:
        return _MISSING_FIELD_MESSAGES.get(field, f"{field} is required")
    if field:
        return f"Invalid value for {field}: {first.get('msg', 'invalid')}"
    return str(first.get("msg", "Invalid request"))


class WebServer:
    """
    FastAPI-based web server for wavshare.

    Provides the JSON REST API consumed by the browser tier and by
    `wavshare.client.WavshareApiClient`.
    """

    def __init__(
        self,
        db: WavshareDb,
        queue_service: QueueService,
        playlist_store: PlaylistStore,
        uploads_dir: Path = Path("uploads"),
        cors_origins: list[str] | None = None,
    ) -> None:
        """
        Initialize the WebServer.

        Args:
            db: Open WavshareDb (tokens, posts)
            queue_service: QueueService for /queue
            playlist_store: PlaylistStore for /playlists
            uploads_dir: Root of stored audio files served under /uploads
            cors_origins: Allowed CORS origins (default: any)
        """
        self.db = db
        self.queue_service = queue_service
        self.playlist_store = playlist_store
        self.uploads_dir = uploads_dir

        # Create FastAPI app
        self.app = FastAPI(
            title="wavshare",
            description="Music sharing server with per-user playback queues",
            version=__version__,
        )

        # Add CORS middleware
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins or ["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        # Server state
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task | None = None
        self._host = "0.0.0.0"
        self._port = 5000

        self._register_exception_handlers()
        self._register_routes()

    def _register_exception_handlers(self) -> None:
        """Every error leaves the API as {"message": ...}."""

        @self.app.exception_handler(CoreError)
        async def core_error_handler(request: Request, exc: CoreError) -> JSONResponse:
            status = status_for(exc)
            logger.debug(
                "%s %s -> %d %s", request.method, request.url.path, status, exc.message
            )
            return JSONResponse(status_code=status, content={"message": exc.message})

        @self.app.exception_handler(RequestValidationError)
        async def validation_error_handler(
            request: Request, exc: RequestValidationError
        ) -> JSONResponse:
            return JSONResponse(status_code=400, content={"message": _validation_message(exc)})

        @self.app.exception_handler(StarletteHTTPException)
        async def http_error_handler(
            request: Request, exc: StarletteHTTPException
        ) -> JSONResponse:
            return JSONResponse(
                status_code=exc.status_code,
                content={"message": str(exc.detail)},
                headers=getattr(exc, "headers", None),
            )

        @self.app.exception_handler(Exception)
        async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return JSONResponse(status_code=500, content={"message": "Internal server error"})

    def _register_routes(self) -> None:
        """Register all routes with the FastAPI app."""

        # Health check
        @self.app.get("/health")
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "ok", "server": "wavshare"}

        configure_auth(self.db)
        register_queue_routes(self.app, self.queue_service)
        register_playlist_routes(self.app, self.playlist_store, self.queue_service)
        register_post_routes(self.app, self.db, self.uploads_dir)

    async def start(self, host: str = "0.0.0.0", port: int = 5000) -> None:
        """
        Start the web server.

        Args:
            host: Host address to bind to
            port: Port to listen on
        """
        self._host = host
        self._port = port

        # Configure uvicorn
        config = uvicorn.Config(
            self.app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)

        # Start server in background
        self._serve_task = asyncio.create_task(self._server.serve())

        logger.info("Web server started on http://%s:%d", host, port)

    async def stop(self) -> None:
        """Stop the web server."""
        if self._server is not None:
            self._server.should_exit = True
            self._server = None
        if self._serve_task is not None:
            try:
                await self._serve_task
            except asyncio.CancelledError:
                pass
            self._serve_task = None

        logger.info("Web server stopped")

    @property
    def port(self) -> int:
        """Get the server port."""
        return self._port

    @property
    def host(self) -> str:
        """Get the server host."""
        return self._host
