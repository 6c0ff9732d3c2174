"""
wavshare Server - Main Server Module

This module contains the WavshareServer class that wires the store, the
queue service, the playlist store and the web server together and manages
the application lifecycle.
"""

import asyncio
import logging
import signal

from wavshare.config import WavshareConfig
from wavshare.core.events import EventBus, event_bus
from wavshare.core.playlists import PlaylistStore
from wavshare.core.queue import QueueService
from wavshare.core.store import WavshareDb
from wavshare.web.server import WebServer

logger = logging.getLogger(__name__)


class WavshareServer:
    """
    Main wavshare server.

    Owns:
    - WavshareDb (SQLite, schema/migrations on start)
    - QueueService and PlaylistStore (domain logic)
    - WebServer (FastAPI + uvicorn)
    """

    def __init__(self, config: WavshareConfig, *, events: EventBus | None = None) -> None:
        """
        Initialize the wavshare server.

        Args:
            config: Loaded configuration (host/port, storage paths, queue capacity).
            events: Event bus for queue events (default: the global bus).
        """
        self.config = config
        self.host = config.server.host
        self.port = config.server.port

        self.db = WavshareDb(config.storage.db_path)
        self.queue_service = QueueService(
            self.db,
            capacity=config.queue.capacity,
            events=events if events is not None else event_bus,
        )
        self.playlist_store = PlaylistStore(self.db)
        self.web_server: WebServer | None = None

        # Server state
        self._running = False
        self._shutdown_event: asyncio.Event | None = None

    async def start(self) -> None:
        """Start all server components."""
        logger.info("Starting wavshare server on %s:%d", self.host, self.port)

        self._running = True
        self._shutdown_event = asyncio.Event()

        await self.db.open()
        await self.db.ensure_schema()

        uploads_dir = self.config.storage.uploads_dir
        uploads_dir.mkdir(parents=True, exist_ok=True)

        self.web_server = WebServer(
            db=self.db,
            queue_service=self.queue_service,
            playlist_store=self.playlist_store,
            uploads_dir=uploads_dir,
            cors_origins=self.config.server.cors_origins,
        )
        await self.web_server.start(host=self.host, port=self.port)

        logger.info("wavshare server started (db=%s, uploads=%s)", self.db.path, uploads_dir)

    async def stop(self) -> None:
        """Stop all server components gracefully."""
        if not self._running:
            return

        logger.info("Stopping wavshare server...")
        self._running = False

        if self.web_server:
            await self.web_server.stop()

        # Close DB last, after the web server stopped taking requests.
        await self.db.close()

        if self._shutdown_event:
            self._shutdown_event.set()

        logger.info("wavshare server stopped")

    async def run(self) -> None:
        """
        Run the server until shutdown is requested.

        This method starts all components and waits for a shutdown signal
        (SIGINT or SIGTERM).
        """
        await self.start()

        # Set up signal handlers for graceful shutdown
        loop = asyncio.get_running_loop()

        def handle_signal() -> None:
            logger.info("Received shutdown signal")
            if self._shutdown_event:
                self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, handle_signal)
            except NotImplementedError:
                # Signal handlers not supported on Windows
                pass

        # Wait for shutdown
        if self._shutdown_event:
            await self._shutdown_event.wait()

        await self.stop()

    @property
    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running
