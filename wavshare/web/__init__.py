"""
wavshare Web Layer.

This package provides the JSON REST API of wavshare.

Components:
- WebServer: FastAPI application with all routes and error mapping
- auth: bearer-token dependency
- routes: queue, playlist and post/upload endpoints
"""

from wavshare.web.server import WebServer

__all__ = ["WebServer"]
