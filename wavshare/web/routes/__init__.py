"""
Web Routes Package.

This package contains FastAPI route modules:
- queue: per-user playback queue (/queue/*)
- playlists: playlist CRUD and playlist-to-queue (/playlists/*)
- posts: post lookup and stored audio files (/posts/*, /uploads/*)
"""

from wavshare.web.routes.playlists import register_playlist_routes
from wavshare.web.routes.posts import register_post_routes
from wavshare.web.routes.queue import register_queue_routes

__all__ = [
    "register_playlist_routes",
    "register_post_routes",
    "register_queue_routes",
]
