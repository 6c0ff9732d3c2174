"""
wavshare - a music sharing server with per-user playback queues.

Users post audio files or YouTube links, curate playlists and keep a
personal playback queue. The server side is a FastAPI application over
SQLite; `wavshare.client` plays a user's queue and keeps it in sync.
"""

__version__ = "0.1.0"
__license__ = "GPL-2.0"

from wavshare.server import WavshareServer

__all__ = ["WavshareServer", "__version__"]
