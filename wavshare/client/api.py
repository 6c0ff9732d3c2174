"""
wavshare REST API client.

Thin async wrapper around the JSON API using httpx. Every method returns the
decoded JSON body; failures raise `NetworkError` (transport) or `ApiError`
(error status, message taken from the `{message}` body).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from wavshare.client import ApiError, NetworkError

logger = logging.getLogger(__name__)


class WavshareApiClient:
    """
    Queue/playlist API client for one authenticated user.

    Usage:
        async with WavshareApiClient("http://127.0.0.1:5000", token) as api:
            data = await api.get_queue()

    Tests pass their own `httpx.AsyncClient` (e.g. with an ASGITransport);
    an injected client is not closed by `close()`.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> WavshareApiClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self._timeout)
        return self._client

    def _headers(self) -> dict[str, str]:
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    async def _request(
        self, method: str, path: str, *, json: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        try:
            response = await self._http().request(
                method, path, json=json, headers=self._headers()
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            message = data.get("message") if isinstance(data, dict) else None
            logger.debug("%s %s -> %d %s", method, path, response.status_code, message)
            raise ApiError(message or f"{method} {path} failed", response.status_code)
        return data if isinstance(data, dict) else {}

    def track_url(self, file_path: str) -> str:
        """Absolute URL of a stored audio file (served under /uploads)."""
        return f"{self.base_url}/uploads/{file_path.lstrip('/')}"

    # =========================================================================
    # Queue
    # =========================================================================

    async def get_queue(self) -> dict[str, Any]:
        return await self._request("GET", "/queue")

    async def add_to_queue(self, post_id: int) -> dict[str, Any]:
        return await self._request("POST", "/queue", json={"postId": post_id})

    async def add_to_queue_next(self, post_id: int) -> dict[str, Any]:
        return await self._request("POST", "/queue/next", json={"postId": post_id})

    async def remove_from_queue(self, post_id: int) -> dict[str, Any]:
        return await self._request("DELETE", f"/queue/{post_id}")

    async def reorder_queue(self, from_index: int, to_index: int) -> dict[str, Any]:
        return await self._request(
            "PUT", "/queue/reorder", json={"fromIndex": from_index, "toIndex": to_index}
        )

    async def clear_queue(self) -> dict[str, Any]:
        return await self._request("DELETE", "/queue")

    async def get_queue_settings(self) -> dict[str, Any]:
        return await self._request("GET", "/queue/settings")

    async def update_queue_settings(
        self, *, shuffle_mode: bool | None = None, repeat_mode: str | None = None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if shuffle_mode is not None:
            body["shuffleMode"] = shuffle_mode
        if repeat_mode is not None:
            body["repeatMode"] = repeat_mode
        return await self._request("PUT", "/queue/settings", json=body)

    # =========================================================================
    # Playlists
    # =========================================================================

    async def add_playlist_to_queue(
        self, playlist_id: int, *, shuffle: bool = False, play_next: bool = False
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/playlists/{playlist_id}/queue",
            json={"shuffle": shuffle, "playNext": play_next},
        )

    async def get_playlists(self) -> dict[str, Any]:
        return await self._request("GET", "/playlists")

    async def get_playlist(self, playlist_id: int) -> dict[str, Any]:
        return await self._request("GET", f"/playlists/{playlist_id}")
