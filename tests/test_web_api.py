"""
Tests for wavshare.web module (FastAPI REST API).

These tests verify:
- FastAPI application setup and the health endpoint
- Bearer-token authentication
- Queue endpoints, their messages and status codes
- Playlist endpoints including playlist-to-queue
- Post lookup and stored audio files under /uploads
- Every error leaving the API as {"message": ...}
"""

from __future__ import annotations

from pathlib import Path
from typing import Awaitable, Callable

import pytest
from httpx import ASGITransport, AsyncClient

from wavshare.core.db.models import PostRow, UserRow
from wavshare.core.events import EventBus
from wavshare.core.playlists import PlaylistStore
from wavshare.core.queue import QueueService
from wavshare.core.store import WavshareDb
from wavshare.web.server import WebServer

PostFactory = Callable[..., Awaitable[PostRow]]

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def uploads_dir(tmp_path: Path) -> Path:
    root = tmp_path / "uploads"
    (root / "alice").mkdir(parents=True)
    return root


@pytest.fixture
async def web_server(
    db: WavshareDb,
    queue_service: QueueService,
    playlist_store: PlaylistStore,
    uploads_dir: Path,
) -> WebServer:
    """Create a WebServer instance for testing."""
    return WebServer(
        db=db,
        queue_service=queue_service,
        playlist_store=playlist_store,
        uploads_dir=uploads_dir,
    )


@pytest.fixture
async def anon_client(web_server: WebServer) -> AsyncClient:
    """Client without credentials."""
    transport = ASGITransport(app=web_server.app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def client(web_server: WebServer, db: WavshareDb, alice: UserRow) -> AsyncClient:
    """Client authenticated as alice."""
    token = await db.issue_token(alice.id)
    transport = ASGITransport(app=web_server.app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {token}"},
    ) as client:
        yield client


@pytest.fixture
async def bob_client(web_server: WebServer, db: WavshareDb, bob: UserRow) -> AsyncClient:
    """Client authenticated as bob."""
    token = await db.issue_token(bob.id)
    transport = ASGITransport(app=web_server.app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {token}"},
    ) as client:
        yield client


async def _queue_ids(client: AsyncClient) -> list[int]:
    response = await client.get("/queue")
    assert response.status_code == 200
    return [item["postId"] for item in response.json()["queue"]]


# =============================================================================
# Health / Auth
# =============================================================================


class TestHealthCheck:
    """Tests for the health check endpoint."""

    async def test_health_check(self, anon_client: AsyncClient) -> None:
        response = await anon_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "server": "wavshare"}


class TestAuthentication:
    """Queue and playlist endpoints require a bearer token."""

    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("GET", "/queue"),
            ("DELETE", "/queue"),
            ("GET", "/queue/settings"),
            ("GET", "/playlists"),
            ("POST", "/playlists/1/queue"),
        ],
    )
    async def test_missing_token(
        self, anon_client: AsyncClient, method: str, path: str
    ) -> None:
        response = await anon_client.request(method, path)
        assert response.status_code == 401
        assert response.json() == {"message": "Authentication required"}

    async def test_invalid_token(self, anon_client: AsyncClient) -> None:
        response = await anon_client.get(
            "/queue", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401
        assert response.json() == {"message": "Invalid or expired token"}


# =============================================================================
# Queue
# =============================================================================


class TestQueueApi:
    """Tests for /queue endpoints."""

    async def test_empty_queue_has_default_settings(self, client: AsyncClient) -> None:
        response = await client.get("/queue")
        assert response.status_code == 200
        data = response.json()
        assert data["queue"] == []
        assert data["settings"]["shuffleMode"] is False
        assert data["settings"]["repeatMode"] == "off"

    async def test_add(self, client: AsyncClient, make_post: PostFactory) -> None:
        post = await make_post("Song")
        response = await client.post("/queue", json={"postId": post.id})

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Track added to queue"
        assert data["queueItem"]["postId"] == post.id
        assert data["queueItem"]["position"] == 0
        assert data["queueItem"]["post"]["title"] == "Song"
        assert data["queueItem"]["post"]["user"]["username"] == "alice"

    async def test_add_next(self, client: AsyncClient, make_post: PostFactory) -> None:
        a, b, c = await make_post("A"), await make_post("B"), await make_post("C")
        await client.post("/queue", json={"postId": a.id})
        await client.post("/queue", json={"postId": b.id})

        response = await client.post("/queue/next", json={"postId": c.id})

        assert response.status_code == 201
        assert response.json()["message"] == "Track added to front of queue"
        assert response.json()["queueItem"]["position"] == 0
        assert await _queue_ids(client) == [c.id, a.id, b.id]

    async def test_add_errors(self, client: AsyncClient, make_post: PostFactory) -> None:
        post = await make_post()
        video = await make_post(youtube=True)
        await client.post("/queue", json={"postId": post.id})

        cases = [
            ({"postId": 999}, 404, "Post not found"),
            ({"postId": video.id}, 400, "Only audio posts can be added to queue"),
            ({"postId": post.id}, 400, "Track already in queue"),
            ({}, 400, "Post ID is required"),
        ]
        for body, status, message in cases:
            response = await client.post("/queue", json=body)
            assert response.status_code == status, body
            assert response.json() == {"message": message}

    async def test_string_post_id_rejected(self, client: AsyncClient) -> None:
        response = await client.post("/queue", json={"postId": "1"})
        assert response.status_code == 400
        assert "postId" in response.json()["message"]

    async def test_queue_full(
        self,
        db: WavshareDb,
        events: EventBus,
        playlist_store: PlaylistStore,
        uploads_dir: Path,
        alice: UserRow,
        make_post: PostFactory,
    ) -> None:
        server = WebServer(
            db=db,
            queue_service=QueueService(db, capacity=1, events=events),
            playlist_store=playlist_store,
            uploads_dir=uploads_dir,
        )
        token = await db.issue_token(alice.id)
        a, b = await make_post(), await make_post()
        async with AsyncClient(
            transport=ASGITransport(app=server.app),
            base_url="http://test",
            headers={"Authorization": f"Bearer {token}"},
        ) as client:
            await client.post("/queue", json={"postId": a.id})
            response = await client.post("/queue", json={"postId": b.id})

        assert response.status_code == 400
        assert response.json() == {"message": "Queue is full (maximum 1 tracks)"}

    async def test_remove(self, client: AsyncClient, make_post: PostFactory) -> None:
        a, b = await make_post(), await make_post()
        await client.post("/queue", json={"postId": a.id})
        await client.post("/queue", json={"postId": b.id})

        response = await client.delete(f"/queue/{a.id}")
        assert response.status_code == 200
        assert response.json() == {"message": "Track removed from queue"}

        data = (await client.get("/queue")).json()
        assert [(i["postId"], i["position"]) for i in data["queue"]] == [(b.id, 0)]

        response = await client.delete(f"/queue/{a.id}")
        assert response.status_code == 404
        assert response.json() == {"message": "Track not found in queue"}

    async def test_reorder(self, client: AsyncClient, make_post: PostFactory) -> None:
        posts = [await make_post(n) for n in "ABCD"]
        for post in posts:
            await client.post("/queue", json={"postId": post.id})

        response = await client.put("/queue/reorder", json={"fromIndex": 0, "toIndex": 2})
        assert response.status_code == 200
        assert response.json() == {"message": "Queue reordered successfully"}
        a, b, c, d = (p.id for p in posts)
        assert await _queue_ids(client) == [b, c, a, d]

        response = await client.put("/queue/reorder", json={"fromIndex": 1, "toIndex": 1})
        assert response.json() == {"message": "No change needed"}

        response = await client.put("/queue/reorder", json={"fromIndex": 0, "toIndex": 9})
        assert response.status_code == 400
        assert response.json() == {"message": "Invalid index values"}

        response = await client.put("/queue/reorder", json={"fromIndex": 0})
        assert response.status_code == 400
        assert response.json() == {"message": "Valid fromIndex and toIndex are required"}

        response = await client.put("/queue/reorder", json={"fromIndex": "0", "toIndex": 1})
        assert response.status_code == 400
        assert response.json() == {"message": "Valid fromIndex and toIndex are required"}

    async def test_clear(self, client: AsyncClient, make_post: PostFactory) -> None:
        for _ in range(3):
            await client.post("/queue", json={"postId": (await make_post()).id})

        response = await client.delete("/queue")
        assert response.status_code == 200
        assert response.json() == {"message": "Queue cleared successfully"}
        assert await _queue_ids(client) == []

    async def test_queues_are_private(
        self, client: AsyncClient, bob_client: AsyncClient, make_post: PostFactory
    ) -> None:
        post = await make_post()
        await client.post("/queue", json={"postId": post.id})
        assert await _queue_ids(bob_client) == []


class TestQueueSettingsApi:
    """Tests for /queue/settings."""

    async def test_get_defaults(self, client: AsyncClient, alice: UserRow) -> None:
        response = await client.get("/queue/settings")
        assert response.status_code == 200
        data = response.json()
        assert data["userId"] == alice.id
        assert data["shuffleMode"] is False
        assert data["repeatMode"] == "off"

    async def test_partial_update(self, client: AsyncClient) -> None:
        response = await client.put("/queue/settings", json={"repeatMode": "one"})
        assert response.status_code == 200
        assert response.json()["repeatMode"] == "one"

        response = await client.put("/queue/settings", json={"shuffleMode": True})
        data = response.json()
        assert data["shuffleMode"] is True
        assert data["repeatMode"] == "one"

    async def test_invalid_repeat_mode(self, client: AsyncClient) -> None:
        response = await client.put("/queue/settings", json={"repeatMode": "forever"})
        assert response.status_code == 400
        assert response.json() == {
            "message": 'Invalid repeat mode. Must be "off", "one", or "all"'
        }


# =============================================================================
# Playlists
# =============================================================================


class TestPlaylistApi:
    """Tests for /playlists endpoints."""

    async def _create(self, client: AsyncClient, **body) -> dict:
        response = await client.post("/playlists", json=body)
        assert response.status_code == 201
        return response.json()["playlist"]

    async def test_create_and_list(self, client: AsyncClient) -> None:
        playlist = await self._create(client, name="Mix", description="chill")
        assert playlist["name"] == "Mix"
        assert playlist["isPublic"] is False
        assert playlist["trackCount"] == 0

        response = await client.get("/playlists")
        assert [p["id"] for p in response.json()["playlists"]] == [playlist["id"]]

    async def test_create_without_name(self, client: AsyncClient) -> None:
        response = await client.post("/playlists", json={"name": "  "})
        assert response.status_code == 400
        assert response.json() == {"message": "Playlist name is required"}

    async def test_update_keeps_description_unless_given(self, client: AsyncClient) -> None:
        playlist = await self._create(client, name="Mix", description="chill")
        path = f"/playlists/{playlist['id']}"

        response = await client.put(path, json={"isPublic": True})
        assert response.json()["playlist"]["description"] == "chill"
        assert response.json()["playlist"]["isPublic"] is True

        response = await client.put(path, json={"description": None})
        assert response.json()["playlist"]["description"] is None

    async def test_private_playlist_hidden_from_others(
        self, client: AsyncClient, bob_client: AsyncClient, alice: UserRow
    ) -> None:
        private = await self._create(client, name="Secret")
        public = await self._create(client, name="Shared", isPublic=True)

        response = await bob_client.get(f"/playlists/{private['id']}")
        assert response.status_code == 404
        assert response.json() == {"message": "Playlist not found"}

        response = await bob_client.get(f"/playlists/{public['id']}")
        assert response.status_code == 200

        response = await bob_client.get(f"/playlists/user/{alice.id}")
        assert [p["name"] for p in response.json()["playlists"]] == ["Shared"]

        response = await bob_client.delete(f"/playlists/{public['id']}")
        assert response.status_code == 404

    async def test_user_playlists_without_token(
        self, client: AsyncClient, anon_client: AsyncClient, alice: UserRow
    ) -> None:
        await self._create(client, name="Secret")
        await self._create(client, name="Shared", isPublic=True)

        response = await anon_client.get(f"/playlists/user/{alice.id}")
        assert response.status_code == 200
        assert [p["name"] for p in response.json()["playlists"]] == ["Shared"]

        response = await client.get(f"/playlists/user/{alice.id}")
        assert sorted(p["name"] for p in response.json()["playlists"]) == ["Secret", "Shared"]

        response = await anon_client.get(
            f"/playlists/user/{alice.id}", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    async def test_tracks(self, client: AsyncClient, make_post: PostFactory) -> None:
        playlist = await self._create(client, name="Mix")
        base = f"/playlists/{playlist['id']}"
        x, y, z = [await make_post(n) for n in "XYZ"]

        for post in (x, y, z):
            response = await client.post(f"{base}/tracks", json={"postId": post.id})
            assert response.status_code == 201
            assert response.json()["playlistTrack"]["postId"] == post.id

        response = await client.put(
            f"{base}/tracks/reorder", json={"fromIndex": 2, "toIndex": 0}
        )
        assert response.status_code == 200

        response = await client.delete(f"{base}/tracks/{x.id}")
        assert response.json() == {"message": "Track removed from playlist"}

        tracks = (await client.get(base)).json()["playlist"]["tracks"]
        assert [(t["postId"], t["position"]) for t in tracks] == [(z.id, 0), (y.id, 1)]

    async def test_delete(self, client: AsyncClient) -> None:
        playlist = await self._create(client, name="Mix")
        response = await client.delete(f"/playlists/{playlist['id']}")
        assert response.json() == {"message": "Playlist deleted successfully"}
        assert (await client.get(f"/playlists/{playlist['id']}")).status_code == 404


class TestPlaylistToQueueApi:
    """Tests for POST /playlists/{id}/queue."""

    @pytest.fixture
    async def mix(
        self,
        playlist_store: PlaylistStore,
        alice: UserRow,
        make_post: PostFactory,
    ) -> tuple[int, list[PostRow]]:
        posts = [await make_post(n) for n in "XYZ"]
        playlist = await playlist_store.create(alice.id, "Mix")
        for post in posts:
            await playlist_store.add_track(alice.id, playlist.id, post.id)
        return playlist.id, posts

    async def test_add_without_body(
        self, client: AsyncClient, mix: tuple[int, list[PostRow]]
    ) -> None:
        playlist_id, posts = mix
        response = await client.post(f"/playlists/{playlist_id}/queue")
        assert response.status_code == 200
        assert response.json() == {
            "message": "Added 3 tracks from playlist to queue",
            "addedCount": 3,
            "skippedCount": 0,
        }
        assert await _queue_ids(client) == [p.id for p in posts]

    async def test_skip_and_play_next(
        self,
        client: AsyncClient,
        make_post: PostFactory,
        mix: tuple[int, list[PostRow]],
    ) -> None:
        playlist_id, (x, y, z) = mix
        a = await make_post("A")
        await client.post("/queue", json={"postId": a.id})
        await client.post("/queue", json={"postId": y.id})

        response = await client.post(
            f"/playlists/{playlist_id}/queue", json={"playNext": True}
        )
        data = response.json()
        assert data["addedCount"] == 2
        assert data["skippedCount"] == 1
        assert await _queue_ids(client) == [x.id, z.id, a.id, y.id]

    async def test_shuffle_message(
        self, client: AsyncClient, mix: tuple[int, list[PostRow]]
    ) -> None:
        playlist_id, posts = mix
        response = await client.post(f"/playlists/{playlist_id}/queue", json={"shuffle": True})
        assert response.json()["message"] == "Added 3 tracks from playlist to queue (shuffled)"
        assert sorted(await _queue_ids(client)) == sorted(p.id for p in posts)

    async def test_all_duplicates(
        self, client: AsyncClient, mix: tuple[int, list[PostRow]]
    ) -> None:
        playlist_id, _ = mix
        await client.post(f"/playlists/{playlist_id}/queue")
        response = await client.post(f"/playlists/{playlist_id}/queue")
        assert response.status_code == 400
        assert response.json() == {
            "message": "All tracks from this playlist are already in your queue"
        }

    async def test_empty_and_missing(
        self, client: AsyncClient, playlist_store: PlaylistStore, alice: UserRow
    ) -> None:
        empty = await playlist_store.create(alice.id, "Empty")
        response = await client.post(f"/playlists/{empty.id}/queue")
        assert response.status_code == 400
        assert response.json() == {"message": "Playlist is empty"}

        response = await client.post("/playlists/9999/queue")
        assert response.status_code == 404
        assert response.json() == {"message": "Playlist not found"}

    async def test_private_playlist_of_other_user(
        self, bob_client: AsyncClient, mix: tuple[int, list[PostRow]]
    ) -> None:
        playlist_id, _ = mix
        response = await bob_client.post(f"/playlists/{playlist_id}/queue")
        assert response.status_code == 404


# =============================================================================
# Posts / Uploads
# =============================================================================


class TestPostsAndUploads:
    """Tests for /posts and /uploads."""

    async def test_get_post(self, anon_client: AsyncClient, make_post: PostFactory) -> None:
        post = await make_post("Song")
        response = await anon_client.get(f"/posts/{post.id}")
        assert response.status_code == 200
        data = response.json()["post"]
        assert data["title"] == "Song"
        assert data["postType"] == "AUDIO_FILE"

        response = await anon_client.get("/posts/999")
        assert response.status_code == 404
        assert response.json() == {"message": "Post not found"}

    async def test_serve_upload(self, anon_client: AsyncClient, uploads_dir: Path) -> None:
        (uploads_dir / "alice" / "song.mp3").write_bytes(b"ID3fakeaudio")
        response = await anon_client.get("/uploads/alice/song.mp3")
        assert response.status_code == 200
        assert response.content == b"ID3fakeaudio"

    async def test_missing_upload(self, anon_client: AsyncClient) -> None:
        response = await anon_client.get("/uploads/alice/nope.mp3")
        assert response.status_code == 404
        assert response.json() == {"message": "File not found"}

    async def test_upload_traversal(
        self, anon_client: AsyncClient, uploads_dir: Path
    ) -> None:
        (uploads_dir.parent / "secret.txt").write_text("nope")
        response = await anon_client.get("/uploads/%2E%2E/secret.txt")
        assert response.status_code == 404

    async def test_unknown_route(self, anon_client: AsyncClient) -> None:
        response = await anon_client.get("/nowhere")
        assert response.status_code == 404
        assert "message" in response.json()
