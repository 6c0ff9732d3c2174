"""
wavshare - Entry Point

Run with: python -m wavshare <command>

Commands:
    serve       run the REST API server
    add-user    create a user and print an API token
    add-post    register a local audio file as a post
    play        play a user's queue headlessly, removing finished tracks
"""

import argparse
import asyncio
import logging
import shutil
import sys
from pathlib import Path

from wavshare import __version__
from wavshare.config import WavshareConfig, reload_config
from wavshare.core import CoreError
from wavshare.core.audio import AudioProbeError, is_audio_path, probe_audio_async
from wavshare.core.store import WavshareDb
from wavshare.server import WavshareServer

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wavshare",
        description="wavshare - music sharing server with per-user playback queues",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to a wavshare.toml (default: bundled config)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="SQLite database path (overrides [storage] db_path)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the REST API server")
    serve.add_argument("--host", type=str, default=None, help="Host address to bind to")
    serve.add_argument("-p", "--port", type=int, default=None, help="HTTP port")

    add_user = sub.add_parser("add-user", help="Create a user and print an API token")
    add_user.add_argument("username")

    add_post = sub.add_parser("add-post", help="Register a local audio file as a post")
    add_post.add_argument("username", help="Owner of the post")
    add_post.add_argument("file", type=Path, help="Audio file (copied into the uploads dir)")
    add_post.add_argument("--title", default=None, help="Title (default: from tags)")
    add_post.add_argument("--description", default=None)

    play = sub.add_parser("play", help="Play a user's queue headlessly")
    play.add_argument("--token", required=True, help="API token of the user")
    play.add_argument("--server", default=None, help="Server URL (overrides [client])")

    return parser


def load_effective_config(args: argparse.Namespace) -> WavshareConfig:
    """Config file plus command line overrides."""
    config = reload_config(args.config)
    if args.db is not None:
        config.storage.db_path = args.db
    if getattr(args, "host", None):
        config.server.host = args.host
    if getattr(args, "port", None):
        config.server.port = args.port
    if getattr(args, "server", None):
        config.client.server_url = args.server.rstrip("/")
    return config


async def add_user(config: WavshareConfig, username: str) -> str:
    db = WavshareDb(config.storage.db_path)
    await db.open()
    try:
        await db.ensure_schema()
        user = await db.create_user(username)
        return await db.issue_token(user.id)
    finally:
        await db.close()


async def add_post(
    config: WavshareConfig,
    username: str,
    file: Path,
    *,
    title: str | None = None,
    description: str | None = None,
) -> int:
    """Copy an audio file below the uploads dir and register it; returns the post id."""
    if not is_audio_path(file):
        raise AudioProbeError(f"Not an audio file: {file}")
    info = await probe_audio_async(file)

    uploads = config.storage.uploads_dir.resolve()
    source = file.resolve()
    if source.is_relative_to(uploads):
        relative = source.relative_to(uploads)
    else:
        relative = Path(username) / source.name
        target = uploads / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.copy2, source, target)

    db = WavshareDb(config.storage.db_path)
    await db.open()
    try:
        await db.ensure_schema()
        user = await db.get_user_by_username(username)
        if user is None:
            raise CoreError(f"Unknown user: {username}")
        post = await db.create_post(
            user_id=user.id,
            title=title or info.title or source.stem,
            description=description,
            file_path=relative.as_posix(),
        )
        return post.id
    finally:
        await db.close()


async def play_queue(config: WavshareConfig, token: str) -> None:
    """Play the queue from the top until it runs out or the process is stopped."""
    from wavshare.client.api import WavshareApiClient
    from wavshare.client.player import AudioPlaybackController
    from wavshare.client.sync import QueueSync

    uploads = config.storage.uploads_dir

    async with WavshareApiClient(
        config.client.server_url, token, timeout=config.client.timeout
    ) as api:
        controller = AudioPlaybackController(
            advance_delay=config.client.advance_delay,
            volume=config.client.default_volume,
        )
        sync = QueueSync(
            api,
            controller,
            poll_interval=config.client.poll_interval,
            track_url=lambda file_path: str(uploads / file_path),
        )
        await sync.load()
        await sync.start()
        try:
            if await controller.play_from_queue(0) is None:
                logger.info("Queue is empty")
                return
            while controller.state.current_track is not None:
                await asyncio.sleep(config.client.poll_interval)
        finally:
            await sync.stop()
            await controller.close()


def main() -> int:
    """Main entry point for the application."""
    args = build_parser().parse_args()
    setup_logging(verbose=args.verbose)

    try:
        config = load_effective_config(args)
    except (OSError, ValueError) as e:
        logger.error("Cannot load config: %s", e)
        return 2

    try:
        if args.command == "serve":
            logger.info("Starting wavshare...")
            asyncio.run(WavshareServer(config).run())
            logger.info("Server stopped")
        elif args.command == "add-user":
            token = asyncio.run(add_user(config, args.username))
            print(token)
        elif args.command == "add-post":
            post_id = asyncio.run(
                add_post(
                    config,
                    args.username,
                    args.file,
                    title=args.title,
                    description=args.description,
                )
            )
            print(post_id)
        elif args.command == "play":
            asyncio.run(play_queue(config, args.token))
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
    except (CoreError, AudioProbeError) as e:
        logger.error("%s", e)
        return 1
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
