"""
Configuration management for wavshare.

Settings are read from a TOML file into dataclasses. The default file,
`wavshare.toml`, ships next to this module; the CLI may point at another
file with `--config` and override single values with flags.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent
DEFAULT_CONFIG_PATH = CONFIG_DIR / "wavshare.toml"


@dataclass
class ServerConfig:
    """HTTP API settings."""

    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class StorageConfig:
    """Database and uploaded-file locations."""

    db_path: Path = Path("data/wavshare.sqlite3")
    uploads_dir: Path = Path("uploads")


@dataclass
class QueueConfig:
    """Queue service limits."""

    capacity: int = 100


@dataclass
class ClientConfig:
    """Defaults for the playback client (`wavshare.client`)."""

    server_url: str = "http://127.0.0.1:5000"
    timeout: float = 10.0
    poll_interval: float = 1.0
    advance_delay: float = 0.1
    default_volume: float = 0.7


@dataclass
class WavshareConfig:
    """Loaded configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    source: Path | None = None


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ValueError(f"[{name}] must be a table")
    return value


def _parse_server(data: dict[str, Any]) -> ServerConfig:
    defaults = ServerConfig()
    origins = data.get("cors_origins", defaults.cors_origins)
    return ServerConfig(
        host=str(data.get("host", defaults.host)),
        port=int(data.get("port", defaults.port)),
        cors_origins=[str(o) for o in origins],
    )


def _parse_storage(data: dict[str, Any], base_dir: Path) -> StorageConfig:
    defaults = StorageConfig()

    def _path(key: str, default: Path) -> Path:
        raw = data.get(key)
        if raw is None:
            return default
        if raw == ":memory:":
            return Path(raw)
        p = Path(str(raw)).expanduser()
        return p if p.is_absolute() else base_dir / p

    return StorageConfig(
        db_path=_path("db_path", defaults.db_path),
        uploads_dir=_path("uploads_dir", defaults.uploads_dir),
    )


def _parse_queue(data: dict[str, Any]) -> QueueConfig:
    capacity = int(data.get("capacity", QueueConfig.capacity))
    if capacity < 1:
        raise ValueError("[queue] capacity must be at least 1")
    return QueueConfig(capacity=capacity)


def _parse_client(data: dict[str, Any]) -> ClientConfig:
    defaults = ClientConfig()
    volume = float(data.get("default_volume", defaults.default_volume))
    return ClientConfig(
        server_url=str(data.get("server_url", defaults.server_url)).rstrip("/"),
        timeout=float(data.get("timeout", defaults.timeout)),
        poll_interval=float(data.get("poll_interval", defaults.poll_interval)),
        advance_delay=float(data.get("advance_delay", defaults.advance_delay)),
        default_volume=max(0.0, min(1.0, volume)),
    )


def load_config(config_path: Path | None = None) -> WavshareConfig:
    """
    Load configuration from a TOML file.

    Relative storage paths are resolved against the current working
    directory for the bundled default file, and against the file's own
    directory otherwise.

    Args:
        config_path: Path to a wavshare.toml. If None, uses the bundled default.

    Returns:
        Loaded WavshareConfig instance.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
        base_dir = Path.cwd()
    else:
        base_dir = config_path.parent

    logger.debug("Loading config from %s", config_path)

    with config_path.open("rb") as f:
        data = tomllib.load(f)

    return WavshareConfig(
        server=_parse_server(_section(data, "server")),
        storage=_parse_storage(_section(data, "storage"), base_dir),
        queue=_parse_queue(_section(data, "queue")),
        client=_parse_client(_section(data, "client")),
        source=config_path,
    )


# Global singleton instance (lazy loaded)
_config: WavshareConfig | None = None
_config_path: Path | None = None


def get_config() -> WavshareConfig:
    """
    Get the global configuration (lazy loaded singleton).

    Returns:
        The WavshareConfig instance.
    """
    global _config

    if _config is None:
        _config = load_config(_config_path)

    return _config


def reload_config(config_path: Path | None = None) -> WavshareConfig:
    """
    Force reload of the configuration, optionally from another file.

    The path is remembered for later `get_config()` calls.

    Returns:
        The newly loaded WavshareConfig instance.
    """
    global _config, _config_path
    if config_path is not None:
        _config_path = config_path
    _config = load_config(_config_path)
    return _config
