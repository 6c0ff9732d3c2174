"""
Tests for wavshare.config.
"""

from __future__ import annotations

from pathlib import Path

import pytest

import wavshare.config as config_module
from wavshare.config import (
    DEFAULT_CONFIG_PATH,
    WavshareConfig,
    get_config,
    load_config,
    reload_config,
)


@pytest.fixture(autouse=True)
def reset_config_singleton():
    """Keep the module-level singleton from leaking between tests."""
    config_module._config = None
    config_module._config_path = None
    yield
    config_module._config = None
    config_module._config_path = None


class TestLoadConfig:
    """Tests for reading TOML files."""

    def test_bundled_defaults(self) -> None:
        config = load_config()
        assert config.source == DEFAULT_CONFIG_PATH
        assert config.server.port == 5000
        assert config.server.cors_origins == ["*"]
        assert config.queue.capacity == 100
        assert config.client.default_volume == 0.7
        assert config.client.advance_delay == 0.1
        assert config.storage.db_path == Path.cwd() / "data/wavshare.sqlite3"

    def test_missing_sections_use_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "wavshare.toml"
        path.write_text("[server]\nport = 8080\n")

        config = load_config(path)

        assert config.server.port == 8080
        assert config.server.host == "0.0.0.0"
        assert config.queue.capacity == 100
        assert config.client.server_url == "http://127.0.0.1:5000"

    def test_relative_paths_resolve_against_file(self, tmp_path: Path) -> None:
        path = tmp_path / "conf" / "wavshare.toml"
        path.parent.mkdir()
        path.write_text(
            '[storage]\ndb_path = "db/w.sqlite3"\nuploads_dir = "/srv/uploads"\n'
        )

        config = load_config(path)

        assert config.storage.db_path == tmp_path / "conf" / "db" / "w.sqlite3"
        assert config.storage.uploads_dir == Path("/srv/uploads")

    def test_memory_db(self, tmp_path: Path) -> None:
        path = tmp_path / "wavshare.toml"
        path.write_text('[storage]\ndb_path = ":memory:"\n')
        assert str(load_config(path).storage.db_path) == ":memory:"

    def test_client_values_are_normalized(self, tmp_path: Path) -> None:
        path = tmp_path / "wavshare.toml"
        path.write_text(
            '[client]\nserver_url = "http://host:5000/"\ndefault_volume = 4\n'
        )
        config = load_config(path)
        assert config.client.server_url == "http://host:5000"
        assert config.client.default_volume == 1.0

    def test_invalid_capacity(self, tmp_path: Path) -> None:
        path = tmp_path / "wavshare.toml"
        path.write_text("[queue]\ncapacity = 0\n")
        with pytest.raises(ValueError):
            load_config(path)

    def test_section_must_be_table(self, tmp_path: Path) -> None:
        path = tmp_path / "wavshare.toml"
        path.write_text('queue = "big"\n')
        with pytest.raises(ValueError, match=r"\[queue\] must be a table"):
            load_config(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            load_config(tmp_path / "nope.toml")


class TestSingleton:
    """Tests for get_config / reload_config."""

    def test_get_config_is_cached(self) -> None:
        first = get_config()
        assert isinstance(first, WavshareConfig)
        assert get_config() is first

    def test_reload_remembers_path(self, tmp_path: Path) -> None:
        path = tmp_path / "wavshare.toml"
        path.write_text("[queue]\ncapacity = 5\n")

        reloaded = reload_config(path)

        assert reloaded.queue.capacity == 5
        assert get_config() is reloaded
        assert reload_config().source == path
