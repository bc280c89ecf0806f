"""Tests for fetchcache.config -- XDG paths, atomic writes, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from fetchcache.config import (
    atomic_write,
    get_cache_dir,
    get_config_dir,
    get_data_dir,
    get_default_repository,
    load_global_config,
    load_project_config,
    resolve_config,
    resolve_repository,
    save_global_config,
)
from fetchcache.exceptions import ConfigError
from fetchcache.models import CacheConfig, GlobalConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPathsLinux:
    """XDG paths on Linux (the default XDG platform)."""

    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("fetchcache.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "fetchcache"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("fetchcache.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        assert get_config_dir() == custom / "fetchcache"

    def test_cache_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("fetchcache.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_cache_dir() == tmp_path / ".cache" / "fetchcache"

    def test_data_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_data"
        monkeypatch.setattr("fetchcache.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_DATA_HOME", str(custom))

        result = get_data_dir()
        assert result == custom / "fetchcache"
        assert result.is_dir()


class TestXDGPathsFallback:
    """Paths on macOS / Windows."""

    def test_config_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("fetchcache.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".fetchcache"

    def test_cache_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("fetchcache.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_cache_dir() == tmp_path / ".fetchcache" / "cache"

    def test_data_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("fetchcache.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_data_dir() == tmp_path / ".fetchcache" / "logs"


class TestDefaultRepository:
    def test_inside_cache_dir(self, isolated_config: Path) -> None:
        repository = get_default_repository()
        assert repository == isolated_config / "cache" / "fetchcache" / "resources"
        assert repository.is_dir()


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        atomic_write(target, "hello world")
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        target.write_text("old content", encoding="utf-8")
        atomic_write(target, "new content")
        assert target.read_text(encoding="utf-8") == "new content"

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "c" / "test.txt"
        atomic_write(target, "deep write")
        assert target.read_text(encoding="utf-8") == "deep write"

    def test_no_temp_files_left_on_success(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        atomic_write(target, "content")
        assert list(tmp_path.iterdir()) == [target]

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("fetchcache.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []

    def test_line_endings_untouched(self, tmp_path: Path) -> None:
        target = tmp_path / "crlf.txt"
        atomic_write(target, "a\r\nb\nc\r\n")
        assert target.read_bytes() == b"a\r\nb\nc\r\n"

    def test_unicode_content(self, tmp_path: Path) -> None:
        target = tmp_path / "unicode.txt"
        content = "https://example.com/été.png CACHED 12"
        atomic_write(target, content)
        assert target.read_text(encoding="utf-8") == content


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        config = load_global_config()
        assert config == GlobalConfig()
        assert config.cache.capacity_bytes == 100 * 1024 * 1024
        assert config.fetch.max_redirects == 5

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        config = GlobalConfig(cache=CacheConfig(capacity_bytes=1234, repository="/srv/cache"))
        save_global_config(config)

        loaded = load_global_config()
        assert loaded.cache.capacity_bytes == 1234
        assert loaded.cache.repository == "/srv/cache"

    def test_saved_config_is_valid_json(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig())
        path = get_config_dir() / "config.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) == {"cache", "fetch", "output"}

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        (get_config_dir() / "config.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_load_invalid_schema_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(get_config_dir() / "config.json", {"fetch": {"max_redirects": 99}})
        with pytest.raises(ConfigError):
            load_global_config()


# ---------------------------------------------------------------------------
# Project config
# ---------------------------------------------------------------------------


class TestProjectConfig:
    def test_load_returns_none_when_missing(self, isolated_config: Path) -> None:
        assert load_project_config() is None

    def test_load_valid_project_config(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "fetchcache.json", {"cache": {"repository": "./cache"}})
        assert load_project_config() == {"cache": {"repository": "./cache"}}

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        (isolated_config / "fetchcache.json").write_text("[1, 2", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid project config"):
            load_project_config()

    def test_non_object_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "fetchcache.json", ["not", "an", "object"])
        with pytest.raises(ConfigError, match="expected a JSON object"):
            load_project_config()


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------


class TestResolveConfig:
    def test_defaults(self, isolated_config: Path) -> None:
        config = resolve_config()
        assert config.cache.repository is None
        assert config.fetch.max_redirects == 5

    def test_project_overrides_global(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(cache=CacheConfig(repository="/global", capacity_bytes=10)))
        _write_json(isolated_config / "fetchcache.json", {"cache": {"repository": "/project"}})

        config = resolve_config()
        assert config.cache.repository == "/project"
        # Fields the project file does not mention come from the global file.
        assert config.cache.capacity_bytes == 10

    def test_invalid_project_values(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "fetchcache.json", {"fetch": {"connect_timeout": -1}})
        with pytest.raises(ConfigError):
            resolve_config()

    def test_env_overrides_project(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _write_json(isolated_config / "fetchcache.json", {"cache": {"repository": "/project"}})
        monkeypatch.setenv("FETCHCACHE_REPOSITORY", "/env")
        assert resolve_config().cache.repository == "/env"

    def test_cli_overrides_env(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FETCHCACHE_REPOSITORY", "/env")
        assert resolve_config(cli_repository="/cli").cache.repository == "/cli"

    def test_env_max_redirects(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FETCHCACHE_MAX_REDIRECTS", "2")
        assert resolve_config().fetch.max_redirects == 2

    @pytest.mark.parametrize("raw", ["many", "11", "-1"])
    def test_env_max_redirects_invalid(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch, raw: str
    ) -> None:
        monkeypatch.setenv("FETCHCACHE_MAX_REDIRECTS", raw)
        with pytest.raises(ConfigError, match="FETCHCACHE_MAX_REDIRECTS"):
            resolve_config()

    def test_cli_format_overrides_global(self, isolated_config: Path) -> None:
        assert resolve_config(cli_format="json").output.format == "json"


class TestResolveRepository:
    def test_configured(self, isolated_config: Path) -> None:
        config = GlobalConfig(cache=CacheConfig(repository=str(isolated_config / "repo")))
        assert resolve_repository(config) == isolated_config / "repo"

    def test_default(self, isolated_config: Path) -> None:
        assert resolve_repository(GlobalConfig()) == get_default_repository()

    def test_expands_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        config = GlobalConfig(cache=CacheConfig(repository="~/fc"))
        assert resolve_repository(config) == tmp_path / "fc"
