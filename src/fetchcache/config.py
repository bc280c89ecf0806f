"""Where fetchcache keeps its files, and how its settings are resolved.

Directories follow the XDG Base Directory layout on Linux and BSD and fall
back to ``~/.fetchcache/`` elsewhere:

* config: ``$XDG_CONFIG_HOME/fetchcache`` or ``~/.fetchcache``
* cache: ``$XDG_CACHE_HOME/fetchcache`` or ``~/.fetchcache/cache``
* data: ``$XDG_DATA_HOME/fetchcache`` or ``~/.fetchcache/logs``

Cached bytes go to ``<cache>/resources`` unless a repository is configured.

Settings come from, highest first: CLI flags, ``FETCHCACHE_*`` environment
variables, ``./fetchcache.json``, the user's ``config.json``, and the
model defaults. See :func:`resolve_config`.

Config files and batch reports are written with :func:`atomic_write`.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from fetchcache.exceptions import ConfigError
from fetchcache.models import GlobalConfig

_APP_NAME = "fetchcache"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "fetchcache.json"
_REPOSITORY_DIRNAME = "resources"
_MAX_REDIRECTS_BOUND = 10

# kind -> (XDG variable, default under $HOME, sub-directory of the fallback base)
_DIRECTORIES: dict[str, tuple[str, tuple[str, ...], tuple[str, ...]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), ()),
    "cache": ("XDG_CACHE_HOME", (".cache",), ("cache",)),
    "data": ("XDG_DATA_HOME", (".local", "share"), ("logs",)),
}


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, home_default, fallback = _DIRECTORIES[kind]
    if _is_xdg_platform():
        base = os.environ.get(env_var) or str(Path.home().joinpath(*home_default))
        path = Path(base) / _APP_NAME
    else:
        path = Path.home().joinpath(f".{_APP_NAME}", *fallback)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding ``config.json`` (created on demand)."""
    return _app_dir("config")


def get_cache_dir() -> Path:
    """Directory for disposable data, including the default repository."""
    return _app_dir("cache")


def get_data_dir() -> Path:
    """Directory for crash logs."""
    return _app_dir("data")


def get_default_repository() -> Path:
    """Return ``<cache_dir>/resources``, the default home of cached bytes.

    The index itself is never persisted, so anything found here from an
    earlier process is simply overwritten when the same key is fetched again.
    """
    path = get_cache_dir() / _REPOSITORY_DIRNAME
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic writes ---


def atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* in one step.

    The text goes to a hidden temporary file next to *path*, is fsynced, and
    is then moved over *path* with :func:`os.replace`, so readers see either
    the old file or the new one. Newlines are written exactly as given (CRLF
    report lines stay CRLF). On failure the temporary file is removed and the
    exception propagates.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    handle = tempfile.NamedTemporaryFile(
        mode="w",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
        encoding="utf-8",
        newline="",
    )
    try:
        with handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(handle.name, path)
    except BaseException:
        Path(handle.name).unlink(missing_ok=True)
        raise


# --- Config files ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def _read_json(path: Path, label: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc


def load_global_config() -> GlobalConfig:
    """Load ``config.json`` from the config directory, or defaults if it is absent.

    Raises:
        ConfigError: If the file is not valid JSON or does not validate.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    data = _read_json(path, "global config")
    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    atomic_write(_global_config_path(), json.dumps(config.model_dump(mode="json"), indent=2) + "\n")


def load_project_config() -> Optional[dict[str, Any]]:
    """Load ``./fetchcache.json`` if present.

    The file mirrors ``config.json`` with every section and field optional;
    typically it pins a repository for one working tree.

    Raises:
        ConfigError: If the file is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    data = _read_json(path, "project config")
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# --- Resolution ---


def _env_max_redirects() -> Optional[int]:
    raw = os.environ.get("FETCHCACHE_MAX_REDIRECTS")
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"FETCHCACHE_MAX_REDIRECTS must be an integer, got '{raw}'") from exc
    if not 0 <= value <= _MAX_REDIRECTS_BOUND:
        raise ConfigError(
            f"FETCHCACHE_MAX_REDIRECTS must be between 0 and {_MAX_REDIRECTS_BOUND}, got {value}"
        )
    return value


def resolve_config(
    cli_repository: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> GlobalConfig:
    """Build the effective configuration.

    Precedence (high to low):
        1. CLI flags (``cli_repository``, ``cli_format``)
        2. ``FETCHCACHE_REPOSITORY`` and ``FETCHCACHE_MAX_REDIRECTS``
        3. ``./fetchcache.json``
        4. ``config.json`` in the config directory
        5. Model defaults

    Raises:
        ConfigError: If a config file or environment override is invalid.
    """
    config = load_global_config()

    project = load_project_config()
    if project:
        try:
            config = GlobalConfig.model_validate(
                _deep_merge(config.model_dump(mode="json"), project)
            )
        except ValueError as exc:
            raise ConfigError(f"Invalid project config: {exc}") from exc

    env_repository = os.environ.get("FETCHCACHE_REPOSITORY")
    if env_repository:
        config.cache.repository = env_repository
    env_redirects = _env_max_redirects()
    if env_redirects is not None:
        config.fetch.max_redirects = env_redirects

    if cli_repository is not None:
        config.cache.repository = cli_repository
    if cli_format is not None:
        config.output.format = cli_format

    return config


def resolve_repository(config: GlobalConfig) -> Path:
    """Return the configured repository, or the default one when unset."""
    if config.cache.repository:
        return Path(config.cache.repository).expanduser()
    return get_default_repository()
