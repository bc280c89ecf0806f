"""Config commands -- inspect and edit saved settings.

Provides the ``fetchcache config`` group. Values are stored in the user's
``config.json`` (:class:`~fetchcache.models.GlobalConfig`): default
capacity and item count, repository, timeouts, redirect bound, output
format.
"""

from __future__ import annotations

from typing import Any

import typer

from fetchcache.exit_codes import EXIT_INVALID_USAGE
from fetchcache.output import error, format_response, info, print_data, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Print the effective configuration.

    Saved settings are merged with ``./fetchcache.json`` and the
    ``FETCHCACHE_*`` environment variables before printing.

    Example::

        fetchcache --json config show
    """
    from fetchcache.config import get_config_dir, resolve_config

    info(f"Config directory: {get_config_dir()}")
    format_response(resolve_config().model_dump(mode="json"))


@config_app.command("path")
def config_path() -> None:
    """Print the config, cache and data directories."""
    from fetchcache.config import get_cache_dir, get_config_dir, get_data_dir

    for label, directory in (
        ("config", get_config_dir()),
        ("cache", get_cache_dir()),
        ("data", get_data_dir()),
    ):
        print_data(f"{label}\t{directory}")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Dotted key, e.g. 'cache.capacity_bytes'."),
    value: str = typer.Argument(help="New value."),
) -> None:
    """Change one saved setting.

    The value is converted to the type of the current setting and the
    whole config is validated before it is written.

    Example::

        fetchcache config set cache.capacity_bytes 50000000
        fetchcache config set cache.repository /var/cache/fetchcache
        fetchcache config set fetch.max_redirects 3
    """
    from fetchcache.config import load_global_config, save_global_config
    from fetchcache.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")
    section, field = _locate(data, key)
    coerced = _coerce(section[field], value, key)
    section[field] = coerced

    try:
        updated = GlobalConfig.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(updated)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation."),
) -> None:
    """Restore every setting to its default."""
    from fetchcache.config import save_global_config
    from fetchcache.models import GlobalConfig

    if not force and not typer.confirm("Reset all settings to their defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")


def _locate(data: dict[str, Any], key: str) -> tuple[dict[str, Any], str]:
    """Return the dict holding *key*'s last segment, and that segment."""
    *parents, field = key.split(".")
    section = data
    for part in parents:
        section = section.get(part)
        if not isinstance(section, dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
    if field not in section or isinstance(section[field], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    return section, field


def _coerce(current: Any, raw: str, key: str) -> Any:
    # bool before int: bool is a subclass of int.
    if isinstance(current, bool):
        return raw.lower() in ("true", "1", "yes")
    for kind, label in ((int, "integer"), (float, "number")):
        if isinstance(current, kind):
            try:
                return kind(raw)
            except ValueError:
                error(f"Expected {label} for {key}, got: {raw}")
                raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    return raw
