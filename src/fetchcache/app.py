"""Typer application and console-script entry point for fetchcache.

The root :data:`app` carries the global output flags and the built-in
commands: ``run`` (batch simulation), ``load`` (ad-hoc loads) and the
``config`` group.

:func:`main` is what the ``fetchcache`` script calls. A
:class:`~fetchcache.exceptions.FetchCacheError` escaping a command becomes
an ``Error:`` line and that error's exit code; any other exception is
written to a crash log under :func:`~fetchcache.config.get_data_dir` and
exits 1.

See Also:
    :mod:`fetchcache.commands`: The command implementations.
    :mod:`fetchcache.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from fetchcache import __version__
from fetchcache.exit_codes import EXIT_GENERIC_FAILURE

_EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="fetchcache",
    help="Disk-backed LRU cache for resources fetched over HTTP.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"fetchcache {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
    ),
    json_output: bool = typer.Option(False, "--json", help="Print tables and config as JSON."),
    plain_output: bool = typer.Option(
        False, "--plain", help="Print tab-separated text even on a terminal."
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print data, warnings and errors."),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log every hit, miss, redirect and eviction to stderr."
    ),
) -> None:
    """Install the process-wide :class:`~fetchcache.output.OutputManager`."""
    from fetchcache.output import OutputFormat, OutputManager, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat.AUTO

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #

from fetchcache.commands.cache import load_command, run_command  # noqa: E402
from fetchcache.commands.config import config_app  # noqa: E402

app.command("run")(run_command)
app.command("load")(load_command)
app.add_typer(config_app, name="config", help="Show and change saved settings.")


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(_EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Save the traceback of *exc* under ``<data_dir>/logs`` and return the file path."""
    from fetchcache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_path.write_text("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    return str(log_path)


def main() -> None:
    """Run the CLI and exit with the matching status code.

    Raises:
        SystemExit: Always.
    """
    from fetchcache.exceptions import FetchCacheError
    from fetchcache.output import error

    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(_EXIT_INTERRUPTED)
    except FetchCacheError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        error(f"Unexpected error. Debug log: {_write_crash_log(exc)}")
        sys.exit(EXIT_GENERIC_FAILURE)
