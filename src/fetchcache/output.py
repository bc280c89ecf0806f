"""Terminal output for fetchcache: report data on stdout, diagnostics on stderr.

Anything a script might parse (result tables, cache counters, config dumps)
is written to **stdout**. Everything that narrates what the cache is doing
(hits, misses, redirects, evictions, warnings, errors) is written to
**stderr**, so ``fetchcache load ... > results.tsv`` stays clean.

Formats:

* ``rich`` -- tables and highlighted JSON, chosen automatically on a TTY.
* ``plain`` -- tab-separated lines, chosen automatically when piped.
* ``json`` -- machine-readable records.

Colour is turned off by ``--no-color``, ``NO_COLOR`` or ``TERM=dumb``.

The engine, fetcher and store never print directly; they call the
module-level helpers (:func:`debug`, :func:`warning`, ...) which route
through one process-wide :class:`OutputManager` installed by
:func:`~fetchcache.app.main_callback`.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """Output formats accepted by :class:`OutputManager`."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Routes report data to stdout and diagnostics to stderr.

    Args:
        format: Requested format. ``AUTO`` becomes ``RICH`` on an interactive
            terminal with colour enabled, ``PLAIN`` otherwise.
        no_color: Strip colour and markup from everything printed.
        quiet: Drop ``info`` and ``success`` messages. Warnings, errors and
            stdout data are always printed.
        verbose: Print ``debug`` messages, i.e. every cache decision.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._format = _resolve_format(format, self._no_color)

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Print a dict or list (e.g. the effective config) in the active format.

        Plain mode flattens one level of nesting into ``section.field<TAB>value``
        lines.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json(data))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
        else:
            self._stdout.print(Syntax(_to_json(data), "json", theme="monokai", word_wrap=True))

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print rows under *headers*.

        JSON mode emits a list of objects keyed by header, plain mode a
        header line followed by one tab-separated line per row, and rich
        mode a titled :class:`~rich.table.Table`.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json([dict(zip(headers, row)) for row in rows]))
            return
        if self._format == OutputFormat.PLAIN:
            for cells in [headers, *rows]:
                self.print_data("\t".join(cells))
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # stderr
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        if not self._quiet:
            self._emit(message, plain_prefix="", markup="{}")

    def success(self, message: str) -> None:
        if not self._quiet:
            self._emit(message, plain_prefix="", markup="[green]{}[/green]")

    def warning(self, message: str) -> None:
        self._emit(message, plain_prefix="Warning: ", markup="[yellow]Warning:[/yellow] {}")

    def error(self, message: str) -> None:
        self._emit(message, plain_prefix="Error: ", markup="[bold red]Error:[/bold red] {}")

    def debug(self, message: str) -> None:
        """Shown only with ``--verbose``."""
        if self._verbose:
            self._emit(message, plain_prefix="[debug] ", markup="[dim]\\[debug] {}[/dim]")

    def _emit(self, message: str, plain_prefix: str, markup: str) -> None:
        # Keys are URLs and may contain "[...]", which Rich would read as markup.
        if self._no_color:
            print(f"{plain_prefix}{message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup.format(escape(message)), highlight=False)


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _resolve_format(requested: OutputFormat, no_color: bool) -> OutputFormat:
    if requested != OutputFormat.AUTO:
        return requested
    return OutputFormat.RICH if _is_tty() and not no_color else OutputFormat.PLAIN


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _plain_lines(data: Any) -> list[str]:
    if isinstance(data, dict):
        lines = []
        for key, value in data.items():
            if isinstance(value, dict):
                lines.extend(f"{key}.{sub_key}\t{sub_value}" for sub_key, sub_value in value.items())
            else:
                lines.append(f"{key}\t{value}")
        return lines
    if isinstance(data, list):
        return [str(item) for item in data]
    return [str(data)]


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """``NO_COLOR`` (any value, even empty) or ``TERM=dumb`` disables colour."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Process-wide instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager (tests call this between cases)."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def error(message: str) -> None:
    get_output().error(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def debug(message: str) -> None:
    get_output().debug(message)
