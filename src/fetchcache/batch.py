"""Batch simulation: input parsing, one load per key, and CRLF reports.

An input file looks like::

    2464218
    3
    https://example.com/a.jpg
    https://example.com/a.jpg
    https://example.com/b.jpg

Line 1 is the cache capacity in bytes, line 2 the number of items (used as
the index sizing hint), and every following non-blank line is one key.
The report has one ``"<key> <outcome> <size>"`` line per key, each ending
in CRLF, in input order.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from fetchcache.cache import CacheEngine
from fetchcache.config import atomic_write
from fetchcache.exceptions import FetchCacheError, InvalidUsageError
from fetchcache.models import BatchInput, ResultDescriptor
from fetchcache.output import get_output

REPORT_LINE_TERMINATOR = "\r\n"


def parse_input(lines: Iterable[str]) -> BatchInput:
    """Parse the lines of a batch input file.

    Raises:
        InvalidUsageError: If the capacity or item count line is missing or
            not an integer.
    """
    stripped = [line.strip() for line in lines]
    if len(stripped) < 2:
        raise InvalidUsageError(
            "Input must start with the cache capacity and the item count on separate lines"
        )
    capacity = _parse_int(stripped[0], "cache capacity", 1)
    item_count = _parse_int(stripped[1], "item count", 2)
    keys = [line for line in stripped[2:] if line]
    return BatchInput(capacity_bytes=capacity, item_count=item_count, keys=keys)


def read_input(path: str | Path) -> BatchInput:
    """Read and parse a batch input file (UTF-8).

    Raises:
        InvalidUsageError: If the file cannot be read or is malformed.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidUsageError(f"Unable to read input file {path}: {exc}") from exc
    return parse_input(text.splitlines())


def run_batch(engine: CacheEngine, keys: Iterable[str]) -> list[ResultDescriptor]:
    """Load every key in order, recording failures as ``ERROR`` rows.

    One key's failure never stops the batch: any
    :class:`~fetchcache.exceptions.FetchCacheError` becomes an
    ``ERROR`` descriptor with size 0.
    """
    output = get_output()
    results: list[ResultDescriptor] = []
    for key in keys:
        try:
            result = engine.load(key)
        except FetchCacheError as exc:
            output.warning(f"{key}: {exc}")
            result = ResultDescriptor.error(key)
        else:
            output.debug(f"{key}: {result.outcome.value} {result.size_in_bytes}")
        results.append(result)
    return results


def format_result(result: ResultDescriptor) -> str:
    """Render one report line, CRLF included."""
    return f"{result.key} {result.outcome.value} {result.size_in_bytes}{REPORT_LINE_TERMINATOR}"


def format_report(results: Iterable[ResultDescriptor]) -> str:
    return "".join(format_result(result) for result in results)


def write_report(path: str | Path, results: Iterable[ResultDescriptor]) -> None:
    """Write the report to *path*, replacing any earlier report there."""
    atomic_write(Path(path), format_report(results))


def _parse_int(value: str, label: str, line_number: int) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise InvalidUsageError(
            f"Expected an integer {label} on line {line_number}, got '{value}'"
        ) from exc
