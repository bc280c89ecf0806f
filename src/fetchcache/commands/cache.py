"""Cache commands -- batch simulation and ad-hoc loads.

* ``fetchcache run`` reads a batch input file (capacity, item count, keys),
  loads every key through one :class:`~fetchcache.cache.CacheEngine`, and
  writes the CRLF report.
* ``fetchcache load`` loads keys given on the command line and prints the
  outcome of each.

Both build their engine explicitly for the duration of the command; cached
bytes stay in the repository afterwards but the index does not survive the
process.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from fetchcache.exit_codes import EXIT_PARTIAL_FAILURE
from fetchcache.fetch import Fetcher
from fetchcache.models import Outcome, ResultDescriptor
from fetchcache.output import info, print_table, success, warning

DEFAULT_INPUT_FILE = "fetchcache-input.txt"
DEFAULT_OUTPUT_FILE = "fetchcache-output.txt"


def run_command(
    input_file: Path = typer.Option(
        Path(DEFAULT_INPUT_FILE), "--input", "-i", help="Batch input file."
    ),
    output_file: Path = typer.Option(
        Path(DEFAULT_OUTPUT_FILE), "--output", "-o", help="Report file (overwritten)."
    ),
    repository: Optional[str] = typer.Option(
        None, "--repository", "-p", help="Directory for cached resources."
    ),
    strict: bool = typer.Option(
        False, "--strict", help="Exit with a failure code if any key ends in ERROR."
    ),
) -> None:
    """Run a batch simulation from an input file and write the report.

    The first line of the input is the cache capacity in bytes, the second
    the number of items, and each following line one URL. Every URL is
    loaded in order; failures are recorded as ``ERROR`` with size 0 and do
    not stop the run.

    Example::

        fetchcache run -i urls.txt -o report.txt -p /tmp/fetchcache
    """
    from fetchcache.batch import read_input, run_batch, write_report
    from fetchcache.cache import CacheEngine
    from fetchcache.config import resolve_config, resolve_repository

    config = resolve_config(cli_repository=repository)
    repo = resolve_repository(config)
    batch = read_input(input_file)

    info(f"Reading keys from {input_file.absolute()}")
    info(f"Caching resources under {repo.absolute()}")

    with Fetcher(config.fetch) as fetcher:
        engine = CacheEngine(batch.capacity_bytes, batch.item_count, repo, fetcher=fetcher)
        results = run_batch(engine, batch.keys)

    write_report(output_file, results)
    success(f"Wrote {len(results)} results to {output_file.absolute()}")
    _print_counters(engine.stats())

    errors = sum(1 for result in results if result.outcome == Outcome.ERROR)
    if errors:
        warning(f"{errors} of {len(results)} keys could not be loaded")
        if strict:
            raise typer.Exit(code=EXIT_PARTIAL_FAILURE)


def load_command(
    keys: list[str] = typer.Argument(..., help="Resource URLs to load, in order."),
    capacity: Optional[int] = typer.Option(
        None, "--capacity", "-c", help="Cache capacity in bytes (default from config)."
    ),
    items: Optional[int] = typer.Option(
        None, "--items", help="Expected number of items (default from config)."
    ),
    repository: Optional[str] = typer.Option(
        None, "--repository", "-p", help="Directory for cached resources."
    ),
) -> None:
    """Load one or more URLs through a fresh cache and print each outcome.

    Repeating a URL shows the hit path; a small ``--capacity`` shows
    eviction.

    Example::

        fetchcache load https://example.com/a.png https://example.com/a.png
    """
    from fetchcache.batch import run_batch
    from fetchcache.cache import CacheEngine
    from fetchcache.config import resolve_config, resolve_repository

    config = resolve_config(cli_repository=repository)
    repo = resolve_repository(config)
    max_capacity = capacity if capacity is not None else config.cache.capacity_bytes
    item_count = items if items is not None else config.cache.item_count_hint

    with Fetcher(config.fetch) as fetcher:
        engine = CacheEngine(max_capacity, item_count, repo, fetcher=fetcher)
        results = run_batch(engine, keys)

    _print_results(results)
    _print_counters(engine.stats())


def _print_results(results: list[ResultDescriptor]) -> None:
    rows = [[r.key, r.outcome.value, str(r.size_in_bytes)] for r in results]
    print_table(["key", "outcome", "size_in_bytes"], rows, title="Results")


def _print_counters(stats: dict[str, object]) -> None:
    names = [
        "hits",
        "misses",
        "evictions",
        "downloads",
        "entries",
        "current_size_bytes",
        "max_capacity_bytes",
    ]
    print_table(["metric", "value"], [[name, str(stats[name])] for name in names], title="Cache")
