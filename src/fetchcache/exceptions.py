"""Exception hierarchy for fetchcache.

All exceptions inherit from :class:`FetchCacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`fetchcache.exit_codes`.
The top-level error handler in :func:`fetchcache.app.main` catches
``FetchCacheError`` and exits with the appropriate code, while the batch
runner turns any ``FetchCacheError`` raised for one key into an ``ERROR``
row and moves on to the next key.

Subclass hierarchy::

    FetchCacheError (exit 1)
    +-- InvalidUsageError        (exit 2)
    |   +-- CacheConstructionError (exit 2)
    +-- ConfigError              (exit 1)
    +-- OversizedObjectError     (exit 3)
    +-- FetchError               (exit 6)
    |   +-- RedirectLoopError
    |   +-- HTTPStatusError
    +-- StorageError             (exit 7)
        +-- EvictionError
"""

from __future__ import annotations

from pathlib import Path

from fetchcache.exit_codes import (
    EXIT_CAPACITY_EXCEEDED,
    EXIT_FETCH_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_STORAGE_FAILURE,
)


class FetchCacheError(Exception):
    """Base exception for all fetchcache errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`fetchcache.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(FetchCacheError):
    """Raised for invalid CLI arguments, empty keys, or a malformed input file."""

    exit_code = EXIT_INVALID_USAGE


class CacheConstructionError(InvalidUsageError):
    """Raised when a :class:`~fetchcache.cache.CacheEngine` cannot be built.

    Covers capacity outside ``[0, SYSTEM_MAX_CAPACITY]``, a negative item
    count hint, and a repository root that is missing or not writable.
    No engine instance is produced.
    """


class ConfigError(FetchCacheError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE


class OversizedObjectError(FetchCacheError):
    """Raised when a resource is larger than the cache's total capacity.

    No eviction sequence could ever make room for it, so the load fails
    before anything is evicted.
    """

    exit_code = EXIT_CAPACITY_EXCEEDED

    def __init__(self, key: str, size_in_bytes: int, capacity_bytes: int):
        super().__init__(
            f"Object {key} is {size_in_bytes} bytes, larger than the cache "
            f"capacity of {capacity_bytes} bytes"
        )
        self.key = key
        self.size_in_bytes = size_in_bytes
        self.capacity_bytes = capacity_bytes


class FetchError(FetchCacheError):
    """Raised on any network-level failure while fetching a resource.

    DNS failures, refused connections, timeouts, malformed responses and
    unsupported URLs all surface as this type. The fetcher never retries on
    its own.
    """

    exit_code = EXIT_FETCH_FAILURE

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class RedirectLoopError(FetchError):
    """Raised when a redirect chain is longer than the configured bound."""

    def __init__(self, original_url: str, final_url: str, redirects: int):
        super().__init__(
            f"Too many redirects ({redirects}) when retrieving {original_url}, "
            f"last location was {final_url}",
            url=final_url,
        )
        self.original_url = original_url
        self.final_url = final_url
        self.redirects = redirects


class HTTPStatusError(FetchError):
    """Raised when the terminal response (after redirects) is not 2xx."""

    def __init__(self, status_code: int, url: str, redirects: int, original_url: str):
        super().__init__(
            f"HTTP {status_code} when retrieving {url} "
            f"({redirects} redirects, started at {original_url})",
            url=url,
        )
        self.status_code = status_code
        self.redirects = redirects
        self.original_url = original_url


class StorageError(FetchCacheError):
    """Raised when fetched bytes cannot be written to the cache repository."""

    exit_code = EXIT_STORAGE_FAILURE


class EvictionError(StorageError):
    """Raised when an evicted entry's file cannot be removed after all retries.

    The file is still on disk and the entry stays indexed.
    """

    def __init__(self, path: Path, attempts: int, reason: str = ""):
        message = f"Unable to delete {path} after {attempts} attempts"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.path = path
        self.attempts = attempts
