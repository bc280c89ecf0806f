"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~fetchcache.exceptions.FetchCacheError` subclass.
Shell wrappers can inspect the exit code to tell a network failure from a
full disk without parsing stderr.

Example::

    $ fetchcache load https://example.com/huge.iso --capacity 100
    $ echo $?
    3   # EXIT_CAPACITY_EXCEEDED -- the object can never fit
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments, a malformed input file, or an unusable cache repository."""

EXIT_CAPACITY_EXCEEDED = 3
"""The requested resource is larger than the total cache capacity."""

EXIT_FETCH_FAILURE = 6
"""A network-level error occurred (timeout, DNS, redirect loop, non-2xx status)."""

EXIT_STORAGE_FAILURE = 7
"""Bytes could not be written to, or evicted from, the cache repository."""

EXIT_PARTIAL_FAILURE = 8
"""A strict batch run finished but at least one key ended in ERROR."""
