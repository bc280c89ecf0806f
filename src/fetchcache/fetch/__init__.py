"""HTTP fetching for cache misses.

This package provides :class:`Fetcher`, a thin layer over
:class:`httpx.Client` that follows redirects by hand up to a bound, applies
connect/read timeouts, and streams response bodies into a caller-supplied
writer so that placement on disk stays with
:class:`~fetchcache.store.DiskStore`.
"""

from fetchcache.fetch.fetcher import Fetcher

__all__ = ["Fetcher"]
