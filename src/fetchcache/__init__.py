"""fetchcache -- a capacity-bounded, disk-backed LRU cache in front of HTTP.

Callers ask for a resource by key (its URL). The cache either answers from
its resident index or fetches the resource over HTTP, streams it to a
unique location on disk, and admits it, evicting least-recently-used
entries first so that the total size on disk never exceeds the configured
capacity.

Typical workflow::

    fetchcache run -i urls.txt -o report.txt   # batch simulation
    fetchcache load https://example.com/a.png --capacity 10000000

Modules:
    app: Typer application and CLI entry point.
    cache: :class:`~fetchcache.cache.CacheEngine`, the admission/eviction core.
    fetch: :class:`~fetchcache.fetch.Fetcher`, HTTP with manual redirects.
    store: :class:`~fetchcache.store.DiskStore`, on-disk placement and deletion.
    batch: Input file parsing, batch loads, and CRLF report writing.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration management.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
