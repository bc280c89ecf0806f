"""Capacity-bounded LRU admission and eviction over a disk-backed store.

:class:`CacheEngine` owns the key -> :class:`~fetchcache.models.CacheEntry`
index, its recency order, and the byte accounting. A miss is served by
:class:`~fetchcache.fetch.Fetcher` (network) and
:class:`~fetchcache.store.DiskStore` (placement); the engine decides what
to evict and when to admit.

Invariants held after every :meth:`CacheEngine.load`, including ones that
raise:

* ``current_size_bytes == sum(e.size_in_bytes for e in entries())``
* ``current_size_bytes <= max_capacity_bytes``
* every indexed key has its bytes at ``entry.disk_location``

The index is an :class:`~collections.OrderedDict` with the least recently
used key first. Entries inserted in the same order and never touched again
are evicted first-in first-out.

One :class:`threading.Lock` serialises the whole hit/miss/evict/admit
sequence, including the fetch, so two concurrent misses can never both
claim the same free space and a hit can never observe an entry that is
being evicted.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from pathlib import Path
from typing import Any, Optional

from fetchcache.exceptions import (
    CacheConstructionError,
    EvictionError,
    InvalidUsageError,
    OversizedObjectError,
)
from fetchcache.fetch import Fetcher
from fetchcache.models import CacheConfig, CacheEntry, FetchConfig, Outcome, ResultDescriptor
from fetchcache.output import get_output
from fetchcache.store import DiskStore

SYSTEM_MAX_CAPACITY = 1024 * 1024 * 1024
"""Hard ceiling on ``max_capacity_bytes`` (1 GiB)."""


class CacheEngine:
    """Disk-backed LRU cache in front of an HTTP fetch.

    Args:
        max_capacity_bytes: Total bytes the cache may hold on disk, in
            ``[0, SYSTEM_MAX_CAPACITY]``.
        item_count_hint: Expected number of resident items. Only validated
            and reported; it does not bound the index.
        repository: Existing, writable directory for cached bytes. Ignored
            when *store* is given.
        fetcher: Optional :class:`~fetchcache.fetch.Fetcher`. When omitted the
            engine creates one and closes it in :meth:`close`.
        store: Optional :class:`~fetchcache.store.DiskStore`.

    Raises:
        CacheConstructionError: On out-of-range bounds or an unusable
            repository. No engine is produced.

    Example::

        with CacheEngine(10_000_000, 100, "/var/cache/images") as cache:
            result = cache.load("https://example.com/logo.png")
            print(result.outcome, result.size_in_bytes)
    """

    def __init__(
        self,
        max_capacity_bytes: int,
        item_count_hint: int,
        repository: str | Path | None = None,
        *,
        fetcher: Optional[Fetcher] = None,
        store: Optional[DiskStore] = None,
    ) -> None:
        _validate_bounds(max_capacity_bytes, item_count_hint)
        if store is None:
            if repository is None:
                raise CacheConstructionError("A repository directory is required")
            store = DiskStore(repository)

        self._max_capacity_bytes = max_capacity_bytes
        self._item_count_hint = item_count_hint
        self._store = store
        self._owns_fetcher = fetcher is None
        self._fetcher = fetcher if fetcher is not None else Fetcher()

        self._index: OrderedDict[str, CacheEntry] = OrderedDict()
        self._current_size_bytes = 0
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._downloads = 0

    @classmethod
    def from_config(
        cls,
        cache_config: CacheConfig,
        fetch_config: Optional[FetchConfig] = None,
        repository: str | Path | None = None,
    ) -> CacheEngine:
        """Build an engine from configuration models.

        *repository* overrides ``cache_config.repository``.
        """
        root = repository if repository is not None else cache_config.repository
        fetcher = Fetcher(fetch_config)
        try:
            engine = cls(
                cache_config.capacity_bytes,
                cache_config.item_count_hint,
                root,
                fetcher=fetcher,
            )
        except BaseException:
            fetcher.close()
            raise
        engine._owns_fetcher = True
        return engine

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> CacheEngine:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Release the fetcher if this engine created it. Cached files stay on disk."""
        if self._owns_fetcher:
            self._fetcher.close()

    # ------------------------------------------------------------------ #
    # Diagnostics
    # ------------------------------------------------------------------ #

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    @property
    def evictions(self) -> int:
        return self._evictions

    @property
    def downloads(self) -> int:
        return self._downloads

    @property
    def current_size_bytes(self) -> int:
        return self._current_size_bytes

    @property
    def max_capacity_bytes(self) -> int:
        return self._max_capacity_bytes

    @property
    def item_count_hint(self) -> int:
        return self._item_count_hint

    @property
    def repository(self) -> Path:
        return self._store.root

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._index

    def entries(self) -> list[CacheEntry]:
        """Snapshot of resident entries, least recently used first."""
        with self._lock:
            return list(self._index.values())

    def stats(self) -> dict[str, Any]:
        """Counters and capacity figures for diagnostics."""
        with self._lock:
            return {
                "entries": len(self._index),
                "current_size_bytes": self._current_size_bytes,
                "max_capacity_bytes": self._max_capacity_bytes,
                "item_count_hint": self._item_count_hint,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "downloads": self._downloads,
                "repository": str(self._store.root),
            }

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def load(self, key: str) -> ResultDescriptor:
        """Return *key* from the cache, fetching and admitting it on a miss.

        On a hit the entry becomes the most recently used and no I/O is done.
        On a miss the resource is downloaded, LRU entries are evicted to make
        room, and it is admitted; its size is the number of bytes actually
        written. A load that fails leaves the index untouched, apart from
        entries already evicted when an eviction fails.

        Args:
            key: Non-empty resource URL.

        Returns:
            A :class:`~fetchcache.models.ResultDescriptor` with outcome
            ``CACHED`` or ``DOWNLOADED``.

        Raises:
            InvalidUsageError: If *key* is empty.
            OversizedObjectError: If the resource is larger than the whole
                cache. When the advertised length already shows this,
                nothing is downloaded.
            FetchError: On any network failure. No entry is admitted.
            StorageError: If the bytes cannot be written. No entry is admitted.
            EvictionError: If an LRU entry cannot be deleted from disk.
        """
        if not key:
            raise InvalidUsageError("Cache key must be a non-empty string")
        with self._lock:
            entry = self._index.get(key)
            if entry is not None:
                return self._hit(entry)
            return self._miss(key)

    def clear(self) -> None:
        """Tear the cache down: delete every resident entry from disk and the index.

        Counters are kept. Teardown removals are not counted as evictions.

        Raises:
            EvictionError: If an entry cannot be deleted; entries already
                removed stay removed.
        """
        with self._lock:
            while self._index:
                key, entry = next(iter(self._index.items()))
                self._store.delete(entry.disk_location)
                del self._index[key]
                self._current_size_bytes -= entry.size_in_bytes
            get_output().debug("Cache cleared")

    # ------------------------------------------------------------------ #
    # Private helpers (call with the lock held)
    # ------------------------------------------------------------------ #

    def _hit(self, entry: CacheEntry) -> ResultDescriptor:
        self._index.move_to_end(entry.key)
        self._hits += 1
        get_output().debug(f"Cache hit: {entry.key} ({entry.size_in_bytes} bytes)")
        return ResultDescriptor(key=entry.key, outcome=Outcome.HIT, size_in_bytes=entry.size_in_bytes)

    def _miss(self, key: str) -> ResultDescriptor:
        output = get_output()
        self._misses += 1
        output.debug(f"Cache miss: {key}")

        response = self._fetcher.resolve(key)
        try:
            advertised = self._fetcher.content_length(response)
            if advertised is not None:
                self._check_fits(key, advertised)
            location = self._store.location_for(key)
            size = self._fetcher.stream_to(
                response, lambda chunks: self._store.write(location, chunks)
            )
        finally:
            response.close()

        # Nothing is evicted until the download has succeeded, and the
        # written size governs: Content-Length may be absent or wrong.
        try:
            self._check_fits(key, size)
            self._evict_for(size)
        except BaseException:
            self._discard_download(location)
            raise

        entry = CacheEntry(key=key, disk_location=location, size_in_bytes=size)
        self._index[key] = entry
        self._current_size_bytes += size
        self._downloads += 1
        output.debug(
            f"Admitted {key} ({size} bytes), cache now "
            f"{self._current_size_bytes}/{self._max_capacity_bytes} bytes"
        )
        return ResultDescriptor(key=key, outcome=Outcome.DOWNLOADED, size_in_bytes=size)

    def _check_fits(self, key: str, size: int) -> None:
        if size > self._max_capacity_bytes:
            raise OversizedObjectError(key, size, self._max_capacity_bytes)

    def _evict_for(self, incoming: int) -> None:
        """Evict from the LRU end until *incoming* bytes fit or the index is empty."""
        if self._current_size_bytes + incoming <= self._max_capacity_bytes:
            return

        output = get_output()
        freed = 0
        while self._index and self._current_size_bytes + incoming > self._max_capacity_bytes:
            key, entry = next(iter(self._index.items()))
            on_disk = self._store.delete(entry.disk_location)
            if on_disk != entry.size_in_bytes:
                output.warning(
                    f"Evicted {key} had {on_disk} bytes on disk but "
                    f"{entry.size_in_bytes} bytes indexed"
                )
            del self._index[key]
            self._current_size_bytes -= entry.size_in_bytes
            self._evictions += 1
            freed += entry.size_in_bytes
            output.debug(f"Evicted {key} ({entry.size_in_bytes} bytes)")

        output.debug(f"Freed {freed} bytes for an incoming object of {incoming} bytes")

    def _discard_download(self, location: Path) -> None:
        """Remove bytes that were written but will not be admitted."""
        try:
            self._store.delete(location)
        except EvictionError as exc:
            get_output().warning(f"Could not discard unadmitted download: {exc}")


def _validate_bounds(max_capacity_bytes: int, item_count_hint: int) -> None:
    if not 0 <= max_capacity_bytes <= SYSTEM_MAX_CAPACITY:
        raise CacheConstructionError(
            f"Value for cache capacity should be in the 0 and {SYSTEM_MAX_CAPACITY} "
            f"range, got {max_capacity_bytes}"
        )
    if item_count_hint < 0:
        raise CacheConstructionError(
            f"Value for number of items should be a non-negative integer, got {item_count_hint}"
        )
