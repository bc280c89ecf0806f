"""The cache admission/eviction engine.

This package provides :class:`CacheEngine`, which owns the recency-ordered
index and byte accounting, and decides on every ``load`` between a hit
(no I/O) and a miss (fetch, evict least-recently-used entries, admit).

The engine is consumed by :mod:`fetchcache.batch` and the ``run`` / ``load``
CLI commands, each of which constructs its own instance explicitly.
"""

from fetchcache.cache.engine import SYSTEM_MAX_CAPACITY, CacheEngine

__all__ = ["CacheEngine", "SYSTEM_MAX_CAPACITY"]
