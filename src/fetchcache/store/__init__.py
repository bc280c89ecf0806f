"""Disk placement and reclamation for cached resources.

This package provides :class:`DiskStore`, a stateless executor of file
operations: it derives a unique location per key, writes fetched bytes
there, and deletes them (with bounded retries) when the cache engine
evicts the key.
"""

from fetchcache.store.disk_store import MAX_DELETE_ATTEMPTS, DiskStore

__all__ = ["DiskStore", "MAX_DELETE_ATTEMPTS"]
