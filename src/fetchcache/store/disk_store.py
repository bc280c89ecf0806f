"""On-disk placement of cached resources.

:class:`DiskStore` owns no cache metadata. It derives a deterministic
location for a key, writes streamed bytes there, and reclaims the space
when the engine evicts the key. Each key gets its own directory under the
repository root::

    <root>/<quote_plus(key)>/<last path segment of key>

so two keys never share a directory, and deleting an entry removes both
the file and its directory.
"""

from __future__ import annotations

import hashlib
import os
import time
from pathlib import Path, PurePosixPath
from typing import Iterable
from urllib.parse import quote_plus, urlsplit

from fetchcache.exceptions import CacheConstructionError, EvictionError, StorageError
from fetchcache.output import get_output

MAX_DELETE_ATTEMPTS = 3
"""Attempts made to delete an entry before eviction is declared failed."""

_DELETE_RETRY_DELAY_SECONDS = 0.1
_MAX_NAME_LENGTH = 200
_FALLBACK_FILE_PREFIX = "resource-"
# quote_plus(safe="") always escapes "=", so no encoded key can start with it.
_HASHED_DIR_PREFIX = "="


class DiskStore:
    """Maps cache keys to files under a repository root.

    Args:
        root: Existing, writable directory that holds every cached resource.

    Raises:
        CacheConstructionError: If *root* does not exist, is not a
            directory, or is not writable.
    """

    def __init__(self, root: str | Path) -> None:
        root = Path(root)
        if not root.is_dir():
            raise CacheConstructionError(
                f"Cache repository needs to be an existing directory: {root.absolute()}"
            )
        if not os.access(root, os.W_OK | os.X_OK):
            raise CacheConstructionError(
                f"Cache repository needs to be writable: {root.absolute()}"
            )
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def location_for(self, key: str) -> Path:
        """Return the path where *key*'s bytes live.

        Pure function of the key: evicting and re-fetching a key reuses the
        same location.
        """
        return self._root / _directory_name(key) / _file_name(key)

    def write(self, path: Path, chunks: Iterable[bytes]) -> int:
        """Write *chunks* to *path* and return the exact number of bytes written.

        The parent directory is created if needed. If writing fails for any
        reason (including the chunk iterator raising), the partial file and
        its directory are removed before the exception propagates.

        Raises:
            StorageError: If the filesystem rejects the write.
        """
        path = Path(path)
        written = 0
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as fh:
                for chunk in chunks:
                    fh.write(chunk)
                    written += len(chunk)
        except OSError as exc:
            self._discard(path)
            raise StorageError(f"Unable to write {path}: {exc}") from exc
        except BaseException:
            self._discard(path)
            raise
        get_output().debug(f"Wrote {written} bytes to {path}")
        return written

    def delete(self, path: Path) -> int:
        """Remove the file at *path* and its directory, returning the bytes freed.

        The size is measured before deletion; a file that is already gone
        frees 0 bytes. Failures are retried up to :data:`MAX_DELETE_ATTEMPTS`
        times. Once the file is gone the delete counts as done: a directory
        that cannot be removed (e.g. it holds a stray file) only logs a
        warning.

        Raises:
            EvictionError: If the file cannot be measured or removed after
                the last attempt. The file is still on disk in that case.
        """
        path = Path(path)
        output = get_output()
        freed: int | None = None
        file_removed = False
        last_error: OSError | None = None

        for attempt in range(1, MAX_DELETE_ATTEMPTS + 1):
            try:
                if not file_removed:
                    if freed is None:
                        freed = self.size_of(path)
                    path.unlink(missing_ok=True)
                    file_removed = True
                self._remove_directory(path.parent)
                output.debug(f"Deleted {path} ({freed} bytes)")
                return freed
            except OSError as exc:
                last_error = exc
                if attempt < MAX_DELETE_ATTEMPTS:
                    output.debug(
                        f"Could not delete {path}: {exc}, retrying "
                        f"(attempt {attempt}/{MAX_DELETE_ATTEMPTS})"
                    )
                    time.sleep(_DELETE_RETRY_DELAY_SECONDS)

        if file_removed:
            output.warning(f"Deleted {path} but left its directory behind: {last_error}")
            return freed
        raise EvictionError(path, MAX_DELETE_ATTEMPTS, str(last_error))

    @staticmethod
    def size_of(path: Path) -> int:
        """Size of the file at *path* in bytes, 0 if it does not exist."""
        try:
            return Path(path).stat().st_size
        except FileNotFoundError:
            return 0

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _remove_directory(self, directory: Path) -> None:
        if directory == self._root:
            return
        try:
            directory.rmdir()
        except FileNotFoundError:
            pass

    def _discard(self, path: Path) -> None:
        """Best-effort cleanup of a partially written file."""
        try:
            path.unlink(missing_ok=True)
            self._remove_directory(path.parent)
        except OSError as exc:
            get_output().warning(f"Could not clean up partial file {path}: {exc}")


def _digest(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def _directory_name(key: str) -> str:
    encoded = quote_plus(key, safe="")
    if len(encoded) > _MAX_NAME_LENGTH or encoded in (".", ".."):
        return _HASHED_DIR_PREFIX + _digest(key)
    return encoded


def _file_name(key: str) -> str:
    try:
        name = PurePosixPath(urlsplit(key).path).name
    except ValueError:
        name = ""
    if name in ("", ".", "..") or len(name) > _MAX_NAME_LENGTH or "\\" in name:
        return _FALLBACK_FILE_PREFIX + _digest(key)[:16]
    return name
