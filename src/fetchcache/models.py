"""Canonical Pydantic models shared across all fetchcache modules.

The models fall into two groups:

**Domain models** -- values produced and consumed by the cache engine:
    :class:`Outcome`, :class:`CacheEntry`, :class:`ResultDescriptor`, and
    :class:`BatchInput`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`FetchConfig`, :class:`CacheConfig`, :class:`OutputConfig`, and
    :class:`GlobalConfig`.

All models use Pydantic v2. Domain values are frozen so that a
:class:`ResultDescriptor` handed back to a caller cannot be altered after
the fact.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from fetchcache import __version__

ONE_MIB = 1024 * 1024


# --- Domain models ---


class Outcome(str, enum.Enum):
    """How a single ``load`` call was satisfied.

    The value is the literal token written to batch reports.
    """

    HIT = "CACHED"
    DOWNLOADED = "DOWNLOADED"
    ERROR = "ERROR"


class CacheEntry(BaseModel):
    """One resident resource in the cache index.

    ``size_in_bytes`` is the number of bytes actually written to
    ``disk_location``, not the advertised ``Content-Length``. The entry's
    recency is its position in the engine's index and is not stored here.
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    disk_location: Path
    size_in_bytes: int = Field(ge=0)


class ResultDescriptor(BaseModel):
    """Result of one :meth:`~fetchcache.cache.CacheEngine.load` call."""

    model_config = ConfigDict(frozen=True)

    key: str
    outcome: Outcome
    size_in_bytes: int = Field(default=0, ge=0)

    @classmethod
    def error(cls, key: str) -> ResultDescriptor:
        """Descriptor recorded for a key whose load raised."""
        return cls(key=key, outcome=Outcome.ERROR, size_in_bytes=0)


class BatchInput(BaseModel):
    """Parsed contents of a batch input file.

    Line 1 is the cache capacity in bytes, line 2 the item (or URL) count
    used as the index sizing hint, and every following line one key.
    """

    capacity_bytes: int
    item_count: int
    keys: list[str] = Field(default_factory=list)


# --- Configuration models ---


class FetchConfig(BaseModel):
    """HTTP settings used by :class:`~fetchcache.fetch.Fetcher`."""

    connect_timeout: float = Field(default=30.0, gt=0, description="Connect timeout in seconds")
    read_timeout: float = Field(default=60.0, gt=0, description="Read timeout in seconds")
    max_redirects: int = Field(
        default=5, ge=0, le=10, description="Redirect hops followed before giving up"
    )
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    user_agent: str = Field(
        default=f"fetchcache/{__version__}", description="User-Agent header sent with every request"
    )


class CacheConfig(BaseModel):
    """Capacity and placement settings for :class:`~fetchcache.cache.CacheEngine`."""

    capacity_bytes: int = Field(default=100 * ONE_MIB, description="Cache capacity in bytes")
    item_count_hint: int = Field(default=100, description="Expected number of resident items")
    repository: Optional[str] = Field(
        default=None,
        description="Directory holding cached bytes (defaults to <cache dir>/resources)",
    )


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/fetchcache/config.json``.

    Loaded and saved by :func:`~fetchcache.config.load_global_config` and
    :func:`~fetchcache.config.save_global_config`. See
    :func:`~fetchcache.config.resolve_config` for the precedence chain.
    """

    cache: CacheConfig = Field(default_factory=CacheConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
