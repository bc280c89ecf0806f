"""Shared test fixtures for fetchcache.

Provides a fake HTTP origin served through :class:`httpx.MockTransport`,
fetcher / engine factories bound to it, isolated config environments, and
output-state management. These fixtures are discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterator, Optional

import httpx
import pytest

from fetchcache.cache import CacheEngine
from fetchcache.fetch import Fetcher
from fetchcache.models import FetchConfig
from fetchcache.output import OutputFormat, OutputManager, reset_output, set_output

Handler = Callable[[httpx.Request], httpx.Response]


# ---------------------------------------------------------------------------
# Fake origin
# ---------------------------------------------------------------------------


class FakeOrigin:
    """In-memory HTTP origin for :class:`httpx.MockTransport`.

    Unknown URLs answer 404. Every request is recorded so tests can assert
    that cache hits never reach the network.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Handler] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        url: str,
        size: int = 0,
        *,
        body: Optional[bytes] = None,
        advertise: bool = True,
        content_length: Optional[int] = None,
    ) -> bytes:
        """Serve a body at *url*.

        With ``advertise=False`` the body is sent chunked with no
        ``Content-Length``; *content_length* sends an explicit (possibly
        wrong) header instead of the real length.
        """
        payload = body if body is not None else b"x" * size

        def handler(request: httpx.Request) -> httpx.Response:
            if content_length is not None:
                return httpx.Response(
                    200,
                    headers={"Content-Length": str(content_length)},
                    content=iter([payload]),
                )
            if not advertise:
                return httpx.Response(200, content=iter([payload]))
            return httpx.Response(200, content=payload)

        self.routes[url] = handler
        return payload

    def redirect(self, url: str, location: str, status: int = 302) -> None:
        self.routes[url] = lambda request: httpx.Response(status, headers={"Location": location})

    def status(self, url: str, code: int) -> None:
        self.routes[url] = lambda request: httpx.Response(code, text="nope")

    def fail(self, url: str, exc: Exception) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise exc

        self.routes[url] = handler

    def request_count(self, url: str) -> int:
        return sum(1 for request in self.requests if str(request.url) == url)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(str(request.url))
        if handler is None:
            return httpx.Response(404)
        return handler(request)


@pytest.fixture
def origin() -> FakeOrigin:
    return FakeOrigin()


@pytest.fixture
def make_fetcher(origin: FakeOrigin) -> Iterator[Callable[..., Fetcher]]:
    """Factory for fetchers wired to the fake origin; all are closed afterwards."""
    created: list[Fetcher] = []

    def _make(config: Optional[FetchConfig] = None) -> Fetcher:
        fetcher = Fetcher(config, transport=httpx.MockTransport(origin))
        created.append(fetcher)
        return fetcher

    yield _make
    for fetcher in created:
        fetcher.close()


@pytest.fixture
def fetcher(make_fetcher: Callable[..., Fetcher]) -> Fetcher:
    return make_fetcher()


@pytest.fixture
def repository(tmp_path: Path) -> Path:
    path = tmp_path / "repository"
    path.mkdir()
    return path


@pytest.fixture
def make_engine(repository: Path, fetcher: Fetcher) -> Callable[..., CacheEngine]:
    """Factory for engines sharing the fake-origin fetcher and a tmp repository."""

    def _make(capacity: int, items: int = 10) -> CacheEngine:
        return CacheEngine(capacity, items, repository, fetcher=fetcher)

    return _make


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test, the cached references go stale once the test finishes.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path, clears FETCHCACHE_* environment variables,
    and changes the working directory to tmp_path.
    """
    monkeypatch.setattr("fetchcache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["FETCHCACHE_REPOSITORY", "FETCHCACHE_MAX_REDIRECTS"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet PLAIN OutputManager for tests that don't inspect output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()
