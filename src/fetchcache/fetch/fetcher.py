"""HTTP fetching with manual redirect handling and streamed bodies.

This module provides :class:`Fetcher`, the network half of a cache miss.
It wraps :class:`httpx.Client` with automatic redirects turned off and
layers on:

- **Bounded manual redirects** -- 301, 302, 303, 307 and 308 responses are
  followed by hand (so HTTP to HTTPS hops and back work) up to
  :attr:`~fetchcache.models.FetchConfig.max_redirects` hops.
- **Connect / read timeouts** -- from :class:`~fetchcache.models.FetchConfig`.
- **Probe before download** -- :meth:`Fetcher.resolve` returns a response
  whose headers are available but whose body has not been read, so the
  cache engine can check ``Content-Length`` before any bytes move.
- **Error mapping** -- every network failure becomes a
  :class:`~fetchcache.exceptions.FetchError`. Nothing is retried here; a
  failed fetch is a failed load for that key.

Writing the body is the caller's business: :meth:`Fetcher.stream_to` hands
the body chunks to a writer callable (normally
:meth:`~fetchcache.store.DiskStore.write`) and guarantees the response is
closed however the copy ends.
"""

from __future__ import annotations

from typing import Callable, Iterator, Optional

import httpx

from fetchcache.exceptions import FetchError, HTTPStatusError, RedirectLoopError
from fetchcache.models import FetchConfig
from fetchcache.output import get_output

_REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})

ChunkWriter = Callable[[Iterator[bytes]], int]


class Fetcher:
    """Blocking HTTP fetcher for cache misses.

    Args:
        config: Timeouts, redirect bound, TLS verification and user agent.
            Defaults to :class:`~fetchcache.models.FetchConfig`.
        transport: Optional :mod:`httpx` transport, mainly for tests
            (:class:`httpx.MockTransport`).

    Example::

        with Fetcher() as fetcher:
            response = fetcher.resolve("https://example.com/logo.png")
            size = fetcher.content_length(response)
            written = fetcher.stream_to(response, lambda chunks: sum(map(len, chunks)))
    """

    def __init__(
        self,
        config: Optional[FetchConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config or FetchConfig()
        self._client = httpx.Client(
            timeout=httpx.Timeout(self._config.read_timeout, connect=self._config.connect_timeout),
            verify=self._config.verify_ssl,
            follow_redirects=False,
            headers={"User-Agent": self._config.user_agent},
            transport=transport,
        )

    @property
    def config(self) -> FetchConfig:
        return self._config

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> Fetcher:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying :class:`httpx.Client`."""
        self._client.close()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def resolve(self, key: str) -> httpx.Response:
        """Open a streaming GET for *key*, following redirects by hand.

        The returned response has its status and headers but an unread body;
        the caller must either pass it to :meth:`stream_to` or close it.

        Args:
            key: Absolute ``http`` or ``https`` URL of the resource.

        Returns:
            The terminal 2xx :class:`httpx.Response`, still open.

        Raises:
            RedirectLoopError: If more than ``max_redirects`` hops are needed.
            HTTPStatusError: If the terminal response is not 2xx.
            FetchError: On DNS, connection, timeout or URL errors.
        """
        output = get_output()
        url = key
        redirects = 0

        while True:
            response = self._send(url)
            location = response.headers.get("location")
            if response.status_code not in _REDIRECT_STATUSES or not location:
                break

            next_url = str(response.url.join(location))
            response.close()
            redirects += 1
            if redirects > self._config.max_redirects:
                raise RedirectLoopError(key, next_url, redirects)
            output.debug(f"HTTP {response.status_code} redirect {redirects}: {url} -> {next_url}")
            url = next_url

        if not response.is_success:
            response.close()
            raise HTTPStatusError(response.status_code, str(response.url), redirects, key)
        return response

    @staticmethod
    def content_length(response: httpx.Response) -> Optional[int]:
        """Return the advertised body length, or ``None`` when unknown.

        Servers may omit ``Content-Length`` (chunked responses) or send
        garbage; both are treated as unknown rather than as errors.
        """
        raw = response.headers.get("content-length")
        if raw is None:
            return None
        try:
            length = int(raw)
        except ValueError:
            return None
        return length if length >= 0 else None

    def stream_to(self, response: httpx.Response, writer: ChunkWriter) -> int:
        """Copy the full body of *response* through *writer*.

        Args:
            response: An open response from :meth:`resolve`.
            writer: Callable that consumes an iterator of byte chunks and
                returns the number of bytes it persisted.

        Returns:
            The writer's byte count, which is the authoritative size.

        Raises:
            FetchError: If the connection fails mid-body. Exceptions raised
                by *writer* itself propagate unchanged.
        """
        try:
            return writer(response.iter_bytes())
        except (httpx.HTTPError, httpx.StreamError) as exc:
            raise FetchError(
                f"Could not read body of {response.url}: {exc}", url=str(response.url)
            ) from exc
        finally:
            response.close()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _send(self, url: str) -> httpx.Response:
        try:
            request = self._client.build_request("GET", url)
            return self._client.send(request, stream=True)
        except httpx.TimeoutException as exc:
            raise FetchError(f"Timed out retrieving {url}: {exc}", url=url) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchError(f"Could not retrieve {url}: {exc}", url=url) from exc
