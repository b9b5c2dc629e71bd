"""Download plugin source over HTTP with progress reporting."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from langloader.errors import HttpStatusError, NetworkError

if TYPE_CHECKING:
    from collections.abc import Callable

    from langloader.config import LoaderConfig
    from langloader.reporting import ProgressReporter

logger = logging.getLogger(__name__)


def progress_message(loaded: int, total: int | None) -> str:
    """Format a download progress message."""
    message = f"downloading plugin: {loaded} bytes loaded"
    if total:
        message += f" out of {total} ({loaded / total * 100:.0f}%)"
    return message


class PluginFetcher:
    """Fetches plugin source text from a URL."""

    def __init__(
        self,
        reporter: ProgressReporter,
        client: httpx.AsyncClient | None = None,
        config: LoaderConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize fetcher.

        Args:
            reporter: Receives human-readable progress messages
            client: Shared HTTP client; the fetcher creates its own if omitted
            config: Client settings used when creating a client
            transport: Transport for a self-created client (tests use MockTransport)
        """
        self.reporter = reporter
        self._owns_client = client is None
        if client is None:
            client = self._build_client(config, transport)
        self.client = client

    @staticmethod
    def _build_client(
        config: LoaderConfig | None,
        transport: httpx.AsyncBaseTransport | None,
    ) -> httpx.AsyncClient:
        if config is None:
            from langloader.config import LoaderConfig

            config = LoaderConfig()
        return httpx.AsyncClient(
            timeout=config.timeout,
            follow_redirects=config.follow_redirects,
            verify=config.verify_ssl,
            headers={"User-Agent": config.user_agent},
            transport=transport,
        )

    async def fetch(
        self,
        url: str,
        request_id: str,
        display_name: str = "",
        on_progress: Callable[[int, int | None], None] | None = None,
    ) -> str:
        """Download the plugin source at ``url``.

        Args:
            url: Location of the plugin source
            request_id: Key for progress messages
            display_name: Language name used in messages
            on_progress: Called with (bytes_loaded, bytes_total) after every chunk,
                counting bytes as received before any content decoding

        Returns:
            The response body as text

        Raises:
            HttpStatusError: The server answered with a non-2xx status
            NetworkError: The transfer failed at the transport level
        """
        name = display_name or url
        chunks: list[bytes] = []
        loaded = 0

        try:
            async with self.client.stream("GET", url) as response:
                if not response.is_success:
                    reason = response.reason_phrase
                    message = f"{name} failed to load: {response.status_code} {reason}"
                    self.reporter.report(request_id, message)
                    raise HttpStatusError(url, response.status_code, reason, message)

                total = self._content_length(response)
                async for chunk in response.aiter_bytes():
                    if not chunk:
                        continue
                    chunks.append(chunk)
                    # bytes on the wire, before content decoding
                    loaded = response.num_bytes_downloaded
                    self.reporter.report(request_id, progress_message(loaded, total))
                    if on_progress is not None:
                        on_progress(loaded, total)

                encoding = response.charset_encoding or "utf-8"
        except (httpx.RequestError, httpx.InvalidURL) as e:
            message = f"{name} plugin failed to load"
            self.reporter.report(request_id, message)
            logger.warning(f"Transport error fetching {url}: {e!r}")
            raise NetworkError(url, f"{message}: {e}") from e

        logger.debug(f"Fetched {loaded} bytes from {url}")
        self.reporter.report(request_id, f"{name} plugin downloaded, initializing")
        return b"".join(chunks).decode(encoding, errors="replace")

    @staticmethod
    def _content_length(response: httpx.Response) -> int | None:
        value = response.headers.get("Content-Length")
        if value is None:
            return None
        try:
            total = int(value)
        except ValueError:
            return None
        return total if total > 0 else None

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            await self.client.aclose()
