"""MTA feed transport."""

import logging
from typing import Any, Optional

import httpx

from . import config
from .feeds import FeedSource

logger = logging.getLogger(__name__)


class FeedError(Exception):
    """Base class for feed transport failures."""


class InvalidResponseError(FeedError):
    """The response could not be read or understood."""

    def __init__(self, message: str = "We couldn't parse the subway feed. Please try again shortly."):
        super().__init__(message)


class HTTPStatusError(FeedError):
    """The feed answered with a non-2xx status."""

    def __init__(self, status_code: int, url: str = ""):
        self.status_code = status_code
        self.url = url
        super().__init__(f"MTA feed responded with status {status_code}.")


class MTAClient:
    """Fetches raw GTFS-Realtime feeds and JSON documents from the MTA."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = config.MTA_FEED_TIMEOUT,
        api_key: Optional[str] = config.MTA_API_KEY,
    ):
        """
        Initialize the MTA client.

        Args:
            client: Optional shared httpx client. If omitted one is created and
                closed by ``aclose()``.
            timeout: Per-request timeout in seconds for feed requests.
            api_key: Optional MTA API key sent as ``x-api-key``.
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self._timeout = timeout
        self._headers = {"x-api-key": api_key} if api_key else {}

    async def __aenter__(self) -> "MTAClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_feed(self, source: FeedSource) -> bytes:
        """
        Fetch one GTFS-Realtime feed.

        Args:
            source: Feed to fetch.

        Returns:
            Raw protobuf bytes.

        Raises:
            HTTPStatusError: Non-2xx response.
            InvalidResponseError: The request failed or the body was unreadable.
        """
        logger.debug(f"Fetching {source.url}")
        response = await self._get(source.url, self._timeout)
        return response.content

    async def fetch_json(self, url: str, timeout: Optional[float] = None) -> Any:
        """Fetch and decode a JSON document."""
        response = await self._get(url, timeout if timeout is not None else self._timeout)
        try:
            return response.json()
        except (ValueError, UnicodeDecodeError) as e:
            raise InvalidResponseError(f"Invalid JSON from {url}: {e}") from e

    async def _get(self, url: str, timeout: float) -> httpx.Response:
        try:
            response = await self._client.get(url, headers=self._headers, timeout=timeout)
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch {url}: {e}")
            raise InvalidResponseError() from e

        if not 200 <= response.status_code < 300:
            logger.error(f"Feed {url} returned status {response.status_code}")
            raise HTTPStatusError(response.status_code, url)
        return response
