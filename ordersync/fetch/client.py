"""HTTP client for the orders feed and the collection indexer."""
import logging
from typing import Any, Optional

import httpx

from ordersync.config import config
from ordersync.errors import PermanentUpstreamError, RateLimitedError
from ordersync.fetch.rate_limit import RequestPacer

logger = logging.getLogger(__name__)


class FeedClient:
    """HTTP client with request pacing and upstream error mapping."""

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rate_per_second: Optional[float] = None,
    ):
        # Configure connection pool
        limits = httpx.Limits(
            max_connections=100,
            max_keepalive_connections=20,
        )
        self.client = httpx.AsyncClient(
            http2=transport is None,
            timeout=config.TIMEOUT,
            limits=limits,
            transport=transport,
        )
        self.pacer = RequestPacer(
            config.RATE_PER_DOMAIN if rate_per_second is None else rate_per_second
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    def opensea_headers(self, api_key: Optional[str] = None) -> dict[str, str]:
        """API key header; the goerli testnet API takes no key."""
        value = "" if config.CHAIN_ID == 5 else (api_key or config.REALTIME_OPENSEA_API_KEY or "")
        return {config.OPENSEA_API_HEADER: value}

    async def get_feed(self, url: str, api_key: Optional[str] = None) -> dict[str, Any]:
        """GET a feed URL, routing through OPENSEA_API_URL when one is configured."""
        headers = self.opensea_headers(api_key)
        if config.OPENSEA_API_URL:
            headers["url"] = url
            return await self.get_json(config.OPENSEA_API_URL, headers=headers)
        return await self.get_json(url, headers=headers)

    async def get_json(self, url: str, headers: Optional[dict[str, str]] = None) -> dict[str, Any]:
        """GET ``url`` and decode the JSON body.

        Raises RateLimitedError on 429 and PermanentUpstreamError on any other
        failure, network errors included.
        """
        await self.pacer.wait(url)

        try:
            response = await self.client.get(url, headers=headers or {})
        except httpx.HTTPError as e:
            logger.warning(f"Network error for {url}: {e}")
            raise PermanentUpstreamError(f"Network error: {e}", url=url) from e

        if response.status_code == 429:
            raise RateLimitedError("429 Too Many Requests", status_code=429, url=url)
        if response.status_code >= 400:
            raise PermanentUpstreamError(
                f"HTTP {response.status_code}", status_code=response.status_code, url=url
            )

        try:
            return response.json()
        except ValueError as e:
            raise PermanentUpstreamError(
                f"Invalid JSON body: {e}", status_code=response.status_code, url=url
            ) from e
