"""Request pacing for the orders feed and the indexer.

The feed key allows a couple of requests per second. Requests to the same
host (the feed, the proxy in front of it, or the indexer) are spaced by a
minimum interval; different hosts don't wait on each other.
"""
import asyncio
import logging
import time
from collections import defaultdict
from typing import Awaitable, Callable, Dict
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


class RequestPacer:
    """Spaces out requests to one host by ``1 / rate_per_second`` seconds.

    A rate of 0 disables pacing.
    """

    def __init__(
        self,
        rate_per_second: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = 1.0 / rate_per_second if rate_per_second > 0 else 0.0
        self.clock = clock
        self.sleep = sleep
        self._next_slot: Dict[str, float] = defaultdict(float)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @staticmethod
    def host_of(url: str) -> str:
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}"

    async def wait(self, url: str) -> float:
        """Wait for ``url``'s host slot. Returns the seconds waited."""
        if not self.min_interval:
            return 0.0

        host = self.host_of(url)
        async with self._locks[host]:
            waited = max(0.0, self._next_slot[host] - self.clock())
            if waited:
                logger.debug(f"Pacing {host}: waiting {waited:.2f}s")
                await self.sleep(waited)
            self._next_slot[host] = self.clock() + self.min_interval
        return waited
