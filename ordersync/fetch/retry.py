"""Rate-limit retry policy around a single page request."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_never, wait_fixed

from ordersync.config import config
from ordersync.errors import RateLimitedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimitRetryPolicy:
    """Retries a page request on 429 once a cursor is established.

    A 429 on the first page of a run (no cursor yet) propagates, as does any
    other failure. Retries wait a fixed delay and are not capped.
    """

    def __init__(
        self,
        delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.delay = config.RATE_LIMIT_RETRY_DELAY if delay is None else delay
        self.sleep = sleep

    async def call(
        self,
        fetch: Callable[[], Awaitable[T]],
        cursor: Optional[str],
        context: str = "",
    ) -> T:
        """Run ``fetch``; the same cursor is replayed on every retry."""

        def should_retry(error: BaseException) -> bool:
            return isinstance(error, RateLimitedError) and bool(cursor)

        def log_retry(state: RetryCallState) -> None:
            logger.warning(
                f"Seaport - Rate Limited - Retry. {context}, cursor={cursor}, "
                f"attempt={state.attempt_number}, error={state.outcome.exception()}"
            )

        async for attempt in AsyncRetrying(
            retry=retry_if_exception(should_retry),
            wait=wait_fixed(self.delay),
            stop=stop_never,
            sleep=self.sleep,
            before_sleep=log_retry,
            reraise=True,
        ):
            with attempt:
                return await fetch()
