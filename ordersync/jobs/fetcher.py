"""Seaport orders feed sync: page walk, parse fan-out, dedup persistence, relay."""
import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Optional, Sequence

from pydantic import ValidationError

from ordersync.config import config
from ordersync.errors import PermanentUpstreamError, RateLimitedError
from ordersync.fetch.client import FeedClient
from ordersync.fetch.endpoints import (
    build_fetch_orders_url,
    get_asset_offers_url,
    get_listings_by_slug_url,
)
from ordersync.fetch.retry import RateLimitRetryPolicy
from ordersync.jobs.metrics import Metrics
from ordersync.jobs.relay import OrderRelay
from ordersync.jobs.run_control import RunControl
from ordersync.parse.models import FeedPage, OrderRow, ParsedOrder, RawOrder
from ordersync.parse.order_parser import OrderRecordParser
from ordersync.parse.redact import redact_string
from ordersync.parse.rows import build_row
from ordersync.store.orders import OrderStore

logger = logging.getLogger(__name__)


@dataclass
class PageResult:
    """Outcome of persisting and relaying one page of records."""

    rows: list[OrderRow] = field(default_factory=list)
    parsed: list[ParsedOrder] = field(default_factory=list)
    inserted: int = 0

    @property
    def all_known(self) -> bool:
        """True when the page had rows and none of them were new."""
        return bool(self.rows) and self.inserted == 0


class FeedSync:
    """Synchronizes the local order store with the Seaport orders feed."""

    def __init__(
        self,
        client: FeedClient,
        store: OrderStore,
        relay: OrderRelay,
        parser: Optional[OrderRecordParser] = None,
        retry_policy: Optional[RateLimitRetryPolicy] = None,
        concurrency: Optional[int] = None,
        page_size: Optional[int] = None,
    ):
        self.client = client
        self.store = store
        self.relay = relay
        self.parser = parser or OrderRecordParser()
        self.retry_policy = retry_policy or RateLimitRetryPolicy()
        self.concurrency = concurrency or config.CONCURRENCY
        self.page_size = page_size or config.PAGE_SIZE

    async def fetch_orders(
        self,
        side: str,
        *,
        api_key: Optional[str] = None,
        override_base_url: Optional[str] = None,
        contract: Optional[str] = None,
        max_orders: Optional[int] = None,
    ) -> int:
        """Walk the feed newest first until a page holds nothing new.

        Stopping on a fully known page assumes the feed is sorted by creation
        date, descending: everything older has then been synced already. An
        out-of-order feed can end the walk early.

        Returns the number of records seen.
        """
        logger.info(f"Seaport - Start. side={side}")

        control = RunControl(max_orders=max_orders)
        metrics = Metrics()
        cursor: Optional[str] = None

        while True:
            should_stop, reason = control.should_stop()
            if should_stop:
                logger.debug(f"Seaport - Stop. side={side}, reason={reason}")
                break

            logger.info(f"Seaport fetch orders. side={side}, cursor={cursor}")
            url = build_fetch_orders_url(
                side,
                override_base_url=override_base_url,
                contract=contract,
                limit=self.page_size,
                cursor=cursor,
            )

            try:
                page = await self.retry_policy.call(
                    partial(self._get_page, url, api_key, metrics),
                    cursor,
                    context=f"side={side}",
                )

                cursor = page.next
                control.record_page(len(page.orders))

                result = await self._process_page(page.orders, metrics)

                if result.all_known:
                    last_order = page.orders[-1]
                    logger.info(
                        f"Seaport empty result. side={side}, cursor={cursor}, "
                        f"reached to={last_order.created_date.isoformat()}"
                    )
                    control.mark_done("all records of the page already stored")
                elif cursor is None:
                    # Without a next cursor the following request would restart at the head
                    control.mark_done("end of feed")

                if result.rows:
                    logger.info(
                        f"Seaport synced up to {page.orders[-1].created_date.isoformat()}"
                    )

                await self._relay(result.parsed, metrics)
            except Exception as e:
                logger.error(
                    redact_string(
                        f"Seaport - Error. side={side}, cursor={cursor}, url={url}, error={e!r}"
                    )
                )
                raise

            logger.info(
                f"Seaport - Batch done. side={side}, cursor={cursor} Got {len(page.orders)} orders"
            )

        metrics.report(f"Seaport - Summary. side={side}")
        logger.info(f"Seaport - Done. side={side}, total={control.total}")
        return control.total

    async def fetch_page(
        self,
        cursor: Optional[str] = "",
        from_timestamp: Optional[int] = None,
        to_timestamp: Optional[int] = None,
        side: str = "sell",
        api_key: Optional[str] = None,
    ) -> Optional[str]:
        """Sync a single page and return the feed's next cursor."""
        metrics = Metrics()
        url = build_fetch_orders_url(
            side,
            limit=self.page_size,
            cursor=cursor or None,
            listed_after=from_timestamp,
            listed_before=to_timestamp,
        )
        key = api_key or config.BACKFILL_OPENSEA_API_KEY

        try:
            page = await self.retry_policy.call(
                partial(self._get_page, url, key, metrics),
                cursor,
                context=f"side={side}",
            )

            logger.info(
                f"Seaport fetch page received {len(page.orders)} orders "
                f"from={from_timestamp}, to={to_timestamp}, cursor={cursor}"
            )

            result = await self._process_page(page.orders, metrics)
            if result.inserted:
                logger.info(
                    f"Seaport fetch page - New orders found={result.inserted}, cursor={cursor}"
                )

            await self._relay(result.parsed, metrics)
        except Exception as e:
            logger.error(
                redact_string(
                    f"Seaport fetch page - Error. side={side}, cursor={cursor}, "
                    f"from={from_timestamp}, to={to_timestamp}, url={url}, error={e!r}"
                )
            )
            raise

        logger.info(
            f"Seaport fetch page - side={side}, newCursor={page.next} Got {len(page.orders)} orders"
        )
        return page.next

    async def fetch_listings_by_slug(self, slug: str) -> int:
        """Sync all listings of one collection. Returns the number of records seen."""
        url = get_listings_by_slug_url(slug)
        headers = {}
        if config.CHAIN_ID != 5:
            headers["X-Api-Key"] = (
                config.REALTIME_OPENSEA_API_KEY or config.BACKFILL_OPENSEA_API_KEY or ""
            )

        try:
            orders = await self._get_records(url, headers, "listings")
            metrics = Metrics()
            result = await self._process_page(orders, metrics)
            if result.all_known:
                logger.info(
                    f"Seaport empty result. slug={slug}, "
                    f"reached to={orders[-1].created_date.isoformat()}"
                )
            await self._relay(result.parsed, metrics)
        except Exception as e:
            logger.error(f"Seaport listings by slug - Error. slug:{slug}, error:{e}")
            raise

        logger.info(f"Seaport listings by slug - Success. slug:{slug}, orders:{len(orders)}")
        return len(orders)

    async def fetch_collection_offers(
        self, contract: str, token_id: str, api_key: Optional[str] = None
    ) -> int:
        """Sync the offers on one asset. Returns the number of records seen."""
        url = get_asset_offers_url(contract, token_id)
        headers = {}
        if config.CHAIN_ID in (1, 137):
            headers["X-API-KEY"] = (
                api_key or config.REALTIME_OPENSEA_API_KEY or config.BACKFILL_OPENSEA_API_KEY or ""
            )

        try:
            orders = await self._get_records(url, headers, "seaport_offers")
            metrics = Metrics()
            result = await self._process_page(orders, metrics)
            if result.all_known:
                logger.info(
                    f"Seaport empty result. contract={contract}, tokenId={token_id}, "
                    f"reached to={orders[-1].created_date.isoformat()}"
                )
            await self._relay(result.parsed, metrics)
        except Exception as e:
            logger.error(
                f"Seaport collection offers - Error. contract:{contract}, tokenId:{token_id}, error:{e}"
            )
            raise

        logger.info(
            f"Seaport collection offers - Success. contract:{contract}, tokenId:{token_id}, "
            f"orders:{len(orders)}"
        )
        return len(orders)

    async def _get_page(self, url: str, api_key: Optional[str], metrics: Metrics) -> FeedPage:
        try:
            data = await self.client.get_feed(url, api_key)
        except RateLimitedError:
            metrics.increment("rate_limited")
            raise
        try:
            return FeedPage.model_validate(data)
        except ValidationError as e:
            raise PermanentUpstreamError(f"Malformed feed page: {e}", url=url) from e

    async def _get_records(self, url: str, headers: dict[str, str], key: str) -> list[RawOrder]:
        data = await self.client.get_json(url, headers=headers)
        try:
            return [RawOrder.model_validate(item) for item in data.get(key) or []]
        except (ValidationError, AttributeError) as e:
            raise PermanentUpstreamError(f"Malformed {key} response: {e}", url=url) from e

    async def _handle_orders(
        self, orders: Sequence[RawOrder]
    ) -> list[tuple[OrderRow, Optional[ParsedOrder]]]:
        """Parse and build rows for every record, at most ``concurrency`` at a time.

        Returns only once every record has been handled, in feed order.
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        loop = asyncio.get_running_loop()

        async def handle(raw: RawOrder):
            async with semaphore:
                parsed = await loop.run_in_executor(None, self.parser.parse, raw)
                return build_row(raw, parsed), parsed

        return await asyncio.gather(*(handle(raw) for raw in orders))

    async def _process_page(self, orders: Sequence[RawOrder], metrics: Metrics) -> PageResult:
        handled = await self._handle_orders(orders)
        result = PageResult(
            rows=[row for row, _ in handled],
            parsed=[parsed for _, parsed in handled if parsed is not None],
        )
        result.inserted = await self.store.insert_new(result.rows)

        metrics.increment("pages")
        metrics.increment("fetched", len(orders))
        metrics.increment("inserted", result.inserted)
        metrics.increment("parsed", len(result.parsed))
        metrics.increment("unparsed", len(orders) - len(result.parsed))
        return result

    async def _relay(self, parsed: list[ParsedOrder], metrics: Metrics) -> None:
        if not parsed:
            return
        await self.relay.enqueue(parsed, prioritized=True)
        metrics.increment("enqueued", len(parsed))

