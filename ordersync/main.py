"""Worker entry point: realtime Seaport sync and offer probing."""
import argparse
import asyncio
import logging
import sys

from ordersync.config import config, Config
from ordersync.fetch.client import FeedClient
from ordersync.jobs.collections import CollectionDiscoveryRefresher
from ordersync.jobs.fetcher import FeedSync
from ordersync.jobs.metrics_exporter import MetricsExporter
from ordersync.jobs.realtime import REALTIME_QUEUE_NAME, RealtimeCursorScheduler
from ordersync.jobs.relay import OrderRelay
from ordersync.logging_conf import setup_logging
from ordersync.store.orders import create_order_store
from ordersync.store.state import StateDB

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Seaport order feed sync worker")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single realtime sync and exit",
    )
    return parser.parse_args()


async def probe_offers(feed_sync: FeedSync, refresher: CollectionDiscoveryRefresher) -> None:
    """Sync offers for every stored probe; one failing probe doesn't stop the rest."""
    for probe in await refresher.get_collections_to_probe():
        try:
            await feed_sync.fetch_collection_offers(probe.contract, probe.token_id)
        except Exception as e:
            logger.warning(f"Offer probe failed for collection={probe.collection}: {e}")


async def realtime_loop(scheduler: RealtimeCursorScheduler) -> None:
    """Re-trigger the realtime job every REALTIME_DELAY seconds."""
    while True:
        await scheduler.trigger()
        await asyncio.sleep(config.REALTIME_DELAY)


async def probe_loop(feed_sync: FeedSync, refresher: CollectionDiscoveryRefresher) -> None:
    while True:
        await probe_offers(feed_sync, refresher)
        await asyncio.sleep(config.REALTIME_DELAY)


async def run_loops(
    scheduler: RealtimeCursorScheduler,
    feed_sync: FeedSync,
    refresher: CollectionDiscoveryRefresher,
) -> None:
    """Run the enabled loops side by side until one fails or all are cancelled."""
    tasks = []
    if config.DO_REALTIME_WORK:
        tasks.append(asyncio.create_task(realtime_loop(scheduler), name="realtime-loop"))
    if config.DO_OFFER_PROBES:
        tasks.append(
            asyncio.create_task(probe_loop(feed_sync, refresher), name="offer-probe-loop")
        )
    if not tasks:
        logger.warning("Realtime work and offer probes are both disabled, nothing to run")
        return

    try:
        await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def run_worker(once: bool = False) -> None:
    """Build the components, run until cancelled, then shut them down."""
    state_db = StateDB()
    store = create_order_store()
    relay = OrderRelay()

    await state_db.initialize()
    await store.initialize()
    await relay.start()

    async with FeedClient() as client:
        feed_sync = FeedSync(client, store, relay)
        scheduler = RealtimeCursorScheduler(
            feed_sync, state_db, exporter=MetricsExporter(REALTIME_QUEUE_NAME)
        )
        refresher = CollectionDiscoveryRefresher(client, state_db)

        if once:
            await scheduler.run()
            await relay.stop()
            return

        queue = scheduler.create_queue()
        await queue.start()
        try:
            await run_loops(scheduler, feed_sync, refresher)
        finally:
            await queue.stop()
            await relay.stop()


def main() -> None:
    """Main entry point."""
    setup_logging()
    args = parse_args()

    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    logger.info("=" * 60)
    logger.info("Seaport order sync starting")
    logger.info(f"Chain: {config.CHAIN_ID}")
    logger.info(f"Order store: {config.ORDER_STORE}")
    logger.info(f"Realtime work: {config.DO_REALTIME_WORK}")
    logger.info(f"Offer probes: {config.DO_OFFER_PROBES}")
    logger.info(f"Concurrency: {config.CONCURRENCY}")
    logger.info("=" * 60)

    try:
        asyncio.run(run_worker(once=args.once))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
