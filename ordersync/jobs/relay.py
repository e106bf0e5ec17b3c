"""Downstream relay for parsed orders."""
import logging
import time
import uuid
from typing import Optional, Sequence

from ordersync.errors import EnqueueError
from ordersync.parse.models import ParsedOrder
from ordersync.store.spool import SpoolManager

logger = logging.getLogger(__name__)


class OrderRelay:
    """Hands batches of parsed orders to the downstream processing queue.

    Delivery is at-least-once: a batch may be spooled again after a failure
    upstream of the relay, and consumers must tolerate duplicates.
    """

    def __init__(self, spool: Optional[SpoolManager] = None):
        self.spool = spool
        self._started = False
        self.batches_enqueued = 0

    async def start(self) -> None:
        if self.spool is None:
            self.spool = SpoolManager()
        self._started = True

    async def stop(self) -> None:
        self._started = False

    async def enqueue(self, orders: Sequence[ParsedOrder], prioritized: bool = False) -> None:
        """Enqueue one batch; raises EnqueueError if it can't be handed off."""
        if not orders:
            return
        if not self._started:
            raise EnqueueError("Order relay is not started")

        entry = {
            "id": str(uuid.uuid4()),
            "ts": time.time(),
            "prioritized": prioritized,
            "orders": [order.to_relay() for order in orders],
        }
        try:
            await self.spool.write_batch(entry)
        except OSError as e:
            raise EnqueueError(f"Failed to spool {len(orders)} orders: {e}") from e

        self.batches_enqueued += 1
        logger.debug(f"Relayed {len(orders)} orders (prioritized={prioritized})")
