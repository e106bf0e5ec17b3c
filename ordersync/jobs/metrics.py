"""Counters for sync runs."""
import time
import logging
from collections import defaultdict
from typing import Dict

logger = logging.getLogger(__name__)


class Metrics:
    """Track feed sync counters and throughput."""

    def __init__(self):
        self.start_time = time.time()
        self.counters: Dict[str, int] = defaultdict(int)

    def increment(self, key: str, amount: int = 1) -> None:
        """Increment a counter."""
        self.counters[key] += amount

    def get_rate(self) -> float:
        """Orders fetched per second since start."""
        elapsed = time.time() - self.start_time
        if elapsed > 0:
            return self.counters.get("fetched", 0) / elapsed
        return 0.0

    def report(self, label: str) -> None:
        """Log current counters."""
        logger.info(
            f"{label}: pages={self.counters.get('pages', 0)} | "
            f"fetched={self.counters.get('fetched', 0)} | "
            f"inserted={self.counters.get('inserted', 0)} | "
            f"parsed={self.counters.get('parsed', 0)} | "
            f"unparsed={self.counters.get('unparsed', 0)} | "
            f"rate_limited={self.counters.get('rate_limited', 0)} | "
            f"rate={self.get_rate():.2f}/s"
        )

    def get_summary(self) -> Dict:
        """Get summary statistics."""
        return {
            "pages": self.counters.get("pages", 0),
            "fetched": self.counters.get("fetched", 0),
            "inserted": self.counters.get("inserted", 0),
            "parsed": self.counters.get("parsed", 0),
            "unparsed": self.counters.get("unparsed", 0),
            "enqueued": self.counters.get("enqueued", 0),
            "rate_limited": self.counters.get("rate_limited", 0),
            "rate": self.get_rate(),
            "elapsed_seconds": time.time() - self.start_time,
        }
