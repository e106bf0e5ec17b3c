"""Run control: stop conditions for a feed walk."""
import time
import logging
from typing import Optional
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RunControl:
    """Tracks progress of one feed walk and decides when it stops."""

    max_orders: Optional[int] = None

    # Internal state
    start_time: float = field(default_factory=time.time)
    total: int = 0
    pages: int = 0
    done: bool = False
    done_reason: Optional[str] = None

    def should_stop(self) -> tuple[bool, Optional[str]]:
        """Check if the walk should stop. Returns (should_stop, reason)."""
        if self.done:
            return True, self.done_reason

        if self.max_orders is not None and self.total >= self.max_orders:
            return True, f"Reached max_orders={self.max_orders}"

        return False, None

    def record_page(self, orders: int) -> None:
        self.pages += 1
        self.total += orders

    def mark_done(self, reason: str) -> None:
        self.done = True
        self.done_reason = reason

    def get_summary(self) -> dict:
        """Get summary statistics."""
        elapsed_minutes = (time.time() - self.start_time) / 60
        return {
            "elapsed_minutes": round(elapsed_minutes, 2),
            "pages": self.pages,
            "total": self.total,
            "done_reason": self.done_reason,
        }
