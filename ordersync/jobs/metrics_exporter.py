"""Metrics exporter for observability."""
import time
from pathlib import Path
from typing import Optional
import aiofiles
import orjson

from ordersync.config import DATA_DIR
from ordersync.parse.redact import redact_json

METRICS_FILE = DATA_DIR / "metrics.jsonl"


class MetricsExporter:
    """Appends one JSON line per sync run to a metrics file."""

    def __init__(self, job_name: str, metrics_file: Path = METRICS_FILE):
        self.job_name = job_name
        self.metrics_file = metrics_file

    async def export_run(
        self,
        success: bool,
        cursor_moved: bool,
        duration: float,
        attempts: int,
        error: Optional[str] = None,
    ) -> None:
        """Export one run's outcome."""
        metrics = {
            "ts": time.time(),
            "job": self.job_name,
            "success": success,
            "cursor_moved": cursor_moved,
            "duration": round(duration, 3),
            "attempts": attempts,
            "error": error,
        }

        line = orjson.dumps(redact_json(metrics)) + b"\n"
        async with aiofiles.open(self.metrics_file, "ab") as f:
            await f.write(line)
