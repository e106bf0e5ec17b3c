"""Disk spool holding order batches for the downstream relay."""
import logging
import time
from pathlib import Path
from typing import Any, Iterator
import aiofiles
import orjson

from ordersync.config import SPOOL_DIR

logger = logging.getLogger(__name__)


class SpoolManager:
    """Appends relay batches to JSONL spool files, one file per day."""

    def __init__(self, spool_dir: Path = SPOOL_DIR):
        self.spool_dir = spool_dir
        self.spool_dir.mkdir(parents=True, exist_ok=True)

    def _get_spool_file(self, day: str) -> Path:
        return self.spool_dir / f"relay_{day}.jsonl"

    async def write_batch(self, entry: dict[str, Any]) -> Path:
        """Append one batch entry and return the spool file it went to."""
        spool_file = self._get_spool_file(time.strftime("%Y%m%d", time.gmtime()))
        async with aiofiles.open(spool_file, "ab") as f:
            await f.write(orjson.dumps(entry) + b"\n")
        return spool_file

    async def read_file(self, spool_file: Path) -> list[dict]:
        """Read all batch entries from a spool file."""
        if not spool_file.exists():
            return []

        entries = []
        async with aiofiles.open(spool_file, "rb") as f:
            async for line in f:
                try:
                    entries.append(orjson.loads(line))
                except orjson.JSONDecodeError as e:
                    logger.warning(f"Error reading spool line in {spool_file.name}: {e}")
                    continue

        return entries

    def list_spool_files(self) -> Iterator[Path]:
        """List all spool files."""
        return self.spool_dir.glob("relay_*.jsonl")
