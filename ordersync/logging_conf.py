"""Logging setup."""
import logging
import sys

from ordersync.config import config


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once for the worker process."""
    logging.basicConfig(
        level=(level or config.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)-7s %(name)s - %(message)s",
        stream=sys.stdout,
        force=True,
    )
    # Request lines from httpx are noisy at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
