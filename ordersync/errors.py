"""Error taxonomy for the sync engine."""
from typing import Optional


class SyncError(Exception):
    """Base class for sync failures."""


class UpstreamError(SyncError):
    """The feed request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class RateLimitedError(UpstreamError):
    """Upstream answered 429 Too Many Requests."""


class PermanentUpstreamError(UpstreamError):
    """Any upstream failure other than rate limiting."""


class PersistenceError(SyncError):
    """A batch could not be written to the order store."""


class EnqueueError(SyncError):
    """Parsed orders could not be handed to the downstream queue."""


class UnsupportedChainError(ValueError):
    """No feed network is known for the configured chain id."""
