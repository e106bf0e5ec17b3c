"""Configuration management from environment variables."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Project root
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
SPOOL_DIR = DATA_DIR / "spool"
STATE_DB = DATA_DIR / "state.db"
ORDERS_DB = DATA_DIR / "orders.db"

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)
SPOOL_DIR.mkdir(exist_ok=True)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration."""

    # Network
    CHAIN_ID: int = int(os.getenv("CHAIN_ID", "1"))

    # OpenSea
    OPENSEA_API_URL: str | None = os.getenv("OPENSEA_API_URL")
    OPENSEA_BASE_URL: str | None = os.getenv("OPENSEA_BASE_URL")
    OPENSEA_API_HEADER: str = os.getenv("OPENSEA_API_HEADER", "X-API-KEY")
    REALTIME_OPENSEA_API_KEY: str | None = os.getenv("REALTIME_OPENSEA_API_KEY")
    BACKFILL_OPENSEA_API_KEY: str | None = os.getenv("BACKFILL_OPENSEA_API_KEY")

    # Collection ranking source
    INDEXER_API_URL: str | None = os.getenv("INDEXER_API_URL")
    INDEXER_API_KEY: str | None = os.getenv("INDEXER_API_KEY")

    # Sync
    PAGE_SIZE: int = int(os.getenv("PAGE_SIZE", "50"))
    CONCURRENCY: int = int(os.getenv("CONCURRENCY", "20"))
    TIMEOUT: int = int(os.getenv("TIMEOUT", "20"))
    RATE_PER_DOMAIN: float = float(os.getenv("RATE_PER_DOMAIN", "2.0"))
    RATE_LIMIT_RETRY_DELAY: float = float(os.getenv("RATE_LIMIT_RETRY_DELAY", "5.0"))

    # Realtime job
    DO_REALTIME_WORK: bool = _env_bool("DO_REALTIME_WORK", "true")
    REALTIME_DELAY: float = float(os.getenv("REALTIME_DELAY", "5.0"))
    REALTIME_LOCK_TTL: int = int(os.getenv("REALTIME_LOCK_TTL", "60"))
    REALTIME_CURSOR_KEY: str = os.getenv("REALTIME_CURSOR_KEY", "seaport-sync-last")
    REALTIME_LOCK_NAME: str = os.getenv("REALTIME_LOCK_NAME", "seaport-sync-lock")
    DO_OFFER_PROBES: bool = _env_bool("DO_OFFER_PROBES", "false")

    # Order store
    ORDER_STORE: str = os.getenv("ORDER_STORE", "sqlite")
    SUPABASE_URL: str | None = os.getenv("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE: str | None = os.getenv("SUPABASE_SERVICE_ROLE")
    SUPABASE_TABLE: str = os.getenv("SUPABASE_TABLE", "orders")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration."""
        errors = []
        if cls.ORDER_STORE not in ("sqlite", "supabase"):
            errors.append(f"ORDER_STORE must be 'sqlite' or 'supabase', got {cls.ORDER_STORE!r}")
        if cls.ORDER_STORE == "supabase":
            if not cls.SUPABASE_URL:
                errors.append("SUPABASE_URL is required")
            if not cls.SUPABASE_SERVICE_ROLE:
                errors.append("SUPABASE_SERVICE_ROLE is required")
        if cls.CONCURRENCY < 1:
            errors.append("CONCURRENCY must be >= 1")
        if cls.PAGE_SIZE < 1:
            errors.append("PAGE_SIZE must be >= 1")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")


config = Config()
