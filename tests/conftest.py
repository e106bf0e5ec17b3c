"""Shared fixtures: config for a mainnet feed, stores under tmp_path."""
import asyncio

import pytest

from ordersync.config import config
from ordersync.store.orders import SqliteOrderStore
from ordersync.store.spool import SpoolManager
from ordersync.store.state import StateDB

from helpers import RecordingRelay


@pytest.fixture(autouse=True)
def feed_config(monkeypatch):
    monkeypatch.setattr(config, "CHAIN_ID", 1)
    monkeypatch.setattr(config, "OPENSEA_API_URL", None)
    monkeypatch.setattr(config, "OPENSEA_BASE_URL", None)
    monkeypatch.setattr(config, "OPENSEA_API_HEADER", "X-API-KEY")
    monkeypatch.setattr(config, "REALTIME_OPENSEA_API_KEY", "realtime-key")
    monkeypatch.setattr(config, "BACKFILL_OPENSEA_API_KEY", "backfill-key")
    monkeypatch.setattr(config, "INDEXER_API_URL", "https://indexer.test")
    monkeypatch.setattr(config, "INDEXER_API_KEY", None)
    monkeypatch.setattr(config, "PAGE_SIZE", 50)
    monkeypatch.setattr(config, "CONCURRENCY", 20)
    monkeypatch.setattr(config, "RATE_LIMIT_RETRY_DELAY", 5.0)
    monkeypatch.setattr(config, "REALTIME_CURSOR_KEY", "seaport-sync-last")
    monkeypatch.setattr(config, "REALTIME_LOCK_NAME", "seaport-sync-lock")
    monkeypatch.setattr(config, "REALTIME_LOCK_TTL", 60)


@pytest.fixture
def order_store(tmp_path) -> SqliteOrderStore:
    store = SqliteOrderStore(tmp_path / "orders.db")
    asyncio.run(store.initialize())
    return store


@pytest.fixture
def state_db(tmp_path) -> StateDB:
    db = StateDB(tmp_path / "state.db")
    asyncio.run(db.initialize())
    return db


@pytest.fixture
def relay() -> RecordingRelay:
    return RecordingRelay()


@pytest.fixture
def spool(tmp_path) -> SpoolManager:
    return SpoolManager(tmp_path / "spool")
