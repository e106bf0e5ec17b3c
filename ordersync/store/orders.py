"""Order stores with idempotent bulk insert keyed on the order hash."""
import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

import aiosqlite
import orjson
from supabase import Client, create_client

from ordersync.config import ORDERS_DB, config
from ordersync.errors import PersistenceError
from ordersync.parse.models import OrderRow

logger = logging.getLogger(__name__)

COLUMNS = ("hash", "target", "maker", "created_at", "data", "source")


class OrderStore(ABC):
    """Insert-only order store; existing hashes are skipped, never updated."""

    async def initialize(self) -> None:
        pass

    @abstractmethod
    async def insert_new(self, rows: Sequence[OrderRow]) -> int:
        """Insert ``rows`` as one batch and return how many were new."""


class SqliteOrderStore(OrderStore):
    """Local order store in SQLite."""

    def __init__(self, db_path: Path = ORDERS_DB):
        self.db_path = db_path

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS orders (
                    hash TEXT PRIMARY KEY,
                    target TEXT NOT NULL,
                    maker TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    data TEXT NOT NULL,
                    source TEXT NOT NULL
                )
                """
            )
            await db.execute("CREATE INDEX IF NOT EXISTS idx_orders_target ON orders(target)")
            await db.commit()
            logger.info(f"Order store initialized at {self.db_path}")

    async def insert_new(self, rows: Sequence[OrderRow]) -> int:
        if not rows:
            return 0

        values = [
            (
                row.hash,
                row.target,
                row.maker,
                row.created_at.isoformat(),
                orjson.dumps(row.data).decode(),
                row.source,
            )
            for row in rows
        ]
        try:
            async with aiosqlite.connect(self.db_path) as db:
                before = db.total_changes
                try:
                    await db.executemany(
                        f"INSERT INTO orders ({', '.join(COLUMNS)}) VALUES (?, ?, ?, ?, ?, ?) "
                        "ON CONFLICT(hash) DO NOTHING",
                        values,
                    )
                    inserted = db.total_changes - before
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
        except aiosqlite.Error as e:
            raise PersistenceError(f"Order batch insert failed ({len(rows)} rows): {e}") from e

        logger.debug(f"Inserted {inserted}/{len(rows)} orders")
        return inserted

    async def count(self) -> int:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM orders")
            row = await cursor.fetchone()
            return row[0]

    async def get(self, order_hash: str) -> Optional[dict]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM orders WHERE hash = ?", (order_hash.lower(),))
            row = await cursor.fetchone()
            if row is None:
                return None
            result = dict(row)
            result["data"] = orjson.loads(result["data"])
            return result


class SupabaseOrderStore(OrderStore):
    """Order store backed by a Supabase (PostgREST) table."""

    def __init__(self, client: Optional[Client] = None, table: Optional[str] = None):
        if client is None:
            if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_ROLE:
                raise ValueError("Supabase configuration missing")
            client = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE)
        self.client = client
        self.table = table or config.SUPABASE_TABLE

    async def insert_new(self, rows: Sequence[OrderRow]) -> int:
        if not rows:
            return 0

        data = [row.model_dump(mode="json", include=set(COLUMNS)) for row in rows]

        # Run sync Supabase client in thread pool
        loop = asyncio.get_running_loop()
        try:
            inserted = await loop.run_in_executor(None, self._insert_sync, data)
        except Exception as e:
            logger.error(f"Supabase insert error: {e}")
            raise PersistenceError(f"Order batch insert failed ({len(rows)} rows): {e}") from e

        logger.debug(f"Inserted {inserted}/{len(rows)} orders into {self.table}")
        return inserted

    def _insert_sync(self, data: list[dict]) -> int:
        """Single upsert request; PostgREST returns only the rows it wrote."""
        response = (
            self.client.table(self.table)
            .upsert(data, on_conflict="hash", ignore_duplicates=True)
            .execute()
        )
        return len(response.data or [])


def create_order_store() -> OrderStore:
    """Store selected by ORDER_STORE."""
    if config.ORDER_STORE == "supabase":
        return SupabaseOrderStore()
    return SqliteOrderStore()
