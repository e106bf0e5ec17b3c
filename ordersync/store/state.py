"""SQLite state database: sync cursor cache, coordination locks and probe set."""
import aiosqlite
import logging
import time
from pathlib import Path
from typing import Optional

from ordersync.config import STATE_DB
from ordersync.parse.models import CollectionProbe

logger = logging.getLogger(__name__)


class StateDB:
    """Small keyed state shared between sync workers."""

    def __init__(self, db_path: Path = STATE_DB):
        self.db_path = db_path

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS sync_cache (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP
                )
                """
            )
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS sync_locks (
                    name TEXT PRIMARY KEY,
                    expires_at REAL
                )
                """
            )
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS fetch_offers_collections (
                    marketplace TEXT NOT NULL,
                    collection TEXT NOT NULL,
                    contract TEXT NOT NULL,
                    token_id TEXT NOT NULL,
                    PRIMARY KEY (marketplace, collection)
                )
                """
            )
            await db.commit()
            logger.info(f"State database initialized at {self.db_path}")

    # Cursor cache

    async def get(self, key: str) -> Optional[str]:
        """Cached value for ``key``, or None."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("SELECT value FROM sync_cache WHERE key = ?", (key,))
            row = await cursor.fetchone()
            return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        """Overwrite the cached value for ``key``."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT OR REPLACE INTO sync_cache (key, value, updated_at)
                VALUES (?, ?, datetime('now'))
                """,
                (key, value),
            )
            await db.commit()

    # Coordination locks

    async def acquire_lock(self, name: str, ttl: Optional[float] = None) -> bool:
        """Take the named lock unless someone holds an unexpired one."""
        now = time.time()
        expires_at = now + ttl if ttl else None
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                INSERT INTO sync_locks (name, expires_at) VALUES (?, ?)
                ON CONFLICT(name) DO UPDATE SET expires_at = excluded.expires_at
                WHERE sync_locks.expires_at IS NOT NULL AND sync_locks.expires_at <= ?
                """,
                (name, expires_at, now),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def release_lock(
        self, name: str, suppress_reacquire: bool = False, cooldown: float = 5.0
    ) -> None:
        """Release the named lock.

        With ``suppress_reacquire`` the lock is held for ``cooldown`` more
        seconds so the releasing worker can't immediately take it again.
        """
        async with aiosqlite.connect(self.db_path) as db:
            if suppress_reacquire:
                await db.execute(
                    "UPDATE sync_locks SET expires_at = ? WHERE name = ?",
                    (time.time() + cooldown, name),
                )
            else:
                await db.execute("DELETE FROM sync_locks WHERE name = ?", (name,))
            await db.commit()
        logger.debug(f"Released lock {name} (suppress_reacquire={suppress_reacquire})")

    async def is_locked(self, name: str) -> bool:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT expires_at FROM sync_locks WHERE name = ?", (name,)
            )
            row = await cursor.fetchone()
            if row is None:
                return False
            return row[0] is None or row[0] > time.time()

    # Offer probe set

    async def count_probes(self, marketplace: str) -> int:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM fetch_offers_collections WHERE marketplace = ?",
                (marketplace,),
            )
            row = await cursor.fetchone()
            return row[0]

    async def get_probes(self, marketplace: str) -> list[CollectionProbe]:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                SELECT collection, contract, token_id FROM fetch_offers_collections
                WHERE marketplace = ? ORDER BY rowid
                """,
                (marketplace,),
            )
            return [
                CollectionProbe(collection=row[0], contract=row[1], token_id=row[2])
                for row in await cursor.fetchall()
            ]

    async def replace_probes(self, marketplace: str, probes: list[CollectionProbe]) -> None:
        """Swap the whole probe set for ``marketplace`` in one transaction."""
        async with aiosqlite.connect(self.db_path) as db:
            try:
                await db.execute(
                    "DELETE FROM fetch_offers_collections WHERE marketplace = ?", (marketplace,)
                )
                await db.executemany(
                    """
                    INSERT OR REPLACE INTO fetch_offers_collections
                    (marketplace, collection, contract, token_id) VALUES (?, ?, ?, ?)
                    """,
                    [(marketplace, p.collection, p.contract, p.token_id) for p in probes],
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        logger.info(f"Stored {len(probes)} offer probes for {marketplace}")
