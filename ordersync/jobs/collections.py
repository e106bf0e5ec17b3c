"""Collections whose offers are probed, refreshed from the indexer's volume ranking."""
import logging
import math
import random
from typing import Optional

from ordersync.config import config
from ordersync.fetch.client import FeedClient
from ordersync.fetch.endpoints import get_collections_url, get_token_ids_url
from ordersync.parse.models import CollectionProbe
from ordersync.store.state import StateDB

logger = logging.getLogger(__name__)

MAX_FETCH_OFFERS_COLLECTIONS = 1000
COLLECTIONS_PAGE_SIZE = 20
TOKEN_SAMPLE_SIZE = 50
MARKETPLACE = "opensea"


class CollectionDiscoveryRefresher:
    """Keeps the stored probe set in line with the top collections by volume."""

    def __init__(
        self,
        client: FeedClient,
        state_db: StateDB,
        rng: Optional[random.Random] = None,
        max_collections: int = MAX_FETCH_OFFERS_COLLECTIONS,
    ):
        self.client = client
        self.state_db = state_db
        self.rng = rng or random.Random()
        self.max_collections = max_collections

    def _headers(self) -> dict[str, str]:
        headers = {}
        if config.INDEXER_API_KEY:
            headers["X-Api-Key"] = config.INDEXER_API_KEY
        return headers

    async def get_collections_to_probe(self) -> list[CollectionProbe]:
        """Stored probes, refreshing first when there are none."""
        try:
            if await self.state_db.count_probes(MARKETPLACE) == 0:
                await self.refresh()
            return await self.state_db.get_probes(MARKETPLACE)
        except Exception as e:
            logger.error(f"get_collections: Failed. error:{e}")
            return []

    async def refresh(self) -> int:
        """Rebuild the probe set. Returns the number of probes stored."""
        try:
            collections = await self._fetch_ranked_collections()
            if not collections:
                return 0

            probes = []
            for collection in collections:
                probe = await self._probe_for(collection)
                if probe is not None:
                    probes.append(probe)

            await self.state_db.replace_probes(MARKETPLACE, probes)
            return len(probes)
        except Exception as e:
            logger.error(f"refresh_collections: Failed. error:{e}")
            return 0

    async def _fetch_ranked_collections(self) -> list[dict]:
        logger.info(f"refresh_collections: Start. max:{self.max_collections}")

        collections: list[dict] = []
        continuation = None
        for _ in range(math.ceil(self.max_collections / COLLECTIONS_PAGE_SIZE)):
            data = await self.client.get_json(
                get_collections_url(COLLECTIONS_PAGE_SIZE, continuation),
                headers=self._headers(),
            )
            page = data.get("collections") or []
            collections.extend(page)
            continuation = data.get("continuation")

            if len(page) < COLLECTIONS_PAGE_SIZE:
                break

        return collections

    async def _probe_for(self, collection: dict) -> Optional[CollectionProbe]:
        # OpenSea returns 404 on some token ids, so sample one of several
        try:
            data = await self.client.get_json(
                get_token_ids_url(collection["id"], TOKEN_SAMPLE_SIZE),
                headers=self._headers(),
            )
            tokens = data.get("tokens") or []
            return CollectionProbe(
                collection=collection["id"],
                contract=collection["primaryContract"],
                token_id=str(self.rng.choice(tokens)),
            )
        except Exception as e:
            logger.error(
                f"refresh_collections: Failed to refresh collection. "
                f"collectionId={collection.get('id')}, error:{e}"
            )
            return None
