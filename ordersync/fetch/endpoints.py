"""URL builders for the OpenSea orders feed and the collection indexer."""
from typing import Optional
from urllib.parse import quote, urlencode

from ordersync.config import config
from ordersync.errors import UnsupportedChainError

# chain id -> (hostname, network)
NETWORKS: dict[int, tuple[str, str]] = {
    1: ("api.opensea.io", "ethereum"),
    5: ("testnets-api.opensea.io", "goerli"),
    10: ("api.opensea.io", "optimism"),
    137: ("api.opensea.io", "matic"),
    42161: ("api.opensea.io", "arbitrum"),
}

SIDE_PATHS = {"sell": "listings", "buy": "offers"}


def get_network(chain_id: Optional[int] = None) -> tuple[str, str]:
    """Return (hostname, network) for a chain id."""
    chain_id = config.CHAIN_ID if chain_id is None else chain_id
    try:
        return NETWORKS[chain_id]
    except KeyError:
        raise UnsupportedChainError(f"Unsupported chain: {chain_id}") from None


def build_fetch_orders_url(
    side: str,
    *,
    override_base_url: Optional[str] = None,
    order_by: Optional[str] = "created_date",
    order_direction: Optional[str] = "desc",
    contract: Optional[str] = None,
    limit: Optional[int] = None,
    cursor: Optional[str] = None,
    listed_before: Optional[int] = None,
    listed_after: Optional[int] = None,
    chain_id: Optional[int] = None,
) -> str:
    """Build the orders feed URL for one page."""
    if side not in SIDE_PATHS:
        raise ValueError(f"side must be 'sell' or 'buy', got {side!r}")

    hostname, network = get_network(chain_id)
    base_url = override_base_url or config.OPENSEA_BASE_URL or f"https://{hostname}"
    base_api_url = f"{base_url}/v2/orders/{network}/seaport/{SIDE_PATHS[side]}"

    params: list[tuple[str, str]] = []
    if order_by:
        params.append(("order_by", order_by))
    if limit:
        params.append(("limit", str(limit)))
    if order_direction:
        params.append(("order_direction", order_direction))
    if cursor:
        params.append(("cursor", cursor))
    if listed_before:
        params.append(("listed_before", str(listed_before)))
    if listed_after:
        params.append(("listed_after", str(listed_after)))
    if contract:
        params.append(("asset_contract_address", contract))

    if not params:
        return base_api_url
    # Cursors are opaque; keep their characters as sent
    return f"{base_api_url}?{urlencode(params, safe='=:/+')}"


def get_listings_by_slug_url(slug: str, chain_id: Optional[int] = None) -> str:
    """All listings of one collection."""
    hostname, _ = get_network(chain_id)
    return f"https://{hostname}/api/v2/listings/collection/{quote(slug)}/all"


def get_asset_offers_url(contract: str, token_id: str, chain_id: Optional[int] = None) -> str:
    """Offers on one asset."""
    hostname, _ = get_network(chain_id)
    return f"https://{hostname}/api/v1/asset/{contract}/{token_id}/offers"


def get_collections_url(limit: int, continuation: Optional[str] = None) -> str:
    """Collections ranked by trailing 30 day volume."""
    params = {"limit": limit, "sortBy": "30DayVolume"}
    if continuation:
        params["continuation"] = continuation
    return f"{config.INDEXER_API_URL}/collections/v5?{urlencode(params)}"


def get_token_ids_url(collection_id: str, limit: int) -> str:
    """Token ids of one collection."""
    return f"{config.INDEXER_API_URL}/tokens/ids/v1?{urlencode({'collection': collection_id, 'limit': limit})}"
