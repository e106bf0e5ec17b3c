"""Build persistable rows from feed records."""
from typing import Optional

from ordersync.parse.models import FallbackOrderRow, OrderRow, ParsedOrder, ParsedOrderRow, RawOrder

ORDER_SOURCE = "opensea"


def build_row(raw: RawOrder, parsed: Optional[ParsedOrder]) -> OrderRow:
    """Row for ``raw``, targeting the parsed contract when one is known."""
    fields = {
        "hash": raw.order_hash.lower(),
        "maker": raw.maker.address.lower(),
        "created_at": raw.created_date,
        "data": raw.protocol_data.model_dump(mode="json"),
        "source": ORDER_SOURCE,
    }
    contract = parsed.order.contract if parsed else None
    if contract:
        return ParsedOrderRow(target=contract.lower(), **fields)
    return FallbackOrderRow(target=raw.first_offer_token.lower(), **fields)
