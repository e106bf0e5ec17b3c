"""Decode feed records into protocol-versioned orders."""
import logging
from typing import Optional

from ordersync.config import config
from ordersync.parse.models import ParsedOrder, RawOrder
from ordersync.parse.protocol import SeaportOrder, protocol_for_address

logger = logging.getLogger(__name__)


def order_components(raw: RawOrder) -> dict:
    """Map the feed's parameter block onto Seaport order components."""
    params = raw.protocol_data.parameters
    return {
        "endTime": params["endTime"],
        "startTime": params["startTime"],
        "consideration": params["consideration"],
        "offer": params["offer"],
        "conduitKey": params["conduitKey"],
        "salt": params["salt"],
        "zone": params["zone"],
        "zoneHash": params["zoneHash"],
        "offerer": params["offerer"],
        "counter": f"{params['counter']}",
        "orderType": params["orderType"],
        "signature": raw.protocol_data.signature or None,
    }


class OrderRecordParser:
    """Selects the protocol version by exchange address and builds the order."""

    def __init__(self, chain_id: Optional[int] = None):
        self.chain_id = config.CHAIN_ID if chain_id is None else chain_id

    def parse(self, raw: RawOrder) -> Optional[ParsedOrder]:
        """Return the typed order, or None when the record can't be decoded."""
        try:
            kind = protocol_for_address(self.chain_id, raw.protocol_address)
            if kind is None:
                logger.debug(
                    f"Skipping order {raw.order_hash}: unknown protocol address {raw.protocol_address}"
                )
                return None
            order = SeaportOrder.build(self.chain_id, kind, order_components(raw))
            return ParsedOrder(kind, order)
        except Exception as e:
            logger.error(f"Failed to parse order {raw.order_hash} - {e}")
            return None
