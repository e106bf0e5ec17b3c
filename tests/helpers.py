"""Test helpers: feed payloads, a scripted feed transport, an in-memory relay."""
from typing import Optional
from urllib.parse import parse_qs, urlparse

import httpx

from ordersync.fetch.client import FeedClient
from ordersync.jobs.relay import OrderRelay
from ordersync.parse.protocol import EXCHANGE_ADDRESSES, ProtocolKind

SEAPORT_V14 = EXCHANGE_ADDRESSES[ProtocolKind.SEAPORT_V14][1]
SEAPORT_V15 = EXCHANGE_ADDRESSES[ProtocolKind.SEAPORT_V15][1]
UNKNOWN_PROTOCOL = "0x" + "99" * 20

NFT = "0x" + "AB" * 20
OFFERER = "0x" + "CD" * 20
ZERO_ADDRESS = "0x" + "00" * 20
ZERO_BYTES32 = "0x" + "00" * 32


def order_payload(
    order_hash: str,
    created_date: str = "2024-01-01T00:00:00",
    protocol_address: str = SEAPORT_V15,
    token: str = NFT,
    offerer: str = OFFERER,
) -> dict:
    """A listing as the feed sends it."""
    return {
        "created_date": created_date,
        "order_hash": order_hash,
        "maker": {"address": offerer},
        "protocol_address": protocol_address,
        "protocol_data": {
            "parameters": {
                "offerer": offerer,
                "zone": ZERO_ADDRESS,
                "zoneHash": ZERO_BYTES32,
                "conduitKey": ZERO_BYTES32,
                "salt": "0x1234",
                "offer": [
                    {
                        "itemType": 2,
                        "token": token,
                        "identifierOrCriteria": "42",
                        "startAmount": "1",
                        "endAmount": "1",
                    }
                ],
                "consideration": [
                    {
                        "itemType": 0,
                        "token": ZERO_ADDRESS,
                        "identifierOrCriteria": "0",
                        "startAmount": "1000000000000000000",
                        "endAmount": "1000000000000000000",
                        "recipient": offerer,
                    }
                ],
                "counter": 0,
                "orderType": 0,
                "startTime": 1700000000,
                "endTime": 1800000000,
                "totalOriginalConsiderationItems": 1,
            },
            "signature": "0xdeadbeef",
        },
        "client_signature": None,
    }


class ScriptedFeed:
    """Serves a fixed page per cursor and records every request.

    ``responses`` maps a cursor (None for the first page) to either a JSON
    body or a list of status codes / bodies consumed one per request.
    """

    def __init__(self, responses: dict[Optional[str], object]):
        self.responses = {key: (value if isinstance(value, list) else [value]) for key, value in responses.items()}
        self.requests: list[httpx.Request] = []

    @property
    def cursors(self) -> list[Optional[str]]:
        return [parse_qs(urlparse(str(r.url)).query).get("cursor", [None])[0] for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        cursor = parse_qs(urlparse(str(request.url)).query).get("cursor", [None])[0]
        script = self.responses[cursor]
        answer = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(answer, int):
            return httpx.Response(answer, json={"detail": "scripted"})
        return httpx.Response(200, json=answer)

    def client(self) -> FeedClient:
        return FeedClient(transport=httpx.MockTransport(self.handler), rate_per_second=0)


class RecordingRelay(OrderRelay):
    """Relay that keeps batches in memory."""

    def __init__(self):
        super().__init__()
        self.batches: list[tuple[list, bool]] = []
        self._started = True

    async def enqueue(self, orders, prioritized=False):
        if orders:
            self.batches.append((list(orders), prioritized))

    @property
    def orders(self) -> list:
        return [order for batch, _ in self.batches for order in batch]
