"""Data models for feed records, parsed orders and stored rows."""
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ordersync.parse.protocol import ProtocolKind, SeaportOrder


class Maker(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    address: str


class ProtocolData(BaseModel):
    """Protocol-specific block as sent by the feed, kept verbatim."""

    model_config = ConfigDict(extra="allow", frozen=True)

    parameters: dict[str, Any]
    signature: Optional[str] = None


class RawOrder(BaseModel):
    """One order record as received from the feed."""

    model_config = ConfigDict(extra="allow", frozen=True)

    created_date: datetime
    order_hash: str
    maker: Maker
    protocol_address: str
    protocol_data: ProtocolData
    client_signature: Optional[str] = None

    @property
    def first_offer_token(self) -> str:
        """Token of the first offer item; raises if the record has none."""
        return self.protocol_data.parameters["offer"][0]["token"]


class FeedPage(BaseModel):
    """A page of the orders feed plus its continuation tokens."""

    orders: list[RawOrder] = Field(default_factory=list)
    next: Optional[str] = None
    previous: Optional[str] = None


class ParsedOrder:
    """A feed record decoded into a protocol-versioned order."""

    def __init__(self, kind: ProtocolKind, order: SeaportOrder):
        self.kind = kind
        self.order = order

    def to_relay(self) -> dict[str, Any]:
        """Shape handed to the downstream queue."""
        return {"kind": self.kind.value, "data": self.order.params.model_dump(mode="json")}

    def __repr__(self) -> str:
        return f"ParsedOrder(kind={self.kind.value}, contract={self.order.contract})"


class _OrderRowBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str = Field(..., description="Order hash, lowercased (primary key)")
    target: str = Field(..., description="Token contract, lowercased")
    maker: str
    created_at: datetime
    data: dict[str, Any] = Field(default_factory=dict, description="Raw protocol_data")
    source: str = "opensea"


class ParsedOrderRow(_OrderRowBase):
    """Row whose target comes from the parsed order."""

    origin: Literal["parsed"] = "parsed"


class FallbackOrderRow(_OrderRowBase):
    """Row whose target comes from the raw record's first offer item."""

    origin: Literal["fallback"] = "fallback"


OrderRow = Annotated[Union[ParsedOrderRow, FallbackOrderRow], Field(discriminator="origin")]


class CollectionProbe(BaseModel):
    """A (collection, contract, token) triple used to probe for offers."""

    collection: str
    contract: str
    token_id: str
