"""Tests for building persistable rows."""
import pytest
from pydantic import TypeAdapter

from ordersync.parse.models import FallbackOrderRow, OrderRow, ParsedOrderRow, RawOrder
from ordersync.parse.order_parser import OrderRecordParser
from ordersync.parse.rows import build_row

from helpers import NFT, OFFERER, UNKNOWN_PROTOCOL, order_payload


def test_parsed_row_is_lowercased():
    """Test hash, target and maker are stored lowercased."""
    raw = RawOrder.model_validate(order_payload("0xABCDEF"))
    row = build_row(raw, OrderRecordParser(chain_id=1).parse(raw))

    assert isinstance(row, ParsedOrderRow)
    assert row.origin == "parsed"
    assert row.hash == "0xabcdef"
    assert row.target == NFT.lower()
    assert row.maker == OFFERER.lower()
    assert row.source == "opensea"
    assert row.data["signature"] == "0xdeadbeef"


def test_fallback_row_targets_first_offer_token():
    """Test an unparsed record still yields a row, targeting the first offer token."""
    other = "0x" + "EF" * 20
    raw = RawOrder.model_validate(
        order_payload("0x01", protocol_address=UNKNOWN_PROTOCOL, token=other)
    )
    row = build_row(raw, None)

    assert isinstance(row, FallbackOrderRow)
    assert row.origin == "fallback"
    assert row.target == other.lower()
    assert row.data["parameters"]["offer"][0]["token"] == other


def test_fallback_row_without_offer_raises():
    """Test a record with no offer items can't produce a fallback row."""
    payload = order_payload("0x02")
    payload["protocol_data"]["parameters"]["offer"] = []
    raw = RawOrder.model_validate(payload)

    with pytest.raises(IndexError):
        build_row(raw, None)


def test_row_variant_round_trips_through_discriminator():
    """Test the origin tag selects the row class on validation."""
    raw = RawOrder.model_validate(order_payload("0x03"))
    dumped = build_row(raw, None).model_dump()

    row = TypeAdapter(OrderRow).validate_python(dumped)
    assert isinstance(row, FallbackOrderRow)
