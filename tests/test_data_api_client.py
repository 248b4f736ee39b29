import json

import httpx
import pytest

from tradewatch.errors import NetworkError
from tradewatch.infrastructure.market.data_api_client import DataApiClient

ADDR = "0x" + "c" * 40

ACTIVITY_ROW = {
    "proxyWallet": ADDR,
    "timestamp": 1700000000,
    "conditionId": "0xcond",
    "type": "TRADE",
    "size": "12.5",
    "usdcSize": 6.25,
    "transactionHash": "0xhash",
    "price": 0.5,
    "asset": "987",
    "side": "BUY",
    "outcomeIndex": 1,
    "title": "Will it snow?",
    "slug": "will-it-snow",
    "eventSlug": "snow",
    "outcome": "Yes",
    "unknownField": "ignored",
}


def make_client(handler) -> DataApiClient:
    transport = httpx.MockTransport(handler)
    return DataApiClient(base_url="https://data.example", client=httpx.AsyncClient(transport=transport))


@pytest.mark.asyncio
async def test_fetch_trade_events_parses_camel_case_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[ACTIVITY_ROW])

    client = make_client(handler)
    events = await client.fetch_trade_events(ADDR, since=1699990000)
    await client.aclose()

    assert seen["path"] == "/activity"
    assert seen["params"] == {"user": ADDR, "type": "TRADE", "start": "1699990000"}
    assert len(events) == 1
    event = events[0]
    assert event.transaction_hash == "0xhash"
    assert event.condition_id == "0xcond"
    assert event.size == 12.5
    assert event.outcome_index == 1
    assert event.event_slug == "snow"

@pytest.mark.asyncio
async def test_malformed_timestamp_parses_as_none():
    row = dict(ACTIVITY_ROW, timestamp="yesterday")
    client = make_client(lambda request: httpx.Response(200, json=[row]))
    events = await client.fetch_trade_events(ADDR)
    assert events[0].timestamp is None

@pytest.mark.asyncio
async def test_non_list_payload_yields_empty_list():
    client = make_client(lambda request: httpx.Response(200, json={"error": "rate limited"}))
    assert await client.fetch_trade_events(ADDR) == []
    assert await client.fetch_positions(ADDR) == []

@pytest.mark.asyncio
async def test_http_error_raises_network_error():
    client = make_client(lambda request: httpx.Response(503, text="unavailable"))
    with pytest.raises(NetworkError) as exc_info:
        await client.fetch_trade_events(ADDR)
    assert exc_info.value.url == "https://data.example/activity"
    assert "503" in exc_info.value.message

@pytest.mark.asyncio
async def test_transport_error_raises_network_error():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    client = make_client(handler)
    with pytest.raises(NetworkError) as exc_info:
        await client.fetch_positions(ADDR)
    assert isinstance(exc_info.value.original_error, httpx.ConnectTimeout)

@pytest.mark.asyncio
async def test_invalid_json_raises_network_error():
    client = make_client(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
    with pytest.raises(NetworkError):
        await client.fetch_trade_events(ADDR)

@pytest.mark.asyncio
async def test_fetch_positions_skips_malformed_rows():
    rows = [
        {"asset": "1", "conditionId": "0xc", "size": 4, "curPrice": "0.3", "redeemable": False},
        {"size": 2},
        "garbage",
    ]

    def handler(request):
        assert request.url.path == "/positions"
        assert request.url.params["user"] == ADDR
        return httpx.Response(200, content=json.dumps(rows).encode())

    client = make_client(handler)
    positions = await client.fetch_positions(ADDR)
    assert len(positions) == 1
    assert positions[0].cur_price == 0.3
    assert positions[0].condition_id == "0xc"

@pytest.mark.asyncio
async def test_non_finite_numbers_do_not_abort_the_batch():
    huge = "1" + "0" * 400
    body = (
        '[{"timestamp": 1e400, "transactionHash": "0xinf", "price": "Infinity"},'
        '{"timestamp": "NaN", "transactionHash": "0xnan", "size": ' + huge + '},'
        '{"timestamp": 1700000000, "transactionHash": "0xgood"}]'
    )
    client = make_client(lambda request: httpx.Response(200, content=body.encode()))

    events = await client.fetch_trade_events(ADDR)

    assert [e.transaction_hash for e in events] == ["0xinf", "0xnan", "0xgood"]
    assert events[0].timestamp is None
    assert events[0].price is None
    assert events[1].timestamp is None
    assert events[1].size is None
    assert events[2].timestamp == 1700000000
