"""Tests for LedgerClient against mocked HTTP transports."""

import json

import httpx
import pytest

from common.protocol import QueryFilter, TransactionEnvelope
from common.types import Tag
from chunkstore.exceptions import LedgerRejectedError, LedgerUnavailableError, TransactionNotFoundError
from chunkstore.ledger_client import ORDER_ASC, LedgerClient
from chunkstore.query_cache import QueryCache


async def no_sleep(seconds):
    return None


def make_client(handler, max_retries=2, sleeps=None):
    async def record_sleep(seconds):
        if sleeps is not None:
            sleeps.append(seconds)

    session = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://ledger")
    return LedgerClient(
        base_url="http://ledger",
        max_retries=max_retries,
        cache=QueryCache(),
        session=session,
        sleep=record_sleep if sleeps is not None else no_sleep,
    )


def envelope():
    return TransactionEnvelope(data=b'{"a": 1}', tags=[Tag("App-Name", "GetClayed")], owner="ab" * 32, nonce=1, signature="00")


@pytest.mark.asyncio
async def test_submit_returns_receipt():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "tx-1", "timestamp": 1700000000})

    client = make_client(handler)

    receipt = await client.submit(envelope())

    assert receipt == {"id": "tx-1", "timestamp": 1700000000}
    body = json.loads(seen[0].content)
    assert body["tags"] == [{"name": "App-Name", "value": "GetClayed"}]
    assert body["nonce"] == 1
    assert seen[0].headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_5xx_is_retried_with_backoff():
    calls = []
    sleeps = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503, json={"detail": "busy", "code": "INTERNAL_ERROR"})
        return httpx.Response(200, json={"id": "tx-1", "timestamp": 1})

    client = make_client(handler, max_retries=3, sleeps=sleeps)

    receipt = await client.submit(envelope())

    assert receipt["id"] == "tx-1"
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_retries_exhausted_raises_unavailable():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, text="boom")

    client = make_client(handler, max_retries=2)

    with pytest.raises(LedgerUnavailableError):
        await client.submit(envelope())
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_network_error_is_retried():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"id": "tx-1", "timestamp": 1})

    client = make_client(handler)

    assert (await client.submit(envelope()))["id"] == "tx-1"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_dropped_connection_is_retried_then_reported_unavailable():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ReadError("connection reset by peer", request=request)

    client = make_client(handler, max_retries=3)

    with pytest.raises(LedgerUnavailableError) as exc_info:
        await client.fetch_data("tx-1")
    assert len(calls) == 4
    assert "ReadError" in str(exc_info.value)


@pytest.mark.asyncio
async def test_write_error_is_retried():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.WriteError("broken pipe", request=request)
        return httpx.Response(200, json={"id": "tx-1", "timestamp": 1})

    client = make_client(handler)

    assert (await client.submit(envelope()))["id"] == "tx-1"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_4xx_is_rejected_without_retry():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, json={"detail": "Signature does not verify", "code": "INVALID_SIGNATURE"})

    client = make_client(handler)

    with pytest.raises(LedgerRejectedError) as exc_info:
        await client.submit(envelope())

    assert exc_info.value.code == "INVALID_SIGNATURE"
    assert exc_info.value.status_code == 400
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_query_sends_filters_and_parses_edges():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"data": {"transactions": {"edges": [
            {"node": {"id": "tx-2", "timestamp": 20, "tags": [{"name": "Chunk-Index", "value": "1"}]}},
            {"node": {"id": "tx-1", "timestamp": 10, "tags": []}},
        ]}}})

    client = make_client(handler)

    results = await client.query([QueryFilter("Chunk-Set-ID", ["set-1"])], first=5, order=ORDER_ASC, ids=["tx-1", "tx-2"])

    variables = seen[0]["variables"]
    assert variables["tags"] == [{"name": "Chunk-Set-ID", "values": ["set-1"]}]
    assert variables["first"] == 5
    assert variables["order"] == "ASC"
    assert variables["ids"] == ["tx-1", "tx-2"]
    assert [tx.transaction_id for tx in results] == ["tx-2", "tx-1"]
    assert results[0].tag("Chunk-Index") == "1"
    assert results[0].timestamp == 20


@pytest.mark.asyncio
async def test_query_errors_are_rejected():
    def handler(request):
        return httpx.Response(200, json={"errors": [{"message": "unknown field"}]})

    client = make_client(handler)

    with pytest.raises(LedgerRejectedError) as exc_info:
        await client.query()
    assert exc_info.value.code == "GRAPHQL_ERROR"


@pytest.mark.asyncio
async def test_empty_query_result():
    def handler(request):
        return httpx.Response(200, json={"data": {"transactions": {"edges": []}}})

    assert await make_client(handler).query() == []


@pytest.mark.asyncio
async def test_fetch_data_is_cached():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200, content=b'{"chunk": "abc"}')

    client = make_client(handler)

    first = await client.fetch_data("tx-1")
    second = await client.fetch_data("tx-1")

    assert first == second == b'{"chunk": "abc"}'
    assert calls == ["/tx/tx-1/data"]


@pytest.mark.asyncio
async def test_fetch_unknown_transaction():
    def handler(request):
        return httpx.Response(404, json={"detail": "Transaction not found", "code": "TRANSACTION_NOT_FOUND"})

    client = make_client(handler)

    with pytest.raises(TransactionNotFoundError):
        await client.fetch_data("tx-missing")


@pytest.mark.asyncio
async def test_fetch_json():
    def handler(request):
        return httpx.Response(200, content=b'{"folders": ["a"]}')

    assert await make_client(handler).fetch_json("tx-1") == {"folders": ["a"]}
