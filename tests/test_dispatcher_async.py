import asyncio

import httpx
import pytest

from sigloop import (
    EXCEEDED_MAX_RETRIES,
    AsyncDispatcher,
    AsyncHttpxTransport,
    MalformedErrorBody,
    Request,
    RetriesExhausted,
    ServiceError,
    Signer,
    TransportError,
)

URL = "https://dynamodb.us-east-1.amazonaws.com/"


def _signer():
    # scope comes from the dynamodb.us-east-1 host
    return Signer(access_key="AKIDEXAMPLE", secret_key="SECRET")


def _dispatcher(handler, **kwargs):
    calls = []

    def _recording(request):
        calls.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(_recording))
    return AsyncDispatcher(_signer(), transport=AsyncHttpxTransport(client), **kwargs), calls


def _request():
    return Request(
        "POST",
        URL,
        {"X-Amz-Target": "DynamoDB_20120810.GetItem", "Content-Type": "application/x-amz-json-1.0"},
        b'{"TableName": "t"}',
    )


@pytest.mark.asyncio
async def test_async_success():
    d, calls = _dispatcher(lambda r: httpx.Response(200, content=b'{"Item": {}}'))
    async with d:
        assert await d.send(_request()) == b'{"Item": {}}'
    assert len(calls) == 1
    assert "/us-east-1/dynamodb/aws4_request" in calls[0].headers["authorization"]


@pytest.mark.asyncio
async def test_async_not_found():
    d, calls = _dispatcher(
        lambda r: httpx.Response(404, json={"__type": "NotFound", "message": "Could not find something"})
    )
    with pytest.raises(ServiceError) as ei:
        await d.send(_request())
    assert ei.value.kind == "NotFound"
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_async_malformed():
    d, calls = _dispatcher(lambda r: httpx.Response(404, content=b"I am not JSON!"))
    with pytest.raises(MalformedErrorBody):
        await d.send(_request())
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_async_throttling_exhausts(monkeypatch):
    waits = []

    async def _fake_sleep(seconds):
        waits.append(seconds)

    d, calls = _dispatcher(
        lambda r: httpx.Response(400, json={"__type": "Throttling", "message": "You have been throttled"})
    )
    monkeypatch.setattr(d, "_sleep", _fake_sleep)
    with pytest.raises(RetriesExhausted) as ei:
        await d.send(_request())
    assert ei.value.kind == EXCEEDED_MAX_RETRIES
    assert len(calls) == 5  # noqa: PLR2004
    assert waits == pytest.approx([0.2, 0.4, 0.8, 1.6])
    assert len({tuple(c.headers.items()) for c in calls}) == 1


@pytest.mark.asyncio
async def test_async_transport_error():
    def _refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    d, calls = _dispatcher(_refuse)
    with pytest.raises(TransportError):
        await d.send(_request())
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_concurrent_calls_keep_their_own_state():
    # "slow" always throttles, "fast" succeeds; neither sees the other's attempts
    def _route(request):
        if request.headers["x-amz-target"].endswith("Slow"):
            return httpx.Response(400, json={"__type": "Throttling"})
        return httpx.Response(200, content=request.headers["x-amz-target"].encode())

    d, calls = _dispatcher(_route, backoff_base=0.001, max_attempts=3)

    async def _slow():
        with pytest.raises(RetriesExhausted) as ei:
            await d.post_json(URL, "Test.Slow", {})
        return ei.value.attempts

    fast = [d.post_json(URL, f"Test.Fast{i}", {}) for i in range(5)]
    results = await asyncio.gather(_slow(), *fast)
    assert results[0] == 3  # noqa: PLR2004
    assert results[1:] == [f"Test.Fast{i}".encode() for i in range(5)]
    slow_calls = [c for c in calls if c.headers["x-amz-target"] == "Test.Slow"]
    assert len(slow_calls) == 3  # noqa: PLR2004
    await d.aclose()
