from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from sigloop import AsyncHttpxTransport, HttpxTransport, Request, TransportError


def _req(url="https://kinesis.us-east-1.amazonaws.com/"):
    return Request("POST", url, {"X-Amz-Target": "T"}, b"{}")


def test_httpx_transport_passes_timeout():
    client = MagicMock()
    resp = MagicMock()
    resp.status_code = 200
    resp.headers = {}
    resp.read.return_value = b"OK"
    client.request.return_value = resp

    out = HttpxTransport(client=client).send(_req(), timeout=1.5)
    assert out.body == b"OK"
    _, kwargs = client.request.call_args
    assert kwargs["content"] == b"{}"
    assert kwargs["timeout"] == 1.5  # noqa: PLR2004

    HttpxTransport(client=client).send(_req())
    _, kwargs = client.request.call_args
    assert "timeout" not in kwargs


def test_httpx_unsupported_scheme_is_transport_error():
    with httpx.Client() as client, pytest.raises(TransportError):
        HttpxTransport(client=client).send(_req("ftp://example.com/"))


@pytest.mark.asyncio
async def test_async_httpx_transport():
    client = AsyncMock()
    resp = MagicMock()
    resp.status_code = 503
    resp.headers = {}
    resp.aread = AsyncMock(return_value=b'{"__type": "ServiceUnavailable"}')
    client.request.return_value = resp

    out = await AsyncHttpxTransport(client=client).send(_req())
    assert out.status == 503  # noqa: PLR2004
    assert out.body == b'{"__type": "ServiceUnavailable"}'


@pytest.mark.asyncio
async def test_async_httpx_timeout():
    client = AsyncMock()
    client.request.side_effect = httpx.ConnectTimeout("slow")
    with pytest.raises(TransportError) as ei:
        await AsyncHttpxTransport(client=client).send(_req(), timeout=0.1)
    assert ei.value.timed_out


def _corrupt_gzip(request):
    return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip at all")


def test_httpx_decoding_error_is_transport_error():
    with httpx.Client(transport=httpx.MockTransport(_corrupt_gzip)) as client:
        with pytest.raises(TransportError) as ei:
            HttpxTransport(client=client).send(_req())
    assert not ei.value.timed_out
    assert isinstance(ei.value.__cause__, httpx.DecodingError)


def test_httpx_too_many_redirects_is_transport_error():
    client = MagicMock()
    client.request.side_effect = httpx.TooManyRedirects("Exceeded maximum allowed redirects.")
    with pytest.raises(TransportError) as ei:
        HttpxTransport(client=client).send(_req())
    assert isinstance(ei.value.__cause__, httpx.TooManyRedirects)


@pytest.mark.asyncio
async def test_async_httpx_decoding_error_is_transport_error():
    async with httpx.AsyncClient(transport=httpx.MockTransport(_corrupt_gzip)) as client:
        with pytest.raises(TransportError) as ei:
            await AsyncHttpxTransport(client=client).send(_req())
    assert isinstance(ei.value.__cause__, httpx.DecodingError)


@pytest.mark.asyncio
async def test_async_httpx_too_many_redirects_is_transport_error():
    client = AsyncMock()
    client.request.side_effect = httpx.TooManyRedirects("Exceeded maximum allowed redirects.")
    with pytest.raises(TransportError):
        await AsyncHttpxTransport(client=client).send(_req())
