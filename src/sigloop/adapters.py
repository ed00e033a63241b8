import asyncio
import contextlib
from typing import Union

from .errors import TransportError
from .types import Request, Response


# ---------- requests (sync) ----------
class RequestsTransport:
    """Send requests through a requests.Session. The session may be shared."""

    def __init__(self, session=None):
        self.session = session
        self._own_session = False

    def _session(self):
        if self.session is None:
            import requests  # noqa: PLC0415

            self.session = requests.Session()
            self._own_session = True
        return self.session

    def send(self, request: Request, timeout: Union[float, None] = None) -> Response:
        import requests  # noqa: PLC0415

        try:
            resp = self._session().request(
                request.method,
                request.url,
                headers=dict(request.headers),
                data=request.body,
                timeout=timeout,
            )
            # Buffer the whole body before anyone classifies it
            body = resp.content
        except requests.Timeout as e:
            raise TransportError(str(e), timed_out=True) from e
        except requests.RequestException as e:
            raise TransportError(str(e)) from e
        return Response(resp.status_code, body, dict(resp.headers))

    def close(self):
        if self._own_session and self.session is not None:
            with contextlib.suppress(Exception):
                self.session.close()
            self.session = None


# ---------- httpx (sync) ----------
class HttpxTransport:
    def __init__(self, client=None):
        self.client = client
        self._own_client = False

    def _client(self):
        if self.client is None:
            import httpx  # noqa: PLC0415

            self.client = httpx.Client()
            self._own_client = True
        return self.client

    def send(self, request: Request, timeout: Union[float, None] = None) -> Response:
        import httpx  # noqa: PLC0415

        kwargs = {} if timeout is None else {"timeout": timeout}
        try:
            resp = self._client().request(
                request.method,
                request.url,
                headers=dict(request.headers),
                content=request.body,
                **kwargs,
            )
            body = resp.read()
        except httpx.TimeoutException as e:
            raise TransportError(str(e), timed_out=True) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise TransportError(str(e)) from e
        return Response(resp.status_code, body, dict(resp.headers))

    def close(self):
        if self._own_client and self.client is not None:
            with contextlib.suppress(Exception):
                self.client.close()
            self.client = None


# ---------- httpx (async) ----------
class AsyncHttpxTransport:
    def __init__(self, client=None):
        self.client = client
        self._own_client = False

    def _client(self):
        if self.client is None:
            import httpx  # noqa: PLC0415

            self.client = httpx.AsyncClient()
            self._own_client = True
        return self.client

    async def send(self, request: Request, timeout: Union[float, None] = None) -> Response:
        import httpx  # noqa: PLC0415

        kwargs = {} if timeout is None else {"timeout": timeout}
        try:
            resp = await self._client().request(
                request.method,
                request.url,
                headers=dict(request.headers),
                content=request.body,
                **kwargs,
            )
            body = await resp.aread()
        except httpx.TimeoutException as e:
            raise TransportError(str(e), timed_out=True) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise TransportError(str(e)) from e
        return Response(resp.status_code, body, dict(resp.headers))

    async def aclose(self):
        if self._own_client and self.client is not None:
            with contextlib.suppress(Exception):
                await self.client.aclose()
            self.client = None


# ---------- aiohttp (async) ----------
class AiohttpTransport:
    """Send requests through an aiohttp.ClientSession, reading the body inside the
    response context so the connection is released before classification."""

    def __init__(self, session=None):
        self.session = session
        self._own_session = False

    def _session(self):
        if self.session is None:
            import aiohttp  # noqa: PLC0415

            self.session = aiohttp.ClientSession()
            self._own_session = True
        return self.session

    async def send(self, request: Request, timeout: Union[float, None] = None) -> Response:
        import aiohttp  # noqa: PLC0415

        kwargs = {} if timeout is None else {"timeout": aiohttp.ClientTimeout(total=timeout)}
        try:
            async with self._session().request(
                request.method,
                request.url,
                headers=dict(request.headers),
                data=request.body,
                **kwargs,
            ) as resp:
                body = await resp.read()
                return Response(resp.status, body, dict(resp.headers))
        except asyncio.TimeoutError as e:
            raise TransportError(str(e) or "request timed out", timed_out=True) from e
        except (aiohttp.ClientError, ValueError) as e:
            raise TransportError(str(e)) from e

    async def aclose(self):
        if self._own_session and self.session is not None:
            with contextlib.suppress(Exception):
                await self.session.close()
            self.session = None
