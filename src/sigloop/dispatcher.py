import asyncio
import contextlib
import json
import logging
import time
from typing import Union

from .errors import ConfigurationError, RetriesExhausted, ServiceError, TransportError
from .policies import RetryPolicy, coerce_policy
from .signer import Signer
from .state import RetryState
from .types import JSON_CONTENT_TYPE, TARGET_HEADER, Decision, Request, Response, RetryConfig

# ---------- Common helpers ----------


def json_request(url: str, target: str, payload: Union[dict, None] = None) -> Request:
    """Build the POST request every JSON-protocol operation uses."""
    body = b"" if payload is None else json.dumps(payload).encode("utf-8")
    return Request(
        "POST",
        url,
        {TARGET_HEADER: target, "Content-Type": JSON_CONTENT_TYPE},
        body,
    )


# ---------- Base dispatcher (shared logic; sending/sleeping handled by subclasses) ----------


class _Dispatcher:
    def __init__(
        self,
        signer: Signer,
        transport,
        policy: Union[object, None],
        log_level: Union[int, None],
        **kwargs,
    ):
        """Initialize a _Dispatcher.

        Args:
            signer (Signer): signs each request once before its first attempt
            transport: object with send(request, timeout) returning a Response
            policy (RetryPolicy | callable | str | None): retry predicate
            log_level (int | None): level for the "sigloop" logger
            kwargs:
            - retry_config: RetryConfig object
            - max_attempts: int
            - backoff_base: float
            - retry_timeouts: bool
            - retry_transport_errors: bool
            - timeout: float

        Raises:
            ValueError: if policy is an unknown policy string
        """
        self.signer = signer
        self.transport = transport
        self._policy = coerce_policy(policy)
        # Prefer RetryConfig if provided, else build one from kwargs
        rconf = kwargs.get("retry_config")
        if rconf is not None:
            self._retry_config = rconf
        else:
            self._retry_config = RetryConfig(
                max_attempts=kwargs.get("max_attempts", 5),
                backoff_base=kwargs.get("backoff_base", 0.1),
                retry_timeouts=kwargs.get("retry_timeouts", False),
                retry_transport_errors=kwargs.get("retry_transport_errors", False),
                timeout=kwargs.get("timeout"),
            )
        self._logger = logging.getLogger("sigloop")
        if log_level is not None:
            with contextlib.suppress(Exception):
                self._logger.setLevel(log_level)

    @classmethod
    def from_env(cls, env_path: Union[str, None] = None, **kwargs):
        """Build a dispatcher from AWS_* credentials and SIGLOOP_* retry settings.

        kwargs keywords:
        region, service: forwarded to the Signer
        everything else: forwarded to the dispatcher
        """
        from .env import load_retry_config_from_env  # noqa: PLC0415

        signer_keys = {k: kwargs.pop(k) for k in list(kwargs.keys()) if k in {"region", "service"}}
        signer = Signer.from_env(env_path=env_path, **signer_keys)
        if kwargs.get("retry_config") is None:
            kwargs["retry_config"] = load_retry_config_from_env(env_path=env_path)
        return cls(signer, **kwargs)

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry_config

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def _start(
        self,
        request: Request,
        retry_policy: Union[object, None],
        max_attempts: Union[int, None],
    ) -> tuple[RetryState, RetryPolicy]:
        policy = self._policy if retry_policy is None else coerce_policy(retry_policy)
        if max_attempts is None:
            ceiling = self._retry_config.max_attempts
        elif max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1", "InvalidRetryConfig")
        else:
            ceiling = max_attempts
        # Signed exactly once; every attempt resends this object
        signed = self.signer.sign(request)
        return RetryState(request=signed, max_attempts=ceiling), policy

    def _classify(
        self, state: RetryState, response: Response, policy: RetryPolicy
    ) -> Union[float, None]:
        """Return None on success, else the wait before the next attempt.

        Permanent failures and exhaustion are raised from here.
        """
        req = state.request
        decision, error = policy.classify(response.status, response.body, response.headers)
        if decision is Decision.SUCCESS:
            return None
        state.last_body = response.body
        state.last_error = error
        if decision is Decision.FAIL:
            if error is None:
                error = ServiceError("UnknownError", f"HTTP {response.status}", response.status)
            self._logger.debug(
                f"req failed method={req.method} url={req.url} attempt={state.attempt} "
                f"status={response.status} kind={error.kind}"
            )
            raise error
        return self._plan_retry(state, f"status={response.status} kind={getattr(error, 'kind', None)}")

    def _on_transport_error(self, state: RetryState, exc: TransportError) -> float:
        req = state.request
        self._logger.warning(
            f"transport error method={req.method} url={req.url} attempt={state.attempt}: {exc}"
        )
        cfg = self._retry_config
        retryable = cfg.retry_transport_errors or (exc.timed_out and cfg.retry_timeouts)
        if not retryable:
            raise exc
        state.last_error = exc
        state.last_body = None
        return self._plan_retry(state, f"transport_error={exc.kind}")

    def _plan_retry(self, state: RetryState, reason: str) -> float:
        req = state.request
        if state.exhausted():
            self._logger.warning(
                f"retries exhausted method={req.method} url={req.url} attempts={state.attempt}"
            )
            raise RetriesExhausted(state.attempt, state.last_error, state.last_body)
        delay = self._retry_config.backoff(state.attempt)
        self._logger.info(
            f"retrying method={req.method} url={req.url} attempt={state.attempt} "
            f"{reason}; sleeping ~{delay:.2f}s"
        )
        state.advance(delay)
        return delay


# ---------- Sync dispatcher (requests / httpx.Client) ----------


class Dispatcher(_Dispatcher):
    def __init__(
        self,
        signer: Signer,
        transport=None,
        policy: Union[object, None] = None,
        log_level: Union[int, None] = None,
        **kwargs,
    ):
        """Initialize a Dispatcher.

        Args:
            signer (Signer): request signer
            transport (optional): defaults to a RequestsTransport with its own session
            policy (optional): RetryPolicy, classify callable, or "throttling"
            log_level (optional): log level
            kwargs: see _Dispatcher
        """
        if transport is None:
            from .adapters import RequestsTransport  # noqa: PLC0415

            transport = RequestsTransport()
        super().__init__(signer, transport, policy, log_level, **kwargs)

    def _sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    def send(
        self,
        request: Request,
        *,
        retry_policy: Union[object, None] = None,
        max_attempts: Union[int, None] = None,
    ) -> bytes:
        """Sign request once, send it, and retry transient failures.

        Returns the body of the first response the policy accepts as a success.
        Raises ConfigurationError, TransportError, MalformedErrorBody, ServiceError
        or RetriesExhausted.
        """
        state, policy = self._start(request, retry_policy, max_attempts)
        req = state.request
        while True:
            self._logger.debug(f"req start method={req.method} url={req.url} attempt={state.attempt}")
            try:
                response = self.transport.send(req, self._retry_config.timeout)
            except TransportError as e:
                self._sleep(self._on_transport_error(state, e))
                continue
            self._logger.debug(
                f"req done method={req.method} url={req.url} attempt={state.attempt} "
                f"status={response.status}"
            )
            delay = self._classify(state, response, policy)
            if delay is None:
                return response.body
            self._sleep(delay)

    def post_json(self, url: str, target: str, payload: Union[dict, None] = None, **kwargs) -> bytes:
        return self.send(json_request(url, target, payload), **kwargs)

    def close(self):
        if hasattr(self.transport, "close"):
            self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


# ---------- Async dispatcher (httpx.AsyncClient / aiohttp) ----------


class AsyncDispatcher(_Dispatcher):
    def __init__(
        self,
        signer: Signer,
        transport=None,
        policy: Union[object, None] = None,
        log_level: Union[int, None] = None,
        **kwargs,
    ):
        """Initialize an AsyncDispatcher.

        The transport defaults to an AsyncHttpxTransport; pass an AiohttpTransport to
        reuse an aiohttp session. Other keywords are the same as for Dispatcher.
        """
        if transport is None:
            from .adapters import AsyncHttpxTransport  # noqa: PLC0415

            transport = AsyncHttpxTransport()
        super().__init__(signer, transport, policy, log_level, **kwargs)

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def send(
        self,
        request: Request,
        *,
        retry_policy: Union[object, None] = None,
        max_attempts: Union[int, None] = None,
    ) -> bytes:
        """Async twin of Dispatcher.send; backoff suspends only this task."""
        state, policy = self._start(request, retry_policy, max_attempts)
        req = state.request
        while True:
            self._logger.debug(f"req start method={req.method} url={req.url} attempt={state.attempt}")
            try:
                response = await self.transport.send(req, self._retry_config.timeout)
            except TransportError as e:
                await self._sleep(self._on_transport_error(state, e))
                continue
            self._logger.debug(
                f"req done method={req.method} url={req.url} attempt={state.attempt} "
                f"status={response.status}"
            )
            delay = self._classify(state, response, policy)
            if delay is None:
                return response.body
            await self._sleep(delay)

    async def post_json(
        self, url: str, target: str, payload: Union[dict, None] = None, **kwargs
    ) -> bytes:
        return await self.send(json_request(url, target, payload), **kwargs)

    async def aclose(self):
        if hasattr(self.transport, "aclose"):
            await self.transport.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False
