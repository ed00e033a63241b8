from typing import Union

# Kind reported once the attempt ceiling is reached.
EXCEEDED_MAX_RETRIES = "ExceededMaxRetries"
EXCEEDED_MAX_RETRIES_MESSAGE = "The maximum number of retries for this request was exceeded."


class SigloopError(Exception):
    """Base class for every failure a dispatcher call can report.

    All errors carry a ``kind`` and a ``message`` so callers can switch on ``kind``
    without knowing which failure path produced it.
    """

    default_kind = "SigloopError"

    def __init__(self, message: str = "", kind: Union[str, None] = None):
        self.kind = kind or self.default_kind
        self.message = message
        super().__init__(self.kind, message)

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r}, message={self.message!r})"


class ConfigurationError(SigloopError):
    """Missing or invalid credentials, endpoints or retry settings. Never retried."""

    default_kind = "ConfigurationError"


class TransportError(SigloopError):
    """No response was obtained: connection, DNS, TLS or deadline failure."""

    default_kind = "TransportError"

    def __init__(
        self,
        message: str = "",
        kind: Union[str, None] = None,
        timed_out: bool = False,
    ):
        super().__init__(message, kind)
        self.timed_out = timed_out


class MalformedErrorBody(SigloopError):
    """A failure status whose body is not a decodable error document."""

    default_kind = "MalformedErrorBody"

    def __init__(self, status: int, body: bytes, message: Union[str, None] = None):
        super().__init__(message or f"could not decode error body for HTTP {status}")
        self.status = status
        self.body = body


class ServiceError(SigloopError):
    """Error document returned by the service (``{"__type": ..., "message": ...}``).

    Two service errors compare equal when their kinds match; the message and status
    are diagnostic only.
    """

    default_kind = "ServiceError"

    def __init__(self, kind: str, message: str = "", status: Union[int, None] = None):
        super().__init__(message, kind)
        self.status = status

    def __eq__(self, other):
        if not isinstance(other, ServiceError):
            return NotImplemented
        return self.kind == other.kind

    def __hash__(self):
        return hash(self.kind)


class RetriesExhausted(SigloopError):
    """Raised when every attempt asked for a retry.

    ``kind`` is always ``ExceededMaxRetries``. ``last_error`` and ``last_body`` hold
    whatever the final attempt observed and are informational only.
    """

    default_kind = EXCEEDED_MAX_RETRIES

    def __init__(
        self,
        attempts: int,
        last_error: Union[BaseException, None] = None,
        last_body: Union[bytes, None] = None,
    ):
        super().__init__(EXCEEDED_MAX_RETRIES_MESSAGE, EXCEEDED_MAX_RETRIES)
        self.attempts = attempts
        self.last_error = last_error
        self.last_body = last_body
