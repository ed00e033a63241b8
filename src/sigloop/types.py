from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Union

from .errors import ConfigurationError

JSON_CONTENT_TYPE = "application/x-amz-json-1.1"
TARGET_HEADER = "X-Amz-Target"


def _merge_headers(base: Mapping[str, str], extra: Mapping[str, str]) -> dict[str, str]:
    """Overlay extra onto base, replacing keys case-insensitively."""
    merged = dict(base)
    for k, v in extra.items():
        for existing in [e for e in merged if e.lower() == k.lower()]:
            del merged[existing]
        merged[k] = v
    return merged


@dataclass(frozen=True)
class Request:
    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self):
        # Read-only from here on; retries must see exactly what was signed.
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", MappingProxyType(_merge_headers({}, self.headers)))
        object.__setattr__(self, "body", bytes(self.body or b""))

    def header(self, name: str, default: Union[str, None] = None) -> Union[str, None]:
        for k, v in self.headers.items():
            if k.lower() == name.lower():
                return v
        return default

    def with_headers(self, extra: Mapping[str, str]) -> "Request":
        return Request(self.method, self.url, _merge_headers(self.headers, extra), self.body)


@dataclass(frozen=True)
class Response:
    status: int
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)


class Decision(Enum):
    SUCCESS = "success"
    FAIL = "fail"
    RETRY = "retry"


@dataclass(frozen=True)
class RetryConfig:
    # attempt ceiling, first send included
    max_attempts: int = 5
    # wait before resend = backoff_base * 2 ** attempt (seconds)
    backoff_base: float = 0.1

    # transport failures are reported immediately unless opted in here
    retry_timeouts: bool = False
    retry_transport_errors: bool = False

    # per-attempt transport deadline in seconds; None leaves it to the client
    timeout: Union[float, None] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1", "InvalidRetryConfig")
        if self.backoff_base < 0:
            raise ConfigurationError("backoff_base must not be negative", "InvalidRetryConfig")

    def backoff(self, attempt: int) -> float:
        return self.backoff_base * (2**attempt)


@dataclass(frozen=True)
class SigningConfig:
    region: Union[str, None] = None
    service: Union[str, None] = None
