from .adapters import AiohttpTransport, AsyncHttpxTransport, HttpxTransport, RequestsTransport
from .dispatcher import AsyncDispatcher, Dispatcher, json_request
from .env import default_region, load_credentials_from_env, load_retry_config_from_env
from .errors import (
    EXCEEDED_MAX_RETRIES,
    ConfigurationError,
    MalformedErrorBody,
    RetriesExhausted,
    ServiceError,
    SigloopError,
    TransportError,
)
from .kinesis import KinesisService, Shard, Stream, StreamDescription
from .policies import (
    THROTTLING,
    FunctionalPolicy,
    RetryPolicy,
    ThrottlingPolicy,
    coerce_policy,
    decode_error_document,
)
from .regions import REGIONS, Region, endpoint_for
from .signer import Signer
from .types import Decision, Request, Response, RetryConfig, SigningConfig

__all__ = [
    "Request",
    "Response",
    "Decision",
    "RetryConfig",
    "SigningConfig",
    "Signer",
    "Dispatcher",
    "AsyncDispatcher",
    "json_request",
    "RetryPolicy",
    "ThrottlingPolicy",
    "FunctionalPolicy",
    "coerce_policy",
    "decode_error_document",
    "THROTTLING",
    "SigloopError",
    "ConfigurationError",
    "TransportError",
    "MalformedErrorBody",
    "ServiceError",
    "RetriesExhausted",
    "EXCEEDED_MAX_RETRIES",
    "RequestsTransport",
    "HttpxTransport",
    "AsyncHttpxTransport",
    "AiohttpTransport",
    "Region",
    "REGIONS",
    "endpoint_for",
    "KinesisService",
    "Stream",
    "Shard",
    "StreamDescription",
    "load_credentials_from_env",
    "load_retry_config_from_env",
    "default_region",
]
