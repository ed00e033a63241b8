import inspect
import json
from collections.abc import Iterable, Mapping
from typing import Callable, Union

from .errors import MalformedErrorBody, ServiceError
from .types import Decision

THROTTLING = "Throttling"

# Defaults used when inspect.signature cannot determine argument counts
DEFAULT_PREDICATE_ARGC = 2  # classify_fn(status, body)

# Threshold for dispatch decisions
PREDICATE_WITH_HEADERS_ARGC = 3  # classify_fn(status, body, headers)

Classification = tuple[Decision, Union[ServiceError, None]]


def _count_positional_args(fn, default: int) -> int:
    """Return count of positional params for fn; fall back to default on failure."""
    try:
        sig = inspect.signature(fn)
        return len(
            [
                p
                for p in sig.parameters.values()
                if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
            ]
        )
    except (TypeError, ValueError):
        return default


def decode_error_document(status: int, body: bytes) -> ServiceError:
    """Decode a ``{"__type": ..., "message": ...}`` body into a ServiceError.

    Raises MalformedErrorBody when the body is not a JSON object with a string
    ``__type``. ``Message`` is accepted as an alias of ``message``.
    """
    try:
        doc = json.loads(body)
    except (TypeError, ValueError) as e:
        raise MalformedErrorBody(status, body) from e
    if not isinstance(doc, dict) or not isinstance(doc.get("__type"), str):
        raise MalformedErrorBody(status, body, f"HTTP {status} body has no __type field")
    message = doc.get("message", doc.get("Message", ""))
    return ServiceError(doc["__type"], "" if message is None else str(message), status)


class RetryPolicy:
    """Decides, from a response's status and body, whether a call succeeded, failed
    for good, or should be retried.

    The default treats any error whose kind is a throttling kind, and any 5xx, as
    transient. Everything else in the 4xx range is the caller's problem.
    """

    def __init__(self, throttling_kinds: Iterable[str] = (THROTTLING,)):
        self.throttling_kinds = frozenset(throttling_kinds)

    def classify(
        self, status: int, body: bytes, headers: Union[Mapping[str, str], None] = None
    ) -> Classification:
        if status < 400:  # noqa: PLR2004, http status code can be constant
            return Decision.SUCCESS, None
        error = decode_error_document(status, body)
        if error.kind in self.throttling_kinds or status >= 500:  # noqa: PLR2004
            return Decision.RETRY, error
        return Decision.FAIL, error


class ThrottlingPolicy(RetryPolicy):
    pass


class FunctionalPolicy(RetryPolicy):
    """Wrap a user-supplied classify function into a RetryPolicy.

    Accepted function signatures:
        - classify_fn(status, body) -> Decision | (Decision, ServiceError | None)
        - classify_fn(status, body, headers) -> Decision | (Decision, ServiceError | None)
    """

    def __init__(self, classify_fn: Callable):
        super().__init__()
        self.classify_fn = classify_fn

    def classify(self, status, body, headers=None):
        argc = _count_positional_args(self.classify_fn, DEFAULT_PREDICATE_ARGC)
        if argc >= PREDICATE_WITH_HEADERS_ARGC:
            result = self.classify_fn(status, body, headers or {})
        else:
            result = self.classify_fn(status, body)
        if isinstance(result, Decision):
            return result, None
        if (
            not isinstance(result, tuple)
            or len(result) != 2  # noqa: PLR2004
            or not isinstance(result[0], Decision)
        ):
            raise TypeError("Custom classify function must return a Decision or (Decision, error)")
        if result[1] is not None and not isinstance(result[1], ServiceError):
            raise TypeError("Custom classify function must pair the Decision with a ServiceError")
        return result


def coerce_policy(policy: Union[object, None]) -> RetryPolicy:
    """Turn None | str | RetryPolicy | callable into a RetryPolicy.

    Accepted inputs:
      - None          -> ThrottlingPolicy
      - "throttling"  -> ThrottlingPolicy
      - RetryPolicy instance (returned as-is)
      - callable classify function (status, body[, headers]); wrapped into FunctionalPolicy.
    """
    if policy is None:
        return ThrottlingPolicy()
    if isinstance(policy, RetryPolicy):
        return policy
    if isinstance(policy, str):
        if policy.lower() in {"throttling", "default"}:
            return ThrottlingPolicy()
        raise ValueError(
            "Unknown policy string. Use 'throttling', or pass a callable/RetryPolicy."
        )
    if callable(policy):
        return FunctionalPolicy(policy)
    raise TypeError("policy must be None, 'throttling', RetryPolicy, or a callable")
