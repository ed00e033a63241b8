import os
from typing import Union

from botocore.credentials import Credentials

from .errors import ConfigurationError
from .types import RetryConfig

DEFAULT_REGION = "us-east-1"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _parse_env_file(env_path: str) -> dict[str, str]:
    """Parse a simple .env file into a dict without modifying os.environ.

    Supports basic KEY=VALUE pairs, ignoring comments and blank lines.
    Surrounding single/double quotes are stripped if present.
    """
    values: dict[str, str] = {}
    try:
        with open(env_path) as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.startswith("export "):
                    line = line[len("export ") :]
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip().strip('"').strip("'")
                if key:
                    values[key] = val
    except FileNotFoundError:
        # A missing file just means nothing to augment with
        pass
    return values


def _env_map(env_path: Union[str, None]) -> dict[str, str]:
    # actual environment takes precedence over .env file
    file_env = _parse_env_file(env_path) if env_path else {}
    return {**file_env, **os.environ}


def load_credentials_from_env(env_path: Union[str, None] = None) -> Credentials:
    """Build signing credentials from AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY.

    AWS_SESSION_TOKEN (or the legacy AWS_SECURITY_TOKEN) is picked up when present.
    Raises ConfigurationError when either half of the key pair is missing.
    """
    env_map = _env_map(env_path)
    access_key = env_map.get("AWS_ACCESS_KEY_ID") or env_map.get("AWS_ACCESS_KEY")
    secret_key = env_map.get("AWS_SECRET_ACCESS_KEY") or env_map.get("AWS_SECRET_KEY")
    token = env_map.get("AWS_SESSION_TOKEN") or env_map.get("AWS_SECURITY_TOKEN") or None
    if not access_key or not secret_key:
        raise ConfigurationError(
            "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must both be set", "NoCredentials"
        )
    return Credentials(access_key.strip(), secret_key.strip(), token, method="env")


def default_region(env_path: Union[str, None] = None) -> str:
    env_map = _env_map(env_path)
    return env_map.get("AWS_REGION") or env_map.get("AWS_DEFAULT_REGION") or DEFAULT_REGION


def _as_bool(name: str, raw: str) -> bool:
    val = raw.strip().lower()
    if val in _TRUE:
        return True
    if val in _FALSE:
        return False
    raise ConfigurationError(f"{name}={raw!r} is not a boolean", "InvalidRetryConfig")


def load_retry_config_from_env(
    prefix: str = "SIGLOOP_",
    env_path: Union[str, None] = None,
    **kwargs,
) -> RetryConfig:
    """Create a RetryConfig from <prefix>MAX_ATTEMPTS, BACKOFF_BASE, TIMEOUT,
    RETRY_TIMEOUTS and RETRY_TRANSPORT_ERRORS.

    Unset variables keep the RetryConfig defaults; explicit kwargs win over both.
    """
    env_map = _env_map(env_path)
    values: dict[str, object] = {}
    converters = {
        "max_attempts": int,
        "backoff_base": float,
        "timeout": float,
    }
    for field_name, convert in converters.items():
        raw = env_map.get(f"{prefix}{field_name.upper()}")
        if raw is None or raw.strip() == "":
            continue
        try:
            values[field_name] = convert(raw)
        except ValueError as e:
            raise ConfigurationError(
                f"{prefix}{field_name.upper()}={raw!r} is not a valid {convert.__name__}",
                "InvalidRetryConfig",
            ) from e
    for field_name in ("retry_timeouts", "retry_transport_errors"):
        raw = env_map.get(f"{prefix}{field_name.upper()}")
        if raw is not None:
            values[field_name] = _as_bool(f"{prefix}{field_name.upper()}", raw)
    values.update(kwargs)
    return RetryConfig(**values)
