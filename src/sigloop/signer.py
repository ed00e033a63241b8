import logging
from typing import Union
from urllib.parse import urlsplit

from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials
from botocore.exceptions import BotoCoreError, NoCredentialsError

from .env import load_credentials_from_env
from .errors import ConfigurationError
from .types import Request, SigningConfig

_logger = logging.getLogger("sigloop")


def scope_from_url(url: str) -> tuple[Union[str, None], Union[str, None]]:
    """Guess (service, region) from an ``<service>.<region>.amazonaws.com`` host."""
    host = (urlsplit(url).hostname or "").lower()
    parts = host.split(".")
    if len(parts) >= 4 and parts[-2:] == ["amazonaws", "com"]:  # noqa: PLR2004
        return parts[0], parts[1]
    return None, None


class Signer:
    """Signs requests with AWS Signature Version 4 via botocore.

    Other keywords for kwargs:
    - region: str
    - service: str
    - access_key: str
    - secret_key: str
    - session_token: str
    """

    def __init__(
        self,
        credentials: Union[Credentials, None] = None,
        signing_config: Union[SigningConfig, None] = None,
        **kwargs,
    ):
        # Prefer config objects, fall back to individual kwargs
        if signing_config is not None:
            self.region = signing_config.region
            self.service = signing_config.service
        else:
            self.region = kwargs.get("region")
            self.service = kwargs.get("service")
        if credentials is None and kwargs.get("access_key") is not None:
            credentials = Credentials(
                kwargs["access_key"], kwargs.get("secret_key"), kwargs.get("session_token")
            )
        self.credentials = credentials

    @classmethod
    def from_env(cls, env_path: Union[str, None] = None, **kwargs):
        """Signer whose credentials come from AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY."""
        return cls(load_credentials_from_env(env_path=env_path), **kwargs)

    def _check_credentials(self) -> Credentials:
        creds = self.credentials
        if creds is None:
            raise ConfigurationError("no credentials configured for signing", "NoCredentials")
        access_key = getattr(creds, "access_key", None)
        secret_key = getattr(creds, "secret_key", None)
        if not isinstance(access_key, str) or not access_key.strip():
            raise ConfigurationError("access key id is empty or invalid", "InvalidCredentials")
        if not isinstance(secret_key, str) or not secret_key.strip():
            raise ConfigurationError("secret access key is empty or invalid", "InvalidCredentials")
        return creds

    def _scope(self, url: str) -> tuple[str, str]:
        guessed_service, guessed_region = scope_from_url(url)
        service = self.service or guessed_service
        region = self.region or guessed_region
        if not service or not region:
            raise ConfigurationError(
                f"cannot determine signing service/region for {url!r}; set them explicitly",
                "InvalidSigningScope",
            )
        return service, region

    def sign(self, request: Request) -> Request:
        """Return a copy of request carrying Authorization and X-Amz-Date headers."""
        creds = self._check_credentials()
        service, region = self._scope(request.url)
        aws_req = AWSRequest(
            method=request.method,
            url=request.url,
            data=request.body,
            headers=dict(request.headers),
        )
        try:
            SigV4Auth(creds, service, region).add_auth(aws_req)
        except NoCredentialsError as e:
            raise ConfigurationError(str(e), "NoCredentials") from e
        except (BotoCoreError, TypeError, ValueError) as e:
            raise ConfigurationError(f"signing failed: {e}", "InvalidCredentials") from e
        _logger.debug(f"signed method={request.method} url={request.url} scope={region}/{service}")
        return request.with_headers(dict(aws_req.headers.items()))
