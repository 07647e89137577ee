"""Request authenticators.

An authenticator adds credentials to the headers of an outgoing request.
Three flavours are supported, selected by the ``AUTH_TYPE`` property:

- ``noauth``: send nothing (local mocks, test servers)
- ``bearertoken``: a caller-supplied bearer token
- ``iam``: exchange an API key for an IAM access token, cached until close
  to expiry
"""

from __future__ import annotations

import time
from typing import Any, Mapping, Optional

import requests

from ._config import parse_bool
from ._exceptions import ApiException, ConfigurationError
from ._logging import get_logger, log_operation

AUTHTYPE_NOAUTH = "noauth"
AUTHTYPE_BEARERTOKEN = "bearertoken"
AUTHTYPE_IAM = "iam"

DEFAULT_IAM_URL = "https://iam.cloud.ibm.com"
_IAM_TOKEN_PATH = "/identity/token"
_IAM_GRANT_TYPE = "urn:ibm:params:oauth:grant-type:apikey"


class Authenticator:
    """Base class for authenticators."""

    auth_type: str = ""

    def authenticate(self, headers: dict[str, str]) -> None:
        """Add credentials to *headers* in place."""
        raise NotImplementedError

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` if the authenticator is unusable."""


class NoAuthAuthenticator(Authenticator):
    auth_type = AUTHTYPE_NOAUTH

    def authenticate(self, headers: dict[str, str]) -> None:
        return None


class BearerTokenAuthenticator(Authenticator):
    """Sends a fixed bearer token."""

    auth_type = AUTHTYPE_BEARERTOKEN

    def __init__(self, bearer_token: str) -> None:
        self.bearer_token = bearer_token
        self.validate()

    def validate(self) -> None:
        if not self.bearer_token:
            raise ConfigurationError("A bearer token is required", property_name="BEARER_TOKEN")

    def authenticate(self, headers: dict[str, str]) -> None:
        headers["Authorization"] = f"Bearer {self.bearer_token}"


class IamAuthenticator(Authenticator):
    """Exchanges an API key for IAM access tokens.

    The token is fetched lazily on the first request and refreshed once 80%
    of its lifetime has passed.

    Args:
        apikey: The IAM API key.
        url: IAM endpoint base URL.
        disable_ssl_verification: Skip TLS verification for the token call.
        _session: Optional pre-configured ``requests.Session`` for testing.
    """

    auth_type = AUTHTYPE_IAM

    def __init__(
        self,
        apikey: str,
        *,
        url: Optional[str] = None,
        disable_ssl_verification: bool = False,
        _session: Optional[requests.Session] = None,
    ) -> None:
        self.apikey = apikey
        self.url = (url or DEFAULT_IAM_URL).rstrip("/")
        self.disable_ssl_verification = disable_ssl_verification
        self._session = _session or requests.Session()

        self._access_token: Optional[str] = None
        self._refresh_at: float = 0.0
        self.validate()

    def validate(self) -> None:
        if not self.apikey:
            raise ConfigurationError("An IAM API key is required", property_name="APIKEY")
        if self.apikey.startswith(("{", '"')) or self.apikey.endswith(("}", '"')):
            raise ConfigurationError(
                "The API key must not start or end with a brace or quote",
                property_name="APIKEY",
            )

    def authenticate(self, headers: dict[str, str]) -> None:
        headers["Authorization"] = f"Bearer {self.get_token()}"

    def get_token(self) -> str:
        """Return a valid access token, requesting a new one if needed."""
        if self._access_token is None or time.time() >= self._refresh_at:
            self._request_token()
        assert self._access_token is not None
        return self._access_token

    def _request_token(self) -> None:
        with log_operation("iam_token", url=self.url):
            response = self._session.post(
                self.url + _IAM_TOKEN_PATH,
                data={
                    "grant_type": _IAM_GRANT_TYPE,
                    "apikey": self.apikey,
                    "response_type": "cloud_iam",
                },
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/json",
                },
                verify=not self.disable_ssl_verification,
                timeout=60,
            )
            if not response.ok:
                raise ApiException(
                    response.status_code,
                    response.reason or "IAM token request failed",
                    operation="iam_token",
                )
            body: dict[str, Any] = response.json()

        now = time.time()
        expires_in = float(body.get("expires_in", 3600))
        self._access_token = body["access_token"]
        self._refresh_at = now + expires_in * 0.8
        get_logger().debug("Obtained IAM access token valid for %ds", int(expires_in))


def get_authenticator(properties: Mapping[str, str]) -> Authenticator:
    """Build an authenticator from service properties.

    ``AUTH_TYPE`` defaults to ``iam`` when ``APIKEY`` is present and to
    ``noauth`` otherwise.

    Raises:
        ConfigurationError: If the auth type is unknown or its credentials
            are missing.
    """
    auth_type = properties.get("AUTH_TYPE", "").strip().lower()
    if not auth_type:
        auth_type = AUTHTYPE_IAM if properties.get("APIKEY") else AUTHTYPE_NOAUTH

    if auth_type == AUTHTYPE_NOAUTH:
        return NoAuthAuthenticator()
    if auth_type == AUTHTYPE_BEARERTOKEN:
        return BearerTokenAuthenticator(properties.get("BEARER_TOKEN", ""))
    if auth_type == AUTHTYPE_IAM:
        return IamAuthenticator(
            properties.get("APIKEY", ""),
            url=properties.get("AUTH_URL") or None,
            disable_ssl_verification=parse_bool(properties.get("AUTH_DISABLE_SSL")),
        )

    raise ConfigurationError(
        f"Unsupported authentication type: {auth_type!r}", property_name="AUTH_TYPE"
    )
