"""HTTP transport shared by service clients.

``BaseService`` owns a ``requests.Session``, applies the authenticator to
each request, maps non-2xx responses to :class:`ApiException`, and optionally
retries transient failures with ``tenacity``.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Mapping, Optional, TypeVar

import requests
from tenacity import (
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from ._auth import Authenticator, get_authenticator
from ._config import get_service_properties, parse_bool, parse_float, parse_int
from ._exceptions import ApiException, ConfigurationError
from ._logging import get_logger

T = TypeVar("T")

RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
"""Status codes treated as transient when retries are enabled."""

DEFAULT_MAX_RETRIES = 4
DEFAULT_RETRY_INTERVAL = 30.0
DEFAULT_TIMEOUT = 60.0

SDK_VERSION = "0.1.0"


@dataclass
class DetailedResponse(Generic[T]):
    """Result of a service call together with its HTTP metadata.

    Examples:
        >>> response = service.get_target("a1b2")
        >>> response.status_code
        200
        >>> response.result.name
        'my-mr-target'
    """

    result: Optional[T]
    """Decoded response body, or ``None`` when the service sends none."""

    status_code: int
    """HTTP status code."""

    headers: dict[str, str] = field(default_factory=dict)
    """Response headers."""

    def get_result(self) -> Optional[T]:
        return self.result

    def get_status_code(self) -> int:
        return self.status_code

    def get_headers(self) -> dict[str, str]:
        return self.headers


def _user_agent() -> str:
    return (
        f"metrics-router-python/{SDK_VERSION} "
        f"(lang=python; os.name={platform.system()}; "
        f"python.version={platform.python_version()})"
    )


def _error_message(response: requests.Response, body: Any) -> str:
    """Pick the most useful error description from a failed response."""
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            msg = errors[0].get("message")
            if msg:
                return str(msg)
        for key in ("message", "error", "errorMessage"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return response.reason or "Unknown error"


def _decode_body(response: requests.Response) -> Any:
    if not response.content:
        return None
    content_type = response.headers.get("Content-Type", "")
    if "json" not in content_type.lower():
        return response.text
    try:
        return response.json()
    except ValueError:
        return response.text


def _is_transient(response: requests.Response) -> bool:
    return response.status_code in RETRY_STATUS_CODES


class BaseService:
    """Common behaviour for REST service clients.

    Args:
        authenticator: Adds credentials to every request.
        service_url: Base URL; operation paths are appended to it.
        disable_ssl_verification: Skip TLS certificate checks.
        _session: Optional pre-configured ``requests.Session`` for testing.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        service_url: str,
        *,
        disable_ssl_verification: bool = False,
        _session: Optional[requests.Session] = None,
    ) -> None:
        if authenticator is None:
            raise ValueError("authenticator must be provided")
        self.authenticator = authenticator
        self._service_url = ""
        self.set_service_url(service_url)
        self.disable_ssl_verification = disable_ssl_verification
        self.timeout: float = DEFAULT_TIMEOUT
        self.default_headers: dict[str, str] = {}

        self._session = _session or requests.Session()
        self._retrying: Optional[Retrying] = None
        self.max_retries = 0
        self.retry_interval = 0.0

    # -- configuration --------------------------------------------------

    @property
    def service_url(self) -> str:
        return self._service_url

    def set_service_url(self, service_url: str) -> None:
        """Set the base URL, dropping any trailing slash.

        Raises:
            ValueError: If *service_url* is empty.
        """
        if not service_url:
            raise ValueError("service_url must not be empty")
        self._service_url = service_url.rstrip("/")

    def set_default_headers(self, headers: Mapping[str, str]) -> None:
        """Headers sent with every request, ahead of authentication."""
        self.default_headers = dict(headers)

    def enable_retries(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
    ) -> None:
        """Retry connection errors and transient status codes.

        Args:
            max_retries: Retries after the first attempt.
            retry_interval: Ceiling, in seconds, for the exponential backoff.
        """
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if retry_interval < 0:
            raise ValueError("retry_interval must not be negative")

        self.max_retries = max_retries
        self.retry_interval = retry_interval
        self._retrying = Retrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_exponential(multiplier=1, max=retry_interval),
            retry=(
                retry_if_exception_type(
                    (requests.ConnectionError, requests.Timeout)
                )
                | retry_if_result(_is_transient)
            ),
            before_sleep=self._log_retry,
            retry_error_callback=lambda state: state.outcome.result(),
        )

    def disable_retries(self) -> None:
        self._retrying = None
        self.max_retries = 0
        self.retry_interval = 0.0

    @property
    def retries_enabled(self) -> bool:
        return self._retrying is not None

    def configure_service(self, service_name: str) -> None:
        """Apply ``URL``, ``DISABLE_SSL`` and retry properties for *service_name*.

        Raises:
            ConfigurationError: If a property is malformed.
        """
        props = get_service_properties(service_name)
        self._apply_properties(props)

    def _apply_properties(self, props: Mapping[str, str]) -> None:
        if props.get("URL"):
            self.set_service_url(props["URL"])
        if "DISABLE_SSL" in props:
            self.disable_ssl_verification = parse_bool(props["DISABLE_SSL"])
        if parse_bool(props.get("ENABLE_RETRIES")):
            self.enable_retries(
                parse_int(props.get("MAX_RETRIES"), DEFAULT_MAX_RETRIES, name="MAX_RETRIES"),
                parse_float(
                    props.get("RETRY_INTERVAL"), DEFAULT_RETRY_INTERVAL, name="RETRY_INTERVAL"
                ),
            )

    @staticmethod
    def _authenticator_from(service_name: str) -> Authenticator:
        props = get_service_properties(service_name)
        if not props:
            raise ConfigurationError(
                "No external configuration found", service_name=service_name
            )
        return get_authenticator(props)

    def _log_retry(self, retry_state: Any) -> None:
        outcome = retry_state.outcome
        if outcome.failed:
            reason = repr(outcome.exception())
        else:
            reason = f"status {outcome.result().status_code}"
        get_logger().warning(
            "Retrying request (attempt %d of %d) after %s",
            retry_state.attempt_number + 1,
            self.max_retries + 1,
            reason,
        )

    # -- requests -------------------------------------------------------

    def _send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Mapping[str, Any]],
        json: Any,
        headers: dict[str, str],
    ) -> requests.Response:
        return self._session.request(
            method,
            url,
            params=params,
            json=json,
            headers=headers,
            verify=not self.disable_ssl_verification,
            timeout=self.timeout,
        )

    def request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        decode: Optional[Callable[[Any], T]] = None,
    ) -> DetailedResponse[T]:
        """Send a request and return the decoded response.

        Args:
            method: HTTP method.
            path: Path appended to :attr:`service_url`.
            operation: Operation name, used in logs and errors.
            params: Query parameters; ``None`` values are dropped.
            body: JSON-serialisable request body.
            decode: Converts the JSON body into the result object.

        Raises:
            ApiException: If the final response is not 2xx.
            requests.RequestException: If the request could not be sent.
        """
        headers = {"Accept": "application/json", "User-Agent": _user_agent()}
        headers.update(self.default_headers)
        if body is not None:
            headers["Content-Type"] = "application/json"
        self.authenticator.authenticate(headers)

        if params is not None:
            params = {k: v for k, v in params.items() if v is not None}

        url = self._service_url + path
        get_logger().debug("%s %s", method, url)

        if self._retrying is not None:
            response = self._retrying(
                self._send, method, url, params=params, json=body, headers=headers
            )
        else:
            response = self._send(method, url, params=params, json=body, headers=headers)

        payload = _decode_body(response)
        if not response.ok:
            raise ApiException(
                response.status_code,
                _error_message(response, payload),
                operation=operation,
                errors=payload.get("errors") if isinstance(payload, dict) else None,
                trace=payload.get("trace") if isinstance(payload, dict) else None,
            )

        result = payload
        if decode is not None and payload is not None:
            if not isinstance(payload, dict):
                raise ApiException(
                    response.status_code,
                    "Unexpected non-JSON response body",
                    operation=operation,
                )
            result = decode(payload)
        return DetailedResponse(
            result=result,
            status_code=response.status_code,
            headers=dict(response.headers),
        )
