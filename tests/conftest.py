"""Pytest configuration for metrics_router tests."""

import json
import logging
from typing import Any, Optional
from unittest.mock import Mock

import pytest
import requests

from metrics_router import NoAuthAuthenticator, MetricsRouterV3
from metrics_router._config import CREDENTIALS_FILE_ENV
from metrics_router._logging import LOGGER_NAME, configure_logging
from metrics_router._service import DetailedResponse


# =============================================================================
# Helpers
# =============================================================================

SERVICE_URL = "https://us-south.metrics-router.cloud.ibm.com/api/v3"

TARGET_JSON = {
    "id": "c3af557f-fb0e-4476-85c3-0889e7fe7bc4",
    "name": "my-mr-target",
    "crn": "crn:v1:bluemix:public:metrics-router:us-south:a/abc:target:c3af557f",
    "destination_crn": "crn:v1:bluemix:public:sysdig-monitor:us-south:a/abc:2222::",
    "target_type": "sysdig_monitor",
    "region": "us-south",
    "write_status": {"status": "success"},
    "created_at": "2023-01-04T14:03:44.000Z",
    "updated_at": "2023-01-04T14:03:44.000Z",
}

ROUTE_JSON = {
    "id": "c3af557f-fb0e-4476-85c3-0889e7fe7bc5",
    "name": "my-route",
    "crn": "crn:v1:bluemix:public:metrics-router:global:a/abc:route:c3af557f",
    "rules": [
        {
            "targets": [
                {
                    "id": "c3af557f-fb0e-4476-85c3-0889e7fe7bc4",
                    "crn": "crn:v1:bluemix:public:metrics-router:us-south:a/abc:target:c3af557f",
                    "name": "my-mr-target",
                    "target_type": "sysdig_monitor",
                }
            ],
            "inclusion_filters": [
                {"operand": "location", "operator": "is", "values": ["us-south"]}
            ],
        }
    ],
    "created_at": "2023-01-04T14:03:44.000Z",
    "updated_at": "2023-01-04T14:03:44.000Z",
}

SETTINGS_JSON = {
    "default_targets": [{"id": "c3af557f-fb0e-4476-85c3-0889e7fe7bc4", "name": "my-mr-target"}],
    "permitted_target_regions": ["us-south"],
    "metadata_region_primary": "us-south",
    "private_api_endpoint_only": False,
}


def make_response(
    status_code: int = 200,
    body: Any = None,
    *,
    reason: str = "OK",
    headers: Optional[dict] = None,
) -> requests.Response:
    """Build a real ``requests.Response`` carrying *body* as JSON."""
    resp = requests.Response()
    resp.status_code = status_code
    resp.reason = reason
    resp.url = SERVICE_URL
    if body is not None:
        resp._content = json.dumps(body).encode("utf-8")
        resp.headers["Content-Type"] = "application/json"
    else:
        resp._content = b""
    for key, value in (headers or {}).items():
        resp.headers[key] = value
    return resp


def write_credentials(path, lines: list[str]):
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


class FakeMetricsRouter:
    """Records calls and answers with the statuses the live service uses.

    ``overrides`` maps an operation name to a ``DetailedResponse`` or an
    exception to return or raise instead.
    """

    def __init__(self, overrides: Optional[dict[str, Any]] = None) -> None:
        from metrics_router.models import (
            Route,
            RouteCollection,
            Settings,
            Target,
            TargetCollection,
            WarningReport,
        )

        self.calls: list[tuple[str, tuple, dict]] = []
        self.overrides = overrides or {}
        target = Target.from_dict(TARGET_JSON)
        route = Route.from_dict(ROUTE_JSON)
        self._answers = {
            "create_target": DetailedResponse(target, 201),
            "list_targets": DetailedResponse(TargetCollection([target]), 200),
            "get_target": DetailedResponse(target, 200),
            "replace_target": DetailedResponse(target, 200),
            "validate_target": DetailedResponse(target, 200),
            "delete_target": DetailedResponse(WarningReport([]), 200),
            "create_route": DetailedResponse(route, 201),
            "list_routes": DetailedResponse(RouteCollection([route]), 200),
            "get_route": DetailedResponse(route, 200),
            "replace_route": DetailedResponse(route, 200),
            "delete_route": DetailedResponse(None, 204),
            "get_settings": DetailedResponse(Settings.from_dict(SETTINGS_JSON), 200),
            "replace_settings": DetailedResponse(Settings.from_dict(SETTINGS_JSON), 201),
        }

    def __getattr__(self, name: str):
        if name.startswith("_") or name not in self._answers:
            raise AttributeError(name)

        def call(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            answer = self.overrides.get(name, self._answers[name])
            if isinstance(answer, BaseException):
                raise answer
            return answer

        return call

    @property
    def operations(self) -> list[str]:
        return [name for name, _, _ in self.calls]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_logging():
    """Restore the stdlib package logger and drop handlers tests installed."""
    yield
    stdlib_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(stdlib_logger.handlers):
        stdlib_logger.removeHandler(handler)
    stdlib_logger.setLevel(logging.NOTSET)
    configure_logging(stdlib_logger)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from credentials on the developer's machine."""
    # setenv first so teardown also undoes writes made by load_configuration
    monkeypatch.setenv(CREDENTIALS_FILE_ENV, "")
    monkeypatch.delenv(CREDENTIALS_FILE_ENV)
    for key in ("METRICS_ROUTER_URL", "METRICS_ROUTER_AUTH_TYPE", "METRICS_ROUTER_APIKEY"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    return monkeypatch


@pytest.fixture
def mock_session():
    """A ``requests.Session`` stand-in; set ``request.return_value``/``side_effect``."""
    session = Mock(spec=requests.Session)
    session.request.return_value = make_response(200, {})
    return session


@pytest.fixture
def service(mock_session):
    """A MetricsRouterV3 client wired to ``mock_session``."""
    return MetricsRouterV3(NoAuthAuthenticator(), SERVICE_URL, _session=mock_session)


@pytest.fixture
def fake_client():
    return FakeMetricsRouter()
