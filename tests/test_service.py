"""Tests for the shared HTTP transport in metrics_router._service."""

import pytest
import requests

from conftest import SERVICE_URL, make_response, write_credentials
from metrics_router import BearerTokenAuthenticator, NoAuthAuthenticator
from metrics_router._config import CREDENTIALS_FILE_ENV
from metrics_router._exceptions import ApiException, ConfigurationError
from metrics_router._service import BaseService, DetailedResponse


@pytest.fixture
def base(mock_session):
    return BaseService(NoAuthAuthenticator(), SERVICE_URL + "/", _session=mock_session)


class TestConfiguration:
    def test_trailing_slash_dropped(self, base):
        assert base.service_url == SERVICE_URL

    def test_empty_url_rejected(self, mock_session):
        with pytest.raises(ValueError, match="service_url"):
            BaseService(NoAuthAuthenticator(), "", _session=mock_session)

    def test_authenticator_required(self, mock_session):
        with pytest.raises(ValueError, match="authenticator"):
            BaseService(None, SERVICE_URL, _session=mock_session)

    def test_configure_service_applies_properties(self, base, clean_env, tmp_path):
        p = write_credentials(
            tmp_path / "mr.env",
            [
                "METRICS_ROUTER_URL=https://eu-de.metrics-router.cloud.ibm.com/api/v3",
                "METRICS_ROUTER_DISABLE_SSL=true",
                "METRICS_ROUTER_ENABLE_RETRIES=true",
                "METRICS_ROUTER_MAX_RETRIES=2",
                "METRICS_ROUTER_RETRY_INTERVAL=5",
            ],
        )
        clean_env.setenv(CREDENTIALS_FILE_ENV, str(p))

        base.configure_service("metrics_router")

        assert base.service_url == "https://eu-de.metrics-router.cloud.ibm.com/api/v3"
        assert base.disable_ssl_verification is True
        assert base.retries_enabled
        assert (base.max_retries, base.retry_interval) == (2, 5.0)

    def test_configure_service_rejects_bad_retry_count(self, base, clean_env, tmp_path):
        p = write_credentials(
            tmp_path / "mr.env",
            ["METRICS_ROUTER_ENABLE_RETRIES=true", "METRICS_ROUTER_MAX_RETRIES=lots"],
        )
        clean_env.setenv(CREDENTIALS_FILE_ENV, str(p))
        with pytest.raises(ConfigurationError):
            base.configure_service("metrics_router")


class TestRequest:
    def test_builds_request(self, mock_session):
        service = BaseService(BearerTokenAuthenticator("tok"), SERVICE_URL, _session=mock_session)
        service.set_default_headers({"X-Correlation-Id": "abc"})
        mock_session.request.return_value = make_response(201, {"id": "t1"})

        response = service.request(
            "POST", "/targets", operation="create_target",
            params={"limit": 5, "start": None}, body={"name": "x"},
        )

        args, kwargs = mock_session.request.call_args
        assert args == ("POST", SERVICE_URL + "/targets")
        assert kwargs["params"] == {"limit": 5}
        assert kwargs["json"] == {"name": "x"}
        assert kwargs["verify"] is True
        headers = kwargs["headers"]
        assert headers["Authorization"] == "Bearer tok"
        assert headers["Content-Type"] == "application/json"
        assert headers["X-Correlation-Id"] == "abc"
        assert headers["User-Agent"].startswith("metrics-router-python/")

        assert isinstance(response, DetailedResponse)
        assert response.status_code == 201
        assert response.result == {"id": "t1"}

    def test_decode_applied(self, base, mock_session):
        mock_session.request.return_value = make_response(200, {"id": "t1"})
        response = base.request("GET", "/x", operation="op", decode=lambda d: d["id"])
        assert response.get_result() == "t1"

    def test_empty_body_gives_none(self, base, mock_session):
        mock_session.request.return_value = make_response(204)
        response = base.request("DELETE", "/routes/r1", operation="delete_route", decode=dict)
        assert response.result is None
        assert response.get_status_code() == 204

    def test_no_content_type_without_body(self, base, mock_session):
        base.request("GET", "/targets", operation="list_targets")
        assert "Content-Type" not in mock_session.request.call_args.kwargs["headers"]


class TestErrors:
    def test_errors_array_message(self, base, mock_session):
        mock_session.request.return_value = make_response(
            404,
            {
                "errors": [{"code": "not_found", "message": "Target not found"}],
                "trace": "trace-123",
                "status_code": 404,
            },
            reason="Not Found",
        )
        with pytest.raises(ApiException) as exc_info:
            base.request("GET", "/targets/x", operation="get_target")

        exc = exc_info.value
        assert exc.status_code == 404
        assert exc.message == "Target not found"
        assert exc.operation == "get_target"
        assert exc.trace == "trace-123"
        assert exc.errors[0]["code"] == "not_found"
        assert "get_target failed with status 404" in str(exc)

    def test_falls_back_to_reason(self, base, mock_session):
        mock_session.request.return_value = make_response(500, reason="Internal Server Error")
        with pytest.raises(ApiException, match="Internal Server Error"):
            base.request("GET", "/settings", operation="get_settings")

    def test_non_json_success_body_rejected_when_decoding(self, base, mock_session):
        resp = make_response(200, headers={"Content-Type": "text/plain"})
        resp._content = b"ok"
        mock_session.request.return_value = resp

        with pytest.raises(ApiException) as exc_info:
            base.request("GET", "/targets/x", operation="get_target", decode=dict)

        assert exc_info.value.status_code == 200
        assert exc_info.value.operation == "get_target"
        assert "Unexpected non-JSON response body" in str(exc_info.value)

    def test_non_json_success_body_returned_without_decoder(self, base, mock_session):
        resp = make_response(200, headers={"Content-Type": "text/plain"})
        resp._content = b"ok"
        mock_session.request.return_value = resp

        assert base.request("POST", "/ping", operation="ping").get_result() == "ok"


class TestRetries:
    def test_transient_status_retried(self, base, mock_session):
        base.enable_retries(max_retries=2, retry_interval=0)
        mock_session.request.side_effect = [
            make_response(503, reason="Service Unavailable"),
            make_response(200, {"ok": True}),
        ]
        response = base.request("GET", "/settings", operation="get_settings")
        assert response.status_code == 200
        assert mock_session.request.call_count == 2

    def test_connection_error_retried(self, base, mock_session):
        base.enable_retries(max_retries=1, retry_interval=0)
        mock_session.request.side_effect = [
            requests.ConnectionError("reset"),
            make_response(200, {}),
        ]
        assert base.request("GET", "/targets", operation="list_targets").status_code == 200

    def test_gives_up_after_max_retries(self, base, mock_session):
        base.enable_retries(max_retries=2, retry_interval=0)
        mock_session.request.return_value = make_response(503, reason="Service Unavailable")
        with pytest.raises(ApiException) as exc_info:
            base.request("GET", "/settings", operation="get_settings")
        assert exc_info.value.status_code == 503
        assert mock_session.request.call_count == 3

    def test_connection_error_reraised_when_exhausted(self, base, mock_session):
        base.enable_retries(max_retries=1, retry_interval=0)
        mock_session.request.side_effect = requests.ConnectionError("down")
        with pytest.raises(requests.ConnectionError):
            base.request("GET", "/targets", operation="list_targets")
        assert mock_session.request.call_count == 2

    def test_client_errors_not_retried(self, base, mock_session):
        base.enable_retries(max_retries=3, retry_interval=0)
        mock_session.request.return_value = make_response(400, reason="Bad Request")
        with pytest.raises(ApiException):
            base.request("POST", "/targets", operation="create_target", body={})
        assert mock_session.request.call_count == 1

    def test_disabled_by_default(self, base, mock_session):
        mock_session.request.side_effect = [
            make_response(503, reason="Service Unavailable"),
            make_response(200, {}),
        ]
        with pytest.raises(ApiException):
            base.request("GET", "/settings", operation="get_settings")
        assert not base.retries_enabled

    def test_disable_retries(self, base):
        base.enable_retries()
        assert (base.max_retries, base.retry_interval) == (4, 30.0)
        base.disable_retries()
        assert not base.retries_enabled

    def test_negative_values_rejected(self, base):
        with pytest.raises(ValueError):
            base.enable_retries(max_retries=-1)
        with pytest.raises(ValueError):
            base.enable_retries(retry_interval=-1)
