"""Metrics Router v3 service client.

This module provides ``MetricsRouterV3``, which exposes one method per REST
operation of the service and returns a :class:`DetailedResponse` holding the
decoded model.

Examples:
    >>> from metrics_router import MetricsRouterV3
    >>> service = MetricsRouterV3.new_instance()
    >>> response = service.create_target(
    ...     "my-mr-target",
    ...     "crn:v1:bluemix:public:sysdig-monitor:us-south:a/...::",
    ...     region="us-south",
    ... )
    >>> response.status_code
    201
"""

from __future__ import annotations

from typing import Optional, Sequence
from urllib.parse import quote

import requests

from ._auth import Authenticator
from ._exceptions import ClientConstructionError, ConfigurationError
from ._logging import log_operation
from ._service import BaseService, DetailedResponse
from .models import (
    RouteCollection,
    Route,
    RulePrototype,
    Settings,
    Target,
    TargetCollection,
    WarningReport,
)

DEFAULT_SERVICE_NAME = "metrics_router"
DEFAULT_SERVICE_URL = "https://api.metrics-router.cloud.ibm.com/api/v3"

_REGIONS = (
    "au-syd",
    "br-sao",
    "ca-tor",
    "eu-de",
    "eu-es",
    "eu-gb",
    "jp-osa",
    "jp-tok",
    "us-east",
    "us-south",
)


def get_service_url_for_region(region: str) -> str:
    """Return the endpoint URL for *region*.

    Both public (``us-south``) and private (``private.us-south``) names are
    accepted.

    Raises:
        ValueError: If the region is unknown.
    """
    name = region
    private = name.startswith("private.")
    if private:
        name = name[len("private."):]
    if name not in _REGIONS:
        raise ValueError(f"Unknown Metrics Router region: {region!r}")
    host = f"private.{name}" if private else name
    return f"https://{host}.metrics-router.cloud.ibm.com/api/v3"


def _require(value: object, name: str) -> None:
    if value is None or value == "":
        raise ValueError(f"{name} must be provided")


def _path_id(value: str) -> str:
    return quote(value, safe="")


class MetricsRouterV3(BaseService):
    """Client for the Metrics Router v3 REST API.

    Args:
        authenticator: Adds credentials to each request.
        service_url: API base URL. Defaults to the global endpoint.
        _session: Optional pre-configured ``requests.Session`` for testing.
    """

    DEFAULT_SERVICE_NAME = DEFAULT_SERVICE_NAME
    DEFAULT_SERVICE_URL = DEFAULT_SERVICE_URL

    def __init__(
        self,
        authenticator: Authenticator,
        service_url: str = DEFAULT_SERVICE_URL,
        *,
        _session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(authenticator, service_url, _session=_session)

    @classmethod
    def new_instance(
        cls,
        service_name: str = DEFAULT_SERVICE_NAME,
        *,
        _session: Optional[requests.Session] = None,
    ) -> "MetricsRouterV3":
        """Build a client from external configuration.

        Properties are read as described in :mod:`metrics_router._config`.

        Raises:
            ClientConstructionError: If the configuration is missing or
                unusable.
        """
        try:
            authenticator = cls._authenticator_from(service_name)
            service = cls(authenticator, _session=_session)
            service.configure_service(service_name)
        except (ConfigurationError, ValueError) as e:
            raise ClientConstructionError(
                f"Unable to construct {service_name} client: {e}"
            ) from e
        return service

    # Targets

    def create_target(
        self,
        name: str,
        destination_crn: str,
        *,
        region: Optional[str] = None,
    ) -> DetailedResponse[Target]:
        """Create a target. The service answers ``201 Created``."""
        _require(name, "name")
        _require(destination_crn, "destination_crn")
        body = {"name": name, "destination_crn": destination_crn}
        if region is not None:
            body["region"] = region

        with log_operation("create_target", name=name, region=region):
            return self.request(
                "POST", "/targets", operation="create_target", body=body,
                decode=Target.from_dict,
            )

    def list_targets(self) -> DetailedResponse[TargetCollection]:
        """List all targets in the account."""
        with log_operation("list_targets"):
            return self.request(
                "GET", "/targets", operation="list_targets",
                decode=TargetCollection.from_dict,
            )

    def get_target(self, id: str) -> DetailedResponse[Target]:
        _require(id, "id")
        with log_operation("get_target", id=id):
            return self.request(
                "GET", f"/targets/{_path_id(id)}", operation="get_target",
                decode=Target.from_dict,
            )

    def replace_target(
        self,
        id: str,
        *,
        name: Optional[str] = None,
        destination_crn: Optional[str] = None,
    ) -> DetailedResponse[Target]:
        """Update a target's name or destination. Unset fields are unchanged."""
        _require(id, "id")
        body = {}
        if name is not None:
            body["name"] = name
        if destination_crn is not None:
            body["destination_crn"] = destination_crn

        with log_operation("replace_target", id=id):
            return self.request(
                "PATCH", f"/targets/{_path_id(id)}", operation="replace_target",
                body=body, decode=Target.from_dict,
            )

    def delete_target(self, id: str) -> DetailedResponse[WarningReport]:
        """Delete a target.

        The body lists warnings for routes and settings that still reference
        the deleted target.
        """
        _require(id, "id")
        with log_operation("delete_target", id=id):
            return self.request(
                "DELETE", f"/targets/{_path_id(id)}", operation="delete_target",
                decode=WarningReport.from_dict,
            )

    def validate_target(self, id: str) -> DetailedResponse[Target]:
        """Check that the service can write to the target's destination.

        The outcome is reported in the returned target's ``write_status``.
        """
        _require(id, "id")
        with log_operation("validate_target", id=id):
            return self.request(
                "POST", f"/targets/{_path_id(id)}/validate", operation="validate_target",
                decode=Target.from_dict,
            )

    # Routes

    def create_route(
        self,
        name: str,
        rules: Sequence[RulePrototype],
    ) -> DetailedResponse[Route]:
        """Create a route. The service answers ``201 Created``."""
        _require(name, "name")
        if not rules:
            raise ValueError("rules must be provided")
        body = {"name": name, "rules": [r.to_dict() for r in rules]}

        with log_operation("create_route", name=name, rules=len(rules)):
            return self.request(
                "POST", "/routes", operation="create_route", body=body,
                decode=Route.from_dict,
            )

    def list_routes(self) -> DetailedResponse[RouteCollection]:
        with log_operation("list_routes"):
            return self.request(
                "GET", "/routes", operation="list_routes",
                decode=RouteCollection.from_dict,
            )

    def get_route(self, id: str) -> DetailedResponse[Route]:
        _require(id, "id")
        with log_operation("get_route", id=id):
            return self.request(
                "GET", f"/routes/{_path_id(id)}", operation="get_route",
                decode=Route.from_dict,
            )

    def replace_route(
        self,
        id: str,
        *,
        name: Optional[str] = None,
        rules: Optional[Sequence[RulePrototype]] = None,
    ) -> DetailedResponse[Route]:
        """Update a route. ``rules``, when given, replaces the whole rule list."""
        _require(id, "id")
        body: dict = {}
        if name is not None:
            body["name"] = name
        if rules is not None:
            body["rules"] = [r.to_dict() for r in rules]

        with log_operation("replace_route", id=id):
            return self.request(
                "PATCH", f"/routes/{_path_id(id)}", operation="replace_route",
                body=body, decode=Route.from_dict,
            )

    def delete_route(self, id: str) -> DetailedResponse[None]:
        """Delete a route. The service answers ``204 No Content``."""
        _require(id, "id")
        with log_operation("delete_route", id=id):
            return self.request(
                "DELETE", f"/routes/{_path_id(id)}", operation="delete_route",
            )

    # Settings

    def get_settings(self) -> DetailedResponse[Settings]:
        with log_operation("get_settings"):
            return self.request(
                "GET", "/settings", operation="get_settings",
                decode=Settings.from_dict,
            )

    def replace_settings(
        self,
        *,
        metadata_region_primary: Optional[str] = None,
        private_api_endpoint_only: Optional[bool] = None,
        default_targets: Optional[Sequence[str]] = None,
        permitted_target_regions: Optional[Sequence[str]] = None,
        metadata_region_backup: Optional[str] = None,
    ) -> DetailedResponse[Settings]:
        """Modify account settings. Only the arguments given are changed.

        Args:
            metadata_region_primary: Region that stores route and target
                metadata.
            private_api_endpoint_only: Restrict the API to private endpoints.
            default_targets: IDs of targets receiving unrouted metrics.
            permitted_target_regions: Regions where targets may live.
            metadata_region_backup: Secondary metadata region.
        """
        body = {}
        if metadata_region_primary is not None:
            body["metadata_region_primary"] = metadata_region_primary
        if private_api_endpoint_only is not None:
            body["private_api_endpoint_only"] = private_api_endpoint_only
        if default_targets is not None:
            body["default_targets"] = list(default_targets)
        if permitted_target_regions is not None:
            body["permitted_target_regions"] = list(permitted_target_regions)
        if metadata_region_backup is not None:
            body["metadata_region_backup"] = metadata_region_backup

        with log_operation("replace_settings", fields=",".join(sorted(body)) or None):
            return self.request(
                "PATCH", "/settings", operation="replace_settings",
                body=body, decode=Settings.from_dict,
            )
