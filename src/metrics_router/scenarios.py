"""Live scenarios for the Metrics Router v3 API.

Each scenario calls one client operation, checks the HTTP status the service
must return for it, and checks that a body came back. Create scenarios store
the new entity's ID for the scenarios that follow; delete scenarios run last
so every read and update has an entity to act on.
"""

from __future__ import annotations

from ._exceptions import ClientConstructionError
from .harness import (
    Harness,
    RunContext,
    Scenario,
    expect_present,
    expect_status,
    scenario,
)
from .models import InclusionFilter, RulePrototype

TARGET_LINK = "target_id"
ROUTE_LINK = "route_id"

TARGET_NAME = "my-mr-target"
DESTINATION_CRN = (
    "crn:v1:bluemix:public:sysdig-monitor:us-south:"
    "a/0be5ad401ae913d8ff665d92680664ed:22222222-2222-2222-2222-222222222222::"
)
REGION = "us-south"
ROUTE_NAME = "my-route"


def _rules(ctx: RunContext) -> list[RulePrototype]:
    return [
        RulePrototype(
            target_ids=[ctx.linked(TARGET_LINK)],
            inclusion_filters=[
                InclusionFilter(operand="location", operator="is", values=[REGION])
            ],
        )
    ]


@scenario("Client initialization")
def client_initialization(ctx: RunContext) -> None:
    """Build the client; any failure here aborts the rest of the run."""
    assert ctx.config is not None, "configuration was not loaded"
    try:
        client = ctx.client_factory(ctx.config, ctx.service_name)
    except ClientConstructionError:
        raise
    except Exception as e:
        raise ClientConstructionError(f"{type(e).__name__}: {e}") from e
    if client is None:
        raise ClientConstructionError("client factory returned nothing")
    ctx.client = client



@scenario("CreateTarget - Create a target", produces=[TARGET_LINK])
def create_target(ctx: RunContext) -> None:
    response = ctx.client.create_target(TARGET_NAME, DESTINATION_CRN, region=REGION)
    expect_status(response, 201, "create_target")
    expect_present(response.result, "create_target")
    ctx.link(TARGET_LINK, response.result.id)


@scenario("CreateRoute - Create a route", requires=[TARGET_LINK], produces=[ROUTE_LINK])
def create_route(ctx: RunContext) -> None:
    response = ctx.client.create_route(ROUTE_NAME, _rules(ctx))
    expect_status(response, 201, "create_route")
    expect_present(response.result, "create_route")
    ctx.link(ROUTE_LINK, response.result.id)


@scenario("ListTargets - List targets")
def list_targets(ctx: RunContext) -> None:
    response = ctx.client.list_targets()
    expect_status(response, 200, "list_targets")
    expect_present(response.result, "list_targets")


@scenario("GetTarget - Get details of a target", requires=[TARGET_LINK])
def get_target(ctx: RunContext) -> None:
    target_id = ctx.linked(TARGET_LINK)
    response = ctx.client.get_target(target_id)
    expect_status(response, 200, "get_target")
    expect_present(response.result, "get_target")
    assert response.result.id == target_id, (
        f"get_target: expected target {target_id}, got {response.result.id}"
    )


@scenario("ReplaceTarget - Update a target", requires=[TARGET_LINK])
def replace_target(ctx: RunContext) -> None:
    response = ctx.client.replace_target(
        ctx.linked(TARGET_LINK),
        name=TARGET_NAME,
        destination_crn=DESTINATION_CRN,
    )
    expect_status(response, 200, "replace_target")
    expect_present(response.result, "replace_target")


@scenario("ValidateTarget - Validate a target", requires=[TARGET_LINK])
def validate_target(ctx: RunContext) -> None:
    response = ctx.client.validate_target(ctx.linked(TARGET_LINK))
    expect_status(response, 200, "validate_target")
    expect_present(response.result, "validate_target")


@scenario("ListRoutes - List routes")
def list_routes(ctx: RunContext) -> None:
    response = ctx.client.list_routes()
    expect_status(response, 200, "list_routes")
    expect_present(response.result, "list_routes")


@scenario("GetRoute - Get details of a route", requires=[ROUTE_LINK])
def get_route(ctx: RunContext) -> None:
    response = ctx.client.get_route(ctx.linked(ROUTE_LINK))
    expect_status(response, 200, "get_route")
    expect_present(response.result, "get_route")


@scenario("ReplaceRoute - Update a route", requires=[ROUTE_LINK, TARGET_LINK])
def replace_route(ctx: RunContext) -> None:
    response = ctx.client.replace_route(
        ctx.linked(ROUTE_LINK),
        name=ROUTE_NAME,
        rules=_rules(ctx),
    )
    expect_status(response, 200, "replace_route")
    expect_present(response.result, "replace_route")


@scenario("GetSettings - Get settings")
def get_settings(ctx: RunContext) -> None:
    response = ctx.client.get_settings()
    expect_status(response, 200, "get_settings")
    expect_present(response.result, "get_settings")


@scenario("ReplaceSettings - Modify settings", requires=[TARGET_LINK])
def replace_settings(ctx: RunContext) -> None:
    response = ctx.client.replace_settings(
        metadata_region_primary=REGION,
        private_api_endpoint_only=False,
        default_targets=[ctx.linked(TARGET_LINK)],
        permitted_target_regions=[REGION],
    )
    expect_status(response, 201, "replace_settings")
    expect_present(response.result, "replace_settings")


@scenario("DeleteRoute - Delete a route", requires=[ROUTE_LINK])
def delete_route(ctx: RunContext) -> None:
    response = ctx.client.delete_route(ctx.linked(ROUTE_LINK))
    expect_status(response, 204, "delete_route")


@scenario("DeleteTarget - Delete a target", requires=[TARGET_LINK])
def delete_target(ctx: RunContext) -> None:
    response = ctx.client.delete_target(ctx.linked(TARGET_LINK))
    expect_status(response, 200, "delete_target")
    expect_present(response.result, "delete_target")


SCENARIOS: tuple[Scenario, ...] = (
    client_initialization,
    create_target,
    create_route,
    list_targets,
    get_target,
    replace_target,
    validate_target,
    list_routes,
    get_route,
    replace_route,
    get_settings,
    replace_settings,
    delete_route,
    delete_target,
)


def build_suite() -> Harness:
    """Return the Metrics Router suite in execution order."""
    return Harness(SCENARIOS)
