"""Custom exception hierarchy for metrics_router.

Errors carry the context needed to act on them: the operation that failed,
the HTTP status the service returned, and the service's own error detail.
"""

from __future__ import annotations

from typing import Any


class MetricsRouterError(Exception):
    """Base exception for all metrics_router errors."""


class ConfigurationError(MetricsRouterError):
    """External configuration was found but cannot be used.

    A *missing* configuration is not an error; see
    :func:`metrics_router.harness.load_configuration`.

    Attributes:
        service_name: The service whose properties were being read.
        property_name: The offending property, if one is to blame.
    """

    def __init__(
        self,
        message: str,
        *,
        service_name: str | None = None,
        property_name: str | None = None,
    ) -> None:
        self.service_name = service_name
        self.property_name = property_name

        prefix = ""
        if service_name and property_name:
            prefix = f"[{service_name}.{property_name}] "
        elif service_name or property_name:
            prefix = f"[{service_name or property_name}] "
        super().__init__(prefix + message)


class ClientConstructionError(MetricsRouterError):
    """The service client could not be built from external configuration.

    Fatal to a harness run: no scenario can proceed without a client.
    """


class ApiException(MetricsRouterError):
    """The service answered with a non-2xx status or an unreadable body.

    Attributes:
        status_code: HTTP status code of the response.
        message: Best available description of the failure.
        operation: Name of the client operation, e.g. ``"create_target"``.
        errors: The ``errors`` array from the response body, if any.
        trace: The service's trace identifier, if any.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        operation: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        trace: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.operation = operation
        self.errors = errors or []
        self.trace = trace

        head = f"{operation} failed" if operation else "Request failed"
        lines = [f"{head} with status {status_code}: {message}"]
        if trace:
            lines.append(f"  trace: {trace}")
        super().__init__("\n".join(lines))


class SuiteCompositionError(MetricsRouterError):
    """Scenario dependencies cannot be satisfied by declaration order.

    Attributes:
        scenario: Name of the scenario that was rejected.
        link: The linked value at fault.
    """

    def __init__(self, scenario: str, link: str, reason: str) -> None:
        self.scenario = scenario
        self.link = link
        super().__init__(f"Scenario '{scenario}' cannot use link '{link}': {reason}")


class MissingLinkError(MetricsRouterError, KeyError):
    """A scenario read a linked value that no earlier scenario produced.

    Attributes:
        link: Name of the missing value.
    """

    def __init__(self, link: str) -> None:
        self.link = link
        super().__init__(f"Linked value '{link}' has not been produced in this run")

    def __str__(self) -> str:
        return self.args[0]
