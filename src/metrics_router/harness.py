"""Conditional integration harness.

Runs a fixed, ordered sequence of named scenarios against a live service.
The whole sequence is skipped when external configuration is unavailable,
and values produced by early scenarios (e.g. the ID of a created target) are
handed to later ones through an explicit :class:`RunContext`.

Key components:

- ``SkipGate``: closed until configuration loads, then open for the rest of
  the run
- ``RunContext``: gate, configuration, client and linked values for one run
- ``Scenario``: a named body plus the linked values it requires and produces
- ``Harness``: validates scenario dependencies at composition time and runs
  scenarios in declaration order

Skipping on missing configuration is deliberate, so that the suite can live
alongside unit tests on machines without credentials. It also means a broken
CI secret shows up as *skipped*, not *failed*; the reason is logged at
warning level and reported on every skipped scenario so it stays visible.

Examples:
    >>> from metrics_router.harness import Harness, RunContext
    >>> from metrics_router.scenarios import build_suite
    >>> ctx = RunContext.prepare("metrics_router_v3.env")
    >>> results = build_suite().run(ctx)
    >>> [r.status for r in results][:2]
    ['passed', 'passed']
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from ._config import CREDENTIALS_FILE_ENV, get_service_properties
from ._exceptions import (
    ClientConstructionError,
    ConfigurationError,
    MetricsRouterError,
    MissingLinkError,
    SuiteCompositionError,
)
from ._logging import enable_debug_logging, get_logger
from .client import DEFAULT_SERVICE_NAME, MetricsRouterV3

PASSED = "passed"
FAILED = "failed"
SKIPPED = "skipped"

DEFAULT_SKIP_REASON = "External configuration is not available, skipping tests..."

CLIENT_MAX_RETRIES = 4
CLIENT_RETRY_INTERVAL = 30.0


# ---------------------------------------------------------------------------
# Configuration and client
# ---------------------------------------------------------------------------


def _read_configuration(
    path: str | os.PathLike[str],
    service_name: str,
) -> tuple[Optional[dict[str, str]], Optional[str]]:
    """Return ``(config, None)`` on success or ``(None, reason)``."""
    p = Path(path)
    if not p.is_file():
        return None, f"External configuration file not found, skipping tests: {p}"

    env = {**os.environ, CREDENTIALS_FILE_ENV: str(p)}
    try:
        config = get_service_properties(service_name, environ=env)
    except (ConfigurationError, OSError) as e:
        return None, f"Error loading service properties, skipping tests: {e}"

    if not config.get("URL"):
        return None, "Unable to load service URL configuration property, skipping tests"

    # The client reads the same file when it is built later in the run
    os.environ[CREDENTIALS_FILE_ENV] = str(p)
    return config, None


def load_configuration(
    path: str | os.PathLike[str],
    service_name: str = DEFAULT_SERVICE_NAME,
) -> Optional[dict[str, str]]:
    """Load service properties from the credentials file at *path*.

    On success ``IBM_CREDENTIALS_FILE`` is left pointing at *path* so that
    :func:`initialize_client` resolves the same file.

    Returns:
        The properties, or ``None`` when the file is missing, unreadable, or
        has no ``URL`` property. None of these raise.
    """
    config, reason = _read_configuration(path, service_name)
    if config is None:
        get_logger().warning("%s", reason)
    return config


def initialize_client(
    config: dict[str, str],
    service_name: str = DEFAULT_SERVICE_NAME,
    *,
    max_retries: int = CLIENT_MAX_RETRIES,
    retry_interval: float = CLIENT_RETRY_INTERVAL,
    debug: bool = True,
) -> MetricsRouterV3:
    """Build the client for a run and check it targets the configured URL.

    Args:
        config: Properties returned by :func:`load_configuration`.
        service_name: Service name used in the credentials file.
        max_retries: Retries after the first attempt of each request.
        retry_interval: Ceiling, in seconds, of the retry backoff.
        debug: Route package logs to stderr at DEBUG level.

    Raises:
        ClientConstructionError: If the client cannot be built or its URL
            does not match ``config["URL"]``.
    """
    service = MetricsRouterV3.new_instance(service_name)

    expected_url = config.get("URL", "").rstrip("/")
    if service.service_url != expected_url:
        raise ClientConstructionError(
            f"Client URL {service.service_url!r} does not match "
            f"configured URL {expected_url!r}"
        )

    if debug:
        enable_debug_logging()
    service.enable_retries(max_retries, retry_interval)
    return service


# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------


class SkipGate:
    """Closed until :meth:`open` is called; never closes again."""

    def __init__(self, reason: str = DEFAULT_SKIP_REASON) -> None:
        self._open = False
        self.reason = reason

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        self._open = True
        self.reason = ""

    def __repr__(self) -> str:
        state = "open" if self._open else f"closed: {self.reason}"
        return f"SkipGate({state})"


ClientFactory = Callable[[dict[str, str], str], Any]


@dataclass
class RunContext:
    """State shared by the scenarios of one run.

    Attributes:
        gate: Whether scenarios execute or are skipped.
        config: Loaded service properties, ``None`` until loaded.
        service_name: Name used to look up properties.
        client: Service client, set by the client-initialization scenario.
        client_factory: Builds ``client``; swapped for a fake in tests.
        aborted: Reason the run cannot continue, set on a fatal error.
    """

    gate: SkipGate = field(default_factory=SkipGate)
    config: Optional[dict[str, str]] = None
    service_name: str = DEFAULT_SERVICE_NAME
    client: Any = None
    client_factory: ClientFactory = initialize_client
    aborted: Optional[str] = None
    _links: dict[str, str] = field(default_factory=dict, repr=False)

    @classmethod
    def prepare(
        cls,
        path: str | os.PathLike[str],
        service_name: str = DEFAULT_SERVICE_NAME,
        **kwargs: Any,
    ) -> RunContext:
        """Load configuration from *path* and open the gate if it succeeds."""
        ctx = cls(service_name=service_name, **kwargs)
        config, reason = _read_configuration(path, service_name)
        if config is None:
            ctx.gate.reason = reason or DEFAULT_SKIP_REASON
            get_logger().warning("%s", ctx.gate.reason)
            return ctx

        ctx.config = config
        ctx.gate.open()
        get_logger().info("Service URL: %s", config["URL"])
        return ctx

    def link(self, name: str, value: str) -> None:
        """Store a value for later scenarios.

        Raises:
            ValueError: If *value* is empty or *name* was already written.
        """
        if not value:
            raise ValueError(f"Linked value '{name}' must not be empty")
        if name in self._links:
            raise ValueError(f"Linked value '{name}' has already been produced")
        self._links[name] = value
        get_logger().info("Saved %s value: %s", name, value)

    def linked(self, name: str) -> str:
        """Return a value stored by an earlier scenario.

        Raises:
            MissingLinkError: If no scenario has produced it.
        """
        try:
            return self._links[name]
        except KeyError:
            raise MissingLinkError(name) from None

    def has_link(self, name: str) -> bool:
        return name in self._links

    @property
    def links(self) -> dict[str, str]:
        """A copy of the values produced so far."""
        return dict(self._links)


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Scenario:
    """One named step of a suite."""

    name: str
    body: Callable[[RunContext], None]
    requires: tuple[str, ...] = ()
    produces: tuple[str, ...] = ()

    def __call__(self, ctx: RunContext) -> None:
        self.body(ctx)


def scenario(
    name: str,
    *,
    requires: Iterable[str] = (),
    produces: Iterable[str] = (),
) -> Callable[[Callable[[RunContext], None]], Scenario]:
    """Decorator turning a function of ``RunContext`` into a :class:`Scenario`.

    Examples:
        >>> @scenario("GetTarget - Get details of a target", requires=["target_id"])
        ... def get_target(ctx):
        ...     ctx.client.get_target(ctx.linked("target_id"))
    """

    def wrap(fn: Callable[[RunContext], None]) -> Scenario:
        return Scenario(
            name=name,
            body=fn,
            requires=tuple(requires),
            produces=tuple(produces),
        )

    return wrap


@dataclass
class ScenarioResult:
    name: str
    status: str
    message: str = ""
    duration: float = 0.0

    @property
    def passed(self) -> bool:
        return self.status == PASSED

    @property
    def failed(self) -> bool:
        return self.status == FAILED

    @property
    def skipped(self) -> bool:
        return self.status == SKIPPED


def expect_status(response: Any, expected: int, operation: str) -> None:
    """Assert *response* carries the *expected* HTTP status."""
    actual = getattr(response, "status_code", None)
    if actual != expected:
        raise AssertionError(f"{operation}: expected status {expected}, got {actual}")


def expect_present(value: Any, operation: str) -> None:
    """Assert *value* is not ``None``."""
    if value is None:
        raise AssertionError(f"{operation}: expected a response body, got none")


class Harness:
    """An ordered, dependency-checked sequence of scenarios.

    Args:
        scenarios: Scenarios in execution order.

    Raises:
        SuiteCompositionError: If a scenario requires a linked value that no
            earlier scenario produces, or two scenarios produce the same one.
    """

    def __init__(self, scenarios: Iterable[Scenario]) -> None:
        self._scenarios: tuple[Scenario, ...] = tuple(scenarios)
        self._validate()

    def _validate(self) -> None:
        producers: dict[str, str] = {}
        names: set[str] = set()
        for sc in self._scenarios:
            if sc.name in names:
                raise ValueError(f"Duplicate scenario name: {sc.name!r}")
            names.add(sc.name)

            for link in sc.requires:
                if link not in producers:
                    later = [o.name for o in self._scenarios if link in o.produces]
                    reason = (
                        f"produced later by '{later[0]}'"
                        if later
                        else "no scenario produces it"
                    )
                    raise SuiteCompositionError(sc.name, link, reason)
            for link in sc.produces:
                if link in producers:
                    raise SuiteCompositionError(
                        sc.name, link, f"already produced by '{producers[link]}'"
                    )
                producers[link] = sc.name

    @property
    def scenarios(self) -> tuple[Scenario, ...]:
        return self._scenarios

    def __len__(self) -> int:
        return len(self._scenarios)

    def __iter__(self):
        return iter(self._scenarios)

    def run_scenario(self, sc: Scenario, ctx: RunContext) -> ScenarioResult:
        """Run one scenario and report its outcome.

        Assertion and service errors become a ``failed`` result.
        A :class:`ClientConstructionError` additionally aborts the run, after
        which every scenario is reported failed without executing.
        """
        log = get_logger()

        if not ctx.gate.is_open:
            log.info("%s: skipped", sc.name)
            return ScenarioResult(sc.name, SKIPPED, ctx.gate.reason)
        if ctx.aborted:
            return ScenarioResult(sc.name, FAILED, f"Not run: {ctx.aborted}")

        t0 = time.monotonic()
        try:
            sc(ctx)
            for link in sc.produces:
                if not ctx.has_link(link):
                    raise AssertionError(f"did not produce linked value '{link}'")
        except ClientConstructionError as e:
            ctx.aborted = f"client construction failed: {e}"
            status, message = FAILED, str(e)
        except (AssertionError, MetricsRouterError, ValueError) as e:
            status, message = FAILED, str(e) or type(e).__name__
        except Exception as e:
            # Network errors from requests and anything unforeseen in a body
            status, message = FAILED, f"{type(e).__name__}: {e}"
        else:
            status, message = PASSED, ""
        elapsed = time.monotonic() - t0

        if status == FAILED:
            log.error("%s: failed after %.2fs: %s", sc.name, elapsed, message)
        else:
            log.info("%s: passed in %.2fs", sc.name, elapsed)
        return ScenarioResult(sc.name, status, message, elapsed)

    def run(self, ctx: RunContext) -> list[ScenarioResult]:
        """Run every scenario in order; one failure does not stop the rest."""
        return [self.run_scenario(sc, ctx) for sc in self._scenarios]


def summarize(results: Iterable[ScenarioResult]) -> dict[str, int]:
    """Count results by status."""
    counts = {PASSED: 0, FAILED: 0, SKIPPED: 0}
    for r in results:
        counts[r.status] = counts.get(r.status, 0) + 1
    return counts
