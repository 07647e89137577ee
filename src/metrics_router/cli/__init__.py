"""Command-line interface for metrics_router.

Commands:
    metrics-router run       Run the live scenario suite against the service
    metrics-router config    Show the properties resolved from configuration
    metrics-router version   Show version information

Example:
    $ metrics-router run --config metrics_router_v3.env
    passed   Client initialization
    passed   CreateTarget - Create a target
    ...
    14 passed, 0 failed, 0 skipped

    $ metrics-router config --config metrics_router_v3.env
    URL = https://us-south.metrics-router.cloud.ibm.com/api/v3
    AUTH_TYPE = iam
    APIKEY = ********
"""

import argparse
import os
import sys
from typing import Sequence

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ABORTED = 2

DEFAULT_CONFIG_FILE = "metrics_router_v3.env"
CONFIG_FILE_ENV = "METRICS_ROUTER_CONFIG"

_SECRET_MARKERS = ("APIKEY", "TOKEN", "SECRET", "PASSWORD")


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the metrics-router CLI.

    Args:
        argv: Command-line arguments. If None, uses sys.argv[1:].

    Returns:
        Exit code: 0 when nothing failed, 1 when a scenario failed, 2 when
        the run was aborted because the client could not be built.
    """
    parser = argparse.ArgumentParser(
        prog="metrics-router",
        description="Metrics Router v3 SDK tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-v",
        action="store_true",
        help="Show version information",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    default_config = os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE)

    run_parser = subparsers.add_parser(
        "run",
        help="Run the live scenario suite",
    )
    run_parser.add_argument(
        "--config", "-c",
        default=default_config,
        help=f"Credentials file (default: ${CONFIG_FILE_ENV} or {DEFAULT_CONFIG_FILE})",
    )
    run_parser.add_argument(
        "--service-name",
        default=None,
        help="Service name used as the property prefix (default: metrics_router)",
    )
    run_parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Do not send debug logs to stderr",
    )

    config_parser = subparsers.add_parser(
        "config",
        help="Show resolved service properties",
    )
    config_parser.add_argument(
        "--config", "-c",
        default=default_config,
        help=f"Credentials file (default: ${CONFIG_FILE_ENV} or {DEFAULT_CONFIG_FILE})",
    )
    config_parser.add_argument(
        "--service-name",
        default=None,
        help="Service name used as the property prefix (default: metrics_router)",
    )

    subparsers.add_parser(
        "version",
        help="Show version information",
    )

    args = parser.parse_args(argv)

    if args.version or args.command == "version":
        return _cmd_version()

    if args.command == "run":
        return _cmd_run(
            config=args.config,
            service_name=args.service_name,
            debug=not args.quiet,
        )

    if args.command == "config":
        return _cmd_config(config=args.config, service_name=args.service_name)

    parser.print_help()
    return EXIT_OK


def _cmd_version() -> int:
    """Show version information."""
    from .. import __version__

    print(f"metrics-router {__version__}")
    return EXIT_OK


def _cmd_run(config: str, service_name: str | None, debug: bool) -> int:
    """Run the suite and print one line per scenario."""
    from functools import partial

    from ..client import DEFAULT_SERVICE_NAME
    from ..harness import FAILED, RunContext, initialize_client, summarize
    from ..scenarios import build_suite

    ctx = RunContext.prepare(
        config,
        service_name or DEFAULT_SERVICE_NAME,
        client_factory=partial(initialize_client, debug=debug),
    )
    results = build_suite().run(ctx)

    for result in results:
        line = f"{result.status:<8} {result.name}"
        if result.message:
            line += f"  ({result.message})"
        print(line)

    counts = summarize(results)
    print(f"{counts['passed']} passed, {counts['failed']} failed, {counts['skipped']} skipped")

    if ctx.aborted:
        return EXIT_ABORTED
    if any(r.status == FAILED for r in results):
        return EXIT_FAILED
    return EXIT_OK


def _mask(key: str, value: str) -> str:
    if any(marker in key for marker in _SECRET_MARKERS) and value:
        return "********"
    return value


def _cmd_config(config: str, service_name: str | None) -> int:
    """Print resolved properties with secrets masked."""
    from ..client import DEFAULT_SERVICE_NAME
    from ..harness import load_configuration

    props = load_configuration(config, service_name or DEFAULT_SERVICE_NAME)
    if props is None:
        print(f"No usable configuration found in {config}", file=sys.stderr)
        return EXIT_FAILED

    for key in sorted(props):
        print(f"{key} = {_mask(key, props[key])}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
