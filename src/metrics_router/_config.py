"""External configuration for service clients.

Service properties are read from a credentials file and, failing that, from
environment variables. Both use the same naming: each key is the upper-cased
service name, an underscore, and the property name::

    METRICS_ROUTER_URL=https://us-south.metrics-router.cloud.ibm.com/api/v3
    METRICS_ROUTER_AUTH_TYPE=iam
    METRICS_ROUTER_APIKEY=...

The credentials file is located through ``IBM_CREDENTIALS_FILE``; without it
``ibm-credentials.env`` is looked up in the working directory and then in the
home directory. Returned property names have the service prefix stripped
(``URL``, ``AUTH_TYPE``, ``APIKEY``).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from ._exceptions import ConfigurationError
from ._logging import get_logger

CREDENTIALS_FILE_ENV = "IBM_CREDENTIALS_FILE"
DEFAULT_CREDENTIALS_FILENAME = "ibm-credentials.env"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def service_prefix(service_name: str) -> str:
    """Return the key prefix for *service_name* (``metrics-router`` -> ``METRICS_ROUTER_``)."""
    return service_name.upper().replace("-", "_") + "_"


def parse_credentials(text: str) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines.

    Blank lines and ``#`` comments are skipped, an optional ``export``
    keyword is accepted, and matching single or double quotes around a value
    are stripped. Lines without ``=`` are ignored.
    """
    values: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        if key:
            values[key] = value
    return values


def read_credentials_file(path: str | os.PathLike[str]) -> dict[str, str]:
    """Read and parse a credentials file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ConfigurationError: If the file exists but cannot be read.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Credentials file not found: {p}")
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Unable to read credentials file {p}: {e}") from e
    return parse_credentials(text)


def find_credentials_file(environ: Mapping[str, str] | None = None) -> Path | None:
    """Locate the credentials file, or return ``None`` if there isn't one."""
    env = os.environ if environ is None else environ

    explicit = env.get(CREDENTIALS_FILE_ENV, "")
    if explicit:
        p = Path(explicit).expanduser()
        return p if p.is_file() else None

    for candidate in (
        Path.cwd() / DEFAULT_CREDENTIALS_FILENAME,
        Path.home() / DEFAULT_CREDENTIALS_FILENAME,
    ):
        if candidate.is_file():
            return candidate
    return None


def _filter_properties(values: Mapping[str, str], service_name: str) -> dict[str, str]:
    prefix = service_prefix(service_name)
    return {
        key[len(prefix):]: value
        for key, value in values.items()
        if key.startswith(prefix) and len(key) > len(prefix)
    }


def get_service_properties(
    service_name: str,
    *,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Return the configured properties for *service_name*.

    The credentials file wins when it holds any property for the service;
    otherwise environment variables are used. An empty dict means no
    configuration was found.

    Args:
        service_name: Service name as used in property keys.
        environ: Environment mapping to read instead of ``os.environ``.

    Raises:
        ConfigurationError: If the credentials file exists but is unreadable.
    """
    env = os.environ if environ is None else environ
    log = get_logger()

    path = find_credentials_file(env)
    if path is not None:
        props = _filter_properties(read_credentials_file(path), service_name)
        if props:
            log.debug("Loaded %d properties for %s from %s", len(props), service_name, path)
            return props

    props = _filter_properties(env, service_name)
    if props:
        log.debug("Loaded %d properties for %s from environment", len(props), service_name)
    return props


def parse_bool(value: str | None, default: bool = False) -> bool:
    """Interpret a configuration string as a boolean."""
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def parse_int(value: str | None, default: int, *, name: str) -> int:
    """Interpret a configuration string as an integer.

    Raises:
        ConfigurationError: If *value* is set but not an integer.
    """
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Expected an integer, got {value!r}", property_name=name
        ) from e


def parse_float(value: str | None, default: float, *, name: str) -> float:
    """Interpret a configuration string as a float.

    Raises:
        ConfigurationError: If *value* is set but not a number.
    """
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Expected a number, got {value!r}", property_name=name
        ) from e
