"""Python SDK for the Metrics Router v3 API.

Provides ``MetricsRouterV3``, a client for managing metric routing targets,
routes and account settings, plus a conditional integration harness that
exercises every operation against a live service.

Examples:
    >>> import metrics_router
    >>> service = metrics_router.MetricsRouterV3.new_instance()
    >>> service.list_targets().result.targets
    [Target(id='...', name='my-mr-target', ...)]
"""

from ._auth import (
    Authenticator,
    BearerTokenAuthenticator,
    IamAuthenticator,
    NoAuthAuthenticator,
    get_authenticator,
)
from ._config import get_service_properties
from ._exceptions import (
    ApiException,
    ClientConstructionError,
    ConfigurationError,
    MetricsRouterError,
    MissingLinkError,
    SuiteCompositionError,
)
from ._logging import (
    LoggerProtocol,
    configure_logging,
    enable_debug_logging,
    get_logger,
    log_operation,
)
from ._service import BaseService, DetailedResponse, SDK_VERSION
from .client import (
    DEFAULT_SERVICE_NAME,
    DEFAULT_SERVICE_URL,
    MetricsRouterV3,
    get_service_url_for_region,
)
from .models import (
    InclusionFilter,
    Route,
    RouteCollection,
    Rule,
    RulePrototype,
    Settings,
    Target,
    TargetCollection,
    TargetReference,
    WarningReport,
    WriteStatus,
)

__version__ = SDK_VERSION
