"""Live integration tests against the Metrics Router service.

All tests in this package are marked with ``@pytest.mark.integration``
and are excluded from default ``pytest`` runs via ``addopts`` in
``pyproject.toml``.  Run them explicitly::

    pytest -m integration

Credentials come from ``metrics_router_v3.env`` at the repository root, or
from the file named by ``METRICS_ROUTER_CONFIG``.  Without one, every test
is skipped.
"""
