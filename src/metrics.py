"""Prometheus metrics for the namespace project operator."""

from prometheus_client import Counter, Histogram, Gauge, Info

from models import ReconcileOutcome

# Reconciliation metrics
RECONCILE_TOTAL = Counter(
    "namespace_project_operator_reconcile_total",
    "Total number of namespace reconciliations by outcome",
    ["outcome"],
)

RECONCILE_DURATION = Histogram(
    "namespace_project_operator_reconcile_duration_seconds",
    "Time spent in namespace reconciliation",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

RECONCILE_IN_PROGRESS = Gauge(
    "namespace_project_operator_reconcile_in_progress",
    "Number of reconciliations currently in progress",
)

# Cluster registry metrics
REGISTRY_REFRESH_TOTAL = Counter(
    "namespace_project_operator_registry_refresh_total",
    "Total number of cluster registry refreshes",
    ["status"],
)

REGISTRY_REFRESH_DURATION = Histogram(
    "namespace_project_operator_registry_refresh_duration_seconds",
    "Time spent rebuilding the cluster registry",
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

REGISTRY_CLUSTERS = Gauge(
    "namespace_project_operator_registry_clusters",
    "Number of member clusters with a registered client",
)

# Project metrics
PROJECTS_CREATED = Counter(
    "namespace_project_operator_projects_created_total",
    "Total number of Projects created by the operator",
)

API_THROTTLE_WAIT_SECONDS = Histogram(
    "namespace_project_operator_api_throttle_wait_seconds",
    "Time spent waiting for an API request slot",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

# Operator info
OPERATOR_INFO = Info(
    "namespace_project_operator",
    "Information about the namespace project operator",
)

ERROR_OUTCOME = "error"


def set_operator_info(version: str, local_cluster: str) -> None:
    """Set operator info labels."""
    OPERATOR_INFO.info({"version": version, "local_cluster": local_cluster})


def init_metrics() -> None:
    """Initialize all metrics with zero values.

    Prometheus metrics with labels don't appear until used.
    This ensures all metrics are visible immediately at startup.
    """
    for outcome in ReconcileOutcome:
        RECONCILE_TOTAL.labels(outcome=outcome.value)
    RECONCILE_TOTAL.labels(outcome=ERROR_OUTCOME)
    RECONCILE_IN_PROGRESS.set(0)

    for status in ["success", "error"]:
        REGISTRY_REFRESH_TOTAL.labels(status=status)
    REGISTRY_CLUSTERS.set(0)
