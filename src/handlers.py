"""Kopf handlers assigning Namespaces to Rancher Projects."""

import logging
import sys
import time
from pathlib import Path
from typing import Any

# Add src directory to path for imports when run as script by Kopf
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import kopf
from kubernetes import client as k8s_client
from prometheus_client import start_http_server
from urllib3.exceptions import HTTPError

from constants import OPERATOR_PREFIX
from metrics import (
    ERROR_OUTCOME,
    RECONCILE_DURATION,
    RECONCILE_IN_PROGRESS,
    RECONCILE_TOTAL,
    init_metrics,
    set_operator_info,
)
from models import FieldTypeError, OperatorError, ReconcileResult
from state import get_config, get_reconciler, get_registry, state

logger = logging.getLogger(__name__)

# Operator version
OPERATOR_VERSION = "0.1.0"


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure operator settings and start the cluster registry."""
    config = get_config()

    # Reduce logging noise
    settings.posting.level = logging.WARNING
    # Keep kopf's bookkeeping under our own prefix on the namespaces
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=OPERATOR_PREFIX
    )
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(
        prefix=OPERATOR_PREFIX,
        key="last-handled-configuration",
    )

    # Start Prometheus metrics server
    try:
        start_http_server(config.metrics_port)
        logger.info("Prometheus metrics server started on port %d", config.metrics_port)
    except OSError as e:
        logger.warning(
            "Failed to start metrics server on port %d: %s", config.metrics_port, e
        )

    init_metrics()
    set_operator_info(OPERATOR_VERSION, config.local_cluster_id)

    get_registry().start(config.refresh_interval)

    logger.info(
        "Namespace project operator started (version %s, owner label %s)",
        OPERATOR_VERSION,
        config.owner_label,
    )


@kopf.on.cleanup()
def cleanup(**_: Any) -> None:
    """Clean up resources on operator shutdown."""
    logger.info("Namespace project operator shutting down")
    state.close()


def reconcile_namespace(name: str, body: kopf.Body | None = None) -> ReconcileResult:
    """Run one reconciliation and translate failures for kopf.

    Failures become kopf.TemporaryError so kopf retries later; malformed
    objects become kopf.PermanentError.
    """
    config = get_config()
    start_time = time.monotonic()
    RECONCILE_IN_PROGRESS.inc()
    try:
        result = get_reconciler().reconcile(name)
    except FieldTypeError as e:
        logger.error("Namespace %s has malformed metadata: %s", name, e)
        RECONCILE_TOTAL.labels(outcome=ERROR_OUTCOME).inc()
        raise kopf.PermanentError(f"Malformed namespace {name}: {e}")
    except (k8s_client.ApiException, HTTPError, OperatorError) as e:
        logger.error(
            "Failed to reconcile namespace %s (cluster %s): %s",
            name,
            config.cluster_id or config.local_cluster_id,
            e,
        )
        RECONCILE_TOTAL.labels(outcome=ERROR_OUTCOME).inc()
        if body is not None:
            kopf.warn(body, reason="ProjectAssignmentFailed", message=str(e)[:200])
        raise kopf.TemporaryError(
            f"Reconciliation failed: {e}", delay=config.retry_delay
        )
    finally:
        RECONCILE_IN_PROGRESS.dec()
        RECONCILE_DURATION.observe(time.monotonic() - start_time)

    RECONCILE_TOTAL.labels(outcome=result.outcome.value).inc()
    if result.patched:
        if body is not None:
            kopf.info(
                body,
                reason="ProjectAssigned",
                message=f"Assigned to project {result.project_id}",
            )
    return result


@kopf.on.resume("v1", "namespaces")
@kopf.on.create("v1", "namespaces")
def namespace_created(name: str, body: kopf.Body, **_: Any) -> None:
    """Handle new namespaces and namespaces present at operator start."""
    reconcile_namespace(name, body)


@kopf.on.update("v1", "namespaces", field="metadata.labels")
def namespace_labels_changed(name: str, body: kopf.Body, **_: Any) -> None:
    """Handle label changes, e.g. an owner label added later."""
    reconcile_namespace(name, body)


def main() -> None:
    """Entry point for running the operator."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Kopf will be run via the CLI, but this allows direct invocation for testing
    logger.info("Starting namespace project operator...")
    logger.info("Use 'kopf run src/handlers.py --all-namespaces' to run the operator")
    sys.exit(0)


if __name__ == "__main__":
    main()
