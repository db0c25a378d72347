"""Namespace reconciliation.

One call to ``NamespaceReconciler.reconcile`` moves a namespace towards
being assigned to the Project its owner label names. Every exit is either a
no-op that is safe to repeat or an exception the caller should retry.
"""

import logging

from kubernetes.client import ApiException

from cluster_client import ClusterClient, ManagementClient
from constants import PROJECT_ID_LABEL
from models import (
    ClusterUnavailableError,
    NamespaceView,
    ReconcileOutcome,
    ReconcileResult,
)
from resources.cluster_registry import ClusterRegistry
from resources.namespace import apply_project_assignment
from resources.project import ProjectResolver

logger = logging.getLogger(__name__)


class NamespaceReconciler:
    """Assign namespaces to Projects based on their owner label."""

    def __init__(
        self,
        management: ManagementClient,
        registry: ClusterRegistry,
        resolver: ProjectResolver,
        owner_label: str = "appOwner",
        cluster_id: str = "",
        local_cluster_id: str = "local",
    ) -> None:
        self._management = management
        self._registry = registry
        self._resolver = resolver
        self._owner_label = owner_label
        self._cluster_id = cluster_id
        self._local_cluster_id = local_cluster_id

    def detect_cluster(self, name: str) -> tuple[str, ClusterClient]:
        """Return the cluster id and client that own a namespace.

        Namespaces of the management cluster use the management client and
        report an empty cluster id. For a member cluster the client comes
        from the registry.

        Raises:
            ClusterUnavailableError: if the member cluster has no client
        """
        if self._cluster_id in ("", self._local_cluster_id):
            return "", self._management

        client = self._registry.lookup(self._cluster_id)
        if client is None:
            raise ClusterUnavailableError(
                f"no client registered for cluster {self._cluster_id} "
                f"(namespace {name})"
            )
        return self._cluster_id, client

    def reconcile(self, name: str) -> ReconcileResult:
        """Reconcile one namespace by name.

        Raises:
            ApiException: on any API failure other than the namespace being gone
            OperatorError: if the cluster or a needed cluster id is unavailable
        """
        cluster_id, client = self.detect_cluster(name)

        # 1. Fetch
        try:
            namespace = NamespaceView.from_api(client.read_namespace(name))
        except ApiException as e:
            if e.status == 404:
                logger.debug("Namespace %s not found, nothing to do", name)
                return ReconcileResult(ReconcileOutcome.NOT_FOUND, name)
            raise

        # 2. Owner label
        owner = namespace.label(self._owner_label)
        if not owner:
            logger.debug("Namespace %s has no %s label, skipping", name, self._owner_label)
            return ReconcileResult(ReconcileOutcome.NO_OWNER, name)

        # 3. Already assigned
        assigned = namespace.label(PROJECT_ID_LABEL)
        if assigned:
            logger.debug("Namespace %s already assigned to project %s", name, assigned)
            return ReconcileResult(
                ReconcileOutcome.ALREADY_ASSIGNED, name, project_id=assigned
            )

        logger.info("Processing namespace %s with %s=%s", name, self._owner_label, owner)

        # 4. Resolve
        project = self._resolver.resolve(owner, cluster_id)
        if project is None:
            logger.info("No project matches %r for namespace %s", owner, name)
            return ReconcileResult(ReconcileOutcome.NO_MATCH, name)

        # 5. Cluster id from the project identifier, else the detected one
        project_id = project.name
        project_cluster_id = project.cluster_id or cluster_id

        # 6. Empty identifier
        if not project_id:
            logger.info("Project for %r has an empty id, skipping namespace %s", owner, name)
            return ReconcileResult(ReconcileOutcome.EMPTY_PROJECT_ID, name)

        # 7. Patch
        apply_project_assignment(client, namespace, project_id, project_cluster_id)
        logger.info(
            "Assigned namespace %s to project %s (cluster %s)",
            name,
            project_id,
            project_cluster_id or "-",
        )
        return ReconcileResult(
            ReconcileOutcome.ASSIGNED,
            name,
            project_id=project_id,
            cluster_id=project_cluster_id,
        )
