"""Namespace project assignment."""

import logging
from typing import Any

from cluster_client import ClusterClient
from constants import CLUSTER_ID_LABEL, PROJECT_ID_ANNOTATION, PROJECT_ID_LABEL
from models import NamespaceView

logger = logging.getLogger(__name__)


def build_assignment_patch(
    namespace: NamespaceView, project_id: str, cluster_id: str
) -> dict[str, Any]:
    """Build a merge patch assigning a namespace to a project.

    Only the operator's keys are present; labels and annotations not named
    here are left alone by the server. The resourceVersion, when known,
    makes the server reject the patch if the namespace changed meanwhile.
    """
    labels = {PROJECT_ID_LABEL: project_id}
    if cluster_id:
        labels[CLUSTER_ID_LABEL] = cluster_id

    metadata: dict[str, Any] = {
        "labels": labels,
        "annotations": {PROJECT_ID_ANNOTATION: project_id},
    }
    if namespace.resource_version:
        metadata["resourceVersion"] = namespace.resource_version
    return {"metadata": metadata}


def apply_project_assignment(
    client: ClusterClient,
    namespace: NamespaceView,
    project_id: str,
    cluster_id: str,
) -> None:
    """Patch project labels and annotation onto a namespace.

    API errors are raised unchanged; there is no retry here.
    """
    patch = build_assignment_patch(namespace, project_id, cluster_id)
    logger.debug(
        "Patching namespace %s on cluster %s: %s",
        namespace.name,
        client.cluster_id or "local",
        patch,
    )
    client.patch_namespace(namespace.name, patch)
