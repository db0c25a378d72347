"""Pytest fixtures for operator tests."""

from typing import Any
from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException, V1Namespace, V1ObjectMeta

from cluster_client import ClusterClient, ManagementClient


def make_namespace(
    name: str,
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    resource_version: str = "100",
) -> V1Namespace:
    """Build a V1Namespace as returned by CoreV1Api.read_namespace."""
    return V1Namespace(
        metadata=V1ObjectMeta(
            name=name,
            labels=labels,
            annotations=annotations,
            resource_version=resource_version,
        )
    )


def make_project(
    name: str,
    display_name: str | None = None,
    namespace: str = "",
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Build a Project object as returned by the management API."""
    metadata: dict[str, Any] = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    if labels is not None:
        metadata["labels"] = labels
    if annotations is not None:
        metadata["annotations"] = annotations
    spec: dict[str, Any] = {}
    if display_name is not None:
        spec["displayName"] = display_name
    return {"metadata": metadata, "spec": spec}


def make_cluster(name: str, ready: bool | None = True) -> dict[str, Any]:
    """Build a Cluster descriptor; ready=None leaves out the status."""
    cluster: dict[str, Any] = {"metadata": {"name": name}}
    if ready is not None:
        cluster["status"] = {
            "conditions": [
                {"type": "Provisioned", "status": "True"},
                {"type": "Ready", "status": "True" if ready else "False"},
            ]
        }
    return cluster


def not_found() -> ApiException:
    return ApiException(status=404, reason="Not Found")


@pytest.fixture
def management() -> MagicMock:
    """Management client with no projects, clusters or namespaces."""
    mock = MagicMock(spec=ManagementClient)
    mock.cluster_id = "local"
    mock.list_projects.return_value = []
    mock.list_clusters.return_value = []
    mock.list_namespaces.return_value = []
    mock.get_project.side_effect = not_found()
    return mock


@pytest.fixture
def member_client() -> MagicMock:
    """Client of a member cluster."""
    mock = MagicMock(spec=ClusterClient)
    mock.cluster_id = "c-1"
    return mock
