"""Kubernetes client wrappers bound to one cluster.

The management cluster is reached directly; member clusters are reached
through the management server's proxy endpoint.
"""

import copy
import logging
from contextlib import nullcontext
from typing import Any

from kubernetes import client as k8s_client

from constants import (
    CLUSTER_PLURAL,
    MANAGEMENT_GROUP,
    MANAGEMENT_VERSION,
    PROJECT_PLURAL,
)
from ratelimit import ApiThrottle
from utils import build_proxy_host

logger = logging.getLogger(__name__)

MERGE_PATCH = "application/merge-patch+json"


class ClusterClient:
    """Namespace operations against a single cluster.

    Errors from the API are not wrapped: callers inspect
    kubernetes.client.ApiException themselves.
    """

    def __init__(
        self,
        cluster_id: str,
        api_client: k8s_client.ApiClient,
        throttle: ApiThrottle | None = None,
    ) -> None:
        self.cluster_id = cluster_id
        self.api_client = api_client
        self.core_api = k8s_client.CoreV1Api(api_client)
        self._throttle = throttle

    @classmethod
    def for_member_cluster(
        cls,
        cluster_id: str,
        management: k8s_client.ApiClient,
        throttle: ApiThrottle | None = None,
    ) -> "ClusterClient":
        """Build a client that reaches a member cluster via the proxy."""
        configuration = copy.deepcopy(management.configuration)
        configuration.host = build_proxy_host(configuration.host, cluster_id)
        logger.debug("Built client for cluster %s at %s", cluster_id, configuration.host)
        return cls(cluster_id, k8s_client.ApiClient(configuration), throttle)

    @property
    def host(self) -> str:
        return self.api_client.configuration.host

    def _throttled(self):
        if self._throttle is None:
            return nullcontext()
        return self._throttle.acquire()

    def read_namespace(self, name: str) -> k8s_client.V1Namespace:
        """Read a namespace; raises ApiException (status 404 when gone)."""
        with self._throttled():
            return self.core_api.read_namespace(name)

    def list_namespaces(self, limit: int | None = None) -> list[k8s_client.V1Namespace]:
        """List namespaces, optionally capped at ``limit`` items."""
        kwargs: dict[str, Any] = {}
        if limit:
            kwargs["limit"] = limit
        with self._throttled():
            return self.core_api.list_namespace(**kwargs).items

    def patch_namespace(self, name: str, body: dict[str, Any]) -> k8s_client.V1Namespace:
        """Apply a JSON merge patch to a namespace."""
        with self._throttled():
            return self.core_api.patch_namespace(name, body, _content_type=MERGE_PATCH)

    def close(self) -> None:
        self.api_client.close()

    def __repr__(self) -> str:
        return f"ClusterClient(cluster_id={self.cluster_id!r}, host={self.host!r})"


class ManagementClient(ClusterClient):
    """Client for the management cluster, which also serves Rancher objects."""

    def __init__(
        self,
        cluster_id: str,
        api_client: k8s_client.ApiClient,
        throttle: ApiThrottle | None = None,
    ) -> None:
        super().__init__(cluster_id, api_client, throttle)
        self.custom_api = k8s_client.CustomObjectsApi(api_client)

    # -------------------------------------------------------------------------
    # Project operations
    # -------------------------------------------------------------------------

    def list_projects(
        self, namespace: str | None = None, limit: int | None = None
    ) -> list[dict[str, Any]]:
        """List Project objects, cluster-wide or in one cluster namespace."""
        kwargs: dict[str, Any] = {}
        if limit:
            kwargs["limit"] = limit
        with self._throttled():
            if namespace:
                result = self.custom_api.list_namespaced_custom_object(
                    MANAGEMENT_GROUP, MANAGEMENT_VERSION, namespace, PROJECT_PLURAL, **kwargs
                )
            else:
                result = self.custom_api.list_cluster_custom_object(
                    MANAGEMENT_GROUP, MANAGEMENT_VERSION, PROJECT_PLURAL, **kwargs
                )
        return result.get("items") or []

    def get_project(self, namespace: str, name: str) -> dict[str, Any]:
        """Read one Project; raises ApiException (status 404 when absent)."""
        with self._throttled():
            return self.custom_api.get_namespaced_custom_object(
                MANAGEMENT_GROUP, MANAGEMENT_VERSION, namespace, PROJECT_PLURAL, name
            )

    def create_project(self, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        """Create a Project in the given cluster namespace."""
        body = {
            "apiVersion": f"{MANAGEMENT_GROUP}/{MANAGEMENT_VERSION}",
            "kind": "Project",
            **body,
        }
        with self._throttled():
            return self.custom_api.create_namespaced_custom_object(
                MANAGEMENT_GROUP, MANAGEMENT_VERSION, namespace, PROJECT_PLURAL, body
            )

    # -------------------------------------------------------------------------
    # Cluster operations
    # -------------------------------------------------------------------------

    def list_clusters(self) -> list[dict[str, Any]]:
        """List cluster descriptors."""
        with self._throttled():
            result = self.custom_api.list_cluster_custom_object(
                MANAGEMENT_GROUP, MANAGEMENT_VERSION, CLUSTER_PLURAL
            )
        return result.get("items") or []
