"""Shared operator state - thread-safe singleton for API clients and the registry."""

import threading
from dataclasses import dataclass, field

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from cluster_client import ManagementClient
from config import OperatorConfig
from ratelimit import ApiThrottle
from reconciler import NamespaceReconciler
from resources.cluster_registry import ClusterRegistry
from resources.project import ProjectResolver


@dataclass
class OperatorState:
    """Thread-safe operator state container.

    This class provides thread-safe access to shared operator resources:
    - Operator configuration
    - Management cluster client
    - Cluster registry
    - Namespace reconciler

    All handlers should use the global `state` instance rather than
    creating their own clients.
    """

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _config: OperatorConfig | None = field(default=None, repr=False)
    _throttle: ApiThrottle | None = field(default=None, repr=False)
    _management: ManagementClient | None = field(default=None, repr=False)
    _registry: ClusterRegistry | None = field(default=None, repr=False)
    _reconciler: NamespaceReconciler | None = field(default=None, repr=False)
    _k8s_configured: bool = field(default=False, repr=False)

    def _ensure_k8s_config(self) -> None:
        """Ensure Kubernetes configuration is loaded (must hold lock)."""
        if not self._k8s_configured:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
            self._k8s_configured = True

    def _get_config(self) -> OperatorConfig:
        """Load configuration once (must hold lock)."""
        if self._config is None:
            self._config = OperatorConfig.from_env()
        return self._config

    def _get_management(self) -> ManagementClient:
        """Create the management client once (must hold lock)."""
        if self._management is None:
            self._ensure_k8s_config()
            config = self._get_config()
            self._throttle = ApiThrottle(
                max_concurrent=config.max_concurrent_calls,
                requests_per_second=config.requests_per_second,
                burst=config.burst,
            )
            self._management = ManagementClient(
                config.local_cluster_id, k8s_client.ApiClient(), self._throttle
            )
        return self._management

    def _get_registry(self) -> ClusterRegistry:
        """Create the cluster registry once (must hold lock)."""
        if self._registry is None:
            management = self._get_management()
            self._registry = ClusterRegistry(
                management,
                local_cluster_id=self._get_config().local_cluster_id,
                throttle=self._throttle,
            )
        return self._registry

    def get_config(self) -> OperatorConfig:
        """Get the operator configuration (thread-safe)."""
        with self._lock:
            return self._get_config()

    def get_management_client(self) -> ManagementClient:
        """Get or create the management cluster client (thread-safe)."""
        with self._lock:
            return self._get_management()

    def get_registry(self) -> ClusterRegistry:
        """Get or create the cluster registry (thread-safe)."""
        with self._lock:
            return self._get_registry()

    def get_reconciler(self) -> NamespaceReconciler:
        """Get or create the namespace reconciler (thread-safe)."""
        with self._lock:
            if self._reconciler is None:
                config = self._get_config()
                management = self._get_management()
                creation_cluster = "" if config.targets_local_cluster else config.cluster_id
                resolver = ProjectResolver(
                    management,
                    local_cluster_id=config.local_cluster_id,
                    strategy=config.match_strategy,
                    auto_create=config.auto_create_projects,
                    cluster_id=creation_cluster,
                )
                self._reconciler = NamespaceReconciler(
                    management,
                    self._get_registry(),
                    resolver,
                    owner_label=config.owner_label,
                    cluster_id=config.cluster_id,
                    local_cluster_id=config.local_cluster_id,
                )
            return self._reconciler

    def close(self) -> None:
        """Stop the registry and close all connections."""
        with self._lock:
            if self._registry is not None:
                self._registry.close()
                self._registry = None
            if self._management is not None:
                self._management.close()
                self._management = None
            self._reconciler = None


# Global operator state singleton
state = OperatorState()


# Convenience functions
def get_config() -> OperatorConfig:
    """Get the shared operator configuration."""
    return state.get_config()


def get_registry() -> ClusterRegistry:
    """Get the shared cluster registry."""
    return state.get_registry()


def get_reconciler() -> NamespaceReconciler:
    """Get the shared namespace reconciler."""
    return state.get_reconciler()
