"""Registry of per-cluster API clients.

The registry maps member cluster ids to clients that reach the cluster
through the management server's proxy. It is rebuilt wholesale on a fixed
interval; readers always see either the previous complete snapshot or the
new complete snapshot.
"""

import datetime
import logging
import threading
import time
from collections.abc import Callable, Mapping
from types import MappingProxyType

from cluster_client import ClusterClient, ManagementClient
from metrics import REGISTRY_CLUSTERS, REGISTRY_REFRESH_DURATION, REGISTRY_REFRESH_TOTAL
from models import ClusterDescriptor, FieldTypeError
from ratelimit import ApiThrottle

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], ClusterClient]


class ClusterRegistry:
    """Concurrently readable mapping of cluster id to ClusterClient.

    Only ``lookup`` is meant for reconciliation code. ``refresh`` rebuilds
    the mapping; ``start``/``stop`` own the background refresh thread.
    """

    def __init__(
        self,
        management: ManagementClient,
        local_cluster_id: str = "local",
        client_factory: ClientFactory | None = None,
        throttle: ApiThrottle | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            management: Client for the management cluster
            local_cluster_id: Id of the management cluster, never registered
            client_factory: Builds a client for a cluster id. Defaults to a
                proxy client derived from the management connection.
            throttle: Throttle shared by all member cluster clients
        """
        self._management = management
        self._local_cluster_id = local_cluster_id
        self._client_factory = client_factory or self._proxy_client
        self._throttle = throttle

        self._lock = threading.Lock()
        self._clients: Mapping[str, ClusterClient] = MappingProxyType({})
        self._last_refresh: datetime.datetime | None = None

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def _proxy_client(self, cluster_id: str) -> ClusterClient:
        return ClusterClient.for_member_cluster(
            cluster_id, self._management.api_client, self._throttle
        )

    # -------------------------------------------------------------------------
    # Read path
    # -------------------------------------------------------------------------

    def lookup(self, cluster_id: str) -> ClusterClient | None:
        """Return the client registered for a cluster, or None."""
        with self._lock:
            clients = self._clients
        return clients.get(cluster_id)

    def cluster_ids(self) -> list[str]:
        """Return the ids in the current snapshot, sorted."""
        with self._lock:
            clients = self._clients
        return sorted(clients)

    @property
    def last_refresh(self) -> datetime.datetime | None:
        """Time of the last successful refresh."""
        with self._lock:
            return self._last_refresh

    # -------------------------------------------------------------------------
    # Refresh path
    # -------------------------------------------------------------------------

    def _build_snapshot(self, descriptors: list[dict]) -> dict[str, ClusterClient]:
        """Build clients for every ready member cluster.

        Runs without holding the lock; it performs no writes to shared state.
        """
        candidates: dict[str, ClusterClient] = {}
        for item in descriptors:
            try:
                descriptor = ClusterDescriptor.from_dict(item)
            except FieldTypeError as e:
                logger.warning("Skipping malformed cluster descriptor: %s", e)
                continue

            if descriptor.cluster_id == self._local_cluster_id:
                continue
            if not descriptor.is_ready:
                logger.debug("Cluster %s is not ready, skipping", descriptor.cluster_id)
                continue

            try:
                candidates[descriptor.cluster_id] = self._client_factory(descriptor.cluster_id)
            except Exception as e:
                logger.error(
                    "Failed to build client for cluster %s: %s", descriptor.cluster_id, e
                )
        return candidates

    def refresh(self) -> bool:
        """Rebuild the registry from the management server.

        If listing clusters fails the previous snapshot stays in place.

        Returns:
            True if a new snapshot was installed
        """
        start_time = time.monotonic()
        try:
            descriptors = self._management.list_clusters()
        except Exception as e:
            logger.error("Failed to list clusters, keeping previous registry: %s", e)
            REGISTRY_REFRESH_TOTAL.labels(status="error").inc()
            return False

        candidates = self._build_snapshot(descriptors)
        snapshot = MappingProxyType(candidates)

        with self._lock:
            self._clients = snapshot
            self._last_refresh = datetime.datetime.now(datetime.UTC)

        REGISTRY_CLUSTERS.set(len(snapshot))
        REGISTRY_REFRESH_TOTAL.labels(status="success").inc()
        REGISTRY_REFRESH_DURATION.observe(time.monotonic() - start_time)
        logger.info(
            "Cluster registry refreshed: %d cluster(s) %s",
            len(snapshot),
            ", ".join(sorted(snapshot)) or "-",
        )
        return True

    # -------------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------------

    def _run(self, interval: float) -> None:
        while not self._stop_event.wait(interval):
            try:
                self.refresh()
            except Exception:
                logger.exception("Unexpected error while refreshing cluster registry")
        logger.info("Cluster registry refresh loop stopped")

    def start(self, interval: float = 300) -> None:
        """Refresh now, then keep refreshing every ``interval`` seconds."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("cluster registry refresh loop already running")

        self._stop_event.clear()
        self.refresh()
        self._thread = threading.Thread(
            target=self._run,
            args=(interval,),
            name="cluster-registry-refresh",
            daemon=True,
        )
        self._thread.start()
        logger.info("Cluster registry refresh loop started (interval %ss)", interval)

    def stop(self, timeout: float | None = 10) -> None:
        """Stop the refresh loop and wait for the thread to exit."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def close(self) -> None:
        """Stop refreshing and drop all member cluster clients."""
        self.stop()
        with self._lock:
            clients = self._clients
            self._clients = MappingProxyType({})
        for cluster_client in clients.values():
            cluster_client.close()
