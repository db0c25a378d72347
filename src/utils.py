"""Utility functions for the namespace project operator."""

import re

from constants import CLUSTER_PROXY_PREFIX, MAX_PROJECT_ID_LENGTH


def sanitize_name(name: str) -> str:
    """Convert a free-text project name to a safe resource name fragment.

    Lowercases, turns spaces, dots and underscores into hyphens, removes any
    characters that aren't alphanumeric or hyphens and collapses repeats.

    Example: 'My App!! Team' -> 'my-app-team'
    """
    sanitized = name.lower()
    sanitized = re.sub(r"[ _.]", "-", sanitized)
    sanitized = re.sub(r"[^a-z0-9-]", "", sanitized)
    sanitized = re.sub(r"-+", "-", sanitized)  # collapse multiple hyphens
    return sanitized.strip("-")


def make_project_id(project_name: str) -> str:
    """Generate a Rancher style project id for a display name.

    Example: 'My App!! Team' -> 'p-my-app-team'
    """
    project_id = sanitize_name(project_name)
    if not project_id.startswith("p-"):
        project_id = f"p-{project_id}"
    if len(project_id) > MAX_PROJECT_ID_LENGTH:
        project_id = project_id[:MAX_PROJECT_ID_LENGTH].rstrip("-")
    return project_id


def extract_cluster_id(project_id: str) -> str:
    """Return the cluster part of a '<cluster-id>:<project-id>' identifier.

    Identifiers without a colon have no cluster part and yield ''.
    """
    cluster_id, sep, _ = project_id.partition(":")
    return cluster_id if sep else ""


def build_proxy_host(base_host: str, cluster_id: str) -> str:
    """Rewrite the management host into the proxy endpoint of a cluster.

    Example: 'https://rancher.example.com' + 'c-1234' ->
    'https://rancher.example.com/k8s/clusters/c-1234'

    Applying it to a host that already proxies a cluster replaces that
    cluster instead of nesting the prefix.
    """
    host = base_host.rstrip("/")
    prefix_at = host.find(CLUSTER_PROXY_PREFIX)
    if prefix_at != -1:
        host = host[:prefix_at]
    return f"{host}{CLUSTER_PROXY_PREFIX}{cluster_id}"
