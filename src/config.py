"""Operator configuration loaded from environment variables."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from constants import DEFAULT_LOCAL_CLUSTER_ID, DEFAULT_OWNER_LABEL
from models import ConfigurationError, MatchStrategy

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _get_int(env: Mapping[str, str], key: str, default: int, minimum: int = 0) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigurationError(f"{key} must be >= {minimum}, got {value}")
    return value


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigurationError(f"{key} must not be negative, got {value}")
    return value


def _get_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class OperatorConfig:
    """Runtime settings of the operator.

    Attributes:
        owner_label: Namespace label holding the wanted project name
        cluster_id: Cluster id of the watched namespaces ('' for the
            management cluster itself)
        local_cluster_id: Id of the management cluster, never proxied
        refresh_interval: Seconds between cluster registry refreshes
        auto_create_projects: Create a Project when no match is found
        match_strategy: How to pick between several matching Projects
        retry_delay: Seconds kopf waits before retrying a failed handler
        metrics_port: Port of the Prometheus exporter
        max_concurrent_calls: Concurrent API calls per process
        requests_per_second: Sustained API request rate
        burst: API requests allowed above the sustained rate
    """

    owner_label: str = DEFAULT_OWNER_LABEL
    cluster_id: str = ""
    local_cluster_id: str = DEFAULT_LOCAL_CLUSTER_ID
    refresh_interval: int = 300
    auto_create_projects: bool = False
    match_strategy: MatchStrategy = MatchStrategy.FIRST
    retry_delay: int = 30
    metrics_port: int = 9090
    max_concurrent_calls: int = 10
    requests_per_second: float = 20.0
    burst: int = 30

    @property
    def targets_local_cluster(self) -> bool:
        """True when watched namespaces live on the management cluster."""
        return self.cluster_id in ("", self.local_cluster_id)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "OperatorConfig":
        """Build the configuration from environment variables.

        Raises:
            ConfigurationError: if a variable holds an invalid value
        """
        if env is None:
            env = os.environ

        strategy_raw = env.get("MATCH_STRATEGY", MatchStrategy.FIRST.value).strip().lower()
        try:
            match_strategy = MatchStrategy(strategy_raw)
        except ValueError:
            raise ConfigurationError(
                f"MATCH_STRATEGY must be one of "
                f"{', '.join(s.value for s in MatchStrategy)}, got {strategy_raw!r}"
            ) from None

        owner_label = env.get("OWNER_LABEL", DEFAULT_OWNER_LABEL).strip()
        if not owner_label:
            raise ConfigurationError("OWNER_LABEL must not be empty")

        return cls(
            owner_label=owner_label,
            cluster_id=env.get("CLUSTER_ID", "").strip(),
            local_cluster_id=env.get("LOCAL_CLUSTER_ID", DEFAULT_LOCAL_CLUSTER_ID).strip()
            or DEFAULT_LOCAL_CLUSTER_ID,
            refresh_interval=_get_int(env, "REGISTRY_REFRESH_INTERVAL", 300, minimum=1),
            auto_create_projects=_get_bool(env, "PROJECT_AUTO_CREATE", False),
            match_strategy=match_strategy,
            retry_delay=_get_int(env, "RETRY_DELAY_SECONDS", 30),
            metrics_port=_get_int(env, "METRICS_PORT", 9090),
            max_concurrent_calls=_get_int(env, "API_MAX_CONCURRENT_CALLS", 10, minimum=1),
            requests_per_second=_get_float(env, "API_REQUESTS_PER_SECOND", 20.0),
            burst=_get_int(env, "API_BURST", 30, minimum=1),
        )
