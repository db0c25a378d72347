"""Domain models for the namespace project operator.

This module defines typed views over the schema-less objects returned by the
Kubernetes and Rancher management APIs. Accessors fail explicitly on
malformed data instead of silently defaulting.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from utils import extract_cluster_id


# =============================================================================
# Exceptions
# =============================================================================


class OperatorError(Exception):
    """Base exception for operator errors."""

    pass


class ConfigurationError(OperatorError):
    """Invalid or missing configuration."""

    pass


class FieldTypeError(OperatorError):
    """An object field is present but holds an unexpected type."""

    pass


class ClusterUnavailableError(OperatorError):
    """No client is registered for the requested cluster."""

    pass


# =============================================================================
# Enums for constrained values
# =============================================================================


class ConditionStatus(Enum):
    """Kubernetes condition status."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ReconcileOutcome(Enum):
    """Terminal state reached by one reconciliation."""

    NOT_FOUND = "not_found"
    NO_OWNER = "no_owner"
    ALREADY_ASSIGNED = "already_assigned"
    NO_MATCH = "no_match"
    EMPTY_PROJECT_ID = "empty_project_id"
    ASSIGNED = "assigned"


class MatchStrategy(Enum):
    """How to choose between several Projects matching one name."""

    FIRST = "first"
    RANKED = "ranked"


# =============================================================================
# Validated accessors
# =============================================================================


_MISSING = object()


def nested_field(obj: Mapping[str, Any], *path: str, expected: type = str) -> Any:
    """Read a nested field from a dict-shaped object.

    Returns None if any step of the path is absent or null. Raises
    FieldTypeError if an intermediate step is not a mapping or the final
    value is not of the expected type.
    """
    current: Any = obj
    walked: list[str] = []
    for key in path:
        if not isinstance(current, Mapping):
            raise FieldTypeError(
                f"{'.'.join(walked) or '<root>'} is {type(current).__name__}, "
                "expected a mapping"
            )
        walked.append(key)
        current = current.get(key, _MISSING)
        if current is _MISSING or current is None:
            return None
    if not isinstance(current, expected):
        raise FieldTypeError(
            f"{'.'.join(path)} is {type(current).__name__}, "
            f"expected {expected.__name__}"
        )
    return current


def string_map(value: Any, where: str) -> dict[str, str]:
    """Validate a labels/annotations mapping. None means empty."""
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise FieldTypeError(f"{where} is {type(value).__name__}, expected a mapping")
    for key, item in value.items():
        if not isinstance(key, str) or not isinstance(item, str):
            raise FieldTypeError(f"{where} entry {key!r} is not a string pair")
    return dict(value)


# =============================================================================
# Object views
# =============================================================================


@dataclass(frozen=True)
class NamespaceView:
    """The parts of a Namespace the operator reads."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    resource_version: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NamespaceView":
        """Create from a raw Kubernetes object body."""
        name = nested_field(data, "metadata", "name")
        if not name:
            raise FieldTypeError("metadata.name is missing")
        return cls(
            name=name,
            labels=string_map(
                nested_field(data, "metadata", "labels", expected=Mapping),
                "metadata.labels",
            ),
            annotations=string_map(
                nested_field(data, "metadata", "annotations", expected=Mapping),
                "metadata.annotations",
            ),
            resource_version=nested_field(data, "metadata", "resourceVersion"),
        )

    @classmethod
    def from_api(cls, namespace: Any) -> "NamespaceView":
        """Create from a kubernetes.client.V1Namespace."""
        metadata = namespace.metadata
        return cls(
            name=metadata.name,
            labels=string_map(metadata.labels, "metadata.labels"),
            annotations=string_map(metadata.annotations, "metadata.annotations"),
            resource_version=metadata.resource_version,
        )

    def label(self, key: str) -> str:
        """Return a label value, '' when unset."""
        return self.labels.get(key, "")


@dataclass(frozen=True)
class ProjectView:
    """A Rancher Project object.

    The identifier is the object name, '<cluster-id>:<project-id>'.
    """

    name: str
    namespace: str = ""
    display_name: str | None = None
    cluster_name: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProjectView":
        """Create from a management API object."""
        return cls(
            name=nested_field(data, "metadata", "name") or "",
            namespace=nested_field(data, "metadata", "namespace") or "",
            display_name=nested_field(data, "spec", "displayName"),
            cluster_name=nested_field(data, "spec", "clusterName"),
            labels=string_map(
                nested_field(data, "metadata", "labels", expected=Mapping),
                "metadata.labels",
            ),
            annotations=string_map(
                nested_field(data, "metadata", "annotations", expected=Mapping),
                "metadata.annotations",
            ),
        )

    @property
    def cluster_id(self) -> str:
        """Cluster part of the identifier, '' if it has none."""
        return extract_cluster_id(self.name)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a management API object body."""
        spec: dict[str, str] = {}
        if self.display_name is not None:
            spec["displayName"] = self.display_name
        if self.cluster_name is not None:
            spec["clusterName"] = self.cluster_name
        metadata: dict[str, Any] = {"name": self.name}
        if self.namespace:
            metadata["namespace"] = self.namespace
        if self.labels:
            metadata["labels"] = dict(self.labels)
        if self.annotations:
            metadata["annotations"] = dict(self.annotations)
        return {"metadata": metadata, "spec": spec}


@dataclass(frozen=True)
class Condition:
    """Kubernetes-style condition, reduced to what readiness needs."""

    type: str
    status: ConditionStatus

    @classmethod
    def from_dict(cls, data: Any) -> "Condition":
        """Create from a status.conditions entry."""
        if not isinstance(data, Mapping):
            raise FieldTypeError(f"condition is {type(data).__name__}, expected a mapping")
        status_str = nested_field(data, "status") or ""
        try:
            status = ConditionStatus(status_str)
        except ValueError:
            status = ConditionStatus.UNKNOWN
        return cls(type=nested_field(data, "type") or "", status=status)


@dataclass(frozen=True)
class ClusterDescriptor:
    """A member cluster known to the management server."""

    cluster_id: str
    conditions: tuple[Condition, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClusterDescriptor":
        """Create from a management API object.

        Missing status or conditions is not an error; the descriptor simply
        reports not ready.
        """
        cluster_id = nested_field(data, "metadata", "name")
        if not cluster_id:
            raise FieldTypeError("metadata.name is missing")
        raw_conditions = nested_field(data, "status", "conditions", expected=list) or []
        return cls(
            cluster_id=cluster_id,
            conditions=tuple(Condition.from_dict(c) for c in raw_conditions),
        )

    @property
    def is_ready(self) -> bool:
        """True when a Ready condition has status True."""
        return any(
            c.type == "Ready" and c.status == ConditionStatus.TRUE
            for c in self.conditions
        )


@dataclass(frozen=True)
class ReconcileResult:
    """Result of one reconciliation."""

    outcome: ReconcileOutcome
    namespace: str
    project_id: str = ""
    cluster_id: str = ""

    @property
    def patched(self) -> bool:
        return self.outcome == ReconcileOutcome.ASSIGNED
