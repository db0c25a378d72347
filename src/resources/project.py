"""Project resolution and creation."""

import logging
from collections.abc import Iterable, Iterator

from kubernetes.client import ApiException

from cluster_client import ManagementClient
from constants import CLUSTER_ID_LABEL, PROJECT_NAME_LABEL
from metrics import PROJECTS_CREATED
from models import ConfigurationError, FieldTypeError, MatchStrategy, ProjectView
from utils import make_project_id

logger = logging.getLogger(__name__)

# Key substrings that mark a label or annotation as a name field
_NAME_LABEL_HINTS = ("name", "project")
_NAME_ANNOTATION_HINTS = ("name", "display")

# Match ranks, lower is stronger
RANK_DISPLAY_NAME = 0
RANK_NAMED_LABEL = 1
RANK_LABEL = 2
RANK_NAMED_ANNOTATION = 3
RANK_ANNOTATION = 4


def _rank_values(
    values: dict[str, str], name: str, hints: Iterable[str], named_rank: int, rank: int
) -> int | None:
    best: int | None = None
    for key, value in values.items():
        if value.lower() != name.lower():
            continue
        lowered_key = key.lower()
        if any(hint in lowered_key for hint in hints):
            return named_rank
        best = rank
    return best


def match_rank(project: ProjectView, name: str) -> int | None:
    """Return how strongly a project matches a name, or None.

    Checked in order: spec.displayName, label values, annotation values,
    all case-insensitive. Values under keys that look like name fields
    rank above other values of the same kind.
    """
    if project.display_name is not None and project.display_name.lower() == name.lower():
        return RANK_DISPLAY_NAME

    rank = _rank_values(project.labels, name, _NAME_LABEL_HINTS, RANK_NAMED_LABEL, RANK_LABEL)
    if rank is not None:
        return rank

    return _rank_values(
        project.annotations, name, _NAME_ANNOTATION_HINTS, RANK_NAMED_ANNOTATION, RANK_ANNOTATION
    )


def project_matches(project: ProjectView, name: str) -> bool:
    """Check if a project matches the given name."""
    return match_rank(project, name) is not None


def select_project(
    projects: Iterable[ProjectView],
    name: str,
    strategy: MatchStrategy = MatchStrategy.FIRST,
) -> ProjectView | None:
    """Pick the project for a name among candidates.

    FIRST returns the first match in iteration order. RANKED returns the
    strongest match, ties broken by identifier.
    """
    if strategy == MatchStrategy.FIRST:
        for project in projects:
            if project_matches(project, name):
                return project
        return None

    ranked = []
    for project in projects:
        rank = match_rank(project, name)
        if rank is not None:
            ranked.append((rank, project.name, project))
    if not ranked:
        return None
    ranked.sort(key=lambda entry: (entry[0], entry[1]))
    if len(ranked) > 1:
        logger.info(
            "Name %r matches %d projects, picked %s",
            name,
            len(ranked),
            ranked[0][1],
        )
    return ranked[0][2]


def _project_views(items: Iterable[dict]) -> Iterator[ProjectView]:
    """Yield a view per listed project, skipping malformed ones."""
    for item in items:
        try:
            yield ProjectView.from_dict(item)
        except FieldTypeError as e:
            metadata = item.get("metadata") if isinstance(item, dict) else None
            name = metadata.get("name") if isinstance(metadata, dict) else None
            logger.warning("Skipping malformed project %s: %s", name or "<unnamed>", e)


def discover_cluster_id(management: ManagementClient, configured: str = "") -> str:
    """Determine the cluster new projects belong to.

    Tries, in order: the configured cluster id, the namespace of an existing
    project, the cluster prefix of an existing project's name, and the
    cluster id label of an assigned namespace.

    Raises:
        ConfigurationError: if no source yields a cluster id
    """
    if configured:
        return configured

    try:
        items = management.list_projects(limit=1)
    except ApiException as e:
        logger.debug("Unable to list projects for cluster id discovery: %s", e)
        items = []
    if items:
        project = ProjectView.from_dict(items[0])
        if project.namespace:
            logger.debug("Found cluster id %s from project namespace", project.namespace)
            return project.namespace
        if project.cluster_id:
            logger.debug("Found cluster id %s from project name", project.cluster_id)
            return project.cluster_id

    try:
        namespaces = management.list_namespaces(limit=10)
    except ApiException as e:
        logger.debug("Unable to list namespaces for cluster id discovery: %s", e)
        namespaces = []
    for namespace in namespaces:
        cluster_id = (namespace.metadata.labels or {}).get(CLUSTER_ID_LABEL, "")
        if cluster_id:
            logger.debug("Found cluster id %s from namespace %s", cluster_id, namespace.metadata.name)
            return cluster_id

    raise ConfigurationError("unable to determine cluster id from existing resources")


class ProjectResolver:
    """Find the Project a free-text name refers to."""

    def __init__(
        self,
        management: ManagementClient,
        local_cluster_id: str = "local",
        strategy: MatchStrategy = MatchStrategy.FIRST,
        auto_create: bool = False,
        cluster_id: str = "",
    ) -> None:
        """Initialize the resolver.

        Args:
            management: Client for the management cluster
            local_cluster_id: Hint value meaning "no specific cluster"
            strategy: How to pick between several matching projects
            auto_create: Create a project when nothing matches
            cluster_id: Cluster new projects are created in; discovered
                from existing resources when empty
        """
        self._management = management
        self._local_cluster_id = local_cluster_id
        self._strategy = strategy
        self._auto_create = auto_create
        self._cluster_id = cluster_id

    def _is_concrete(self, cluster_hint: str) -> bool:
        return bool(cluster_hint) and cluster_hint != self._local_cluster_id

    def find(self, name: str, cluster_hint: str = "") -> ProjectView | None:
        """Search existing projects for a name. API errors propagate."""
        scope = cluster_hint if self._is_concrete(cluster_hint) else None
        logger.debug("Searching for project %r (scope: %s)", name, scope or "all clusters")

        items = self._management.list_projects(namespace=scope)
        project = select_project(_project_views(items), name, self._strategy)
        if project is not None:
            logger.info("Found project %s for name %r", project.name, name)
        return project

    def resolve(self, name: str, cluster_hint: str = "") -> ProjectView | None:
        """Return the project for a name, creating it if enabled.

        Returns:
            The matching project, or None if there is none and creation is
            disabled
        """
        project = self.find(name, cluster_hint)
        if project is not None or not self._auto_create:
            return project

        configured = cluster_hint if self._is_concrete(cluster_hint) else self._cluster_id
        cluster_id = discover_cluster_id(self._management, configured)
        return self.create(name, cluster_id)

    def create(self, name: str, cluster_id: str) -> ProjectView:
        """Create a project for a display name, unless one already exists.

        Raises:
            ConfigurationError: if cluster_id is empty
        """
        if not cluster_id:
            raise ConfigurationError("cluster id is empty, cannot create project")

        full_name = f"{cluster_id}:{make_project_id(name)}"

        # Another worker may have created it since we listed
        existing = self._get(cluster_id, full_name)
        if existing is not None:
            logger.info("Project %s already exists for name %r", full_name, name)
            return existing

        project = ProjectView(
            name=full_name,
            namespace=cluster_id,
            display_name=name,
            cluster_name=cluster_id,
            labels={PROJECT_NAME_LABEL: name},
            annotations={PROJECT_NAME_LABEL: name},
        )
        try:
            created = self._management.create_project(cluster_id, project.to_dict())
        except ApiException as e:
            if e.status == 409:
                existing = self._get(cluster_id, full_name)
                if existing is not None:
                    logger.info("Project %s was created concurrently", full_name)
                    return existing
            raise

        PROJECTS_CREATED.inc()
        logger.info(
            "Created project %s (display name %r) in cluster %s", full_name, name, cluster_id
        )
        return ProjectView.from_dict(created)

    def _get(self, cluster_id: str, name: str) -> ProjectView | None:
        try:
            return ProjectView.from_dict(self._management.get_project(cluster_id, name))
        except ApiException as e:
            if e.status == 404:
                return None
            raise
