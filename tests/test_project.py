"""Tests for project resolution and creation."""

import pytest
from kubernetes.client import ApiException

from conftest import make_namespace, make_project, not_found
from models import ConfigurationError, MatchStrategy, ProjectView
from resources.project import (
    ProjectResolver,
    discover_cluster_id,
    match_rank,
    project_matches,
    select_project,
)


def _view(**kwargs) -> ProjectView:
    return ProjectView.from_dict(make_project(**kwargs))


class TestProjectMatches:
    """Tests for the match predicate."""

    @pytest.mark.parametrize("name", ["DevOps", "devops", "DEVOPS"])
    def test_display_name_case_insensitive(self, name):
        project = _view(name="c-1:p-2", display_name="DevOps")

        assert project_matches(project, name) is True

    def test_label_value(self):
        project = _view(name="c-1:p-2", labels={"team": "Payments"})

        assert project_matches(project, "payments") is True

    def test_annotation_value(self):
        project = _view(name="c-1:p-2", annotations={"owner": "Payments"})

        assert project_matches(project, "PAYMENTS") is True

    def test_label_key_does_not_match(self):
        project = _view(name="c-1:p-2", labels={"payments": "true"})

        assert project_matches(project, "payments") is False

    def test_no_match(self):
        project = _view(
            name="c-1:p-2",
            display_name="DevOps",
            labels={"team": "platform"},
            annotations={"owner": "sre"},
        )

        assert project_matches(project, "Ghost") is False

    def test_partial_value_does_not_match(self):
        project = _view(name="c-1:p-2", display_name="DevOps Team")

        assert project_matches(project, "DevOps") is False

    def test_only_simple_case_folding(self):
        project = _view(name="c-1:p-2", display_name="stra\u00dfe")

        assert project_matches(project, "STRASSE") is False
        assert project_matches(project, "STRA\u00dfE") is True


class TestMatchRank:
    """Tests for match ranking."""

    def test_display_name_strongest(self):
        project = _view(name="c-1:p-2", display_name="x", labels={"name": "x"})

        assert match_rank(project, "x") == 0

    def test_named_label_above_plain_label(self):
        named = _view(name="a", labels={"field.cattle.io/projectName": "x"})
        plain = _view(name="b", labels={"team": "x"})

        assert match_rank(named, "x") < match_rank(plain, "x")

    def test_labels_above_annotations(self):
        label = _view(name="a", labels={"team": "x"})
        annotation = _view(name="b", annotations={"display-name": "x"})

        assert match_rank(label, "x") < match_rank(annotation, "x")

    def test_no_match_is_none(self):
        assert match_rank(_view(name="a"), "x") is None


class TestSelectProject:
    """Tests for select_project."""

    def _candidates(self):
        return [
            _view(name="c-2:p-9", annotations={"note": "devops"}),
            _view(name="c-1:p-5", display_name="DevOps"),
            _view(name="c-1:p-3", display_name="devops"),
        ]

    def test_first_strategy_uses_list_order(self):
        project = select_project(self._candidates(), "DevOps", MatchStrategy.FIRST)

        assert project.name == "c-2:p-9"

    def test_ranked_strategy_prefers_display_name_then_identifier(self):
        project = select_project(self._candidates(), "DevOps", MatchStrategy.RANKED)

        assert project.name == "c-1:p-3"

    def test_ranked_strategy_is_order_independent(self):
        candidates = self._candidates()
        forward = select_project(candidates, "DevOps", MatchStrategy.RANKED)
        backward = select_project(list(reversed(candidates)), "DevOps", MatchStrategy.RANKED)

        assert forward == backward

    def test_no_candidates(self):
        assert select_project([], "DevOps") is None
        assert select_project([], "DevOps", MatchStrategy.RANKED) is None


class TestProjectResolver:
    """Tests for ProjectResolver.resolve."""

    def test_finds_by_display_name(self, management):
        management.list_projects.return_value = [
            make_project("c-1:p-1", display_name="Payments"),
            make_project("c-1:p-2", display_name="devops"),
        ]
        resolver = ProjectResolver(management)

        project = resolver.resolve("DevOps")

        assert project.name == "c-1:p-2"
        management.list_projects.assert_called_once_with(namespace=None)

    def test_no_match_returns_none(self, management):
        management.list_projects.return_value = [make_project("c-1:p-2", display_name="devops")]
        resolver = ProjectResolver(management)

        assert resolver.resolve("Ghost") is None
        management.create_project.assert_not_called()

    def test_concrete_hint_scopes_listing(self, management):
        resolver = ProjectResolver(management)

        resolver.resolve("DevOps", cluster_hint="c-1")

        management.list_projects.assert_called_once_with(namespace="c-1")

    def test_local_hint_lists_everything(self, management):
        resolver = ProjectResolver(management, local_cluster_id="local")

        resolver.resolve("DevOps", cluster_hint="local")

        management.list_projects.assert_called_once_with(namespace=None)

    @pytest.mark.parametrize("strategy", list(MatchStrategy))
    def test_malformed_project_is_skipped(self, management, strategy):
        management.list_projects.return_value = [
            make_project("c-1:p-1", display_name=42),
            make_project("c-1:p-2", display_name="DevOps"),
        ]
        resolver = ProjectResolver(management, strategy=strategy)

        project = resolver.resolve("DevOps")

        assert project.name == "c-1:p-2"

    def test_list_error_propagates(self, management):
        management.list_projects.side_effect = ApiException(status=500, reason="boom")
        resolver = ProjectResolver(management)

        with pytest.raises(ApiException):
            resolver.resolve("DevOps")


class TestProjectCreation:
    """Tests for the optional project creation path."""

    def test_creates_missing_project(self, management):
        management.create_project.side_effect = lambda namespace, body: body
        resolver = ProjectResolver(management, auto_create=True, cluster_id="c-1")

        project = resolver.resolve("My App!! Team")

        assert project.name == "c-1:p-my-app-team"
        assert project.display_name == "My App!! Team"
        namespace, body = management.create_project.call_args.args
        assert namespace == "c-1"
        assert body["metadata"]["name"] == "c-1:p-my-app-team"
        assert body["metadata"]["labels"] == {"field.cattle.io/projectName": "My App!! Team"}
        assert body["spec"] == {"displayName": "My App!! Team", "clusterName": "c-1"}

    def test_returns_existing_generated_project(self, management):
        management.get_project.side_effect = None
        management.get_project.return_value = make_project(
            "c-1:p-devops", display_name="Dev Ops", namespace="c-1"
        )
        resolver = ProjectResolver(management, auto_create=True, cluster_id="c-1")

        project = resolver.resolve("devops")

        assert project.name == "c-1:p-devops"
        management.get_project.assert_called_once_with("c-1", "c-1:p-devops")
        management.create_project.assert_not_called()

    def test_conflict_rereads_project(self, management):
        existing = make_project("c-1:p-devops", display_name="DevOps", namespace="c-1")
        management.get_project.side_effect = [not_found(), existing]
        management.create_project.side_effect = ApiException(status=409, reason="Conflict")
        resolver = ProjectResolver(management, auto_create=True, cluster_id="c-1")

        project = resolver.resolve("DevOps")

        assert project.name == "c-1:p-devops"

    def test_create_error_propagates(self, management):
        management.create_project.side_effect = ApiException(status=403, reason="Forbidden")
        resolver = ProjectResolver(management, auto_create=True, cluster_id="c-1")

        with pytest.raises(ApiException):
            resolver.resolve("DevOps")

    def test_hint_used_as_creation_cluster(self, management):
        management.create_project.side_effect = lambda namespace, body: body
        resolver = ProjectResolver(management, auto_create=True)

        project = resolver.resolve("DevOps", cluster_hint="c-7")

        assert project.name == "c-7:p-devops"

    def test_undeterminable_cluster_raises(self, management):
        resolver = ProjectResolver(management, auto_create=True)

        with pytest.raises(ConfigurationError):
            resolver.resolve("DevOps")
        management.create_project.assert_not_called()

    def test_create_requires_cluster_id(self, management):
        resolver = ProjectResolver(management, auto_create=True)

        with pytest.raises(ConfigurationError):
            resolver.create("DevOps", "")


class TestDiscoverClusterId:
    """Tests for discover_cluster_id."""

    def test_configured_wins(self, management):
        assert discover_cluster_id(management, "c-9") == "c-9"
        management.list_projects.assert_not_called()

    def test_from_project_namespace(self, management):
        management.list_projects.return_value = [make_project("p-1", namespace="c-3")]

        assert discover_cluster_id(management) == "c-3"
        management.list_projects.assert_called_once_with(limit=1)

    def test_from_project_name(self, management):
        management.list_projects.return_value = [make_project("c-4:p-1")]

        assert discover_cluster_id(management) == "c-4"

    def test_from_namespace_label(self, management):
        management.list_namespaces.return_value = [
            make_namespace("default"),
            make_namespace("team-a", labels={"field.cattle.io/clusterId": "c-5"}),
        ]

        assert discover_cluster_id(management) == "c-5"
        management.list_namespaces.assert_called_once_with(limit=10)

    def test_list_failures_fall_through(self, management):
        management.list_projects.side_effect = ApiException(status=403, reason="Forbidden")
        management.list_namespaces.return_value = [
            make_namespace("team-a", labels={"field.cattle.io/clusterId": "c-5"}),
        ]

        assert discover_cluster_id(management) == "c-5"

    def test_nothing_found_raises(self, management):
        with pytest.raises(ConfigurationError):
            discover_cluster_id(management)
