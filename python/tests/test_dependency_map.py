"""Tests for flattening resolved graphs and recovering unresolved dependencies."""

import logging
from unittest.mock import Mock

import pytest

from conftest import FakeGraphResolver, dep, make_context, node
from depversions.config import CheckConfiguration
from depversions.dependency_map import DependencyMapBuilder, ResolutionFailure, ResolutionResult
from depversions.errors import UnresolvedDependencyError
from depversions.models import DependencyNode, Project
from depversions.qualified_name import QualifiedName
from depversions.scopes import ScopeLimitingFilter

A = QualifiedName("g", "a")
B = QualifiedName("g", "b")
C = QualifiedName("g", "c")


@pytest.fixture
def layered_project():
    """app -> a (compile) -> c, app -> b (test)."""
    direct_a = dep("g:a:1.0")
    direct_b = dep("g:b:1.0", scope="test")
    project = Project("com.example", "app", "1.0", dependencies=[direct_a, direct_b])
    root = DependencyNode(artifact=project.artifact)
    root.add_child(node(direct_a, children=[node(dep("g:c:2.0"))]))
    root.add_child(node(direct_b))
    return project, root


def build_map(project, resolver, scope="test", configuration=None, reactor_projects=None):
    context = make_context(resolver, project, configuration, reactor_projects=reactor_projects)
    return DependencyMapBuilder(context).map_project(project, ScopeLimitingFilter.compute_dependency_scope(scope))


class TestDependencyMapBuilder:
    """Tests for the identity maps of a project."""

    def test_direct_and_all_dependencies(self, layered_project):
        project, root = layered_project
        dependency_map = build_map(project, FakeGraphResolver(root))

        assert set(dependency_map.direct_dependencies) == {A, B}
        assert set(dependency_map.all_dependencies) == {A, B, C}
        assert dependency_map.all_dependencies[C].version == "2.0"

    def test_scope_filter_prunes_subtrees(self, layered_project):
        project, root = layered_project
        dependency_map = build_map(project, FakeGraphResolver(root), scope="compile")

        assert set(dependency_map.direct_dependencies) == {A}
        assert set(dependency_map.all_dependencies) == {A, C}

    def test_direct_node_wins_over_deeper_node(self):
        direct_a = dep("g:a:1.0")
        direct_b = dep("g:b:1.0")
        project = Project("com.example", "app", "1.0", dependencies=[direct_b, direct_a])
        root = DependencyNode(artifact=project.artifact)
        root.add_child(node(direct_b, children=[node(dep("g:a:0.5"))]))
        root.add_child(node(direct_a))

        dependency_map = build_map(project, FakeGraphResolver(root))

        assert dependency_map.all_dependencies[A].version == "1.0"

    def test_shared_nodes_are_visited_once(self):
        shared = node(dep("g:c:1.0"))
        direct_a = dep("g:a:1.0")
        direct_b = dep("g:b:1.0")
        project = Project("com.example", "app", "1.0", dependencies=[direct_a, direct_b])
        root = DependencyNode(artifact=project.artifact)
        root.add_child(node(direct_a, children=[shared]))
        root.add_child(node(direct_b, children=[shared]))

        assert set(build_map(project, FakeGraphResolver(root)).all_dependencies) == {A, B, C}

    def test_requires_context(self):
        with pytest.raises(ValueError):
            DependencyMapBuilder(None)


class TestRecovery:
    """Tests for the recovery policies for unresolved dependencies."""

    def test_unresolved_dependencies_raise(self, layered_project):
        project, root = layered_project
        missing = dep("g:missing:1.0")
        resolver = FakeGraphResolver(root, project_unresolved=[missing])

        with pytest.raises(UnresolvedDependencyError) as exc_info:
            build_map(project, resolver)

        assert exc_info.value.unresolved_dependencies == [missing]
        assert "g:missing:1.0" in str(exc_info.value)

    def test_reactor_dependencies_are_recovered(self, layered_project):
        project, root = layered_project
        sibling = Project("com.example", "lib", "1.0")
        resolver = FakeGraphResolver(root, project_unresolved=[dep("com.example:lib:1.0")])

        dependency_map = build_map(project, resolver, reactor_projects=[project, sibling])

        assert set(dependency_map.direct_dependencies) == {A, B}

    def test_reactor_version_must_match(self, layered_project):
        project, root = layered_project
        sibling = Project("com.example", "lib", "2.0")
        resolver = FakeGraphResolver(root, project_unresolved=[dep("com.example:lib:1.0")])

        with pytest.raises(UnresolvedDependencyError):
            build_map(project, resolver, reactor_projects=[sibling])

    def test_system_dependencies_are_recovered(self, layered_project):
        project, root = layered_project
        resolver = FakeGraphResolver(root, project_unresolved=[dep("g:tools:1.0", scope="system")])

        build_map(project, resolver)

    def test_system_dependencies_can_fail(self, layered_project):
        project, root = layered_project
        resolver = FakeGraphResolver(root, project_unresolved=[dep("g:tools:1.0", scope="system")])

        with pytest.raises(UnresolvedDependencyError):
            build_map(project, resolver, configuration=CheckConfiguration(unresolved_system_artifacts_fail_build=True))

    def test_legacy_repository_failure_only_warns(self, layered_project, caplog):
        """Test that failures of a legacy repository are logged instead of raised."""
        project, root = layered_project
        result = ResolutionResult(graph=root, unresolved=[dep("g:old:1.0")],
                                  cause=ResolutionFailure("layout not supported", "legacy"))
        resolver = Mock()
        resolver.resolve.return_value = result

        with caplog.at_level(logging.WARNING, logger="depversions.dependency_map"):
            dependency_map = build_map(project, resolver)

        assert set(dependency_map.direct_dependencies) == {A, B}
        assert "Could not access a legacy repository" in caplog.text
        assert "layout not supported" in caplog.text

    def test_recover_moves_dependencies(self):
        system = dep("g:tools:1.0", scope="system")
        other = dep("g:x:1.0")
        result = ResolutionResult(graph=DependencyNode(artifact=system.artifact), unresolved=[system, other])

        result.recover([system])

        assert result.unresolved == [other]
        assert result.recovered == [system]
