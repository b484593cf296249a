"""Shared helpers: in-memory graphs and a fake graph resolver."""

from typing import Dict, List, Optional, Set, Tuple

import pytest

from depversions.config import CheckConfiguration, ResolverDefinition
from depversions.context import Context
from depversions.dependency_map import ResolutionResult
from depversions.errors import ModelBuildingError
from depversions.graph_builder import GraphResolver
from depversions.models import MANAGED_VERSION, Artifact, Dependency, DependencyNode, Project
from depversions.strategies import StrategyCache, StrategyProvider
from depversions.versions import ComparableVersion


def dep(coordinates: str, scope: str = "compile", optional: bool = False, exclusions=()) -> Dependency:
    """Create a dependency from group:artifact:version."""
    group_id, artifact_id, version = coordinates.split(":")
    return Dependency(Artifact(group_id, artifact_id, version), scope, optional, tuple(exclusions))


def node(dependency: Dependency, managed_bits: int = 0, children: Optional[List[DependencyNode]] = None) -> DependencyNode:
    result = DependencyNode(artifact=dependency.artifact, dependency=dependency, managed_bits=managed_bits)
    for child in children or []:
        result.add_child(child)
    return result


class FakeGraphResolver(GraphResolver):
    """
    Serves a fixed project graph plus one graph per dependency coordinate.

    Node graphs map (group, artifact, version) to the dependencies of that
    artifact. Range requests resolve to the version itself unless listed in
    ranges.
    """

    def __init__(self, project_graph: DependencyNode,
                 node_graphs: Optional[Dict[Tuple[str, str, str], List[Dependency]]] = None,
                 unresolved: Optional[Dict[Tuple[str, str, str], List[Dependency]]] = None,
                 broken_models: Optional[Set[Tuple[str, str, str]]] = None,
                 ranges: Optional[Dict[Tuple[str, str], List[str]]] = None,
                 project_unresolved: Optional[List[Dependency]] = None):
        self.project_graph = project_graph
        self.node_graphs = node_graphs or {}
        self.unresolved = unresolved or {}
        self.broken_models = broken_models or set()
        self.ranges = ranges or {}
        self.project_unresolved = project_unresolved or []
        self.resolve_calls = 0

    def resolve(self, root, scope_filter):
        self.resolve_calls += 1
        if isinstance(root, Project):
            result = ResolutionResult(graph=self.project_graph)
            result.unresolved.extend(self.project_unresolved)
            return result

        key = (root.artifact.group_id, root.artifact.artifact_id, root.artifact.version)
        if key in self.broken_models:
            raise ModelBuildingError(f"Could not read model for {root.artifact}")

        graph = DependencyNode(artifact=root.artifact, dependency=root.dependency)
        result = ResolutionResult(graph=graph)
        for child in self.node_graphs.get(key, []):
            graph.add_child(DependencyNode(artifact=child.artifact, dependency=child))
            result.resolved.append(child)
        result.unresolved.extend(self.unresolved.get(key, []))
        return result

    def resolve_version_range(self, artifact):
        versions = self.ranges.get((artifact.group_id, artifact.artifact_id))
        if versions is None:
            return [ComparableVersion(artifact.version)]
        return [ComparableVersion(v) for v in versions]


def make_context(resolver: GraphResolver, project: Project, configuration: Optional[CheckConfiguration] = None,
                 provider: Optional[StrategyProvider] = None, reactor_projects=None) -> Context:
    configuration = configuration or CheckConfiguration()
    strategy_cache = StrategyCache(provider or StrategyProvider(), configuration.resolvers,
                                   configuration.default_strategy)
    return Context(configuration, strategy_cache, resolver, project, list(reactor_projects or []))


@pytest.fixture
def conflict_project():
    """
    com.example:app depends on g:a:1.0 (managed) and g:b:1.0; g:b asks for g:a:0.9.

    The project graph only contains g:a once, at the nearest position.
    """
    direct_a = dep("g:a:1.0")
    direct_b = dep("g:b:1.0")
    project = Project("com.example", "app", "1.0", dependencies=[direct_a, direct_b],
                      dependency_management={"g:a": direct_a})

    root = DependencyNode(artifact=project.artifact)
    root.add_child(node(direct_a, managed_bits=MANAGED_VERSION))
    root.add_child(node(direct_b))

    resolver = FakeGraphResolver(root, node_graphs={
        ("g", "b", "1.0"): [dep("g:a:0.9")],
    })
    return project, resolver


@pytest.fixture
def strict_strategy_configuration():
    """Configuration that checks g:a with a strategy accepting only the exact expected version."""
    return CheckConfiguration(resolvers=[ResolverDefinition.from_patterns("strict", ["g:a"])])
