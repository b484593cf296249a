"""Flattening of resolved dependency graphs into identity -> node maps."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .errors import UnresolvedDependencyError
from .models import (
    MANAGED_EXCLUSIONS, MANAGED_OPTIONAL, MANAGED_PROPERTIES, MANAGED_SCOPE, MANAGED_VERSION,
    Dependency, DependencyNode, Project,
)
from .qualified_name import QualifiedName
from .scopes import SYSTEM, DependencyFilter

logger = logging.getLogger(__name__)

LEGACY_CONTENT_TYPE = "legacy"

MANAGED_BIT_NAMES = (
    (MANAGED_VERSION, "Version"),
    (MANAGED_SCOPE, "Scope"),
    (MANAGED_OPTIONAL, "Optional"),
    (MANAGED_PROPERTIES, "Properties"),
    (MANAGED_EXCLUSIONS, "Exclusions"),
)


@dataclass
class ResolutionFailure:
    """Why a resolution was incomplete, and the content type of the repository that failed."""
    message: str
    repository_content_type: Optional[str] = None


@dataclass
class ResolutionResult:
    """
    Outcome of resolving a graph.

    Attributes:
        graph: Root node of the resolved graph
        resolved: Dependencies that could be resolved
        recovered: Unresolved dependencies accepted by a recovery policy
        unresolved: Dependencies that could not be resolved
        cause: Why resolution failed, if it did
    """
    graph: DependencyNode
    resolved: List[Dependency] = field(default_factory=list)
    recovered: List[Dependency] = field(default_factory=list)
    unresolved: List[Dependency] = field(default_factory=list)
    cause: Optional[ResolutionFailure] = None

    def recover(self, dependencies: List[Dependency]) -> None:
        for dependency in dependencies:
            self.unresolved.remove(dependency)
            self.recovered.append(dependency)


def recover_reactor_dependencies(result: ResolutionResult, reactor_projects: List[Project]) -> List[Dependency]:
    """Treat unresolved dependencies built by the current reactor as resolved."""
    reactor_keys: Set[Tuple[str, str, str]] = {p.key for p in reactor_projects}
    recovered = [d for d in result.unresolved
                 if (d.artifact.group_id, d.artifact.artifact_id, d.artifact.version) in reactor_keys]
    result.recover(recovered)
    return recovered


def recover_system_dependencies(result: ResolutionResult) -> List[Dependency]:
    """Treat unresolved system scoped dependencies as resolved."""
    recovered = [d for d in result.unresolved if d.scope == SYSTEM]
    result.recover(recovered)
    return recovered


def is_legacy_repository_failure(result: ResolutionResult) -> bool:
    return result.cause is not None and result.cause.repository_content_type == LEGACY_CONTENT_TYPE


@dataclass
class DependencyMap:
    """
    Attributes:
        all_dependencies: Every accepted node of the graph, by identity
        direct_dependencies: Accepted first level nodes, by identity
    """
    all_dependencies: Dict[QualifiedName, DependencyNode]
    direct_dependencies: Dict[QualifiedName, DependencyNode]


class DependencyMapBuilder:
    """Builds dependency maps for projects and dependency nodes through the context's resolver."""

    def __init__(self, context):
        if context is None:
            raise ValueError("context is None")
        self.context = context

    def map_dependency(self, node: DependencyNode, scope_filter: DependencyFilter) -> DependencyMap:
        """
        Map the dependencies of a single dependency node.

        Raises:
            ModelBuildingError: The resolver can not read the node's model
            UnresolvedDependencyError: Dependencies could not be resolved
        """
        result = self.context.resolver.resolve(node, scope_filter)
        return self._map_result(result, scope_filter)

    def map_project(self, project: Project, scope_filter: DependencyFilter) -> DependencyMap:
        """
        Map all dependencies of a project.

        Raises:
            UnresolvedDependencyError: Dependencies could not be resolved
        """
        result = self.context.resolver.resolve(project, scope_filter)
        return self._map_result(result, scope_filter)

    def _map_result(self, result: ResolutionResult, scope_filter: DependencyFilter) -> DependencyMap:
        if result.unresolved:
            self._recover(result)

        all_dependencies: Dict[QualifiedName, DependencyNode] = {}
        direct_dependencies = self._load_dependency_tree(result.graph, scope_filter, all_dependencies, set())
        all_dependencies.update(direct_dependencies)
        return DependencyMap(all_dependencies, direct_dependencies)

    def _recover(self, result: ResolutionResult) -> None:
        recovered = recover_reactor_dependencies(result, self.context.reactor_projects)
        if recovered:
            logger.debug(f"Resolved {len(recovered)} dependencies from the reactor")

        if not self.context.unresolved_system_artifacts_fail_build:
            recovered = recover_system_dependencies(result)
            if recovered:
                logger.debug(f"Ignoring {len(recovered)} unresolved system dependencies")

        if not result.unresolved:
            return

        unresolved = [str(d) for d in result.unresolved]
        if is_legacy_repository_failure(result):
            logger.warning(f"Could not access a legacy repository for artifacts: {unresolved}; "
                           f"Reason: {result.cause.message}")
        else:
            raise UnresolvedDependencyError(f"Could not resolve the following dependencies: {unresolved}", result)

    def _load_dependency_tree(self, node: DependencyNode, scope_filter: DependencyFilter,
                              all_dependencies: Dict[QualifiedName, DependencyNode],
                              visited: Set[int]) -> Dict[QualifiedName, DependencyNode]:
        visited.add(id(node))
        children: Dict[QualifiedName, DependencyNode] = {}

        for child in node.children:
            if child.managed_bits:
                for bit, label in MANAGED_BIT_NAMES:
                    if child.managed_bits & bit:
                        logger.debug(f"{child.artifact} -> Managed {label}!")

            if not scope_filter.accept(child):
                continue

            children[QualifiedName.from_node(child)] = child
            if id(child) in visited:
                continue
            for name, descendant in self._load_dependency_tree(child, scope_filter, all_dependencies, visited).items():
                all_dependencies.setdefault(name, descendant)

        return children
