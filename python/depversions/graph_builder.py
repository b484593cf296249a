"""Graph resolution collaborators: turn projects and dependency nodes into resolved dependency graphs."""

import logging
import threading
from collections import defaultdict, deque
from typing import Deque, Dict, List, Optional, Set, Tuple, Union

from .api_client import DepsDevClient
from .dependency_map import ResolutionFailure, ResolutionResult
from .errors import ModelBuildingError, VersionRangeError
from .models import MANAGED_SCOPE, MANAGED_VERSION, Artifact, Dependency, DependencyNode, Exclusion, Project
from .scopes import COMPILE, PROVIDED, RUNTIME, SYSTEM, TEST, DependencyFilter
from .versions import ComparableVersion, VersionRange

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "default"


class GraphResolver:
    """Interface of the collaborator that resolves dependency graphs and version ranges."""

    def resolve(self, root: Union[Project, DependencyNode], scope_filter: DependencyFilter) -> ResolutionResult:
        """
        Resolve the dependency graph of a project or of a single dependency node.

        Raises:
            ModelBuildingError: The model of a dependency node can not be read
        """
        raise NotImplementedError

    def resolve_version_range(self, artifact: Artifact) -> List[ComparableVersion]:
        """Return the versions that satisfy the version specification of the artifact."""
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def derive_scope(parent_scope: str, dependency_scope: str = COMPILE) -> Optional[str]:
    """
    Scope of a transitive dependency, following Maven's scope table.

    Returns None if the dependency is not transitive at all.
    """
    if dependency_scope in (PROVIDED, TEST, SYSTEM):
        return None
    if parent_scope == COMPILE:
        return dependency_scope
    if parent_scope in (RUNTIME, TEST):
        return parent_scope
    if parent_scope == PROVIDED:
        return PROVIDED
    return None


def is_excluded(artifact: Artifact, exclusions: Tuple[Exclusion, ...]) -> bool:
    for exclusion in exclusions:
        if ((exclusion.group_id == "*" or exclusion.group_id == artifact.group_id)
                and (exclusion.artifact_id == "*" or exclusion.artifact_id == artifact.artifact_id)):
            return True
    return False


class _ParsedGraph:
    """Node coordinates and adjacency of a deps.dev dependency graph response."""

    def __init__(self, graph: Dict):
        self.coordinates: List[Tuple[str, str, str]] = []
        self.self_index = -1
        self.adjacency: Dict[int, List[int]] = defaultdict(list)

        for i, node in enumerate(graph.get("nodes", [])):
            version_key = node.get("versionKey", {})
            name = version_key.get("name", "")
            group_id, _, artifact_id = name.partition(":")
            self.coordinates.append((group_id, artifact_id, version_key.get("version", "")))
            if node.get("relation") == "SELF":
                self.self_index = i

        for edge in graph.get("edges", []):
            from_node = edge.get("fromNode")
            to_node = edge.get("toNode")
            if from_node is not None and to_node is not None:
                self.adjacency[from_node].append(to_node)


class DepsDevGraphResolver(GraphResolver):
    """
    Resolves dependency graphs from the deps.dev API.

    deps.dev returns the resolved transitive graph of a single artifact version.
    A project graph is built by merging the graphs of its direct dependencies
    with nearest-wins, applying the project's dependency management to
    transitive dependencies. Every artifact appears once in a graph, at the
    depth it is first reached.
    """

    def __init__(self, api_client: Optional[DepsDevClient] = None):
        """Initialize the resolver."""
        self.api_client = api_client or DepsDevClient()
        self._lock = threading.Lock()
        self._graphs: Dict[Tuple[str, str, str], Optional[_ParsedGraph]] = {}
        self._versions: Dict[Tuple[str, str], Optional[List[str]]] = {}

    def close(self) -> None:
        self.api_client.close()

    def _fetch_graph(self, artifact: Artifact) -> Optional[_ParsedGraph]:
        key = (artifact.group_id, artifact.artifact_id, artifact.version)
        with self._lock:
            if key in self._graphs:
                return self._graphs[key]

        graph = self.api_client.get_dependency_graph(artifact)
        parsed = _ParsedGraph(graph) if graph and graph.get("nodes") else None
        if parsed is None:
            logger.warning(f"Unknown component {artifact.name}:{artifact.version}")

        with self._lock:
            self._graphs.setdefault(key, parsed)
            return self._graphs[key]

    def _fetch_versions(self, group_id: str, artifact_id: str) -> List[str]:
        key = (group_id, artifact_id)
        with self._lock:
            if key in self._versions:
                return self._versions[key] or []

        versions = self.api_client.get_package_versions(group_id, artifact_id)
        with self._lock:
            self._versions.setdefault(key, versions)
            return self._versions[key] or []

    def resolve_version_range(self, artifact: Artifact) -> List[ComparableVersion]:
        """
        Resolve the version specification of an artifact.

        A plain version resolves to itself, a range to all published versions inside of it.

        Raises:
            VersionRangeError: The version specification is malformed
        """
        version_range = VersionRange.create(artifact.version)
        if not version_range.is_range:
            return [version_range.recommended_version]

        available = self._fetch_versions(artifact.group_id, artifact.artifact_id)
        matching = version_range.matching_versions(ComparableVersion(v) for v in available)
        logger.debug(f"Version range {version_range} of {artifact.name} matches {[str(v) for v in matching]}")
        return matching

    def _select_version(self, dependency: Dependency) -> Optional[str]:
        """Pick the version for a declared dependency; the highest match for a range."""
        version = dependency.artifact.version
        if not version:
            return None
        try:
            version_range = VersionRange.create(version)
        except VersionRangeError as e:
            logger.warning(f"Invalid version specification for {dependency}: {e}")
            return None
        if not version_range.is_range:
            return version
        matching = self.resolve_version_range(dependency.artifact)
        return str(matching[-1]) if matching else None

    def resolve(self, root: Union[Project, DependencyNode], scope_filter: DependencyFilter) -> ResolutionResult:
        if isinstance(root, Project):
            return self._resolve_project(root, scope_filter)
        return self._resolve_node(root)

    def _resolve_node(self, node: DependencyNode) -> ResolutionResult:
        artifact = node.artifact
        parsed = self._fetch_graph(artifact)
        if parsed is None or parsed.self_index < 0:
            raise ModelBuildingError(f"Could not read model for {artifact}")

        graph = DependencyNode(artifact=artifact)
        result = ResolutionResult(graph=graph)
        seen = {(artifact.group_id, artifact.artifact_id)}
        queue: Deque = deque([(parsed, parsed.self_index, graph, COMPILE, (), {})])
        self._walk(queue, seen, result)

        logger.debug(f"Resolved {len(result.resolved)} dependencies for {artifact}")
        return result

    def _resolve_project(self, project: Project, scope_filter: DependencyFilter) -> ResolutionResult:
        logger.info(f"Resolving dependencies of {project}")
        graph = DependencyNode(artifact=project.artifact)
        result = ResolutionResult(graph=graph)
        seen: Set[Tuple[str, str]] = {(project.group_id, project.artifact_id)}
        direct_keys: Set[Tuple[str, str, str, str]] = set()
        queue: Deque = deque()

        for declared in project.dependencies:
            artifact = declared.artifact
            identity = (artifact.group_id, artifact.artifact_id, artifact.type, artifact.classifier)
            if identity in direct_keys:
                continue

            version = self._select_version(declared)
            if version is None:
                result.unresolved.append(declared)
                result.cause = ResolutionFailure(f"No version found for {declared}", DEFAULT_CONTENT_TYPE)
                continue

            dependency = Dependency(artifact.with_version(version), declared.scope, declared.optional, declared.exclusions)
            node = DependencyNode(artifact=dependency.artifact, dependency=dependency)
            if not scope_filter.accept(node):
                logger.debug(f"Skipping {declared}, not in scope")
                continue

            direct_keys.add(identity)
            seen.add((artifact.group_id, artifact.artifact_id))
            graph.add_child(node)

            parsed = self._fetch_graph(dependency.artifact)
            if parsed is None:
                result.unresolved.append(dependency)
                result.cause = ResolutionFailure(f"Could not resolve {dependency.artifact}", DEFAULT_CONTENT_TYPE)
                continue

            result.resolved.append(dependency)
            if parsed.self_index >= 0:
                queue.append((parsed, parsed.self_index, node, declared.scope, declared.exclusions,
                              project.dependency_management))

        # breadth first over all direct graphs at once, so the nearest declaration wins
        self._walk(queue, seen, result)

        logger.info(f"Resolved {len(result.resolved)} dependencies for {project}, {len(result.unresolved)} unresolved")
        return result

    def _walk(self, queue: Deque, seen: Set[Tuple[str, str]], result: ResolutionResult) -> None:
        while queue:
            parsed, index, parent, scope, exclusions, management = queue.popleft()
            for child_index in parsed.adjacency.get(index, []):
                group_id, artifact_id, version = parsed.coordinates[child_index]
                key = (group_id, artifact_id)
                if key in seen:
                    continue

                child_scope = derive_scope(scope)
                if child_scope is None:
                    continue

                artifact = Artifact(group_id, artifact_id, version)
                if is_excluded(artifact, exclusions):
                    logger.debug(f"Excluding dependency {artifact.name} from {parent.artifact.name}")
                    continue

                seen.add(key)
                managed_bits = 0
                managed = management.get(artifact.name)
                if managed is not None:
                    if managed.artifact.version:
                        managed_bits |= MANAGED_VERSION
                        if managed.artifact.version != version:
                            logger.debug(f"Managing {artifact.name} from {version} to {managed.artifact.version}")
                            artifact = artifact.with_version(managed.artifact.version)
                    # compile is the implicit default and does not override a derived scope
                    if managed.scope and managed.scope != COMPILE and managed.scope != child_scope:
                        managed_bits |= MANAGED_SCOPE
                        child_scope = managed.scope

                # deps.dev graphs contain no optional dependencies
                dependency = Dependency(artifact, child_scope)
                child = DependencyNode(artifact=artifact, dependency=dependency, managed_bits=managed_bits)
                parent.add_child(child)
                result.resolved.append(dependency)

                queue.append((parsed, child_index, child, child_scope, exclusions, management))
