"""Walks the dependencies of a project and records which versions each requester expects."""

import concurrent.futures
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

from .dependency_map import DependencyMap, DependencyMapBuilder
from .errors import (
    DependencyVersionCheckError, ModelBuildingError, RangeInconsistencyError, UnresolvedDependencyError,
)
from .models import Dependency, DependencyNode, Project
from .qualified_name import QualifiedName
from .resolution import ResolutionMap, VersionResolution, to_resolution_map
from .scopes import SYSTEM, AndDependencyFilter, CheckExclusionsFilter, ScopeLimitingFilter
from .versions import ComparableVersion

logger = logging.getLogger(__name__)

DEPENDENCY_RESOLUTION_NUM_THREADS = (os.cpu_count() or 1) * 5
SHUTDOWN_TIMEOUT = 2.0

Resolutions = List[Tuple[QualifiedName, VersionResolution]]


def _version_of(node: DependencyNode) -> ComparableVersion:
    if node.version is None:
        raise RuntimeError(f"DependencyNode {node} has a null version selected")
    return ComparableVersion(node.version)


class DependencyTreeResolver:
    """
    Computes the resolution map of a project.

    Owns a worker pool for its lifetime; use it as a context manager or call
    close() when done.
    """

    def __init__(self, context, root_dependency_map: DependencyMap):
        if context is None:
            raise ValueError("context is None")
        if root_dependency_map is None:
            raise ValueError("root_dependency_map is None")

        self.context = context
        self.root_dependency_map = root_dependency_map
        self._executor: Optional[ThreadPoolExecutor] = None
        self._futures: List[concurrent.futures.Future] = []

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=DEPENDENCY_RESOLUTION_NUM_THREADS,
                thread_name_prefix="dependency-version-check-worker")
        return self._executor

    def close(self) -> None:
        """Cancel pending work and give running tasks a short grace period."""
        if self._executor is None:
            return
        pending = [f for f in self._futures if not f.done()]
        if pending:
            concurrent.futures.wait(pending, timeout=SHUTDOWN_TIMEOUT)
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._executor = None
        self._futures = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def compute_resolution_map(self, project: Project, scope_filter: ScopeLimitingFilter) -> ResolutionMap:
        """
        Create the map of all version resolutions of a project in the scope of the given filter.

        Args:
            project: The project to resolve
            scope_filter: Visibility filter for the requested scope

        Returns:
            Map from artifact identity to the collections of expected versions, ordered by identity

        Raises:
            DependencyVersionCheckError: One or more dependencies could not be processed
        """
        if project is None:
            raise ValueError("project is None")
        if scope_filter is None:
            raise ValueError("scope_filter is None")

        parallel = self.context.use_fast_resolution
        logger.debug(f"Using parallel dependency resolution: {parallel}")

        if self.context.use_deep_scan:
            logger.debug("Running deep scan")
            dependencies = [node.dependency for node in self.root_dependency_map.all_dependencies.values()]
        else:
            dependencies = list(project.dependencies)

        collected: Resolutions = []
        failures: List[Tuple[Dependency, Exception]] = []

        if parallel:
            executor = self._get_executor()
            submitted = [(dependency, executor.submit(self._resolve_project_dependency, dependency, scope_filter))
                         for dependency in dependencies]
            self._futures.extend(future for _, future in submitted)
            try:
                for dependency, future in submitted:
                    try:
                        collected.extend(future.result())
                    except Exception as e:
                        failures.append((dependency, e))
            except KeyboardInterrupt:
                for _, future in submitted:
                    future.cancel()
                raise
        else:
            for dependency in dependencies:
                try:
                    collected.extend(self._resolve_project_dependency(dependency, scope_filter))
                except Exception as e:
                    failures.append((dependency, e))

        if failures:
            raise self._aggregate_failures(failures)

        return to_resolution_map(collected)

    @staticmethod
    def _aggregate_failures(failures: List[Tuple[Dependency, Exception]]) -> DependencyVersionCheckError:
        failed_dependencies = []
        messages = []
        for dependency, error in failures:
            logger.debug(f"Resolution of {dependency} failed: {error}")
            if isinstance(error, UnresolvedDependencyError):
                failed_dependencies.extend(str(d) for d in error.unresolved_dependencies)
            else:
                messages.append(f"{dependency}: {error}")
        return DependencyVersionCheckError(messages, failed_dependencies)

    def _resolve_project_dependency(self, dependency: Dependency, visible_scopes: ScopeLimitingFilter) -> Resolutions:
        """Resolve a single dependency of the root project. Runs on a worker thread in parallel mode."""
        resolutions: Resolutions = []
        dependency_name = QualifiedName.from_dependency(dependency)

        # a dependency declared in a scope outside of the filter is not in the map
        direct_node = self.root_dependency_map.direct_dependencies.get(dependency_name)
        if direct_node is not None:
            if not visible_scopes.accept(direct_node):
                raise RuntimeError(f"Dependency {dependency} maps to {direct_node}, "
                                   f"but scope filter would exclude it. This should never happen!")
            resolutions.append(self._resolve_direct_dependency(dependency, direct_node))

        project_node = self.root_dependency_map.all_dependencies.get(dependency_name)
        if project_node is None:
            return resolutions

        if not visible_scopes.accept(project_node):
            raise RuntimeError(f"Dependency {dependency} maps to {project_node}, "
                               f"but scope filter would exclude it. This should never happen!")

        if dependency.scope == SYSTEM:
            # system artifacts come from the local file system and have no dependencies
            return resolutions

        try:
            # anything pulled in with test scope needs its own dependencies in compile+runtime scope
            transitive_scope = ScopeLimitingFilter.compute_transitive_scope(dependency.scope)
            resolutions.extend(self._resolve_transitive_dependencies(dependency, project_node, transitive_scope))
        except ModelBuildingError:
            # artifacts with a packaging the resolver does not know, usually without any dependencies
            if not project_node.children:
                logger.debug(f"Ignoring model building exception for {dependency}, no children were declared")
            else:
                logger.warning(f"Could not read POM for {dependency}, ignoring project and its dependencies!")

        return resolutions

    def _resolve_direct_dependency(self, dependency: Dependency, resolved_node: DependencyNode) -> Tuple[QualifiedName, VersionResolution]:
        dependency_name = QualifiedName.from_dependency(dependency)

        artifact = dependency.artifact.to_pom_artifact()
        if artifact.is_snapshot:
            # the range resolver would try to match the timestamp
            artifact = artifact.with_version(artifact.base_version)

        versions = self.context.resolver.resolve_version_range(artifact)
        resolved_version = _version_of(resolved_node)
        if resolved_version not in versions:
            raise RangeInconsistencyError(
                f"Cannot determine the recommended version of dependency '{dependency}'; "
                f"its version specification is '{dependency.artifact.base_version}', "
                f"and the resolved version is '{resolved_node.version}'.")

        expected_version = resolved_version
        resolution = VersionResolution.for_direct(
            QualifiedName.from_project(self.context.root_project),
            expected_version,
            resolved_node.is_managed_version)

        if self._is_included(resolved_node, expected_version, expected_version):
            strategy = self.context.strategy_cache.for_qualified_name(dependency_name)
            if not strategy.is_compatible(expected_version, expected_version):
                resolution = resolution.with_conflict()
        else:
            logger.debug(f"{resolution} is excluded by configuration.")

        return dependency_name, resolution

    def _resolve_transitive_dependencies(self, dependency: Dependency, dependency_node: DependencyNode,
                                         scope_filter: ScopeLimitingFilter) -> Resolutions:
        resolutions: Resolutions = []
        node_filter = AndDependencyFilter(scope_filter, CheckExclusionsFilter(dependency.exclusions))
        dependency_map = DependencyMapBuilder(self.context).map_dependency(dependency_node, node_filter)
        requester_name = QualifiedName.from_dependency(dependency)

        transitive_nodes = [node for node in dependency_map.all_dependencies.values()
                            if scope_filter.accept(node) and not node.dependency.optional]

        for node in transitive_nodes:
            node_name = QualifiedName.from_node(node)
            project_node = self.root_dependency_map.all_dependencies.get(node_name)
            if project_node is None:
                # The version that pulled this in was overridden elsewhere in the graph, so it
                # never reaches the classpath. Example: guava 25.1-android needs checker-compat-qual
                # but 29.1-jre was selected, which needs checker-qual instead.
                continue

            resolved_version = _version_of(project_node)
            expected_version = _version_of(node)
            resolution = VersionResolution.for_transitive(requester_name, expected_version, project_node.is_managed_version)

            if self._is_included(node, expected_version, resolved_version):
                strategy = self.context.strategy_cache.for_qualified_name(node_name)
                if not strategy.is_compatible(expected_version, resolved_version):
                    resolution = resolution.with_conflict()

            resolutions.append((node_name, resolution))

        return resolutions

    def _is_included(self, node: DependencyNode, expected_version: ComparableVersion, resolved_version: ComparableVersion) -> bool:
        """True unless a configured exclusion silences this combination."""
        return not any(exclusion.matches(node, expected_version, resolved_version)
                       for exclusion in self.context.exclusions)
