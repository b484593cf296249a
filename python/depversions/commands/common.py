"""Run flow shared by the check and list commands."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..config import CheckConfiguration
from ..context import Context
from ..dependency_map import DependencyMap, DependencyMapBuilder
from ..formatters import ReportEntry
from ..graph_builder import GraphResolver
from ..models import Project
from ..resolution import ResolutionMap
from ..scopes import ScopeLimitingFilter
from ..strategies import StrategyCache, StrategyProvider
from ..tree_resolver import DependencyTreeResolver
from ..versions import ComparableVersion

logger = logging.getLogger(__name__)

POM_PACKAGING = "pom"


def report(quiet: bool, message: str) -> None:
    """Log progress at info level, or debug level when quiet."""
    if quiet:
        logger.debug(message)
    else:
        logger.info(message)


@dataclass
class ProjectAnalysis:
    """Resolution map of a project plus what is needed to report on it."""
    project: Project
    resolution_map: ResolutionMap
    root_dependency_map: DependencyMap
    strategy_cache: StrategyCache


def analyze_project(project: Project, configuration: CheckConfiguration, resolver: GraphResolver,
                    reactor_projects: Optional[List[Project]] = None,
                    strategy_provider: Optional[StrategyProvider] = None) -> Optional[ProjectAnalysis]:
    """
    Compute the resolution map of a project.

    Returns:
        The analysis, or None if the project is skipped

    Raises:
        ConfigurationError: The configuration is invalid
        UnresolvedDependencyError: The project's own graph has unresolved dependencies
        DependencyVersionCheckError: Resolving the dependencies of the project failed
    """
    configuration.validate()

    if configuration.skip:
        report(configuration.quiet, "Skipping execution")
        return None

    if not configuration.include_pom_projects and project.packaging == POM_PACKAGING:
        report(configuration.quiet, f"Ignoring POM project {project}")
        return None

    logger.debug(f"Starting dependency version check of {project}")

    strategy_cache = StrategyCache(strategy_provider or StrategyProvider(),
                                   configuration.resolvers, configuration.default_strategy)
    context = Context(configuration, strategy_cache, resolver, project, list(reactor_projects or []))

    scope_filter = ScopeLimitingFilter.compute_dependency_scope(configuration.scope)
    root_dependency_map = DependencyMapBuilder(context).map_project(project, scope_filter)

    with DependencyTreeResolver(context, root_dependency_map) as tree_resolver:
        resolution_map = tree_resolver.compute_resolution_map(project, scope_filter)

    logger.debug(f"Ended dependency version check of {project}")
    return ProjectAnalysis(project, resolution_map, root_dependency_map, strategy_cache)


def filter_resolution_map(resolution_map: ResolutionMap, conflicts_only: bool,
                          direct_only: bool, managed_only: bool) -> ResolutionMap:
    """Keep the identities that satisfy every requested condition."""
    filtered: ResolutionMap = {}
    for name, collections in resolution_map.items():
        if conflicts_only and not any(c.has_conflict for c in collections):
            continue
        if direct_only and not any(c.has_direct_dependencies for c in collections):
            continue
        if managed_only and not any(c.has_managed_dependencies for c in collections):
            continue
        filtered[name] = collections
    return filtered


def build_entries(analysis: ProjectAnalysis, filtered_map: ResolutionMap) -> List[ReportEntry]:
    """Combine the filtered resolution map with the project's graph."""
    root_dependencies = analysis.root_dependency_map.all_dependencies
    entries = []

    for name, collections in filtered_map.items():
        node = root_dependencies.get(name)
        if node is None or node.version is None:
            raise RuntimeError(f"Dependency {name} has no selected version in {analysis.project}")

        entries.append(ReportEntry(
            name=name,
            resolved_version=ComparableVersion(node.version),
            scope=node.scope or "",
            direct=any(c.has_direct_dependencies for c in collections),
            managed=node.is_managed_version,
            strategy=analysis.strategy_cache.for_qualified_name(name).name,
            collections=list(collections),
        ))

    return entries
