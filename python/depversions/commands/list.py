"""List command: show the selected version of every dependency next to the versions it displaced."""

import logging
from typing import List, Optional, Tuple

from ..config import CheckConfiguration
from ..formatters import OutputFormatter, ReportEntry
from ..graph_builder import GraphResolver
from ..models import Project
from ..strategies import StrategyProvider
from .common import analyze_project, build_entries, filter_resolution_map, report

logger = logging.getLogger(__name__)


def list_project(project: Project, configuration: CheckConfiguration, resolver: GraphResolver,
                 reactor_projects: Optional[List[Project]] = None,
                 strategy_provider: Optional[StrategyProvider] = None) -> Optional[List[ReportEntry]]:
    """List the dependencies of a single project. Returns None if the project is skipped."""
    analysis = analyze_project(project, configuration, resolver, reactor_projects, strategy_provider)
    if analysis is None:
        return None

    filtered_map = filter_resolution_map(analysis.resolution_map, configuration.conflicts_only,
                                         configuration.direct_only, configuration.managed_only)

    report(configuration.quiet,
           f"{'Direct' if configuration.direct_only else 'All'}"
           f"{' managed' if configuration.managed_only else ''} dependencies"
           f"{' using deep scan' if configuration.deep_scan else ''} for '{configuration.scope}' scope"
           f"{', reporting only conflicts' if configuration.conflicts_only else ''}:")

    entries = build_entries(analysis, filtered_map)
    if entries:
        logger.info(OutputFormatter.format_list_report(entries))
    return entries


def run_list(projects: List[Project], configuration: CheckConfiguration, resolver: GraphResolver,
             strategy_provider: Optional[StrategyProvider] = None) -> List[Tuple[Project, List[ReportEntry]]]:
    """List the dependencies of every project of a reactor; all projects of the list form the reactor."""
    reports = []
    for project in projects:
        entries = list_project(project, configuration, resolver, projects, strategy_provider)
        if entries is not None:
            reports.append((project, entries))
    return reports
