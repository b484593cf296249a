"""Check command: report version conflicts and optionally fail on them."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..config import CheckConfiguration
from ..errors import ConflictFailure
from ..formatters import OutputFormatter, ReportEntry
from ..graph_builder import GraphResolver
from ..models import Project
from ..strategies import StrategyProvider
from .common import analyze_project, build_entries, filter_resolution_map, report

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    """Reported entries of all checked projects and the conflicts found in them."""
    reports: List[Tuple[Project, List[ReportEntry]]] = field(default_factory=list)
    direct_conflicts: bool = False
    transitive_conflicts: bool = False

    @property
    def entries(self) -> List[ReportEntry]:
        return [entry for _, entries in self.reports for entry in entries]


def check_project(project: Project, configuration: CheckConfiguration, resolver: GraphResolver,
                  result: CheckResult, reactor_projects: Optional[List[Project]] = None,
                  strategy_provider: Optional[StrategyProvider] = None) -> None:
    """Check a single project and add its entries to the result."""
    analysis = analyze_project(project, configuration, resolver, reactor_projects, strategy_provider)
    if analysis is None:
        return

    filtered_map = filter_resolution_map(analysis.resolution_map, configuration.conflicts_only,
                                         configuration.direct_only, configuration.managed_only)

    report(configuration.quiet,
           f"Checking {'direct' if configuration.direct_only else 'all'}"
           f"{', managed' if configuration.managed_only else ''} dependencies"
           f"{' using deep scan' if configuration.deep_scan else ''} for '{configuration.scope}' scope"
           f"{', reporting only conflicts' if configuration.conflicts_only else ''}")

    entries = build_entries(analysis, filtered_map)
    result.reports.append((project, entries))
    for entry in entries:
        will_warn = entry.has_conflict
        will_fail = will_warn and (configuration.conflicts_fail_build
                                   or (entry.direct and configuration.direct_conflicts_fail_build))
        if will_warn:
            result.direct_conflicts |= entry.direct
            result.transitive_conflicts |= not entry.direct

        message = OutputFormatter.format_check_entry(entry)
        if will_fail:
            logger.error(message)
        elif will_warn:
            logger.warning(message)
        else:
            logger.info(message)


def run_check(projects: List[Project], configuration: CheckConfiguration, resolver: GraphResolver,
              strategy_provider: Optional[StrategyProvider] = None) -> CheckResult:
    """Check every project of a reactor; all projects of the list form the reactor."""
    result = CheckResult()
    for project in projects:
        check_project(project, configuration, resolver, result, projects, strategy_provider)
    return result


def verify(result: CheckResult, configuration: CheckConfiguration) -> None:
    """
    Fail on the conflicts the configuration does not tolerate.

    Raises:
        ConflictFailure: For direct conflicts if any conflict fails the build, for transitive ones if all do
    """
    if result.direct_conflicts and (configuration.conflicts_fail_build or configuration.direct_conflicts_fail_build):
        raise ConflictFailure("Version conflict in direct dependencies detected!")

    if result.transitive_conflicts and configuration.conflicts_fail_build:
        raise ConflictFailure("Version conflict in transitive dependencies detected!")
