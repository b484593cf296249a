"""Everything a resolution run needs, passed explicitly to the map builder and tree resolver."""

from dataclasses import dataclass, field
from typing import List

from .config import CheckConfiguration, VersionCheckExclude
from .models import Project
from .strategies import StrategyCache


@dataclass
class Context:
    """
    Attributes:
        configuration: The check configuration
        strategy_cache: Strategy lookup for artifact identities
        resolver: Graph resolver collaborator (see graph_builder.GraphResolver)
        root_project: The project being checked
        reactor_projects: All projects of the current multi module build
    """
    configuration: CheckConfiguration
    strategy_cache: StrategyCache
    resolver: object
    root_project: Project
    reactor_projects: List[Project] = field(default_factory=list)

    @property
    def unresolved_system_artifacts_fail_build(self) -> bool:
        return self.configuration.unresolved_system_artifacts_fail_build

    @property
    def use_fast_resolution(self) -> bool:
        return self.configuration.fast_resolution

    @property
    def use_deep_scan(self) -> bool:
        return self.configuration.deep_scan

    @property
    def exclusions(self) -> List[VersionCheckExclude]:
        return list(self.configuration.exclusions)
