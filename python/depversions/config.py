"""Configuration of a dependency version check run."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .errors import ConfigurationError
from .models import DependencyNode
from .qualified_name import QualifiedName, QualifiedNameMatcher
from .scopes import COMPILE, COMPILE_PLUS_RUNTIME, RUNTIME, TEST
from .strategies import DEFAULT_STRATEGY
from .versions import ComparableVersion

logger = logging.getLogger(__name__)

VALID_SCOPES = (COMPILE_PLUS_RUNTIME, COMPILE, RUNTIME, TEST)


@dataclass
class ResolverDefinition:
    """Assigns a strategy to every artifact matched by one of the include patterns."""
    strategy_name: str
    includes: List[QualifiedNameMatcher] = field(default_factory=list)

    @classmethod
    def from_patterns(cls, strategy_name: str, patterns: Iterable[str]) -> 'ResolverDefinition':
        """
        Create a resolver definition from group[:artifact] patterns.

        Raises:
            ConfigurationError: If a pattern is malformed
        """
        return cls(strategy_name, [QualifiedNameMatcher(p.strip()) for p in patterns if p.strip()])


class VersionCheckExclude:
    """Silences one specific (artifact, expected version, resolved version) combination."""

    def __init__(self, dependency: str = "", expected: Optional[str] = None, resolved: Optional[str] = None):
        self.dependency = (dependency or "").strip()
        self.matcher = QualifiedNameMatcher(self.dependency)
        self.expected = ComparableVersion(expected) if expected is not None else None
        self.resolved = ComparableVersion(resolved) if resolved is not None else None

    @property
    def is_valid(self) -> bool:
        return self.expected is not None and self.resolved is not None

    def matches(self, node: DependencyNode, expected_version: ComparableVersion, resolved_version: ComparableVersion) -> bool:
        return (self.matcher.matches(QualifiedName.from_node(node))
                and self.expected == expected_version
                and self.resolved == resolved_version)

    def __eq__(self, other) -> bool:
        if not isinstance(other, VersionCheckExclude):
            return NotImplemented
        return (self.dependency, self.expected, self.resolved) == (other.dependency, other.expected, other.resolved)

    def __hash__(self) -> int:
        return hash((self.dependency, self.expected, self.resolved))

    def __repr__(self) -> str:
        return f"VersionCheckExclude(dependency={self.dependency!r}, expected={self.expected}, resolved={self.resolved})"


@dataclass
class CheckConfiguration:
    """
    Options shared by the check and list commands.

    Attributes:
        scope: Scope to resolve (compile, runtime, test or compile+runtime)
        deep_scan: Use every resolved dependency as requester, not only the declared ones
        direct_only: Only report artifacts requested directly by the project
        managed_only: Only report artifacts whose version is managed
        fast_resolution: Resolve dependencies on a thread pool
        resolvers: Strategy assignments, first match wins
        default_strategy: Strategy for artifacts not matched by any resolver
        exclusions: (artifact, expected, resolved) combinations never reported as conflicts
        unresolved_system_artifacts_fail_build: Fail if a system scoped dependency can not be resolved
        conflicts_only: Only report artifacts with conflicts
        conflicts_fail_build: Fail on any conflict
        direct_conflicts_fail_build: Fail on conflicts of direct dependencies
        skip: Do nothing
        include_pom_projects: Also check projects with pom packaging
        quiet: Report progress at debug level only
    """
    scope: str = TEST
    deep_scan: bool = False
    direct_only: bool = False
    managed_only: bool = False
    fast_resolution: bool = True
    resolvers: List[ResolverDefinition] = field(default_factory=list)
    default_strategy: str = DEFAULT_STRATEGY
    exclusions: List[VersionCheckExclude] = field(default_factory=list)
    unresolved_system_artifacts_fail_build: bool = False
    conflicts_only: bool = True
    conflicts_fail_build: bool = False
    direct_conflicts_fail_build: bool = False
    skip: bool = False
    include_pom_projects: bool = False
    quiet: bool = False

    def validate(self) -> None:
        """
        Check the configuration before any resolution happens.

        Raises:
            ConfigurationError: For an invalid exclusion or scope
        """
        for exclusion in self.exclusions:
            if not exclusion.is_valid:
                raise ConfigurationError(f"Invalid exclusion specification: '{exclusion}'")

        if not (self.scope or "").strip() or self.scope not in VALID_SCOPES:
            raise ConfigurationError(f"Scope '{self.scope}' is invalid")

        logger.debug(f"Configuration: scope={self.scope}, deep_scan={self.deep_scan}, "
                     f"fast_resolution={self.fast_resolution}, {len(self.resolvers)} resolvers, "
                     f"{len(self.exclusions)} exclusions")
