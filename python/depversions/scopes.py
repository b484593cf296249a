"""Dependency filters: scope visibility, declared exclusions and their conjunction."""

import logging
from typing import FrozenSet, Iterable

from .errors import ConfigurationError
from .models import DependencyNode, Exclusion

logger = logging.getLogger(__name__)

COMPILE = "compile"
RUNTIME = "runtime"
TEST = "test"
PROVIDED = "provided"
SYSTEM = "system"

COMPILE_PLUS_RUNTIME = f"{COMPILE}+{RUNTIME}"
RUNTIME_PLUS_SYSTEM = f"{RUNTIME}+{SYSTEM}"

ALL_SCOPES = frozenset({COMPILE, RUNTIME, TEST, PROVIDED, SYSTEM})

# Scopes visible when building / running / testing in the given scope
VISIBLE_SCOPES = {
    COMPILE: frozenset({COMPILE, SYSTEM, PROVIDED}),
    RUNTIME: frozenset({COMPILE, RUNTIME}),
    COMPILE_PLUS_RUNTIME: frozenset({COMPILE, SYSTEM, PROVIDED, RUNTIME}),
    RUNTIME_PLUS_SYSTEM: frozenset({COMPILE, SYSTEM, RUNTIME}),
    TEST: ALL_SCOPES,
}

# test and provided dependencies are not transitive
TRANSITIVE_SCOPES = {
    COMPILE: COMPILE,
    RUNTIME: RUNTIME,
    COMPILE_PLUS_RUNTIME: COMPILE_PLUS_RUNTIME,
    RUNTIME_PLUS_SYSTEM: RUNTIME_PLUS_SYSTEM,
    TEST: COMPILE_PLUS_RUNTIME,
    PROVIDED: COMPILE_PLUS_RUNTIME,
}


class DependencyFilter:
    """Decides whether a node of a dependency graph is part of the resolution."""

    def accept(self, node: DependencyNode) -> bool:
        raise NotImplementedError

    def __call__(self, node: DependencyNode) -> bool:
        return self.accept(node)


def _compute_scopes(scope: str) -> FrozenSet[str]:
    if scope not in VISIBLE_SCOPES:
        raise ConfigurationError(f"Scope '{scope}' is unknown!")
    return VISIBLE_SCOPES[scope]


class ScopeLimitingFilter(DependencyFilter):
    """Accepts nodes whose dependency scope is in a fixed set of scopes."""

    def __init__(self, scopes: Iterable[str]):
        self.scopes = frozenset(scopes)

    @classmethod
    def compute_dependency_scope(cls, scope: str) -> 'ScopeLimitingFilter':
        """Filter for every dependency that is visible in the given scope."""
        return cls(_compute_scopes(scope))

    @classmethod
    def compute_transitive_scope(cls, scope: str) -> 'ScopeLimitingFilter':
        """
        Filter for every transitive dependency visible in the given scope.

        Differs from compute_dependency_scope because test and provided
        dependencies do not propagate.
        """
        if scope not in TRANSITIVE_SCOPES:
            raise ConfigurationError(f"Scope '{scope}' is unknown!")
        return cls(_compute_scopes(TRANSITIVE_SCOPES[scope]))

    def accept(self, node: DependencyNode) -> bool:
        if node.dependency is None:
            return True
        scope = node.dependency.scope
        if scope not in ALL_SCOPES:
            return False
        return scope in self.scopes

    def __repr__(self) -> str:
        return f"ScopeLimitingFilter(scopes={sorted(self.scopes)})"


def _exclusion_part_matches(pattern: str, value: str) -> bool:
    return pattern == "*" or pattern == value


class CheckExclusionsFilter(DependencyFilter):
    """Rejects nodes matched by any of the exclusions declared on a dependency."""

    def __init__(self, exclusions: Iterable[Exclusion]):
        if exclusions is None:
            raise ValueError("exclusions is None")
        self.exclusions = tuple(exclusions)

    def accept(self, node: DependencyNode) -> bool:
        artifact = node.artifact
        for exclusion in self.exclusions:
            if (_exclusion_part_matches(exclusion.group_id, artifact.group_id)
                    and _exclusion_part_matches(exclusion.artifact_id, artifact.artifact_id)):
                logger.debug(f"{artifact.name} excluded by {exclusion}")
                return False
        return True

    def __repr__(self) -> str:
        return f"CheckExclusionsFilter({[str(e) for e in self.exclusions]})"


class AndDependencyFilter(DependencyFilter):
    """Accepts a node only if every filter accepts it."""

    def __init__(self, *filters: DependencyFilter):
        self.filters = tuple(f for f in filters if f is not None)

    def accept(self, node: DependencyNode) -> bool:
        return all(f.accept(node) for f in self.filters)

    def __repr__(self) -> str:
        return f"AndDependencyFilter({', '.join(repr(f) for f in self.filters)})"
