"""Version compatibility strategies.

A strategy answers one question: can an artifact that was built against the
expected version run with the resolved version instead?
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .errors import ConfigurationError
from .qualified_name import QualifiedName, QualifiedNameMatcher
from .versions import ArtifactVersion, ComparableVersion

logger = logging.getLogger(__name__)

INCOMPATIBLE = -1
UNDECIDED = 0
COMPATIBLE = 1

DEFAULT_STRATEGY = "default"

ComponentCheck = Callable[[ArtifactVersion, ArtifactVersion], int]


@dataclass(frozen=True)
class Strategy:
    """A named compatibility predicate: is_compatible(expected, resolved)."""
    name: str
    is_compatible: Callable[[ComparableVersion, ComparableVersion], bool]

    def __str__(self) -> str:
        return self.name


def check_major_equal(expected: int, resolved: int) -> int:
    if expected != resolved:
        return INCOMPATIBLE
    return UNDECIDED


def check_not_smaller(expected: int, resolved: int) -> int:
    # smaller version is not forward compatible
    if resolved < expected:
        return INCOMPATIBLE
    return UNDECIDED


def check_any(expected: int, resolved: int) -> int:
    return UNDECIDED


def check_both_zero(expected: int, resolved: int) -> int:
    if expected != 0 or resolved != 0:
        return INCOMPATIBLE
    return UNDECIDED


def check_qualifier_equal(expected: Optional[str], resolved: Optional[str]) -> int:
    # 1.2.3-android and 1.2.3-jre are not compatible
    if (expected or "") != (resolved or ""):
        return INCOMPATIBLE
    return UNDECIDED


def component_pipeline(major: Callable[[int, int], int],
                       minor: Callable[[int, int], int],
                       incremental: Callable[[int, int], int],
                       qualifier: Callable[[Optional[str], Optional[str]], int]
                       ) -> Callable[[ComparableVersion, ComparableVersion], bool]:
    """
    Build a compatibility predicate from per-component checks.

    The checks run in order major, minor, incremental, qualifier. The first check
    that does not return UNDECIDED decides. If all are undecided the versions
    are compatible.
    """
    checks: List[Tuple[Callable, str]] = [
        (major, "major"),
        (minor, "minor"),
        (incremental, "incremental"),
        (qualifier, "qualifier"),
    ]

    def is_compatible(expected_version: ComparableVersion, resolved_version: ComparableVersion) -> bool:
        expected = ArtifactVersion.parse(expected_version.canonical)
        resolved = ArtifactVersion.parse(resolved_version.canonical)
        for check, attribute in checks:
            result = check(getattr(expected, attribute), getattr(resolved, attribute))
            if result != UNDECIDED:
                return result >= 0
        return True

    return is_compatible


def _default_is_compatible(expected: ComparableVersion, resolved: ComparableVersion) -> bool:
    return resolved.compare_to(expected) >= 0


def _single_digit_is_compatible(expected: ComparableVersion, resolved: ComparableVersion) -> bool:
    return ArtifactVersion.parse(resolved.canonical).major >= ArtifactVersion.parse(expected.canonical).major


# Any newer version satisfies an older one.
DEFAULT = Strategy(DEFAULT_STRATEGY, _default_is_compatible)

# Apache Portable Runtime rules: same major, newer or equal minor, any patch, same qualifier.
APR = Strategy("apr", component_pipeline(check_major_equal, check_not_smaller, check_any, check_qualifier_equal))

# Only the first digit matters, newer is compatible.
SINGLE_DIGIT = Strategy("single-digit", _single_digit_is_compatible)

# Two digit versions: the major behaves like an APR minor, the minor like an APR patch.
TWO_DIGITS_BACKWARD_COMPATIBLE = Strategy(
    "two-digits-backward-compatible",
    component_pipeline(check_not_smaller, check_any, check_both_zero, check_qualifier_equal))

BUILTIN_STRATEGIES = (DEFAULT, APR, SINGLE_DIGIT, TWO_DIGITS_BACKWARD_COMPATIBLE)


class StrategyProvider:
    """Case insensitive registry of strategies by name."""

    def __init__(self, strategies: Iterable[Strategy] = BUILTIN_STRATEGIES):
        self._strategies: Dict[str, Strategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: Strategy) -> None:
        self._strategies[strategy.name.lower()] = strategy

    def for_name(self, name: str) -> Optional[Strategy]:
        if name is None:
            raise ValueError("name is None")
        return self._strategies.get(name.lower())

    @property
    def strategies(self) -> Dict[str, Strategy]:
        return dict(self._strategies)


class StrategyCache:
    """
    Maps artifact identities to strategies.

    Resolver rules are checked in declaration order, the first matching rule
    wins. Identities not matched by any rule use the default strategy.
    Lookups are memoized and safe to call from worker threads.
    """

    def __init__(self, provider: StrategyProvider, resolvers: Iterable, default_strategy_name: str = DEFAULT_STRATEGY):
        self.default_strategy = provider.for_name(default_strategy_name)
        if self.default_strategy is None:
            raise ConfigurationError(f"Could not locate default version strategy '{default_strategy_name}'")

        self._patterns: List[Tuple[QualifiedNameMatcher, Strategy]] = []
        for resolver in resolvers:
            strategy = provider.for_name(resolver.strategy_name)
            if strategy is None:
                raise ConfigurationError(f"Could not locate version strategy {resolver.strategy_name}! Check for typos!")
            for include in resolver.includes:
                self._patterns.append((include, strategy))

        self._cache: Dict[QualifiedName, Strategy] = {}
        self._lock = threading.Lock()

    def for_qualified_name(self, name: QualifiedName) -> Strategy:
        with self._lock:
            strategy = self._cache.get(name)
            if strategy is None:
                strategy = self._lookup(name)
                self._cache[name] = strategy
            return strategy

    def _lookup(self, name: QualifiedName) -> Strategy:
        for matcher, strategy in self._patterns:
            if matcher.matches(name):
                logger.debug(f"Using strategy {strategy.name} for {name.short_name} (matched {matcher.pattern})")
                return strategy
        return self.default_strategy
