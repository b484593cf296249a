"""Tests for the version compatibility strategies."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from depversions.config import ResolverDefinition
from depversions.errors import ConfigurationError
from depversions.qualified_name import QualifiedName
from depversions.strategies import (
    APR, DEFAULT, SINGLE_DIGIT, TWO_DIGITS_BACKWARD_COMPATIBLE, Strategy, StrategyCache, StrategyProvider,
)
from depversions.versions import ComparableVersion


def compatible(strategy: Strategy, expected: str, resolved: str) -> bool:
    return strategy.is_compatible(ComparableVersion(expected), ComparableVersion(resolved))


class TestBuiltinStrategies:
    """Tests for the four built-in strategies."""

    def test_apr(self):
        assert compatible(APR, "1.2.3", "1.3.0")
        assert compatible(APR, "1.2.3", "1.2.0")
        assert not compatible(APR, "1.2.3", "2.0.0")
        assert not compatible(APR, "1.2.3", "1.1.9")
        assert not compatible(APR, "1.2.3-android", "1.2.3-jre")

    def test_single_digit(self):
        assert compatible(SINGLE_DIGIT, "25.1-android", "29.0-jre")
        assert compatible(SINGLE_DIGIT, "25.0", "25.0")
        assert not compatible(SINGLE_DIGIT, "25.0", "24.9.9")

    def test_two_digits_backward_compatible(self):
        assert compatible(TWO_DIGITS_BACKWARD_COMPATIBLE, "2.0", "3.1")
        assert compatible(TWO_DIGITS_BACKWARD_COMPATIBLE, "2.5", "2.1")
        assert not compatible(TWO_DIGITS_BACKWARD_COMPATIBLE, "2.0.1", "3.1")
        assert not compatible(TWO_DIGITS_BACKWARD_COMPATIBLE, "3.0", "2.9")

    def test_default(self):
        assert compatible(DEFAULT, "1.0", "1.0")
        assert compatible(DEFAULT, "0.9", "1.0")
        assert compatible(DEFAULT, "1.0-SNAPSHOT", "1.0")
        assert not compatible(DEFAULT, "1.1", "1.0")


class TestStrategyProvider:
    """Tests for strategy lookup by name."""

    def test_builtin_names(self):
        provider = StrategyProvider()

        assert set(provider.strategies) == {"default", "apr", "single-digit", "two-digits-backward-compatible"}

    def test_lookup_is_case_insensitive(self):
        assert StrategyProvider().for_name("APR") is APR

    def test_unknown_name(self):
        assert StrategyProvider().for_name("nope") is None

    def test_register(self):
        provider = StrategyProvider()
        strict = Strategy("Strict", lambda expected, resolved: expected == resolved)
        provider.register(strict)

        assert provider.for_name("strict") is strict


class TestStrategyCache:
    """Tests for mapping identities to strategies."""

    def test_first_matching_resolver_wins(self):
        resolvers = [
            ResolverDefinition.from_patterns("apr", ["org.apache.*"]),
            ResolverDefinition.from_patterns("single-digit", ["org.apache.commons", "com.google.guava:guava"]),
        ]
        cache = StrategyCache(StrategyProvider(), resolvers)

        assert cache.for_qualified_name(QualifiedName("org.apache.commons", "commons-lang3")) is APR
        assert cache.for_qualified_name(QualifiedName("com.google.guava", "guava")) is SINGLE_DIGIT
        assert cache.for_qualified_name(QualifiedName("com.google.guava", "failureaccess")) is DEFAULT

    def test_lookups_are_memoized(self):
        cache = StrategyCache(StrategyProvider(), [ResolverDefinition.from_patterns("apr", ["g"])])
        name = QualifiedName("g", "a")

        assert cache.for_qualified_name(name) is cache.for_qualified_name(QualifiedName("g", "a", "jar"))

    def test_default_strategy_name(self):
        cache = StrategyCache(StrategyProvider(), [], "two-digits-backward-compatible")

        assert cache.default_strategy is TWO_DIGITS_BACKWARD_COMPATIBLE
        assert cache.for_qualified_name(QualifiedName("x", "y")) is TWO_DIGITS_BACKWARD_COMPATIBLE

    def test_unknown_default_strategy(self):
        with pytest.raises(ConfigurationError):
            StrategyCache(StrategyProvider(), [], "missing")

    def test_unknown_resolver_strategy(self):
        with pytest.raises(ConfigurationError, match="Could not locate version strategy"):
            StrategyCache(StrategyProvider(), [ResolverDefinition.from_patterns("missing", ["g"])])

    def test_concurrent_lookups(self):
        """Test that lookups from many threads agree and each identity is matched once."""
        lookups = []

        class CountingCache(StrategyCache):
            def _lookup(self, name):
                lookups.append(name)
                return super()._lookup(name)

        cache = CountingCache(StrategyProvider(), [ResolverDefinition.from_patterns("apr", ["org.apache.*"])])
        names = [QualifiedName("org.apache.commons", "commons-lang3"), QualifiedName("com.google.guava", "guava")]
        barrier = threading.Barrier(8)

        def lookup(index):
            barrier.wait(5)
            name = names[index % len(names)]
            return name, cache.for_qualified_name(name)

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lookup, range(64)))

        for name, strategy in results:
            assert strategy is (APR if name.group_id == "org.apache.commons" else DEFAULT)
        assert sorted(lookups) == sorted(names)
