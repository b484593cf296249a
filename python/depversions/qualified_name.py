"""Artifact identities and the wildcard matchers used by resolver and exclusion rules."""

import re
from typing import Optional, Pattern

from .errors import ConfigurationError
from .models import Artifact, Dependency, DependencyNode, Project

WILDCARD_REGEXP = re.compile(r"[^*]+|(\*)")
WILDCARD_MATCH = re.compile(r".*")


class QualifiedName:
    """
    Identity of an artifact: group, artifact, type and classifier.

    A missing type means "jar", a missing classifier means "". A test-jar and a
    jar with the "tests" classifier are the same artifact.
    """

    __slots__ = ("group_id", "artifact_id", "type", "classifier")

    def __init__(self, group_id: str, artifact_id: str, type: Optional[str] = None, classifier: Optional[str] = None):
        if group_id is None:
            raise ValueError("group_id is None")
        if artifact_id is None:
            raise ValueError("artifact_id is None")
        if classifier is not None and type is None:
            raise ValueError("Classifier must be None if type is None")

        self.group_id = group_id
        self.artifact_id = artifact_id
        self.type = type
        self.classifier = classifier

    @classmethod
    def from_artifact(cls, artifact: Artifact) -> 'QualifiedName':
        return cls(artifact.group_id, artifact.artifact_id, artifact.type, artifact.classifier or None)

    @classmethod
    def from_dependency(cls, dependency: Dependency) -> 'QualifiedName':
        return cls.from_artifact(dependency.artifact)

    @classmethod
    def from_node(cls, node: DependencyNode) -> 'QualifiedName':
        return cls.from_artifact(node.artifact)

    @classmethod
    def from_project(cls, project: Project) -> 'QualifiedName':
        return cls(project.group_id, project.artifact_id)

    @property
    def has_tests(self) -> bool:
        """True if this name refers to a test artifact."""
        return self.type == "test-jar" or (self.classifier == "tests" and self.type == "jar")

    @property
    def full_name(self) -> str:
        """Return group:artifact[:type[:classifier]]."""
        parts = [self.group_id, self.artifact_id]
        if self.type is not None:
            parts.append(self.type)
        if self.classifier is not None:
            parts.append(self.classifier)
        return ":".join(parts)

    @property
    def short_name(self) -> str:
        """Return group:artifact, followed by the classifier in parentheses if there is one."""
        result = self.minimal_name
        classifier = "tests" if self.has_tests else (self.classifier or "")
        if classifier:
            result += f" ({classifier})"
        return result

    @property
    def minimal_name(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"

    def length(self) -> int:
        return len(self.short_name)

    def __eq__(self, other) -> bool:
        if self is other:
            return True
        if not isinstance(other, QualifiedName):
            return NotImplemented
        if self.group_id != other.group_id or self.artifact_id != other.artifact_id:
            return False
        if self.has_tests and other.has_tests:
            return True
        return ((self.type or "jar") == (other.type or "jar")
                and (self.classifier or "") == (other.classifier or ""))

    def __hash__(self) -> int:
        if self.has_tests:
            return hash((self.group_id, self.artifact_id, "test-jar", "tests"))
        return hash((self.group_id, self.artifact_id, self.type or "jar", self.classifier or ""))

    def compare_to(self, other: Optional['QualifiedName']) -> int:
        if other is None:
            return 1
        if self == other:
            return 0
        mine, theirs = self.minimal_name, other.minimal_name
        return (mine > theirs) - (mine < theirs)

    def __lt__(self, other: 'QualifiedName') -> bool:
        if not isinstance(other, QualifiedName):
            return NotImplemented
        return self.compare_to(other) < 0

    def __str__(self) -> str:
        return self.full_name

    def __repr__(self) -> str:
        return (f"QualifiedName(group_id={self.group_id!r}, artifact_id={self.artifact_id!r}, "
                f"type={self.type!r}, classifier={self.classifier!r})")


def compile_wildcard(wildcard: str) -> Pattern:
    """
    Turn a wildcard expression into a regular expression.

    '*' matches any run of characters, everything else is literal. The
    empty expression matches anything. Use fullmatch() on the result.
    """
    if not wildcard:
        return WILDCARD_MATCH

    parts = []
    for match in WILDCARD_REGEXP.finditer(wildcard):
        if match.group(1) is not None:
            parts.append(".*")
        else:
            parts.append(re.escape(match.group(0)))
    return re.compile("".join(parts))


class QualifiedNameMatcher:
    """Matches qualified names against a group[:artifact] wildcard pattern."""

    def __init__(self, pattern: str):
        if pattern is None:
            raise ConfigurationError("pattern is None")

        elements = [e.strip() for e in pattern.split(":")]
        if len(elements) > 2:
            raise ConfigurationError(f"Pattern {pattern} is not a valid inclusion pattern!")

        self.pattern = pattern
        self._group_pattern = compile_wildcard(elements[0])
        # no artifact part matches every artifact
        self._artifact_pattern = compile_wildcard(elements[1] if len(elements) > 1 else "")

    @classmethod
    def from_qualified_name(cls, name: QualifiedName) -> 'QualifiedNameMatcher':
        return cls(name.minimal_name)

    def matches(self, name: QualifiedName) -> bool:
        return (self._group_pattern.fullmatch(name.group_id) is not None
                and self._artifact_pattern.fullmatch(name.artifact_id) is not None)

    def __repr__(self) -> str:
        return f"QualifiedNameMatcher({self.pattern!r})"
