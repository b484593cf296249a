"""Core data models for depversions."""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Tuple

# Managed bits of a dependency node, same values as the Maven resolver uses.
MANAGED_VERSION = 0x01
MANAGED_SCOPE = 0x02
MANAGED_OPTIONAL = 0x04
MANAGED_PROPERTIES = 0x08
MANAGED_EXCLUSIONS = 0x10

SNAPSHOT = "SNAPSHOT"
SNAPSHOT_TIMESTAMP_PATTERN = re.compile(r"^(.*-)?([0-9]{8}\.[0-9]{6}-[0-9]+)$")


@dataclass(frozen=True)
class Artifact:
    """A Maven artifact: coordinates plus version."""

    group_id: str
    artifact_id: str
    version: str
    type: str = "jar"
    classifier: str = ""

    @property
    def coordinate(self) -> str:
        """Return the artifact in groupId:artifactId[:type[:classifier]]:version format."""
        parts = [self.group_id, self.artifact_id]
        if self.type != "jar" or self.classifier:
            parts.append(self.type)
        if self.classifier:
            parts.append(self.classifier)
        parts.append(self.version)
        return ":".join(parts)

    @property
    def name(self) -> str:
        """Return groupId:artifactId."""
        return f"{self.group_id}:{self.artifact_id}"

    @property
    def is_snapshot(self) -> bool:
        return self.version.endswith(SNAPSHOT) or SNAPSHOT_TIMESTAMP_PATTERN.match(self.version) is not None

    @property
    def base_version(self) -> str:
        """Return the version with a snapshot timestamp replaced by SNAPSHOT."""
        match = SNAPSHOT_TIMESTAMP_PATTERN.match(self.version)
        if match:
            return f"{match.group(1) or ''}{SNAPSHOT}"
        return self.version

    def with_version(self, version: str) -> 'Artifact':
        return Artifact(self.group_id, self.artifact_id, version, self.type, self.classifier)

    def to_pom_artifact(self) -> 'Artifact':
        """Return the POM artifact that describes this artifact."""
        if self.type == "pom" and not self.classifier:
            return self
        return Artifact(self.group_id, self.artifact_id, self.version, "pom")

    def __str__(self) -> str:
        return self.coordinate


@dataclass(frozen=True)
class Exclusion:
    """An exclusion declared on a dependency. Either part may be '*'."""

    group_id: str
    artifact_id: str

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"


@dataclass(frozen=True)
class Dependency:
    """A dependency edge: the artifact requested plus scope, optional flag and exclusions."""

    artifact: Artifact
    scope: str = "compile"
    optional: bool = False
    exclusions: Tuple[Exclusion, ...] = ()

    def __str__(self) -> str:
        return f"{self.artifact} [{self.scope}{', optional' if self.optional else ''}]"


@dataclass
class DependencyNode:
    """Represents a node in a resolved dependency graph.

    The root node of a graph has no dependency (it represents the project or
    artifact the graph was resolved for).
    """

    artifact: Artifact
    dependency: Optional[Dependency] = None
    managed_bits: int = 0
    children: List['DependencyNode'] = field(default_factory=list, compare=False, repr=False)

    def __eq__(self, other) -> bool:
        """Equality based on object identity, nodes may be shared within a graph."""
        return self is other

    def __hash__(self) -> int:
        return id(self)

    @property
    def version(self) -> Optional[str]:
        return self.artifact.version

    @property
    def scope(self) -> Optional[str]:
        return self.dependency.scope if self.dependency else None

    @property
    def is_managed_version(self) -> bool:
        return (self.managed_bits & MANAGED_VERSION) != 0

    def add_child(self, child: 'DependencyNode') -> None:
        """Add a child dependency to this node."""
        if child not in self.children:
            self.children.append(child)

    def __str__(self) -> str:
        return str(self.dependency) if self.dependency else str(self.artifact)


@dataclass
class Project:
    """A Maven project model, as read from a pom.xml."""

    group_id: str
    artifact_id: str
    version: str
    packaging: str = "jar"
    dependencies: List[Dependency] = field(default_factory=list)
    dependency_management: Dict[str, Dependency] = field(default_factory=dict)
    modules: List[str] = field(default_factory=list)
    path: Optional[str] = None

    @property
    def artifact(self) -> Artifact:
        return Artifact(self.group_id, self.artifact_id, self.version, self.packaging)

    @property
    def key(self) -> Tuple[str, str, str]:
        """Return the (groupId, artifactId, version) triple identifying this project in a reactor."""
        return (self.group_id, self.artifact_id, self.version)

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"
