"""Version resolutions: who expects which version of an artifact, and whether that conflicts."""

import dataclasses
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from .qualified_name import QualifiedName
from .versions import ComparableVersion


@dataclass(frozen=True)
class VersionResolutionElement:
    """
    One requester of a version.

    Attributes:
        requester: The dependency (or root project) that asked for the version
        managed: True if the version was set by dependency management
        direct: True if the request comes straight from the root project
        conflict: True if the resolved version is not compatible with the expected one
    """
    requester: QualifiedName
    managed: bool = False
    direct: bool = False
    conflict: bool = field(default=False, compare=False)

    def __lt__(self, other: 'VersionResolutionElement') -> bool:
        return self.requester.minimal_name < other.requester.minimal_name


@dataclass(frozen=True)
class VersionResolution:
    """A single expected version, with the element that requested it."""
    element: VersionResolutionElement
    expected_version: ComparableVersion

    @classmethod
    def for_direct(cls, requester: QualifiedName, expected_version: ComparableVersion, managed: bool) -> 'VersionResolution':
        return cls(VersionResolutionElement(requester, managed, True), expected_version)

    @classmethod
    def for_transitive(cls, requester: QualifiedName, expected_version: ComparableVersion, managed: bool) -> 'VersionResolution':
        return cls(VersionResolutionElement(requester, managed, False), expected_version)

    @property
    def has_conflict(self) -> bool:
        return self.element.conflict

    def with_conflict(self) -> 'VersionResolution':
        """Return a copy of this resolution marked as conflicting."""
        return dataclasses.replace(self, element=dataclasses.replace(self.element, conflict=True))


class VersionResolutionCollection:
    """All requesters that expect the same version of an artifact."""

    def __init__(self, expected_version: ComparableVersion, elements: Iterable[VersionResolutionElement]):
        self.expected_version = expected_version
        # elements are ordered by requester minimal name, so a jar and its test-jar fold into one
        unique: Dict[str, VersionResolutionElement] = {}
        for element in elements:
            unique.setdefault(element.requester.minimal_name, element)
        self.elements: Tuple[VersionResolutionElement, ...] = tuple(sorted(unique.values()))

    @property
    def has_conflict(self) -> bool:
        return any(e.conflict for e in self.elements)

    @property
    def has_direct_dependencies(self) -> bool:
        return any(e.direct for e in self.elements)

    @property
    def has_managed_dependencies(self) -> bool:
        return any(e.managed for e in self.elements)

    def is_match_for(self, version: ComparableVersion) -> bool:
        """True if the selected version exactly matches the expected version."""
        return self.expected_version.canonical == version.canonical

    def __lt__(self, other: 'VersionResolutionCollection') -> bool:
        return self.expected_version < other.expected_version

    def __eq__(self, other) -> bool:
        if not isinstance(other, VersionResolutionCollection):
            return NotImplemented
        return self.expected_version == other.expected_version and self.elements == other.elements

    def __hash__(self) -> int:
        return hash((self.expected_version, self.elements))

    def __repr__(self) -> str:
        return f"VersionResolutionCollection(expected_version={self.expected_version!r}, elements={list(self.elements)!r})"


ResolutionMap = Dict[QualifiedName, List[VersionResolutionCollection]]


def to_resolution_map(resolutions: Iterable[Tuple[QualifiedName, VersionResolution]]) -> ResolutionMap:
    """
    Fold (identity, resolution) pairs into identity -> collections, one collection per expected version.

    Identities are ordered by name, collections by expected version. Repeated
    resolutions are kept once, the first one wins.
    """
    folded: Dict[QualifiedName, Dict[ComparableVersion, Dict[VersionResolutionElement, VersionResolutionElement]]] = {}
    for name, resolution in resolutions:
        by_version = folded.setdefault(name, {})
        elements = by_version.setdefault(resolution.expected_version, {})
        elements.setdefault(resolution.element, resolution.element)

    result: ResolutionMap = {}
    for name in sorted(folded):
        collections = [VersionResolutionCollection(version, elements.values())
                       for version, elements in folded[name].items()]
        result[name] = sorted(collections)
    return result
