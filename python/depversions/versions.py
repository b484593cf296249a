"""Maven version handling: ordering, component parsing and version ranges."""

import functools
import re
from dataclasses import dataclass
from itertools import zip_longest
from typing import Iterable, List, Optional

from .errors import VersionRangeError

QUALIFIERS = ["alpha", "beta", "milestone", "rc", "snapshot", "", "sp"]
ALIASES = {"ga": "", "final": "", "release": "", "cr": "rc"}
SHORT_QUALIFIERS = {"a": "alpha", "b": "beta", "m": "milestone"}

# Position of the release ("") qualifier, everything sorting before it is a pre-release
RELEASE_VERSION_INDEX = str(QUALIFIERS.index(""))

DIGITS = re.compile(r"\d+")


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _comparable_qualifier(qualifier: str) -> str:
    # Unknown qualifiers sort after all known ones, then lexically
    if qualifier in QUALIFIERS:
        return str(QUALIFIERS.index(qualifier))
    return f"{len(QUALIFIERS)}-{qualifier}"


class _IntItem:
    __slots__ = ("value",)

    def __init__(self, value: int):
        self.value = value

    def is_null(self) -> bool:
        return self.value == 0

    def compare_to(self, item) -> int:
        if item is None:
            return 0 if self.value == 0 else 1
        if isinstance(item, _IntItem):
            return _cmp(self.value, item.value)
        return 1

    def __str__(self) -> str:
        return str(self.value)


class _StringItem:
    __slots__ = ("value",)

    def __init__(self, value: str, followed_by_digit: bool):
        if followed_by_digit and len(value) == 1:
            value = SHORT_QUALIFIERS.get(value, value)
        self.value = ALIASES.get(value, value)

    def is_null(self) -> bool:
        return _comparable_qualifier(self.value) == RELEASE_VERSION_INDEX

    def compare_to(self, item) -> int:
        if item is None:
            return _cmp(_comparable_qualifier(self.value), RELEASE_VERSION_INDEX)
        if isinstance(item, _StringItem):
            return _cmp(_comparable_qualifier(self.value), _comparable_qualifier(item.value))
        return -1

    def __str__(self) -> str:
        return self.value


class _ListItem(list):

    def is_null(self) -> bool:
        return len(self) == 0

    def normalize(self) -> None:
        """Drop trailing null items (0, release qualifiers, empty sub lists)."""
        for i in range(len(self) - 1, -1, -1):
            last = self[i]
            if last.is_null():
                del self[i]
            elif not isinstance(last, _ListItem):
                break

    def compare_to(self, item) -> int:
        if item is None:
            if not self:
                return 0
            return self[0].compare_to(None)
        if isinstance(item, _IntItem):
            return -1
        if isinstance(item, _StringItem):
            return 1

        for left, right in zip_longest(self, item):
            if left is None:
                result = 0 if right is None else -1 * right.compare_to(left)
            else:
                result = left.compare_to(right)
            if result != 0:
                return result
        return 0

    def __str__(self) -> str:
        buffer = ""
        for item in self:
            if buffer:
                buffer += "-" if isinstance(item, _ListItem) else "."
            buffer += str(item)
        return buffer


def _parse_item(is_digit: bool, buffer: str):
    if is_digit:
        return _IntItem(int(buffer))
    return _StringItem(buffer, False)


def _parse_version(version: str) -> _ListItem:
    items = _ListItem()
    version = version.lower()

    current = items
    stack = [current]

    is_digit = False
    start = 0

    for i, c in enumerate(version):
        if c == '.':
            if i == start:
                current.append(_IntItem(0))
            else:
                current.append(_parse_item(is_digit, version[start:i]))
            start = i + 1
        elif c == '-':
            if i == start:
                current.append(_IntItem(0))
            else:
                current.append(_parse_item(is_digit, version[start:i]))
            start = i + 1

            sub_list = _ListItem()
            current.append(sub_list)
            current = sub_list
            stack.append(current)
        elif '0' <= c <= '9':
            if not is_digit and i > start:
                current.append(_StringItem(version[start:i], True))
                start = i

                sub_list = _ListItem()
                current.append(sub_list)
                current = sub_list
                stack.append(current)
            is_digit = True
        else:
            if is_digit and i > start:
                current.append(_parse_item(True, version[start:i]))
                start = i

                sub_list = _ListItem()
                current.append(sub_list)
                current = sub_list
                stack.append(current)
            is_digit = False

    if len(version) > start:
        current.append(_parse_item(is_digit, version[start:]))

    while stack:
        stack.pop().normalize()

    return items


@functools.total_ordering
class ComparableVersion:
    """A version string with Maven ordering semantics.

    Numeric items compare numerically, qualifiers compare in the order
    alpha < beta < milestone < rc < snapshot < (release) < sp, unknown
    qualifiers sort after those lexically. Trailing zeros and release
    qualifiers are insignificant: 1.0 == 1 == 1.0.0-ga.
    """

    __slots__ = ("value", "canonical", "_items")

    def __init__(self, version: str):
        if version is None:
            raise ValueError("version is None")
        self.value = version
        self._items = _parse_version(version)
        self.canonical = str(self._items)

    def compare_to(self, other: 'ComparableVersion') -> int:
        return self._items.compare_to(other._items)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ComparableVersion):
            return NotImplemented
        return self.canonical == other.canonical

    def __lt__(self, other) -> bool:
        if not isinstance(other, ComparableVersion):
            return NotImplemented
        return self.compare_to(other) < 0

    def __hash__(self) -> int:
        return hash(self.canonical)

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"ComparableVersion({self.value!r})"


def _try_parse_int(value: str) -> Optional[int]:
    if not DIGITS.fullmatch(value):
        return None
    number = int(value)
    # Java int overflow
    if number > 2 ** 31 - 1:
        return None
    return number


def _integer_token(token: str) -> int:
    if len(token) > 1 and token.startswith("0"):
        raise ValueError(f"Number part has a leading 0: '{token}'")
    number = _try_parse_int(token)
    if number is None:
        raise ValueError(f"Not a number: '{token}'")
    return number


@dataclass(frozen=True)
class ArtifactVersion:
    """
    A version decomposed into major, minor, incremental, build number and qualifier.

    Follows the conventional Maven scheme <major>.<minor>.<incremental>-<qualifier or build number>.
    Versions that do not fit are kept as qualifier only, all numeric parts being 0.
    """
    major: int = 0
    minor: int = 0
    incremental: int = 0
    build_number: int = 0
    qualifier: Optional[str] = None

    @classmethod
    def parse(cls, version: str) -> 'ArtifactVersion':
        """
        Parse a version string.

        Args:
            version: The version string to parse

        Returns:
            ArtifactVersion with the numeric components and qualifier
        """
        major = minor = incremental = build_number = None
        qualifier = None

        index = version.find('-')
        if index < 0:
            part1, part2 = version, None
        else:
            part1, part2 = version[:index], version[index + 1:]

        if part2 is not None:
            if len(part2) == 1 or not part2.startswith("0"):
                build_number = _try_parse_int(part2)
                if build_number is None:
                    qualifier = part2
            else:
                qualifier = part2

        if "." not in part1 and not part1.startswith("0"):
            major = _try_parse_int(part1)
            if major is None:
                # qualifier is the whole version, including "-"
                qualifier = version
                build_number = None
        else:
            fallback = False
            tokens = [t for t in part1.split(".") if t]
            try:
                if tokens:
                    major = _integer_token(tokens[0])
                if len(tokens) > 1:
                    minor = _integer_token(tokens[1])
                if len(tokens) > 2:
                    incremental = _integer_token(tokens[2])
                if len(tokens) > 3:
                    qualifier = tokens[3]
                    fallback = DIGITS.fullmatch(qualifier) is not None
                if len(tokens) > 4:
                    fallback = True
            except ValueError:
                fallback = True

            if ".." in part1 or part1.startswith(".") or part1.endswith("."):
                fallback = True

            if fallback:
                qualifier = version
                major = minor = incremental = build_number = None

        return cls(
            major=major or 0,
            minor=minor or 0,
            incremental=incremental or 0,
            build_number=build_number or 0,
            qualifier=qualifier,
        )


@dataclass(frozen=True)
class Restriction:
    """One interval of a version range. A missing bound is unbounded."""
    lower_bound: Optional[ComparableVersion] = None
    lower_inclusive: bool = False
    upper_bound: Optional[ComparableVersion] = None
    upper_inclusive: bool = False

    def contains(self, version: ComparableVersion) -> bool:
        if self.lower_bound is not None:
            comparison = version.compare_to(self.lower_bound)
            if comparison < 0 or (comparison == 0 and not self.lower_inclusive):
                return False
        if self.upper_bound is not None:
            comparison = version.compare_to(self.upper_bound)
            if comparison > 0 or (comparison == 0 and not self.upper_inclusive):
                return False
        return True


EVERYTHING = Restriction()


class VersionRange:
    """
    A Maven version specification.

    Either a soft requirement ("1.0", any version may be substituted, 1.0 recommended) or a
    set of ranges ("[1.0,2.0)", "(,1.0],[1.2,)", "[1.5]").
    """

    def __init__(self, spec: str, restrictions: List[Restriction], recommended_version: Optional[ComparableVersion]):
        self.spec = spec
        self.restrictions = restrictions
        self.recommended_version = recommended_version

    @classmethod
    def create(cls, spec: str) -> 'VersionRange':
        if spec is None or not spec.strip():
            raise VersionRangeError("Version specification is empty")

        process = spec.strip()
        restrictions: List[Restriction] = []
        upper_bound = None
        lower_bound = None

        while process.startswith("[") or process.startswith("("):
            index1 = process.find(")")
            index2 = process.find("]")

            index = index2
            if index2 < 0 or (0 <= index1 < index2):
                index = index1

            if index < 0:
                raise VersionRangeError(f"Unbounded range: {spec}")

            restriction = cls._parse_restriction(process[:index + 1])
            if lower_bound is None:
                lower_bound = restriction.lower_bound
            if upper_bound is not None:
                if restriction.lower_bound is None or restriction.lower_bound < upper_bound:
                    raise VersionRangeError(f"Ranges overlap: {spec}")
            restrictions.append(restriction)
            upper_bound = restriction.upper_bound

            process = process[index + 1:].strip()
            if process.startswith(","):
                process = process[1:].strip()

        recommended = None
        if process:
            if restrictions:
                raise VersionRangeError(f"Only fully-qualified sets allowed in multiple set scenario: {spec}")
            recommended = ComparableVersion(process)
            restrictions.append(EVERYTHING)

        return cls(spec, restrictions, recommended)

    @staticmethod
    def _parse_restriction(spec: str) -> Restriction:
        lower_inclusive = spec.startswith("[")
        upper_inclusive = spec.endswith("]")

        process = spec[1:-1].strip()
        index = process.find(",")

        if index < 0:
            if not lower_inclusive or not upper_inclusive:
                raise VersionRangeError(f"Single version must be surrounded by []: {spec}")
            version = ComparableVersion(process)
            return Restriction(version, True, version, True)

        lower = process[:index].strip()
        upper = process[index + 1:].strip()

        lower_version = ComparableVersion(lower) if lower else None
        upper_version = ComparableVersion(upper) if upper else None

        if lower_version is not None and upper_version is not None and upper_version < lower_version:
            raise VersionRangeError(f"Range defies version ordering: {spec}")

        return Restriction(lower_version, lower_inclusive, upper_version, upper_inclusive)

    @property
    def is_range(self) -> bool:
        return self.recommended_version is None

    def contains_version(self, version: ComparableVersion) -> bool:
        if self.recommended_version is not None:
            return self.recommended_version == version
        return any(r.contains(version) for r in self.restrictions)

    def matching_versions(self, candidates: Iterable[ComparableVersion]) -> List[ComparableVersion]:
        """Return the candidates inside this range, in ascending order."""
        if self.recommended_version is not None:
            return [self.recommended_version]
        return sorted(v for v in candidates if self.contains_version(v))

    def __str__(self) -> str:
        return self.spec
