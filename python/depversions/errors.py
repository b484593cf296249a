"""Exception types raised by depversions."""

from typing import Iterable, List, Optional


class DependencyVersionsError(Exception):
    """Base class for all depversions errors."""


class ConfigurationError(DependencyVersionsError):
    """Invalid configuration: unknown scope or strategy, malformed exclusion or pattern."""


class UnresolvedDependencyError(DependencyVersionsError):
    """Dependencies could not be resolved and no recovery policy applied."""

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result

    @property
    def unresolved_dependencies(self) -> List:
        if self.result is None:
            return []
        return list(self.result.unresolved)


class RangeInconsistencyError(DependencyVersionsError):
    """The declared version range of a direct dependency does not contain the resolved version."""


class VersionRangeError(DependencyVersionsError):
    """A version specification could not be parsed or resolved."""


class ModelBuildingError(DependencyVersionsError):
    """The model (POM) of a dependency could not be read."""


class DependencyVersionCheckError(DependencyVersionsError):
    """Aggregated failure of a resolution run.

    Lists every unresolved dependency and every other failure message instead
    of surfacing only the first problem.
    """

    def __init__(self, messages: Iterable[str], failed_dependencies: Optional[Iterable[str]] = None):
        self.messages = list(dict.fromkeys(messages))
        self.failed_dependencies = list(dict.fromkeys(failed_dependencies or []))

        message = "    \n".join(self.messages)
        if self.failed_dependencies:
            if message:
                message += "\n"
            message += f"Could not resolve dependencies: [{', '.join(self.failed_dependencies)}]"
        super().__init__(message)


class ConflictFailure(DependencyVersionsError):
    """A version conflict was found and the check is configured to fail on it."""
