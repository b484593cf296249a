"""Output formatters for check and list reports."""

import json
import logging
from dataclasses import dataclass
from typing import Collection, List, Optional

from packageurl import PackageURL
from cyclonedx.model import Property
from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentScope, ComponentType
from cyclonedx.output.json import JsonV1Dot6

from .models import Project
from .qualified_name import QualifiedName
from .resolution import VersionResolutionCollection
from .versions import ComparableVersion

logger = logging.getLogger(__name__)

PROPERTY_PREFIX = "depversions"
VERSION_INDENT = "       "


@dataclass
class ReportEntry:
    """
    One reported artifact of a project.

    Attributes:
        name: Identity of the artifact
        resolved_version: Version selected in the project's graph
        scope: Scope of the artifact in the project's graph
        direct: True if the project requests the artifact itself
        managed: True if the selected version comes from dependency management
        strategy: Name of the strategy used to check the artifact
        collections: Expected versions with their requesters, ordered by version
    """
    name: QualifiedName
    resolved_version: ComparableVersion
    scope: str
    direct: bool
    managed: bool
    strategy: str
    collections: List[VersionResolutionCollection]

    @property
    def has_conflict(self) -> bool:
        return any(c.has_conflict for c in self.collections)

    @property
    def unselected(self) -> List[VersionResolutionCollection]:
        """Expected versions other than the selected one."""
        return [c for c in self.collections if not c.is_match_for(self.resolved_version)]


class OutputFormatter:
    """Formatter for the report formats."""

    @staticmethod
    def format_check_entry(entry: ReportEntry) -> str:
        """Format one artifact: a headline plus one line per expected version and its requesters."""
        lines = [
            f"{entry.name.short_name}: {entry.resolved_version} "
            f"({'direct' if entry.direct else 'transitive'}{', managed' if entry.managed else ''}) "
            f"- scope: {entry.scope} - strategy: {entry.strategy}"
        ]

        version_padding = max((len(str(c.expected_version)) for c in entry.collections), default=0)
        for collection in entry.collections:
            requesters = []
            for element in collection.elements:
                name = element.requester.short_name
                requesters.append(f"*{name}*" if element.direct else name)
            padded_version = str(collection.expected_version).ljust(version_padding + 1)
            lines.append(f"{VERSION_INDENT}{padded_version}expected by {', '.join(requesters)}")

        return '\n'.join(lines)

    @staticmethod
    def format_check_report(entries: Collection[ReportEntry]) -> str:
        """Format the check report of a project."""
        if not entries:
            return ''
        return '\n'.join(OutputFormatter.format_check_entry(e) for e in entries) + '\n'

    @staticmethod
    def format_list_entry(entry: ReportEntry, name_padding: int, scope_padding: int) -> str:
        line = (f"{(entry.name.short_name + ': ').ljust(name_padding + 2)}"
                f"{entry.scope.ljust(scope_padding + 1)}{entry.resolved_version}")

        unselected = entry.unselected
        if unselected:
            versions = []
            for collection in unselected:
                version = str(collection.expected_version)
                if collection.has_conflict:
                    versions.append(f"!{version}!")
                elif collection.has_direct_dependencies:
                    versions.append(f"*{version}*")
                else:
                    versions.append(version)
            line += f" ({', '.join(versions)})"

        return line

    @staticmethod
    def format_list_report(entries: Collection[ReportEntry]) -> str:
        """Format as a columnar list: name, scope, selected version and the versions not selected."""
        if not entries:
            return ''

        name_padding = max(e.name.length() for e in entries)
        scope_padding = max(len(e.scope) for e in entries)
        lines = [OutputFormatter.format_list_entry(e, name_padding, scope_padding) for e in entries]
        return '\n'.join(lines) + '\n'

    @staticmethod
    def format_as_sbom(projects: List[Project], entries: Collection[ReportEntry],
                       command_line: Optional[str] = None) -> str:
        """Generate a CycloneDX SBOM in JSON format, one component per reported artifact."""
        from . import __version__

        bom = Bom()

        tool_purl = PackageURL(type='pypi', name='depversions', version=__version__)
        tool_component = Component(
            name="depversions",
            version=__version__,
            type=ComponentType.APPLICATION,
            purl=tool_purl,
            bom_ref=tool_purl.to_string(),
        )
        bom.metadata.tools.components.add(tool_component)

        root_component = None
        if projects:
            root = projects[0]
            root_purl = OutputFormatter._build_purl(QualifiedName.from_project(root), root.version)
            root_component = Component(
                name=root.artifact_id,
                group=root.group_id,
                version=root.version,
                type=ComponentType.APPLICATION,
                purl=root_purl,
                bom_ref=root_purl.to_string(),
            )
            bom.metadata.component = root_component

        if command_line:
            bom.metadata.properties.add(Property(name='commandLine', value=command_line))

        components = []
        seen_refs = set()
        for entry in entries:
            component = OutputFormatter._entry_to_component(entry)
            if str(component.bom_ref) in seen_refs:
                logger.debug(f"Skipping duplicate component {component.bom_ref}")
                continue
            seen_refs.add(str(component.bom_ref))
            components.append(component)
            bom.components.add(component)

        if root_component is not None:
            bom.register_dependency(root_component, components)

        outputter = JsonV1Dot6(bom)
        sbom = json.loads(outputter.output_as_string())
        return json.dumps(sbom, indent=2) + '\n'

    @staticmethod
    def _maven_scope_to_cyclonedx(maven_scope: str) -> ComponentScope:
        """
        Map Maven scope to CycloneDX ComponentScope.

        Maven scopes:
          compile, runtime -> REQUIRED (needed at runtime)
          test, provided, system -> EXCLUDED (not needed at runtime)
        """
        scope_lower = (maven_scope or "compile").lower()

        if scope_lower in ("test", "provided", "system"):
            return ComponentScope.EXCLUDED
        return ComponentScope.REQUIRED

    @staticmethod
    def _entry_to_component(entry: ReportEntry) -> Component:
        """Convert a report entry to a CycloneDX Component."""
        purl = OutputFormatter._build_purl(entry.name, str(entry.resolved_version))

        properties = [
            Property(name=f"{PROPERTY_PREFIX}:resolved", value=str(entry.resolved_version)),
            Property(name=f"{PROPERTY_PREFIX}:conflict", value=str(entry.has_conflict).lower()),
            Property(name=f"{PROPERTY_PREFIX}:strategy", value=entry.strategy),
        ]
        for collection in entry.collections:
            requesters = ', '.join(e.requester.short_name for e in collection.elements)
            conflict = " (conflict)" if collection.has_conflict else ""
            properties.append(Property(
                name=f"{PROPERTY_PREFIX}:expected",
                value=f"{collection.expected_version}{conflict} expected by {requesters}",
            ))

        return Component(
            name=entry.name.artifact_id,
            group=entry.name.group_id,
            version=str(entry.resolved_version),
            type=ComponentType.LIBRARY,
            scope=OutputFormatter._maven_scope_to_cyclonedx(entry.scope),
            purl=purl,
            bom_ref=purl.to_string(),
            properties=properties,
        )

    @staticmethod
    def _build_purl(name: QualifiedName, version: str) -> PackageURL:
        """Build a Package URL for a Maven artifact; type and classifier become qualifiers."""
        qualifiers = {}
        if name.type and name.type != 'jar':
            qualifiers['type'] = name.type
        if name.classifier:
            qualifiers['classifier'] = name.classifier
        return PackageURL(type='maven', namespace=name.group_id, name=name.artifact_id,
                          version=version, qualifiers=qualifiers or None)
