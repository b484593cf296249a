"""Maven pom.xml parser producing project models."""

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import requests

from .errors import ModelBuildingError
from .models import Artifact, Dependency, Exclusion, Project

logger = logging.getLogger(__name__)

MAVEN_CENTRAL_URL = "https://repo1.maven.org/maven2"
MAVEN_CENTRAL_PREFIX = "maven-central:"
DEFAULT_RELATIVE_PATH = "../pom.xml"

# (root element, location) where location is a file path or maven-central:g:a:v
PomDocument = Tuple[ET.Element, str]


def _local_name(tag) -> str:
    """Tag name without the namespace, POMs are read with or without the Maven namespace."""
    if not isinstance(tag, str):
        return ""
    return tag.split('}')[-1] if '}' in tag else tag


def find_child(parent: ET.Element, tag_name: str) -> Optional[ET.Element]:
    for child in parent:
        if _local_name(child.tag) == tag_name:
            return child
    return None


def find_children(parent: ET.Element, path: str) -> List[ET.Element]:
    """Children at a slash separated path, e.g. 'dependencies/dependency'."""
    *containers, tag_name = path.split('/')
    current = parent
    for container in containers:
        current = find_child(current, container)
        if current is None:
            return []
    return [child for child in current if _local_name(child.tag) == tag_name]


def get_element_text(parent: ET.Element, tag_name: str) -> Optional[str]:
    """Get text content of a direct child element."""
    elem = find_child(parent, tag_name)
    if elem is not None and elem.text and elem.text.strip():
        return elem.text.strip()
    return None


def resolve_property(value: Optional[str], properties: Dict[str, str], max_iterations: int = 10) -> Optional[str]:
    """
    Resolve ${property} references in a string with nesting support.
    Returns None if unresolvable.
    """
    if not value or '${' not in value:
        return value

    resolved = value
    iterations = 0

    while '${' in resolved and iterations < max_iterations:
        start_idx = resolved.find('${')
        end_idx = resolved.find('}', start_idx)

        if end_idx == -1:
            break

        prop_name = resolved[start_idx + 2:end_idx]
        prop_value = properties.get(prop_name)

        if prop_value is None:
            return None

        resolved = resolved[:start_idx] + prop_value + resolved[end_idx + 1:]
        iterations += 1

    if '${' in resolved:
        return None

    return resolved


def parse_properties(root: ET.Element) -> Dict[str, str]:
    """Parse all properties from <properties> section."""
    properties = {}

    props_elem = find_child(root, 'properties')
    if props_elem is not None:
        for prop in props_elem:
            tag = _local_name(prop.tag)
            if tag and prop.text:
                properties[tag] = prop.text.strip()

    return properties


def parse_exclusions(dep_elem: ET.Element, properties: Dict[str, str]) -> Tuple[Exclusion, ...]:
    """Parse <exclusions> from a dependency element."""
    exclusions = []

    for exclusion in find_children(dep_elem, 'exclusions/exclusion'):
        ex_group = resolve_property(get_element_text(exclusion, 'groupId'), properties)
        ex_artifact = resolve_property(get_element_text(exclusion, 'artifactId'), properties)

        if ex_group and ex_artifact:
            exclusions.append(Exclusion(ex_group, ex_artifact))
            logger.debug(f"Found exclusion: {ex_group}:{ex_artifact}")

    return tuple(exclusions)


def download_pom_from_maven_central(group_id: str, artifact_id: str, version: str,
                                    timeout: int = 30) -> Optional[ET.Element]:
    """Download a POM file from Maven Central and return parsed root element."""
    group_path = group_id.replace('.', '/')
    url = f"{MAVEN_CENTRAL_URL}/{group_path}/{artifact_id}/{version}/{artifact_id}-{version}.pom"

    logger.info(f"Downloading POM from Maven Central: {group_id}:{artifact_id}:{version}")
    logger.debug(f"URL: {url}")

    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        logger.warning(f"Error downloading POM {group_id}:{artifact_id}:{version}: {e}")
        return None

    if not response.ok:
        logger.warning(f"Failed to download POM {group_id}:{artifact_id}:{version}: HTTP {response.status_code}")
        return None

    try:
        return ET.fromstring(response.content)
    except ET.ParseError as e:
        logger.warning(f"Downloaded POM {group_id}:{artifact_id}:{version} is not valid XML: {e}")
        return None


class PomParser:
    """
    Reads Maven pom.xml files into Project models.

    Parent POMs are looked up through relativePath first and downloaded from
    Maven Central otherwise. Properties, groupId, version and dependency
    management are inherited, BOM imports are resolved, and managed versions,
    scopes and exclusions are applied to the declared dependencies.
    """

    def __init__(self, timeout: int = 30):
        self.timeout = timeout
        self._downloads: Dict[Tuple[str, str, str], Optional[ET.Element]] = {}

    def parse(self, file_path: str) -> Project:
        """
        Parse a single pom.xml file.

        Raises:
            ModelBuildingError: The file can not be read or lacks coordinates
        """
        root = self._read_file(file_path)
        return self._build_project(root, str(Path(file_path).resolve()))

    def parse_reactor(self, file_path: str) -> List[Project]:
        """
        Parse a pom.xml and, recursively, all modules it lists.

        Returns:
            The root project followed by its modules, in declaration order
        """
        projects: List[Project] = []
        self._collect_modules(Path(file_path).resolve(), projects, set())
        logger.info(f"Reactor contains {len(projects)} projects")
        return projects

    def _collect_modules(self, pom_path: Path, projects: List[Project], visited: Set[Path]) -> None:
        if pom_path in visited:
            return
        visited.add(pom_path)

        project = self.parse(str(pom_path))
        projects.append(project)

        for module in project.modules:
            module_path = (pom_path.parent / module).resolve()
            if module_path.is_dir():
                module_path = module_path / "pom.xml"
            if not module_path.exists():
                logger.warning(f"Module {module} of {project} not found at {module_path}")
                continue
            self._collect_modules(module_path, projects, visited)

    def _read_file(self, file_path: str) -> ET.Element:
        logger.info(f"Reading POM from file: {file_path}")
        try:
            return ET.parse(file_path).getroot()
        except (OSError, ET.ParseError) as e:
            raise ModelBuildingError(f"Could not read POM {file_path}: {e}") from e

    def _download(self, group_id: str, artifact_id: str, version: str) -> Optional[ET.Element]:
        key = (group_id, artifact_id, version)
        if key not in self._downloads:
            self._downloads[key] = download_pom_from_maven_central(group_id, artifact_id, version, self.timeout)
        return self._downloads[key]

    def _parent_hierarchy(self, root: ET.Element, location: str) -> List[PomDocument]:
        """Parent POMs of a document, oldest first."""
        parent_elem = find_child(root, 'parent')
        if parent_elem is None:
            return []

        parent_group_id = get_element_text(parent_elem, 'groupId')
        parent_artifact_id = get_element_text(parent_elem, 'artifactId')
        parent_version = get_element_text(parent_elem, 'version')
        coordinates = f"{parent_group_id}:{parent_artifact_id}:{parent_version}"

        parent: Optional[PomDocument] = None
        if not location.startswith(MAVEN_CENTRAL_PREFIX):
            relative_path = get_element_text(parent_elem, 'relativePath') or DEFAULT_RELATIVE_PATH
            parent_path = (Path(location).parent / relative_path).resolve()
            if parent_path.is_dir():
                parent_path = parent_path / "pom.xml"

            if parent_path.exists():
                try:
                    candidate = ET.parse(parent_path).getroot()
                except ET.ParseError as e:
                    logger.debug(f"Error reading local parent POM {parent_path}: {e}")
                    candidate = None

                if candidate is not None and self._coordinates_match(candidate, parent_group_id, parent_artifact_id):
                    logger.info(f"Found parent POM at: {parent_path}")
                    parent = (candidate, str(parent_path))
                elif candidate is not None:
                    logger.info(f"Local POM at {parent_path} has different coordinates, will try Maven Central")

        if parent is None and parent_group_id and parent_artifact_id and parent_version:
            parent_root = self._download(parent_group_id, parent_artifact_id, parent_version)
            if parent_root is not None:
                parent = (parent_root, f"{MAVEN_CENTRAL_PREFIX}{coordinates}")

        if parent is None:
            logger.warning(f"Could not resolve parent POM {coordinates}")
            return []

        return self._parent_hierarchy(*parent) + [parent]

    @staticmethod
    def _coordinates_match(root: ET.Element, group_id: Optional[str], artifact_id: Optional[str]) -> bool:
        candidate_group = get_element_text(root, 'groupId')
        if candidate_group is None:
            parent_elem = find_child(root, 'parent')
            if parent_elem is not None:
                candidate_group = get_element_text(parent_elem, 'groupId')
        return candidate_group == group_id and get_element_text(root, 'artifactId') == artifact_id

    def _effective_model(self, root: ET.Element, location: str,
                         imported_boms: Set[Tuple[str, str, str]]) -> Tuple[Project, Dict[str, str]]:
        """Inherit coordinates, properties and dependency management; returns the project without dependencies."""
        hierarchy = self._parent_hierarchy(root, location)

        group_id = get_element_text(root, 'groupId')
        artifact_id = get_element_text(root, 'artifactId')
        version = get_element_text(root, 'version')
        packaging = get_element_text(root, 'packaging') or 'jar'

        properties: Dict[str, str] = {}
        parent_elem = find_child(root, 'parent')
        if parent_elem is not None:
            parent_group_id = get_element_text(parent_elem, 'groupId')
            parent_version = get_element_text(parent_elem, 'version')
            group_id = group_id or parent_group_id
            version = version or parent_version
            if parent_group_id:
                properties['project.parent.groupId'] = parent_group_id
            if parent_version:
                properties['project.parent.version'] = parent_version

        for pom_root, _ in hierarchy:
            properties.update(parse_properties(pom_root))
        own_properties = parse_properties(root)
        properties.update(own_properties)
        logger.debug(f"Loaded {len(properties)} properties total ({len(own_properties)} from {location})")

        if not artifact_id:
            raise ModelBuildingError(f"POM {location} has no artifactId")
        properties['project.artifactId'] = artifact_id
        properties['project.packaging'] = packaging
        if group_id:
            properties['project.groupId'] = group_id
        if version:
            properties['project.version'] = version

        resolved_version = resolve_property(version, properties)
        if resolved_version is None:
            logger.warning(f"Could not resolve version {version} of {location}")
            resolved_version = version or 'unknown'
        properties['project.version'] = resolved_version

        resolved_group = resolve_property(group_id, properties)
        if not resolved_group:
            raise ModelBuildingError(f"POM {location} has no groupId")
        properties['project.groupId'] = resolved_group

        management: Dict[str, Dependency] = {}
        imported: Dict[str, Dependency] = {}
        for pom_root, _ in hierarchy + [(root, location)]:
            explicit, bom_entries = self._parse_dependency_management(pom_root, properties, imported_boms)
            management.update(explicit)
            imported.update(bom_entries)

        # declared and inherited entries win over imported ones
        effective_management = {**imported, **management}
        logger.info(f"Total {len(effective_management)} managed dependencies for {location}")

        project = Project(
            group_id=resolved_group,
            artifact_id=artifact_id,
            version=resolved_version,
            packaging=packaging,
            dependency_management=effective_management,
            modules=[m.text.strip() for m in find_children(root, 'modules/module') if m.text and m.text.strip()],
            path=None if location.startswith(MAVEN_CENTRAL_PREFIX) else location,
        )
        return project, properties

    def _parse_dependency_management(self, root: ET.Element, properties: Dict[str, str],
                                     imported_boms: Set[Tuple[str, str, str]]
                                     ) -> Tuple[Dict[str, Dependency], Dict[str, Dependency]]:
        """Parse <dependencyManagement>, returning (declared entries, entries imported from BOMs)."""
        managed: Dict[str, Dependency] = {}
        imported: Dict[str, Dependency] = {}

        mgmt_elem = find_child(root, 'dependencyManagement')
        if mgmt_elem is None:
            return managed, imported

        for dep in find_children(mgmt_elem, 'dependencies/dependency'):
            dependency = self._parse_dependency(dep, properties)
            if dependency is None:
                continue
            artifact = dependency.artifact

            # BOM imports (scope=import, type=pom)
            if dependency.scope == 'import' and artifact.type == 'pom':
                if not artifact.version:
                    logger.debug(f"Could not resolve version for BOM import {artifact.name}")
                    continue
                imported.update(self._import_bom(artifact.group_id, artifact.artifact_id, artifact.version,
                                                 imported_boms))
                continue

            if not artifact.version:
                logger.debug(f"Could not resolve managed version for {artifact.name}")
                continue
            managed[artifact.name] = dependency

        logger.debug(f"Parsed {len(managed)} managed dependencies from dependencyManagement")
        return managed, imported

    def _import_bom(self, group_id: str, artifact_id: str, version: str,
                    imported_boms: Set[Tuple[str, str, str]]) -> Dict[str, Dependency]:
        key = (group_id, artifact_id, version)
        if key in imported_boms:
            logger.debug(f"BOM {group_id}:{artifact_id}:{version} already imported")
            return {}
        imported_boms.add(key)

        logger.info(f"Importing BOM: {group_id}:{artifact_id}:{version}")
        bom_root = self._download(group_id, artifact_id, version)
        if bom_root is None:
            logger.warning(f"Failed to download BOM: {group_id}:{artifact_id}:{version}")
            return {}

        bom, _ = self._effective_model(bom_root, f"{MAVEN_CENTRAL_PREFIX}{group_id}:{artifact_id}:{version}",
                                       imported_boms)
        logger.info(f"Imported {len(bom.dependency_management)} managed versions from BOM {group_id}:{artifact_id}")
        return bom.dependency_management

    def _parse_dependency(self, dep: ET.Element, properties: Dict[str, str]) -> Optional[Dependency]:
        group_id = resolve_property(get_element_text(dep, 'groupId'), properties)
        artifact_id = resolve_property(get_element_text(dep, 'artifactId'), properties)
        if not group_id or not artifact_id:
            logger.warning(f"Skipping dependency with unresolvable coordinates: "
                           f"{get_element_text(dep, 'groupId')}:{get_element_text(dep, 'artifactId')}")
            return None

        version = get_element_text(dep, 'version')
        resolved_version = resolve_property(version, properties)
        if version and resolved_version is None:
            logger.warning(f"Unresolvable version {version} for {group_id}:{artifact_id}")

        dependency_type = resolve_property(get_element_text(dep, 'type'), properties) or 'jar'
        classifier = resolve_property(get_element_text(dep, 'classifier'), properties) or ''
        scope = resolve_property(get_element_text(dep, 'scope'), properties)
        optional = (resolve_property(get_element_text(dep, 'optional'), properties) or '').lower() == 'true'

        return Dependency(
            artifact=Artifact(group_id, artifact_id, resolved_version or '', dependency_type, classifier),
            scope=scope or '',
            optional=optional,
            exclusions=parse_exclusions(dep, properties),
        )

    def _build_project(self, root: ET.Element, location: str) -> Project:
        project, properties = self._effective_model(root, location, set())
        management = project.dependency_management

        for dep in find_children(root, 'dependencies/dependency'):
            declared = self._parse_dependency(dep, properties)
            if declared is None:
                continue

            artifact = declared.artifact
            managed = management.get(artifact.name)

            version = artifact.version
            if not version and managed is not None:
                version = managed.artifact.version
                logger.debug(f"Resolved version for {artifact.name} from dependencyManagement: {version}")
            if not version:
                logger.warning(f"Skipping dependency with no version: {artifact.name}")
                continue

            scope = declared.scope
            if not scope and managed is not None and managed.scope:
                scope = managed.scope
                logger.debug(f"Inherited scope {scope} for {artifact.name} from dependencyManagement")

            exclusions = declared.exclusions
            if not exclusions and managed is not None:
                exclusions = managed.exclusions

            dependency = Dependency(artifact.with_version(version), scope or 'compile', declared.optional, exclusions)
            project.dependencies.append(dependency)
            logger.debug(f"Added dependency from pom.xml: {dependency}")

        logger.info(f"Parsed {len(project.dependencies)} dependencies from {location}")
        return project
