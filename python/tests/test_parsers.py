"""Tests for the pom.xml parser."""

import logging
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
import requests

from depversions.errors import ModelBuildingError
from depversions.models import Exclusion
from depversions.parsers import PomParser, download_pom_from_maven_central, resolve_property

NAMESPACE = 'xmlns="http://maven.apache.org/POM/4.0.0"'


def write_pom(directory: Path, body: str, namespaced: bool = True) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    pom = directory / "pom.xml"
    pom.write_text(f'<?xml version="1.0"?>\n<project {NAMESPACE if namespaced else ""}>\n'
                   f'<modelVersion>4.0.0</modelVersion>\n{body}\n</project>\n')
    return pom


def by_name(project):
    return {d.artifact.name: d for d in project.dependencies}


PARENT = """
<groupId>com.example</groupId>
<artifactId>parent</artifactId>
<version>1.0</version>
<packaging>pom</packaging>
<modules>
  <module>child</module>
</modules>
<properties>
  <guava.version>32.1.3-jre</guava.version>
</properties>
<dependencyManagement>
  <dependencies>
    <dependency>
      <groupId>com.google.guava</groupId>
      <artifactId>guava</artifactId>
      <version>${guava.version}</version>
    </dependency>
    <dependency>
      <groupId>junit</groupId>
      <artifactId>junit</artifactId>
      <version>4.13.2</version>
      <scope>test</scope>
      <exclusions>
        <exclusion>
          <groupId>org.hamcrest</groupId>
          <artifactId>hamcrest-core</artifactId>
        </exclusion>
      </exclusions>
    </dependency>
  </dependencies>
</dependencyManagement>
"""

CHILD = """
<parent>
  <groupId>com.example</groupId>
  <artifactId>parent</artifactId>
  <version>1.0</version>
</parent>
<artifactId>child</artifactId>
<dependencies>
  <dependency>
    <groupId>com.google.guava</groupId>
    <artifactId>guava</artifactId>
  </dependency>
  <dependency>
    <groupId>junit</groupId>
    <artifactId>junit</artifactId>
  </dependency>
  <dependency>
    <groupId>${project.groupId}</groupId>
    <artifactId>sibling</artifactId>
    <version>${project.version}</version>
  </dependency>
</dependencies>
"""


@pytest.fixture
def reactor(tmp_path):
    write_pom(tmp_path, PARENT)
    write_pom(tmp_path / "child", CHILD)
    return tmp_path


class TestResolveProperty:
    """Tests for ${property} substitution."""

    def test_plain_value(self):
        assert resolve_property("1.0", {}) == "1.0"
        assert resolve_property(None, {}) is None

    def test_nested_properties(self):
        properties = {"major": "2", "version": "${major}.1", "full": "v${version}"}

        assert resolve_property("${full}-final", properties) == "v2.1-final"

    def test_unresolvable(self):
        assert resolve_property("${missing}", {}) is None

    def test_recursion_limit(self):
        assert resolve_property("${loop}", {"loop": "${loop}"}) is None


class TestPomParser:
    """Tests for reading single POM files."""

    def test_dependencies_properties_and_exclusions(self, tmp_path):
        pom = write_pom(tmp_path, """
<groupId>com.example</groupId>
<artifactId>app</artifactId>
<version>2.0</version>
<properties><lang.version>3.14.0</lang.version></properties>
<dependencies>
  <dependency>
    <groupId>org.apache.commons</groupId>
    <artifactId>commons-lang3</artifactId>
    <version>${lang.version}</version>
    <exclusions>
      <exclusion><groupId>*</groupId><artifactId>*</artifactId></exclusion>
    </exclusions>
  </dependency>
  <dependency>
    <groupId>org.mockito</groupId>
    <artifactId>mockito-core</artifactId>
    <version>5.11.0</version>
    <scope>test</scope>
    <optional>true</optional>
  </dependency>
  <dependency>
    <groupId>com.example</groupId>
    <artifactId>natives</artifactId>
    <version>1.0</version>
    <type>test-jar</type>
    <classifier>linux</classifier>
  </dependency>
</dependencies>
""")
        project = PomParser().parse(str(pom))

        assert str(project) == "com.example:app:2.0"
        assert project.packaging == "jar"
        assert project.path == str(pom.resolve())

        dependencies = by_name(project)
        lang = dependencies["org.apache.commons:commons-lang3"]
        assert lang.artifact.version == "3.14.0"
        assert lang.scope == "compile"
        assert lang.exclusions == (Exclusion("*", "*"),)

        mockito = dependencies["org.mockito:mockito-core"]
        assert mockito.scope == "test"
        assert mockito.optional

        natives = dependencies["com.example:natives"]
        assert (natives.artifact.type, natives.artifact.classifier) == ("test-jar", "linux")

    def test_pom_without_namespace(self, tmp_path):
        pom = write_pom(tmp_path, "<groupId>g</groupId><artifactId>a</artifactId><version>1</version>",
                        namespaced=False)

        assert PomParser().parse(str(pom)).key == ("g", "a", "1")

    def test_dependency_without_version_is_skipped(self, tmp_path):
        pom = write_pom(tmp_path, """
<groupId>g</groupId><artifactId>a</artifactId><version>1</version>
<dependencies>
  <dependency><groupId>x</groupId><artifactId>unversioned</artifactId></dependency>
</dependencies>
""")
        assert PomParser().parse(str(pom)).dependencies == []

    def test_inheritance_from_local_parent(self, reactor):
        """Test that coordinates, properties and dependency management come from the parent."""
        project = PomParser().parse(str(reactor / "child" / "pom.xml"))

        assert project.key == ("com.example", "child", "1.0")
        dependencies = by_name(project)

        assert dependencies["com.google.guava:guava"].artifact.version == "32.1.3-jre"
        assert dependencies["com.google.guava:guava"].scope == "compile"

        junit = dependencies["junit:junit"]
        assert junit.artifact.version == "4.13.2"
        assert junit.scope == "test"
        assert junit.exclusions == (Exclusion("org.hamcrest", "hamcrest-core"),)

        assert dependencies["com.example:sibling"].artifact.version == "1.0"
        assert set(project.dependency_management) == {"com.google.guava:guava", "junit:junit"}

    def test_declared_version_and_scope_win_over_management(self, tmp_path):
        write_pom(tmp_path, PARENT)
        pom = write_pom(tmp_path / "child", """
<parent><groupId>com.example</groupId><artifactId>parent</artifactId><version>1.0</version></parent>
<artifactId>child</artifactId>
<dependencies>
  <dependency>
    <groupId>junit</groupId><artifactId>junit</artifactId><version>4.12</version><scope>compile</scope>
    <exclusions><exclusion><groupId>x</groupId><artifactId>y</artifactId></exclusion></exclusions>
  </dependency>
</dependencies>
""")
        junit = by_name(PomParser().parse(str(pom)))["junit:junit"]

        assert junit.artifact.version == "4.12"
        assert junit.scope == "compile"
        assert junit.exclusions == (Exclusion("x", "y"),)

    @patch('depversions.parsers.requests.get')
    def test_parent_with_other_coordinates_is_downloaded(self, mock_get, tmp_path):
        """Test that a local POM with different coordinates is not used as parent."""
        write_pom(tmp_path, "<groupId>other</groupId><artifactId>unrelated</artifactId><version>9</version>")
        mock_get.return_value = Mock(ok=True, content=b"""<project>
<groupId>org.remote</groupId><artifactId>remote-parent</artifactId><version>5</version>
<properties><remote.prop>from-central</remote.prop></properties>
</project>""")
        pom = write_pom(tmp_path / "child", """
<parent><groupId>org.remote</groupId><artifactId>remote-parent</artifactId><version>5</version></parent>
<artifactId>child</artifactId>
<dependencies>
  <dependency><groupId>x</groupId><artifactId>${remote.prop}</artifactId><version>1</version></dependency>
</dependencies>
""")
        project = PomParser().parse(str(pom))

        assert project.key == ("org.remote", "child", "5")
        assert list(by_name(project)) == ["x:from-central"]
        url = mock_get.call_args[0][0]
        assert url == "https://repo1.maven.org/maven2/org/remote/remote-parent/5/remote-parent-5.pom"

    @patch('depversions.parsers.requests.get')
    def test_unresolvable_parent_only_warns(self, mock_get, tmp_path, caplog):
        mock_get.return_value = Mock(ok=False, status_code=404)
        pom = write_pom(tmp_path / "module", """
<parent><groupId>org.gone</groupId><artifactId>gone</artifactId><version>1</version></parent>
<artifactId>orphan</artifactId>
""")
        with caplog.at_level(logging.WARNING, logger="depversions.parsers"):
            project = PomParser().parse(str(pom))

        assert project.key == ("org.gone", "orphan", "1")
        assert "Could not resolve parent POM org.gone:gone:1" in caplog.text

    @patch('depversions.parsers.requests.get')
    def test_bom_import(self, mock_get, tmp_path):
        """Test that imported BOM entries apply, but lose against declared management."""
        mock_get.return_value = Mock(ok=True, content=b"""<project>
<groupId>org.bom</groupId><artifactId>bom</artifactId><version>1.0</version><packaging>pom</packaging>
<properties><jackson.version>2.17.0</jackson.version></properties>
<dependencyManagement><dependencies>
  <dependency><groupId>com.fasterxml.jackson.core</groupId><artifactId>jackson-core</artifactId>
    <version>${jackson.version}</version></dependency>
  <dependency><groupId>org.slf4j</groupId><artifactId>slf4j-api</artifactId><version>1.7.36</version></dependency>
</dependencies></dependencyManagement>
</project>""")
        pom = write_pom(tmp_path, """
<groupId>com.example</groupId><artifactId>app</artifactId><version>1.0</version>
<dependencyManagement><dependencies>
  <dependency>
    <groupId>org.bom</groupId><artifactId>bom</artifactId><version>1.0</version>
    <type>pom</type><scope>import</scope>
  </dependency>
  <dependency><groupId>org.slf4j</groupId><artifactId>slf4j-api</artifactId><version>2.0.13</version></dependency>
</dependencies></dependencyManagement>
<dependencies>
  <dependency><groupId>com.fasterxml.jackson.core</groupId><artifactId>jackson-core</artifactId></dependency>
  <dependency><groupId>org.slf4j</groupId><artifactId>slf4j-api</artifactId></dependency>
</dependencies>
""")
        dependencies = by_name(PomParser().parse(str(pom)))

        assert dependencies["com.fasterxml.jackson.core:jackson-core"].artifact.version == "2.17.0"
        assert dependencies["org.slf4j:slf4j-api"].artifact.version == "2.0.13"
        mock_get.assert_called_once()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ModelBuildingError, match="Could not read POM"):
            PomParser().parse(str(tmp_path / "pom.xml"))

    def test_invalid_xml(self, tmp_path):
        pom = tmp_path / "pom.xml"
        pom.write_text("<project><artifactId>broken</project>")

        with pytest.raises(ModelBuildingError):
            PomParser().parse(str(pom))

    def test_missing_artifact_id(self, tmp_path):
        pom = write_pom(tmp_path, "<groupId>g</groupId><version>1</version>")

        with pytest.raises(ModelBuildingError, match="has no artifactId"):
            PomParser().parse(str(pom))

    def test_missing_group_id(self, tmp_path):
        pom = write_pom(tmp_path, "<artifactId>a</artifactId><version>1</version>")

        with pytest.raises(ModelBuildingError, match="has no groupId"):
            PomParser().parse(str(pom))


class TestReactor:
    """Tests for multi module builds."""

    def test_modules_are_collected(self, reactor):
        projects = PomParser().parse_reactor(str(reactor / "pom.xml"))

        assert [p.artifact_id for p in projects] == ["parent", "child"]
        assert projects[0].packaging == "pom"
        assert projects[0].modules == ["child"]

    def test_missing_module_is_skipped(self, tmp_path, caplog):
        pom = write_pom(tmp_path, """
<groupId>g</groupId><artifactId>root</artifactId><version>1</version><packaging>pom</packaging>
<modules><module>missing</module></modules>
""")
        with caplog.at_level(logging.WARNING, logger="depversions.parsers"):
            projects = PomParser().parse_reactor(str(pom))

        assert [p.artifact_id for p in projects] == ["root"]
        assert "Module missing" in caplog.text


class TestDownload:
    """Tests for fetching POMs from Maven Central."""

    @patch('depversions.parsers.requests.get')
    def test_network_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("offline")

        assert download_pom_from_maven_central("g", "a", "1") is None

    @patch('depversions.parsers.requests.get')
    def test_invalid_content(self, mock_get):
        mock_get.return_value = Mock(ok=True, content=b"not xml")

        assert download_pom_from_maven_central("g", "a", "1") is None

    @patch('depversions.parsers.requests.get')
    def test_timeout_is_passed(self, mock_get):
        mock_get.return_value = Mock(ok=True, content=b"<project/>")

        assert download_pom_from_maven_central("org.x", "a", "1", timeout=5) is not None
        mock_get.assert_called_once_with("https://repo1.maven.org/maven2/org/x/a/1/a-1.pom", timeout=5)
