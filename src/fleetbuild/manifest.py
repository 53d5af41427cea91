# manifest.py
# Reads a project's Maven descriptor (pom.xml) to get its own coordinate and
# the dependencies it declares. Only identity and edges are extracted;
# versions are never looked at.

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import ManifestError
from .model import Coordinate, DependencyRef, Scope

POM_FILE_NAME = "pom.xml"


def _strip_namespaces(root: ET.Element) -> None:
    # "{http://maven.apache.org/POM/4.0.0}groupId" -> "groupId"
    for elt in root.iter():
        if isinstance(elt.tag, str) and elt.tag.startswith("{"):
            elt.tag = elt.tag.split("}", 1)[1]


def _text(elt: ET.Element, tag: str) -> Optional[str]:
    child = elt.find(tag)
    if child is None or child.text is None:
        return None
    value = child.text.strip()
    return value or None


def _coordinate(elt: ET.Element, pom: Path, what: str) -> Coordinate:
    group = _text(elt, "groupId")
    name = _text(elt, "artifactId")
    if group is None:
        raise ManifestError(f"{pom}: {what} has no groupId")
    if name is None:
        raise ManifestError(f"{pom}: {what} has no artifactId")
    return Coordinate(group=group, name=name)


def read_manifest(root: str | Path) -> Tuple[Coordinate, List[DependencyRef]]:
    """
    Read `<root>/pom.xml`.

    Returns:
      (coordinate, dependencies) where dependencies holds every
      project/dependencies/dependency entry in file order, followed by the
      <parent> reference (scope "parent") if there is one.

    Raises:
      ManifestError if the file is missing, unparseable, or lacks a field
      that cannot be inherited from the parent.
    """
    pom = Path(root) / POM_FILE_NAME
    if not pom.exists():
        raise ManifestError(f"Manifest not found: {pom}")

    try:
        project = ET.parse(str(pom)).getroot()
    except ET.ParseError as e:
        raise ManifestError(f"{pom}: {e}") from e
    _strip_namespaces(project)

    deps: List[DependencyRef] = []
    for dep in project.findall("dependencies/dependency"):
        coord = _coordinate(dep, pom, "dependency")
        deps.append(DependencyRef(coord, Scope.parse(_text(dep, "scope"))))

    parent_coord: Optional[Coordinate] = None
    parent = project.find("parent")
    if parent is not None:
        parent_coord = _coordinate(parent, pom, "parent")
        deps.append(DependencyRef(parent_coord, Scope.PARENT))

    # a module inherits its groupId (never its artifactId) from the parent
    group = _text(project, "groupId") or (parent_coord.group if parent_coord else None)
    name = _text(project, "artifactId")
    if group is None:
        raise ManifestError(f"{pom}: project has no groupId and no parent to inherit one from")
    if name is None:
        raise ManifestError(f"{pom}: project has no artifactId")

    return Coordinate(group=group, name=name), deps


class PomReader:
    """Manifest adapter used by the workspace loader."""

    def read(self, root: str | Path) -> Tuple[Coordinate, List[DependencyRef]]:
        return read_manifest(root)
