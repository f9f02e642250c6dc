"""
Discovery of the buildable Maven modules of a source tree.

A module is a directory holding a ``pom.xml`` next to a ``src/main/java``
tree. The resulting :class:`ModuleMap` maps each module directory,
relative to the source root, to the ``artifactId`` declared in its POM.
"""

from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


POM_NAMESPACE = {"m": "http://maven.apache.org/POM/4.0.0"}
DESCRIPTOR_NAME = "pom.xml"
SOURCE_SUBTREE = Path("src") / "main" / "java"
PRUNED_DIRS = {"target", ".git"}

ROOT_MODULE = "."
UNKNOWN_ARTIFACT = "unknown"


def normalize_module_dir(directory: str) -> str:
    """Normalise a module directory to its map key.

    ``./dao/postgresql/`` and ``dao/postgresql`` both become
    ``dao/postgresql``; the source root itself is ``.``.
    """
    clean = directory.replace("\\", "/").strip()
    while clean.startswith("./"):
        clean = clean[2:]
    clean = clean.rstrip("/")
    return clean or ROOT_MODULE


@dataclass
class ModuleMap:
    """Mapping of module directory to Maven ``artifactId``."""

    modules: Dict[str, str] = field(default_factory=dict)

    def __contains__(self, directory: str) -> bool:
        return normalize_module_dir(directory) in self.modules

    def __len__(self) -> int:
        return len(self.modules)

    def __iter__(self) -> Iterator[str]:
        return iter(self.directories())

    def directories(self) -> List[str]:
        """Module directories in sorted order."""
        return sorted(self.modules)

    def artifact_id(self, directory: str, default: str = UNKNOWN_ARTIFACT) -> str:
        return self.modules.get(normalize_module_dir(directory), default)

    def owner_of(self, path: str) -> Optional[str]:
        """Return the module owning ``path``, or None.

        The deepest module wins when modules are nested, so ``a/b/X.java``
        belongs to ``a/b`` even when ``a`` is a module too. Git reports paths
        without a leading ``./``, so the root module ``.`` owns nothing.
        """
        path = path.replace("\\", "/")
        best: Optional[str] = None
        for directory in self.modules:
            if path.startswith(directory + "/"):
                if best is None or len(directory) > len(best):
                    best = directory
        return best


def read_artifact_id(pom_path: Path) -> Optional[str]:
    """Return the ``artifactId`` of the POM at ``pom_path``.

    Only the project's own ``artifactId`` (a direct child of the root
    element) is read; the parent's coordinates are ignored.

    Raises
    ------
    xml.etree.ElementTree.ParseError
        If the POM is not well-formed XML.
    OSError
        If the POM cannot be read.
    """
    tree = ET.parse(pom_path)
    element = tree.getroot().find("m:artifactId", POM_NAMESPACE)
    if element is None or not (element.text or "").strip():
        return None
    return element.text.strip()


def discover_modules(source_root: Path) -> ModuleMap:
    """Scan ``source_root`` and return its :class:`ModuleMap`.

    Directories named ``target`` are never entered. A POM that cannot be
    parsed is skipped and discovery carries on with the rest of the tree;
    a module without an ``artifactId`` is left out of the map.
    """
    modules: Dict[str, str] = {}
    for current, dirs, files in os.walk(source_root):
        dirs[:] = sorted(d for d in dirs if d not in PRUNED_DIRS)
        if DESCRIPTOR_NAME not in files:
            continue
        current_path = Path(current)
        if not (current_path / SOURCE_SUBTREE).is_dir():
            continue
        try:
            artifact_id = read_artifact_id(current_path / DESCRIPTOR_NAME)
        except (ET.ParseError, OSError) as exc:
            logger.debug("Skipping %s: %s", current_path / DESCRIPTOR_NAME, exc)
            continue
        if artifact_id is None:
            logger.debug("Skipping %s: no artifactId", current_path / DESCRIPTOR_NAME)
            continue
        directory = normalize_module_dir(current_path.relative_to(source_root).as_posix())
        modules[directory] = artifact_id

    logger.debug("Discovered %d module(s) under %s", len(modules), source_root)
    return ModuleMap(modules)
