"""
Maven invocation for single modules.

:class:`MavenBuilder` packages one module (and the modules it depends on)
with tests skipped, then locates the JAR the build produced.
"""

from __future__ import annotations

import fnmatch
import logging
from pathlib import Path
from typing import List, Optional

from cmdb_devkit.modules.discovery import ROOT_MODULE, normalize_module_dir
from cmdb_devkit.runner import CommandError, CommandResult, CommandRunner


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


BUILD_OUTPUT_DIR = "target"
AUXILIARY_PATTERNS = ("*-sources.jar", "*-tests.jar", "*-test-*.jar", "*-javadoc.jar")


class BuildError(Exception):
    """Raised when the Maven build of a module fails.

    ``output`` holds Maven's own diagnostics so they can be shown as is.
    """

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class ArtifactNotFoundError(Exception):
    """Raised when a successful build left no deployable JAR behind."""

    pass


def is_auxiliary(name: str) -> bool:
    """Return True for source, test and javadoc JARs."""
    return any(fnmatch.fnmatch(name, pattern) for pattern in AUXILIARY_PATTERNS)


class MavenBuilder:
    """Build Maven modules inside a source checkout."""

    def __init__(self, source_root: Path, runner: Optional[CommandRunner] = None, mvn: str = "mvn") -> None:
        self.source_root = source_root
        self.runner = runner or CommandRunner()
        self.mvn = mvn

    def command(self, module_dir: str) -> List[str]:
        """Return the Maven command line for ``module_dir``."""
        return [
            self.mvn,
            "package",
            "-pl",
            normalize_module_dir(module_dir),
            "-am",
            "-Dmaven.test.skip=true",
            "-q",
        ]

    def build(self, module_dir: str) -> CommandResult:
        """Package ``module_dir`` and the modules it depends on.

        Raises
        ------
        BuildError
            If Maven cannot be started or exits with a non-zero status.
        """
        try:
            result = self.runner.run(self.command(module_dir), cwd=self.source_root)
        except CommandError as exc:
            raise BuildError(str(exc)) from exc
        if not result.ok:
            logger.error("Maven build failed for %s (exit %d)", module_dir, result.returncode)
            raise BuildError(f"mvn exited with status {result.returncode}", output=result.output)
        return result

    def output_dir(self, module_dir: str) -> Path:
        directory = normalize_module_dir(module_dir)
        base = self.source_root if directory == ROOT_MODULE else self.source_root / directory
        return base / BUILD_OUTPUT_DIR

    def find_artifact(self, module_dir: str) -> Path:
        """Return the deployable JAR built for ``module_dir``.

        Raises
        ------
        ArtifactNotFoundError
            If the build output directory holds no qualifying JAR.
        """
        target = self.output_dir(module_dir)
        candidates = []
        if target.is_dir():
            candidates = sorted(
                path for path in target.glob("*.jar") if path.is_file() and not is_auxiliary(path.name)
            )
        if not candidates:
            raise ArtifactNotFoundError(f"No JAR found in {normalize_module_dir(module_dir)}/{BUILD_OUTPUT_DIR}/")
        if len(candidates) > 1:
            logger.warning(
                "Several JARs in %s, using %s: %s",
                target,
                candidates[0].name,
                ", ".join(path.name for path in candidates),
            )
        return candidates[0]
