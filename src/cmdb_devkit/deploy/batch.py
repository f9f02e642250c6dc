"""
Sequential build-and-deploy of a list of modules.

Every requested module is attempted exactly once. A failing module is
recorded and the batch moves on; the aggregate :class:`BatchReport` tells
the caller how many modules failed once all of them were tried.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from cmdb_devkit.build.maven import ArtifactNotFoundError, BuildError, MavenBuilder
from cmdb_devkit.modules.discovery import ModuleMap, normalize_module_dir

from .deployer import DeployError, DeployResult, deploy_artifact


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


@dataclass
class ModuleOutcome:
    """Result of building and deploying one module."""

    directory: str
    artifact_id: str
    deploy: Optional[DeployResult] = None
    error: Optional[str] = None
    build_output: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport:
    """Aggregate result of a batch."""

    outcomes: List[ModuleOutcome] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def failed(self) -> List[ModuleOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def succeeded(self) -> List[ModuleOutcome]:
        return [outcome for outcome in self.outcomes if outcome.ok]

    @property
    def ok(self) -> bool:
        return not self.failed


def build_and_deploy(directory: str, module_map: ModuleMap, builder: MavenBuilder, lib_dir: Path) -> ModuleOutcome:
    """Build one module and deploy its JAR, capturing any failure."""
    outcome = ModuleOutcome(directory=directory, artifact_id=module_map.artifact_id(directory))
    try:
        builder.build(directory)
        artifact = builder.find_artifact(directory)
        outcome.deploy = deploy_artifact(artifact, lib_dir)
    except BuildError as exc:
        outcome.error = f"Build FAILED for {outcome.artifact_id}: {exc}"
        outcome.build_output = exc.output
    except (ArtifactNotFoundError, DeployError) as exc:
        outcome.error = str(exc)
    if outcome.error:
        logger.error("%s: %s", directory, outcome.error)
    return outcome


def deploy_modules(
    module_dirs: Iterable[str],
    module_map: ModuleMap,
    builder: MavenBuilder,
    lib_dir: Path,
    on_start: Optional[Callable[[str, str], None]] = None,
    on_outcome: Optional[Callable[[ModuleOutcome], None]] = None,
    clock: Callable[[], float] = time.monotonic,
) -> BatchReport:
    """Build and deploy ``module_dirs`` one after the other.

    Parameters
    ----------
    module_dirs : Iterable[str]
        Module directories to process. Repeated entries are built once.
    module_map : ModuleMap
        Discovered modules, used to resolve artifact identifiers.
    builder : MavenBuilder
        Builds modules and locates their JARs.
    lib_dir : Path
        The webapp library directory receiving the JARs.
    on_start, on_outcome : callable, optional
        Progress hooks called before and after each module.
    clock : callable
        Monotonic time source for the elapsed time.

    Returns
    -------
    BatchReport
        One outcome per distinct module, in request order.
    """
    report = BatchReport()
    started = clock()
    seen = set()
    for directory in module_dirs:
        directory = normalize_module_dir(directory)
        if directory in seen:
            continue
        seen.add(directory)
        if on_start is not None:
            on_start(directory, module_map.artifact_id(directory))
        outcome = build_and_deploy(directory, module_map, builder, lib_dir)
        report.outcomes.append(outcome)
        if on_outcome is not None:
            on_outcome(outcome)
    report.elapsed = clock() - started
    return report
