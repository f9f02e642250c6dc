"""
Copying a built JAR into the webapp library directory.

Deployment only ever creates or overwrites a file of the same name; it
never removes anything from the library directory.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class DeployError(Exception):
    """Raised when an artifact cannot be copied into the library directory."""

    pass


@dataclass
class DeployResult:
    """Outcome of copying one artifact.

    Attributes
    ----------
    name : str
        File name of the artifact.
    target : Path
        Where the artifact now lives.
    replaced : bool
        True when a file of the same name was overwritten.
    old_size : int, optional
        Size in bytes of the overwritten file.
    new_size : int
        Size in bytes of the deployed file.
    """

    name: str
    target: Path
    replaced: bool
    new_size: int
    old_size: Optional[int] = None


def deploy_artifact(artifact: Path, lib_dir: Path) -> DeployResult:
    """Copy ``artifact`` into ``lib_dir`` by file name.

    Raises
    ------
    DeployError
        If the library directory does not exist or the copy fails.
    """
    if not lib_dir.is_dir():
        raise DeployError(f"Library directory not found: {lib_dir}")

    target = lib_dir / artifact.name
    old_size = target.stat().st_size if target.is_file() else None
    try:
        shutil.copyfile(artifact, target)
    except OSError as exc:
        logger.error("Failed to copy %s to %s: %s", artifact, target, exc)
        raise DeployError(f"Cannot copy {artifact.name}: {exc}") from exc

    new_size = target.stat().st_size
    logger.debug("Copied %s -> %s (%d bytes)", artifact, target, new_size)
    return DeployResult(
        name=artifact.name,
        target=target,
        replaced=old_size is not None,
        new_size=new_size,
        old_size=old_size,
    )
