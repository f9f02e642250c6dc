"""
Read-only report on the state of a development workspace.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import requests

from cmdb_devkit.config.loader import DevConfig
from cmdb_devkit.container.compose import ComposeClient
from cmdb_devkit.modules.detection import affected_modules
from cmdb_devkit.modules.discovery import discover_modules
from cmdb_devkit.vcs.git_client import GitClient, GitError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


UNRESOLVED = "?"


@dataclass
class StatusReport:
    """Snapshot of the workspace.

    ``changed_modules`` holds ``(directory, artifact_id)`` pairs and is
    only filled when the source checkout exists.
    """

    root: str
    source_dir: str
    source_present: bool
    branch: Optional[str]
    webapp_lib: str
    container: str
    app_url: str
    http_status: Optional[int] = None
    changed_modules: List[Tuple[str, str]] = field(default_factory=list)


def probe_url(url: str, timeout: float = 5.0, get: Callable[..., requests.Response] = requests.get) -> Optional[int]:
    """Return the HTTP status code of ``url``, or None if unreachable."""
    try:
        response = get(url, timeout=timeout, allow_redirects=True)
    except requests.exceptions.RequestException as exc:
        logger.debug("GET %s failed: %s", url, exc)
        return None
    return response.status_code


def collect_status(
    config: DevConfig,
    compose: Optional[ComposeClient] = None,
    git: Optional[GitClient] = None,
    http_get: Callable[..., requests.Response] = requests.get,
) -> StatusReport:
    """Gather the workspace status without changing anything."""
    compose = compose or ComposeClient(config.compose_file, config.compose_service)
    source_present = GitClient.is_repo(config.source_dir)

    report = StatusReport(
        root=str(config.root),
        source_dir=str(config.source_dir),
        source_present=source_present,
        branch=None,
        webapp_lib=str(config.webapp_lib),
        container=compose.status(),
        app_url=config.app_url,
        http_status=probe_url(config.app_url, get=http_get),
    )

    if source_present:
        git = git or GitClient(config.source_dir)
        try:
            report.branch = git.get_current_branch()
        except GitError as exc:
            logger.debug("Cannot read current branch: %s", exc)
        try:
            changes = git.changed_files()
        except GitError as exc:
            logger.debug("Cannot query changed files: %s", exc)
            return report
        module_map = discover_modules(config.source_dir)
        report.changed_modules = [
            (directory, module_map.artifact_id(directory, default=UNRESOLVED))
            for directory in affected_modules(changes.files, module_map)
        ]
    return report
