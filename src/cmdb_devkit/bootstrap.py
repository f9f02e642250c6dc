"""
Steps of the one-time workspace setup and of the full WAR rebuild.

Each function performs one step and reports what it did through its
return value; printing is left to :mod:`cmdb_devkit.cli`.
"""

from __future__ import annotations

import logging
import re
import shutil
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from cmdb_devkit.build.war import WarBuilder, extract_war
from cmdb_devkit.config.loader import APP_LOG_PATH, READY_MARKER, ConfigError, DevConfig
from cmdb_devkit.container.compose import ComposeClient
from cmdb_devkit.container.readiness import Readiness, ReadinessPoller
from cmdb_devkit.runner import CommandError, CommandRunner
from cmdb_devkit.vcs.git_client import GitClient, authenticated_url


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# Executable -> name shown to the operator.
REQUIRED_TOOLS: Dict[str, str] = {
    "docker": "docker",
    "mvn": "maven",
    "java": "java (JDK 17)",
    "git": "git",
}
MIN_JAVA_VERSION = 17

DATABASE_CONF = "database.conf"
DATABASE_CONF_EXAMPLE = "database.conf.example"

DB_CONF_EXISTS = "exists"
DB_CONF_WRITTEN = "written"
DB_CONF_TEMPLATE = "template"


class PrerequisiteError(Exception):
    """Raised when a required tool is missing."""

    def __init__(self, missing: List[str]) -> None:
        super().__init__(f"Missing prerequisites: {' '.join(missing)}")
        self.missing = missing


# ---------------------------------------------------------------------------
# Prerequisites
# ---------------------------------------------------------------------------

def parse_java_version(text: str) -> Optional[int]:
    """Return the major version from ``java -version`` output.

    ``"17.0.2"`` gives 17 and the legacy ``"1.8.0_392"`` gives 8.
    """
    match = re.search(r'version "([^"]+)"', text)
    if not match:
        return None
    parts = match.group(1).split(".")
    try:
        major = int(re.sub(r"\D.*", "", parts[0]) or "0")
        if major == 1 and len(parts) > 1:
            major = int(re.sub(r"\D.*", "", parts[1]) or "0")
    except ValueError:
        return None
    return major or None


def check_prerequisites(
    runner: Optional[CommandRunner] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> Optional[int]:
    """Verify the required tools are installed.

    Returns
    -------
    Optional[int]
        The detected Java major version, or None if it could not be read.

    Raises
    ------
    PrerequisiteError
        If any required tool is not on ``PATH``.
    """
    missing = [label for tool, label in REQUIRED_TOOLS.items() if which(tool) is None]
    if missing:
        raise PrerequisiteError(missing)

    runner = runner or CommandRunner()
    try:
        # java prints its version banner on stderr
        result = runner.run(["java", "-version"])
    except CommandError as exc:
        logger.debug("Cannot read Java version: %s", exc)
        return None
    return parse_java_version(result.stderr or result.stdout)


# ---------------------------------------------------------------------------
# Repositories and WAR
# ---------------------------------------------------------------------------

def clone_source(config: DevConfig, runner: Optional[CommandRunner] = None) -> Tuple[bool, GitClient]:
    """Clone the source repository unless ``source/`` already holds one.

    Returns
    -------
    Tuple[bool, GitClient]
        Whether a clone was made and a client for the checkout.

    Raises
    ------
    GitError
        If the clone fails.
    """
    runner = runner or CommandRunner()
    if GitClient.is_repo(config.source_dir):
        return False, GitClient(config.source_dir, runner)
    url = authenticated_url(config.git_repo, config.git_token)
    return True, GitClient.clone(url, config.source_dir, branch=config.git_branch, runner=runner)


def build_war(config: DevConfig, builder: WarBuilder, git: GitClient) -> Path:
    """Build a WAR of the source checkout's current branch.

    Raises
    ------
    WarBuildError
        If the builder cannot be cloned or the build produces no WAR.
    GitError
        If the current branch cannot be read.
    """
    builder.ensure_cloned()
    branch = git.get_current_branch() or config.git_branch
    return builder.build(config.git_repo, branch, config.git_token)


def install_webapp(war: Path, config: DevConfig) -> None:
    """Extract ``war`` into the workspace's webapp directory."""
    extract_war(war, config.webapp_dir)


# ---------------------------------------------------------------------------
# Database configuration
# ---------------------------------------------------------------------------

def render_database_conf(url: str, user: str, password: str) -> str:
    """Render ``database.conf``; the admin account reuses the user's credentials."""
    return (
        f"db.url={url}\n"
        f"db.username={user}\n"
        f"db.password={password}\n"
        f"db.admin.username={user}\n"
        f"db.admin.password={password}\n"
    )


def write_database_conf(config: DevConfig) -> str:
    """Create ``conf/database.conf`` if it does not exist yet.

    Returns
    -------
    str
        ``exists`` when a file was already there, ``written`` when it was
        generated from the DB_* settings, ``template`` when the example was
        copied and still needs editing.

    Raises
    ------
    ConfigError
        If the database settings are incomplete and there is no example
        file to copy.
    """
    target = config.conf_dir / DATABASE_CONF
    if target.exists():
        return DB_CONF_EXISTS

    if config.has_database_settings:
        config.conf_dir.mkdir(parents=True, exist_ok=True)
        target.write_text(
            render_database_conf(config.db_url, config.db_user, config.db_pass),
            encoding="utf-8",
        )
        return DB_CONF_WRITTEN

    example = config.conf_dir / DATABASE_CONF_EXAMPLE
    if not example.is_file():
        raise ConfigError(
            f"DB_URL, DB_USER and DB_PASS are not all set and {example} is missing"
        )
    shutil.copyfile(example, target)
    return DB_CONF_TEMPLATE


# ---------------------------------------------------------------------------
# Container
# ---------------------------------------------------------------------------

def wait_until_ready(
    compose: ComposeClient,
    max_wait: int,
    sleep: Callable[[float], None] = time.sleep,
    on_tick: Optional[Callable[[int], None]] = None,
) -> Readiness:
    """Poll the application log for the readiness marker."""
    poller = ReadinessPoller(
        lambda: compose.log_contains(APP_LOG_PATH, READY_MARKER),
        max_wait=max_wait,
        sleep=sleep,
        on_tick=on_tick,
    )
    return poller.wait()


def start_container(
    compose: ComposeClient,
    config: DevConfig,
    max_wait: int,
    sleep: Callable[[float], None] = time.sleep,
    on_tick: Optional[Callable[[int], None]] = None,
) -> Readiness:
    """Start the stack from clean volumes and wait for readiness.

    Raises
    ------
    ComposeError
        If ``docker compose up`` fails.
    """
    compose.down()
    compose.remove_volumes(config.compose_volumes)
    compose.up()
    return wait_until_ready(compose, max_wait, sleep=sleep, on_tick=on_tick)


def restart_container(
    compose: ComposeClient,
    max_wait: int,
    sleep: Callable[[float], None] = time.sleep,
    on_tick: Optional[Callable[[int], None]] = None,
) -> Readiness:
    """Restart the application service and wait for readiness.

    Raises
    ------
    ComposeError
        If the restart command fails.
    """
    compose.restart()
    return wait_until_ready(compose, max_wait, sleep=sleep, on_tick=on_tick)
