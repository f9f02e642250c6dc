"""
Full WAR rebuild through the external builder repository.

The builder is a separate git checkout exposing ``build-war.sh``. It reads
the source repository, branch and token from its environment and writes
``output/cohesive-*.war``. :func:`extract_war` unpacks the result into the
exploded webapp directory mounted by the container.
"""

from __future__ import annotations

import logging
import os
import shutil
import zipfile
from pathlib import Path
from typing import Optional

from cmdb_devkit.runner import CommandError, CommandRunner
from cmdb_devkit.vcs.git_client import GitClient, GitError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


BUILD_SCRIPT = "build-war.sh"
WAR_PATTERN = "cohesive-*.war"


class WarBuildError(Exception):
    """Raised when the WAR builder fails or produces no archive."""

    pass


class WarBuilder:
    """Drive the external WAR builder checkout."""

    def __init__(self, builder_dir: Path, repo_url: str, runner: Optional[CommandRunner] = None) -> None:
        self.builder_dir = builder_dir
        self.repo_url = repo_url
        self.runner = runner or CommandRunner()

    @property
    def output_dir(self) -> Path:
        return self.builder_dir / "output"

    def is_cloned(self) -> bool:
        return GitClient.is_repo(self.builder_dir)

    def ensure_cloned(self) -> bool:
        """Clone the builder unless it is already present.

        Returns True when a clone was made.

        Raises
        ------
        WarBuildError
            If the clone fails.
        """
        if self.is_cloned():
            return False
        try:
            GitClient.clone(self.repo_url, self.builder_dir, runner=self.runner)
        except GitError as exc:
            raise WarBuildError(f"Cannot clone WAR builder: {exc}") from exc
        return True

    def build(self, repo: str, branch: str, token: str = "") -> Path:
        """Run the builder for ``repo`` at ``branch`` and return the WAR.

        The builder's output is streamed to the terminal.

        Raises
        ------
        WarBuildError
            If the script fails or leaves no WAR in ``output/``.
        """
        env = dict(os.environ)
        env.update({"GIT_REPO": repo, "GIT_BRANCH": branch, "GIT_TOKEN": token})
        logger.debug("Running %s for branch %s", BUILD_SCRIPT, branch)
        try:
            result = self.runner.run([f"./{BUILD_SCRIPT}"], cwd=self.builder_dir, env=env, capture=False)
        except CommandError as exc:
            raise WarBuildError(str(exc)) from exc
        if not result.ok:
            raise WarBuildError(f"{BUILD_SCRIPT} exited with status {result.returncode}")
        return self.latest_war()

    def latest_war(self) -> Path:
        """Return the most recently written WAR in the output directory.

        Raises
        ------
        WarBuildError
            If there is none.
        """
        wars = list(self.output_dir.glob(WAR_PATTERN)) if self.output_dir.is_dir() else []
        if not wars:
            raise WarBuildError(f"WAR build failed - no output file found in {self.output_dir}")
        return max(wars, key=lambda path: path.stat().st_mtime)


def extract_war(war: Path, webapp_dir: Path) -> None:
    """Replace ``webapp_dir`` with the exploded contents of ``war``.

    The PostgreSQL driver shipped in ``WEB-INF/lib_ext`` is copied into
    ``WEB-INF/lib`` and the ``WEB-INF/conf/bus`` directory the application
    expects is created.

    Raises
    ------
    WarBuildError
        If the archive is not a valid zip file.
    """
    if webapp_dir.exists():
        shutil.rmtree(webapp_dir)
    webapp_dir.mkdir(parents=True)
    try:
        with zipfile.ZipFile(war) as archive:
            archive.extractall(webapp_dir)
    except zipfile.BadZipFile as exc:
        raise WarBuildError(f"{war.name} is not a valid archive: {exc}") from exc

    web_inf = webapp_dir / "WEB-INF"
    lib_ext = web_inf / "lib_ext"
    if lib_ext.is_dir():
        lib = web_inf / "lib"
        lib.mkdir(parents=True, exist_ok=True)
        for driver in sorted(lib_ext.glob("postgresql-*.jar")):
            shutil.copyfile(driver, lib / driver.name)
            logger.debug("Copied %s to %s", driver.name, lib)

    (web_inf / "conf" / "bus").mkdir(parents=True, exist_ok=True)
