"""
Git client implementation for cmdb_devkit.

This module wraps the Git operations the devkit needs: cloning the source
and WAR builder repositories, reading the current branch, and listing the
changed files of the source checkout. All commands go through
:class:`~cmdb_devkit.runner.CommandRunner` so that unit tests can mock
them easily.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from cmdb_devkit.runner import CommandError, CommandResult, CommandRunner


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs will propagate to the root when configured by the CLI.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


@dataclass
class ChangeSet:
    """Changed files of a checkout and the git query that found them."""

    strategy: str  # 'head', 'staged', 'worktree' or 'none'
    files: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.files)


class GitError(Exception):
    """Raised when a Git command fails."""

    pass


def authenticated_url(repo: str, token: str) -> str:
    """Return ``repo`` with ``token`` embedded for https authentication.

    Only https URLs carry a token; any other URL is returned unchanged.
    """
    if not token or not repo.startswith("https://"):
        return repo
    return repo.replace("https://", f"https://token:{token}@", 1)


def _unique(paths: List[str]) -> List[str]:
    seen = set()
    result = []
    for path in paths:
        if path and path not in seen:
            seen.add(path)
            result.append(path)
    return result


class GitClient:
    """Client for interacting with a Git repository."""

    def __init__(self, repo_root: Path, runner: Optional[CommandRunner] = None) -> None:
        self.repo_root = repo_root
        self.runner = runner or CommandRunner()

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def is_repo(path: Path) -> bool:
        """Return True if the given path is the root of a Git checkout."""
        return (path / ".git").exists()

    @staticmethod
    def clone(
        url: str,
        dest: Path,
        branch: Optional[str] = None,
        runner: Optional[CommandRunner] = None,
    ) -> "GitClient":
        """Clone ``url`` into ``dest`` and return a client for the checkout.

        When ``branch`` is given only that branch is fetched.

        Raises
        ------
        GitError
            If git is missing or the clone fails.
        """
        runner = runner or CommandRunner()
        args = ["git", "clone"]
        if branch:
            args += ["--branch", branch, "--single-branch"]
        args += [url, str(dest)]
        # The URL may embed a token; never log it.
        logger.debug("Cloning into %s (branch %s)", dest, branch or "default")
        try:
            runner.run(args, capture=False, check=True)
        except CommandError as exc:
            raise GitError(f"Failed to clone into {dest}: {exc}") from exc
        return GitClient(dest, runner)

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(self, args: List[str], check: bool = True) -> CommandResult:
        """Run a Git command in the repository root.

        Paths are printed verbatim, so non-ASCII file names are not
        octal-escaped and quoted.

        Raises
        ------
        GitError
            If git cannot be started, or the command exits with a non-zero
            status when ``check`` is True.
        """
        full_cmd = ["git", "-c", "core.quotePath=false"] + args
        try:
            result = self.runner.run(full_cmd, cwd=self.repo_root)
        except CommandError as exc:
            raise GitError(str(exc)) from exc

        if check and not result.ok:
            logger.error(
                "Git command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(full_cmd),
                result.stdout,
                result.stderr,
            )
            raise GitError(result.stderr.strip() or result.stdout.strip())
        return result

    def _names(self, args: List[str]) -> List[str]:
        """Return the file names printed by a listing command.

        A failing command yields no names: a checkout without commits has
        no ``HEAD`` to diff against and that is not an error here.
        """
        result = self._run(args, check=False)
        if not result.ok:
            logger.debug("git %s failed: %s", " ".join(args), result.stderr.strip())
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------
    def changed_files(self, pattern: str = "*.java") -> ChangeSet:
        """Get the changed files matching ``pattern``.

        Three queries are tried in order and the first non-empty one wins:

        1. tracked changes against ``HEAD``;
        2. staged changes;
        3. unstaged tracked changes together with untracked files.

        Returns
        -------
        ChangeSet
            The de-duplicated file list and the name of the query that
            produced it (``'none'`` when nothing changed).
        """
        files = self._names(["diff", "--name-only", "HEAD", "--", pattern])
        if files:
            return ChangeSet("head", _unique(files))

        files = self._names(["diff", "--cached", "--name-only", "--", pattern])
        if files:
            return ChangeSet("staged", _unique(files))

        files = self._names(["diff", "--name-only", "--", pattern])
        files += self._names(["ls-files", "--others", "--exclude-standard", "--", pattern])
        if files:
            return ChangeSet("worktree", _unique(files))

        return ChangeSet("none")

    # ------------------------------------------------------------------
    # Branch operations
    # ------------------------------------------------------------------
    def get_current_branch(self) -> str:
        """Get the name of the current branch.

        Returns
        -------
        str
            The name of the current branch, or an empty string on a
            detached HEAD.

        Raises
        ------
        GitError
            If unable to determine the current branch.
        """
        result = self._run(["branch", "--show-current"], check=True)
        return result.stdout.strip()
