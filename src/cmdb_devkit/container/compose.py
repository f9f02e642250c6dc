"""
Docker compose client for the application container.

Only the handful of compose operations the devkit needs are wrapped:
starting, stopping and restarting the stack, discarding its volumes,
reading its status and searching the application log inside the
running service.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from cmdb_devkit.runner import CommandError, CommandResult, CommandRunner


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


NOT_RUNNING = "not running"


class ComposeError(Exception):
    """Raised when a docker compose command fails."""

    pass


def operator_env() -> Dict[str, str]:
    """Return the environment with the operator's UID and GID exported.

    The compose file maps them into the container so files written to the
    mounted webapp stay owned by the operator.
    """
    env = dict(os.environ)
    if hasattr(os, "getuid"):
        env["UID"] = str(os.getuid())
        env["GID"] = str(os.getgid())
    return env


class ComposeClient:
    """Client for the compose stack running the application."""

    def __init__(self, compose_file: Path, service: str, runner: Optional[CommandRunner] = None) -> None:
        self.compose_file = compose_file
        self.service = service
        self.runner = runner or CommandRunner()

    def _run(self, args: List[str], check: bool = True, capture: bool = True) -> CommandResult:
        """Run ``docker compose -f <file> <args>``.

        Raises
        ------
        ComposeError
            If docker cannot be started, or the command exits with a
            non-zero status when ``check`` is True.
        """
        full_cmd = ["docker", "compose", "-f", str(self.compose_file)] + args
        try:
            result = self.runner.run(full_cmd, cwd=self.compose_file.parent, env=operator_env(), capture=capture)
        except CommandError as exc:
            raise ComposeError(str(exc)) from exc
        if check and not result.ok:
            logger.error("Compose command failed: %s\n%s", " ".join(full_cmd), result.output)
            raise ComposeError(result.stderr.strip() or f"docker compose {args[0]} exited with {result.returncode}")
        return result

    def up(self) -> None:
        """Start the stack in the background."""
        self._run(["up", "-d"], capture=False)

    def down(self) -> None:
        """Stop the stack. A stack that is not running is not an error."""
        try:
            self._run(["down"], check=False)
        except ComposeError as exc:
            logger.debug("compose down failed: %s", exc)

    def restart(self) -> None:
        """Restart the application service."""
        self._run(["restart", self.service])

    def remove_volumes(self, names: Sequence[str]) -> None:
        """Remove named volumes. Missing volumes are ignored."""
        if not names:
            return
        try:
            result = self.runner.run(["docker", "volume", "rm"] + list(names))
        except CommandError as exc:
            logger.debug("docker volume rm failed: %s", exc)
            return
        if not result.ok:
            logger.debug("docker volume rm: %s", result.stderr.strip())

    def status(self) -> str:
        """Return the status line of the stack, or ``not running``."""
        try:
            result = self._run(["ps", "--format", "{{.Status}}"], check=False)
        except ComposeError:
            return NOT_RUNNING
        status = result.stdout.strip()
        if not result.ok or not status:
            return NOT_RUNNING
        return ", ".join(line.strip() for line in status.splitlines() if line.strip())

    def log_contains(self, log_path: str, marker: str) -> bool:
        """Return True if ``marker`` occurs in ``log_path`` inside the service."""
        try:
            result = self._run(
                ["exec", "-T", self.service, "grep", "-q", marker, log_path],
                check=False,
            )
        except ComposeError:
            return False
        return result.ok
