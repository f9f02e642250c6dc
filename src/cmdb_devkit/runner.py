"""
Synchronous execution of external commands.

Every external tool the devkit drives (git, mvn, docker, the WAR builder
script) goes through :class:`CommandRunner`. Results are returned as
:class:`CommandResult` values so callers decide what a non-zero exit
status means for them instead of relying on shell short-circuiting.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence


logger = logging.getLogger(__name__)
# Null handler and no propagation until the CLI configures logging.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


@dataclass
class CommandResult:
    """Exit status and captured output of a finished command."""

    args: Sequence[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, the way a terminal would show them."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


class CommandError(Exception):
    """Raised when a command cannot be started or exits unsuccessfully."""

    def __init__(self, message: str, result: Optional[CommandResult] = None) -> None:
        super().__init__(message)
        self.result = result


class CommandRunner:
    """Run external commands and wait for them to finish."""

    def run(
        self,
        args: Sequence[str],
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        check: bool = False,
        capture: bool = True,
    ) -> CommandResult:
        """Run ``args`` and return its :class:`CommandResult`.

        Parameters
        ----------
        args : Sequence[str]
            The command and its arguments.
        cwd : Path, optional
            Working directory for the command.
        env : Mapping[str, str], optional
            Complete environment for the child process. ``None`` inherits
            the current environment.
        check : bool
            Raise :class:`CommandError` on a non-zero exit status.
        capture : bool
            Capture stdout and stderr. When False the output goes straight
            to the terminal and the result carries empty strings.

        Raises
        ------
        CommandError
            If the executable cannot be found or, with ``check``, exits
            with a non-zero status.
        """
        cmd = [str(arg) for arg in args]
        logger.debug("Executing command: %s (cwd=%s)", " ".join(cmd), cwd)
        try:
            proc = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd is not None else None,
                env=dict(env) if env is not None else None,
                stdout=subprocess.PIPE if capture else None,
                stderr=subprocess.PIPE if capture else None,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as exc:
            logger.error("Command not found: %s", cmd[0])
            raise CommandError(f"Command not found: {cmd[0]}") from exc

        result = CommandResult(
            args=cmd,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
        if check and not result.ok:
            logger.error(
                "Command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(cmd),
                result.stdout,
                result.stderr,
            )
            raise CommandError(
                result.stderr.strip() or result.stdout.strip() or f"{cmd[0]} exited with {result.returncode}",
                result,
            )
        return result
