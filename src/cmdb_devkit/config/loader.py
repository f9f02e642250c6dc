"""
Configuration loader for cmdb_devkit.

The workspace root is the directory holding ``docker-compose.yml``. An
optional ``.env`` file in that directory supplies defaults for the
repository, database and container settings; variables already present
in the process environment take precedence. The loader validates the
values and returns a :class:`DevConfig`.

If a value is malformed, a :class:`ConfigError` is raised.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values


logger = logging.getLogger(__name__)
# Null handler and no propagation until the CLI configures logging.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


COMPOSE_FILE_NAME = "docker-compose.yml"
ENV_FILE_NAME = ".env"

DEFAULT_GIT_REPO = "https://github.com/genpat-it/cohesive-cmdbuild"
DEFAULT_GIT_BRANCH = "main"
DEFAULT_WAR_BUILDER_REPO = "https://github.com/genpat-it/cohesive-cmdbuild-builder.git"
DEFAULT_COMPOSE_PROJECT = "cohesive-cmdbuild-dev"
DEFAULT_COMPOSE_SERVICE = "cmdbuild"
DEFAULT_APP_URL = "http://localhost:8080/cmdbuild"

# Application log inside the container and the line it prints once started.
APP_LOG_PATH = "/usr/local/tomcat/logs/cmdbuild.log"
READY_MARKER = "READY"


class ConfigError(Exception):
    """Raised when a configuration value is missing or invalid."""

    pass


@dataclass
class DevConfig:
    """Resolved settings and paths of a development workspace."""

    root: Path
    git_repo: str = DEFAULT_GIT_REPO
    git_branch: str = DEFAULT_GIT_BRANCH
    git_token: str = ""
    war_builder_repo: str = DEFAULT_WAR_BUILDER_REPO
    db_url: str = ""
    db_user: str = ""
    db_pass: str = ""
    compose_project: str = DEFAULT_COMPOSE_PROJECT
    compose_service: str = DEFAULT_COMPOSE_SERVICE
    app_url: str = DEFAULT_APP_URL

    @property
    def source_dir(self) -> Path:
        return self.root / "source"

    @property
    def war_builder_dir(self) -> Path:
        return self.root / "war-builder"

    @property
    def webapp_dir(self) -> Path:
        return self.root / "webapp"

    @property
    def webapp_lib(self) -> Path:
        return self.webapp_dir / "WEB-INF" / "lib"

    @property
    def conf_dir(self) -> Path:
        return self.root / "conf"

    @property
    def compose_file(self) -> Path:
        return self.root / COMPOSE_FILE_NAME

    @property
    def compose_volumes(self) -> List[str]:
        """Named volumes discarded before a fresh container start."""
        return [
            f"{self.compose_project}_cmdbuild_logs",
            f"{self.compose_project}_cmdbuild_work",
        ]

    @property
    def has_database_settings(self) -> bool:
        return bool(self.db_url and self.db_user and self.db_pass)


def find_workspace_root(start: Path) -> Path:
    """Find the workspace root starting from ``start``.

    Walk upwards until a ``docker-compose.yml`` is found. When the
    filesystem root is reached without a match, ``start`` itself is
    returned so a fresh workspace can still be bootstrapped.
    """
    start = start.resolve()
    current = start
    while True:
        if (current / COMPOSE_FILE_NAME).exists():
            return current
        if current.parent == current:
            return start
        current = current.parent


def _read_settings(root: Path, environ: Mapping[str, str]) -> Dict[str, str]:
    env_path = root / ENV_FILE_NAME
    settings: Dict[str, str] = {}
    if env_path.exists():
        try:
            values = dotenv_values(env_path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Failed to read environment file: %s", exc)
            raise ConfigError(f"Cannot read {env_path}: {exc}") from exc
        settings.update({key: value for key, value in values.items() if value is not None})
        logger.debug("Loaded %d setting(s) from %s", len(settings), env_path)
    settings.update(environ)
    return settings


def load_config(root: Path, environ: Optional[Mapping[str, str]] = None) -> DevConfig:
    """Load the workspace configuration and return it.

    Args:
        root: The workspace root directory.
        environ: Environment to read instead of ``os.environ``.

    Returns:
        A validated :class:`DevConfig`.

    Raises:
        ConfigError: If the ``.env`` file cannot be read or a value is invalid.
    """
    settings = _read_settings(root, os.environ if environ is None else environ)

    def get(key: str, default: str = "") -> str:
        value = settings.get(key, "").strip()
        return value or default

    config = DevConfig(
        root=root,
        git_repo=get("GIT_REPO", DEFAULT_GIT_REPO),
        git_branch=get("GIT_BRANCH", DEFAULT_GIT_BRANCH),
        git_token=get("GIT_TOKEN"),
        war_builder_repo=get("WAR_BUILDER_REPO", DEFAULT_WAR_BUILDER_REPO),
        db_url=get("DB_URL"),
        db_user=get("DB_USER"),
        db_pass=get("DB_PASS"),
        compose_project=get("COMPOSE_PROJECT", DEFAULT_COMPOSE_PROJECT),
        compose_service=get("COMPOSE_SERVICE", DEFAULT_COMPOSE_SERVICE),
        app_url=get("APP_URL", DEFAULT_APP_URL),
    )

    for key, value in (("GIT_REPO", config.git_repo), ("WAR_BUILDER_REPO", config.war_builder_repo)):
        if not value.startswith(("https://", "http://", "git@", "ssh://", "file://", "/")):
            raise ConfigError(f"'{key}' is not a supported repository URL: {value}")
    if not config.app_url.startswith(("http://", "https://")):
        raise ConfigError("'APP_URL' must be an http(s) URL")
    if any(ch.isspace() for ch in config.compose_service):
        raise ConfigError("'COMPOSE_SERVICE' must be a single service name")

    logger.debug("Workspace root: %s", config.root)
    logger.debug("Source repository: %s (branch %s)", config.git_repo, config.git_branch)
    return config
