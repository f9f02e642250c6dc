from pathlib import Path

import pytest


CONFIG_VARIABLES = (
    "GIT_REPO",
    "GIT_BRANCH",
    "GIT_TOKEN",
    "WAR_BUILDER_REPO",
    "DB_URL",
    "DB_USER",
    "DB_PASS",
    "COMPOSE_PROJECT",
    "COMPOSE_SERVICE",
    "APP_URL",
)


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """Hide the developer's own workspace settings from the tests.

    Configuration is read from the process environment, so any GIT_* or
    DB_* variable exported in the shell running the tests would leak in.
    """
    for name in CONFIG_VARIABLES:
        monkeypatch.delenv(name, raising=False)


POM_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <parent>
    <groupId>org.cmdbuild</groupId>
    <artifactId>cmdbuild-parent</artifactId>
    <version>3.4</version>
  </parent>
  <artifactId>{artifact_id}</artifactId>
</project>
"""


def write_module(root: Path, directory: str, artifact_id: str, with_sources: bool = True) -> Path:
    """Create a Maven module under ``root`` and return its directory."""
    module_dir = root / directory if directory != "." else root
    module_dir.mkdir(parents=True, exist_ok=True)
    (module_dir / "pom.xml").write_text(POM_TEMPLATE.format(artifact_id=artifact_id), encoding="utf-8")
    if with_sources:
        (module_dir / "src" / "main" / "java").mkdir(parents=True, exist_ok=True)
    return module_dir


@pytest.fixture
def maven_tree(tmp_path):
    """A small multi-module source tree.

    ``core/all`` and ``dao/postgresql`` are plain modules, ``auth`` and
    ``auth/login`` are nested ones.
    """
    root = tmp_path / "source"
    root.mkdir()
    write_module(root, "core/all", "cmdbuild-core")
    write_module(root, "dao/postgresql", "cmdbuild-dao-postgresql")
    write_module(root, "auth", "cmdbuild-auth")
    write_module(root, "auth/login", "cmdbuild-auth-login")
    return root


@pytest.fixture
def add_module():
    """Return the helper creating a Maven module in a tree."""
    return write_module
