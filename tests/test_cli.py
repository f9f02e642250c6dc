import unittest
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

import cmdb_devkit.cli as cli
from cmdb_devkit.build.war import WarBuildError
from cmdb_devkit.build.maven import BuildError
from cmdb_devkit.container.readiness import Readiness
from cmdb_devkit.status import StatusReport
from cmdb_devkit.vcs.git_client import ChangeSet


class FakeBuilder:
    """Stands in for MavenBuilder: records builds and writes a JAR."""

    instances = []

    def __init__(self, source_root, fail=()):
        self.source_root = Path(source_root)
        self.fail = set(fail)
        self.built = []
        FakeBuilder.instances.append(self)

    def build(self, module_dir):
        self.built.append(module_dir)
        if module_dir in self.fail:
            raise BuildError("mvn exited with status 1", output="[ERROR] BUILD FAILURE")

    def find_artifact(self, module_dir):
        target = self.source_root / module_dir / "target"
        target.mkdir(parents=True, exist_ok=True)
        jar = target / (module_dir.replace("/", "-") + "-3.4.jar")
        jar.write_bytes(b"jar")
        return jar


@pytest.fixture
def workspace(tmp_path, monkeypatch, add_module):
    (tmp_path / "docker-compose.yml").write_text("services: {}\n")
    source = tmp_path / "source"
    add_module(source, "core/all", "cmdbuild-core")
    add_module(source, "dao/postgresql", "cmdbuild-dao-postgresql")
    add_module(source, "auth/login", "cmdbuild-auth-login")
    (tmp_path / "webapp" / "WEB-INF" / "lib").mkdir(parents=True)
    monkeypatch.chdir(tmp_path)
    FakeBuilder.instances = []
    return tmp_path


def _builder_failing(*modules):
    return lambda root: FakeBuilder(root, fail=modules)


def test_missing_source_tree(tmp_path, monkeypatch):
    (tmp_path / "docker-compose.yml").write_text("services: {}\n")
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli.deploy_main, [])

    assert result.exit_code == cli.EXIT_FAILURE
    assert "Source directory not found" in result.output


def test_unknown_module_rejected_before_any_build(workspace):
    with patch.object(cli, "MavenBuilder") as mock_builder:
        result = CliRunner().invoke(cli.deploy_main, ["core/all", "nope/missing"])

    assert result.exit_code == cli.EXIT_FAILURE
    assert "Unknown module: nope/missing" in result.output
    assert "core/all" in result.output
    mock_builder.assert_not_called()


def test_explicit_modules_continue_after_failure(workspace):
    with patch.object(cli, "MavenBuilder", side_effect=_builder_failing("dao/postgresql")):
        result = CliRunner().invoke(cli.deploy_main, ["core/all", "./dao/postgresql/", "auth/login"])

    assert result.exit_code == cli.EXIT_FAILURE
    builder = FakeBuilder.instances[0]
    assert builder.built == ["core/all", "dao/postgresql", "auth/login"]
    assert "1 of 3 module(s) failed" in result.output
    assert "BUILD FAILURE" in result.output
    lib = workspace / "webapp" / "WEB-INF" / "lib"
    assert sorted(p.name for p in lib.iterdir()) == ["auth-login-3.4.jar", "core-all-3.4.jar"]


def test_auto_detect_nothing_changed(workspace):
    with patch.object(cli.GitClient, "changed_files", return_value=ChangeSet("none")):
        with patch.object(cli, "MavenBuilder") as mock_builder:
            result = CliRunner().invoke(cli.deploy_main, [])

    assert result.exit_code == cli.EXIT_SUCCESS
    assert "No changed modules detected" in result.output
    mock_builder.assert_not_called()


def test_auto_detect_deploys_changed_modules(workspace):
    changes = ChangeSet("worktree", ["dao/postgresql/src/main/java/Dao.java", "docs/Readme.java"])
    with patch.object(cli.GitClient, "changed_files", return_value=changes):
        with patch.object(cli, "MavenBuilder", side_effect=FakeBuilder):
            result = CliRunner().invoke(cli.deploy_main, [])

    assert result.exit_code == cli.EXIT_SUCCESS, result.output
    assert FakeBuilder.instances[0].built == ["dao/postgresql"]
    assert "Deployed NEW" in result.output
    assert "All 1 module(s) built and deployed" in result.output
    assert "dev-deploy --restart" in result.output


def test_redeploy_reports_overwrite(workspace):
    with patch.object(cli, "MavenBuilder", side_effect=FakeBuilder):
        CliRunner().invoke(cli.deploy_main, ["core/all"])
        result = CliRunner().invoke(cli.deploy_main, ["core/all"])

    assert result.exit_code == cli.EXIT_SUCCESS
    assert "(3 -> 3 bytes)" in result.output


def test_restart_after_deploy(workspace):
    with patch.object(cli, "MavenBuilder", side_effect=FakeBuilder):
        with patch.object(cli, "restart_container", return_value=Readiness.READY) as mock_restart:
            with patch.object(cli, "ComposeClient"):
                result = CliRunner().invoke(cli.deploy_main, ["-r", "core/all"])

    assert result.exit_code == cli.EXIT_SUCCESS
    mock_restart.assert_called_once()
    assert mock_restart.call_args[0][1] == 120
    assert "CMDBuild READY" in result.output


def test_restart_timeout_is_a_warning(workspace):
    with patch.object(cli, "MavenBuilder", side_effect=FakeBuilder):
        with patch.object(cli, "restart_container", return_value=Readiness.TIMED_OUT):
            with patch.object(cli, "ComposeClient"):
                result = CliRunner().invoke(cli.deploy_main, ["--restart", "core/all"])

    assert result.exit_code == cli.EXIT_SUCCESS
    assert "Timeout waiting for READY (120s)" in result.output


def test_no_restart_when_a_module_failed(workspace):
    with patch.object(cli, "MavenBuilder", side_effect=_builder_failing("core/all")):
        with patch.object(cli, "restart_container") as mock_restart:
            result = CliRunner().invoke(cli.deploy_main, ["-r", "core/all"])

    assert result.exit_code == cli.EXIT_FAILURE
    mock_restart.assert_not_called()


def test_status(workspace):
    report = StatusReport(
        root=str(workspace),
        source_dir=str(workspace / "source"),
        source_present=True,
        branch="develop",
        webapp_lib=str(workspace / "webapp" / "WEB-INF" / "lib"),
        container="not running",
        app_url="http://localhost:8080/cmdbuild",
        changed_modules=[("core/all", "cmdbuild-core"), ("x/y", "?")],
    )
    with patch.object(cli, "collect_status", return_value=report):
        result = CliRunner().invoke(cli.deploy_main, ["--status"])

    assert result.exit_code == cli.EXIT_SUCCESS
    assert "Branch:    develop" in result.output
    assert "Container: not running" in result.output
    assert "(unreachable)" in result.output
    assert "Changed modules:" in result.output
    assert "?  (x/y)" in result.output


def test_full_rebuild_requires_source(tmp_path, monkeypatch):
    (tmp_path / "docker-compose.yml").write_text("services: {}\n")
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli.deploy_main, ["--full"])

    assert result.exit_code == cli.EXIT_FAILURE


def test_full_rebuild(workspace):
    (workspace / "source" / ".git").mkdir()
    compose = Mock()
    with patch.object(cli, "build_war", return_value=Path("/out/cohesive-3.4.war")) as mock_build, \
            patch.object(cli, "install_webapp") as mock_install, \
            patch.object(cli, "start_container", return_value=Readiness.READY) as mock_start, \
            patch.object(cli, "ComposeClient", return_value=compose):
        result = CliRunner().invoke(cli.deploy_main, ["-f"])

    assert result.exit_code == cli.EXIT_SUCCESS, result.output
    mock_build.assert_called_once()
    compose.down.assert_called_once()
    mock_install.assert_called_once()
    assert mock_start.call_args[0][2] == 120
    assert "cohesive-3.4.war" in result.output


def test_full_rebuild_failure(workspace):
    (workspace / "source" / ".git").mkdir()
    with patch.object(cli, "build_war", side_effect=WarBuildError("WAR build failed - no output file")):
        result = CliRunner().invoke(cli.deploy_main, ["--full"])

    assert result.exit_code == cli.EXIT_FAILURE
    assert "no output file" in result.output


def test_configuration_error(workspace, monkeypatch):
    monkeypatch.setenv("APP_URL", "localhost")
    result = CliRunner().invoke(cli.deploy_main, [])
    assert result.exit_code == cli.EXIT_FAILURE
    assert "Configuration error" in result.output


class TestCLIOptions(unittest.TestCase):
    def test_short_help(self) -> None:
        result = CliRunner().invoke(cli.deploy_main, ["-h"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("--restart", result.output)
        self.assertIn("--full", result.output)
        self.assertIn("--status", result.output)

    def test_version(self) -> None:
        result = CliRunner().invoke(cli.deploy_main, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("dev-deploy", result.output)


if __name__ == "__main__":
    unittest.main()
