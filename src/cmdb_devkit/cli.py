"""
Command line interface for the cmdb_devkit tool.

This module defines the two entry points of the devkit:

* ``dev-deploy`` (:func:`deploy_main`) detects which Maven modules have
  changed, rebuilds them and hot-deploys their JARs into the exploded
  webapp, and can restart the container, run a full WAR rebuild or print
  the workspace status.
* ``dev-setup`` (:func:`setup_main`) bootstraps a fresh workspace: clone,
  build, extract, configure and start.

Both exit with 0 on success and 1 on failure.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import List, Tuple

import click

from cmdb_devkit import __version__
from cmdb_devkit.bootstrap import (
    DB_CONF_TEMPLATE,
    DB_CONF_WRITTEN,
    MIN_JAVA_VERSION,
    PrerequisiteError,
    build_war,
    check_prerequisites,
    clone_source,
    install_webapp,
    restart_container,
    start_container,
    write_database_conf,
)
from cmdb_devkit.build.maven import MavenBuilder
from cmdb_devkit.build.war import WarBuilder, WarBuildError
from cmdb_devkit.config.loader import ConfigError, DevConfig, find_workspace_root, load_config
from cmdb_devkit.container.compose import ComposeClient, ComposeError
from cmdb_devkit.container.readiness import RESTART_WAIT, START_WAIT, Readiness
from cmdb_devkit.deploy.batch import ModuleOutcome, deploy_modules
from cmdb_devkit.modules.detection import affected_modules
from cmdb_devkit.modules.discovery import ModuleMap, discover_modules, normalize_module_dir
from cmdb_devkit.status import StatusReport, collect_status
from cmdb_devkit.vcs.git_client import GitClient, GitError

# Create a module-level logger. Attach a null handler and disable
# propagation to avoid logging errors when the root logger's stream is
# closed (such as during unit tests).
logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_FAILURE = 1

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


# ---------------------------------------------------------------------------
# Progress and status display utilities
# ---------------------------------------------------------------------------

class ProgressIndicator:
    """Simple progress indicator for user feedback."""

    def __init__(self, message: str):
        self.message = message
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        click.echo(f"→ {self.message}...")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            elapsed = time.time() - self.start_time
            click.echo(f"  ✓ Done ({elapsed:.1f}s)")
        return False


def print_step(step_num: int, total_steps: int, message: str):
    """Print a step indicator."""
    click.echo(f"\n{'='*60}")
    click.echo(f"Step {step_num}/{total_steps}: {message}")
    click.echo(f"{'='*60}")


def print_info(message: str, indent: int = 0):
    """Print an info message."""
    prefix = "  " * indent
    click.echo(f"{prefix}ℹ {message}")


def print_success(message: str, indent: int = 0):
    """Print a success message."""
    prefix = "  " * indent
    click.echo(f"{prefix}{click.style('✓', fg='green')} {message}")


def print_warning(message: str, indent: int = 0):
    """Print a warning message."""
    prefix = "  " * indent
    click.echo(f"{prefix}{click.style('⚠', fg='yellow')} {message}")


def print_error(message: str, indent: int = 0):
    """Print an error message."""
    prefix = "  " * indent
    click.echo(f"{prefix}{click.style('✗', fg='red')} {message}", err=True)


def print_summary_box(title: str, items: List[str]):
    """Print a formatted summary box."""
    max_width = max(len(title), max(len(item) for item in items) if items else 0)
    box_width = min(max_width + 4, 60)

    click.echo(f"\n┌{'─' * box_width}┐")
    click.echo(f"│ {title.ljust(box_width - 2)}│")
    click.echo(f"├{'─' * box_width}┤")
    for item in items:
        click.echo(f"│ {item.ljust(box_width - 2)}│")
    click.echo(f"└{'─' * box_width}┘")


def cyan(text: str) -> str:
    return click.style(text, fg="cyan")


def _configure_logging(verbose: bool) -> None:
    # force=True so repeated invocations (tests) reconfigure the handlers
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        force=True,
    )


def _load_workspace() -> DevConfig:
    root = find_workspace_root(Path.cwd())
    try:
        return load_config(root)
    except ConfigError as exc:
        print_error(f"Configuration error: {exc}")
        raise click.exceptions.Exit(EXIT_FAILURE)


def _print_dot(_waited: int) -> None:
    click.echo(".", nl=False)


# ---------------------------------------------------------------------------
# Core functionality
# ---------------------------------------------------------------------------

def resolve_modules(requested: Tuple[str, ...], module_map: ModuleMap) -> List[str]:
    """Map module arguments to known module directories.

    Raises
    ------
    click.exceptions.Exit
        With EXIT_FAILURE when an argument names no discovered module. No
        build has been started at that point.
    """
    selected: List[str] = []
    for arg in requested:
        directory = normalize_module_dir(arg)
        if directory not in module_map:
            print_error(f"Unknown module: {arg}")
            print_info(f"Available: {' '.join(module_map.directories()) or '(none)'}", indent=1)
            raise click.exceptions.Exit(EXIT_FAILURE)
        if directory not in selected:
            selected.append(directory)
    return selected


def detect_changed_modules(git: GitClient, module_map: ModuleMap) -> List[str]:
    """Return the modules owning changed ``.java`` files."""
    changes = git.changed_files()
    logger.debug("Change detection strategy: %s (%d file(s))", changes.strategy, len(changes.files))
    return affected_modules(changes.files, module_map)


def report_readiness(result: Readiness, max_wait: int) -> None:
    click.echo("")
    if result is Readiness.READY:
        print_success(click.style("CMDBuild READY", fg="green", bold=True))
    else:
        print_warning(f"Timeout waiting for READY ({max_wait}s). Check logs: docker compose logs -f")


def show_status(report: StatusReport) -> None:
    """Print a :class:`StatusReport`."""
    click.echo("")
    click.echo(cyan("=== CMDBuild Dev Environment ==="))
    click.echo(f"Root:      {report.root}")
    if report.source_present:
        click.echo(f"Source:    {report.source_dir}")
        click.echo(f"Branch:    {report.branch or '(detached)'}")
    else:
        click.echo(f"Source:    {click.style('not cloned', fg='red')} (run dev-setup)")
    click.echo(f"Webapp:    {report.webapp_lib}")
    click.echo("")
    click.echo(f"Container: {report.container}")
    http = str(report.http_status) if report.http_status is not None else "unreachable"
    click.echo(f"App URL:   {report.app_url} ({http})")

    if report.source_present:
        if report.changed_modules:
            click.echo("\n" + click.style("Changed modules:", fg="yellow"))
            for directory, artifact_id in report.changed_modules:
                click.echo(f"  {cyan(artifact_id)}  ({directory})")
        else:
            click.echo("\n" + click.style("No changed modules", fg="green"))
    click.echo("")


def run_full_rebuild(config: DevConfig) -> Readiness:
    """Rebuild the WAR, reinstall the webapp and start the container.

    Raises
    ------
    click.exceptions.Exit
        With EXIT_FAILURE if the source tree is missing or the build fails.
    """
    if not GitClient.is_repo(config.source_dir):
        print_error(f"Source directory not found: {config.source_dir}")
        print_info("Run dev-setup first", indent=1)
        raise click.exceptions.Exit(EXIT_FAILURE)

    war_builder = WarBuilder(config.war_builder_dir, config.war_builder_repo)
    compose = ComposeClient(config.compose_file, config.compose_service)
    try:
        if not war_builder.is_cloned():
            print_info("Cloning WAR builder...")
        print_info("Starting full WAR rebuild...")
        war = build_war(config, war_builder, GitClient(config.source_dir))
        print_success(f"WAR built: {cyan(war.name)}")

        with ProgressIndicator("Extracting WAR to webapp"):
            compose.down()
            install_webapp(war, config)

        print_info("Starting container...")
        result = start_container(compose, config, RESTART_WAIT, on_tick=_print_dot)
    except (WarBuildError, GitError, ComposeError) as exc:
        print_error(f"Full rebuild failed: {exc}")
        raise click.exceptions.Exit(EXIT_FAILURE)
    report_readiness(result, RESTART_WAIT)
    return result


def _on_module_start(directory: str, artifact_id: str) -> None:
    print_info(f"Building {cyan(artifact_id)} ({directory})")


def _on_module_outcome(outcome: ModuleOutcome) -> None:
    if not outcome.ok:
        if outcome.build_output:
            click.echo(outcome.build_output, err=True)
        print_error(outcome.error or "failed", indent=1)
        return
    result = outcome.deploy
    if result.replaced:
        print_success(f"Deployed {cyan(result.name)} ({result.old_size} -> {result.new_size} bytes)", indent=1)
    else:
        print_warning(f"Deployed NEW {cyan(result.name)} (was not in webapp)", indent=1)


@click.command(context_settings=CONTEXT_SETTINGS)
@click.argument("modules", nargs=-1, metavar="[MODULE_DIR]...")
@click.option("--restart", "-r", is_flag=True, help="Also restart Tomcat after deploying.")
@click.option("--full", "-f", is_flag=True, help="Full WAR rebuild with the external WAR builder.")
@click.option("--status", "-s", is_flag=True, help="Show environment status and changed modules.")
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(version=__version__, prog_name="dev-deploy")
def deploy_main(modules: Tuple[str, ...], restart: bool, full: bool, status: bool, verbose: bool) -> None:
    """Build changed Maven modules and hot-deploy their JARs.

    Without MODULE_DIR arguments the modules owning changed .java files
    are detected from git. Pass module directories such as
    dao/postgresql to build those instead.
    """
    _configure_logging(verbose)
    ctx = click.get_current_context(silent=True)

    try:
        config = _load_workspace()

        if status:
            show_status(collect_status(config))
            raise click.exceptions.Exit(EXIT_SUCCESS)

        if full:
            run_full_rebuild(config)
            raise click.exceptions.Exit(EXIT_SUCCESS)

        if not config.source_dir.is_dir():
            print_error(f"Source directory not found: {config.source_dir}")
            print_info("Run dev-setup first", indent=1)
            raise click.exceptions.Exit(EXIT_FAILURE)

        with ProgressIndicator("Discovering Maven modules"):
            module_map = discover_modules(config.source_dir)
        logger.debug("Modules: %s", module_map.modules)

        if modules:
            selected = resolve_modules(modules, module_map)
        else:
            try:
                selected = detect_changed_modules(GitClient(config.source_dir), module_map)
            except GitError as exc:
                print_error(f"VCS error: {exc}")
                raise click.exceptions.Exit(EXIT_FAILURE)

        if not selected:
            print_warning("No changed modules detected. Nothing to build.")
            print_info("Specify a module explicitly: dev-deploy dao/postgresql", indent=1)
            raise click.exceptions.Exit(EXIT_SUCCESS)

        builder = MavenBuilder(config.source_dir)
        report = deploy_modules(
            selected,
            module_map,
            builder,
            config.webapp_lib,
            on_start=_on_module_start,
            on_outcome=_on_module_outcome,
        )

        if report.failed:
            print_error(f"{len(report.failed)} of {len(report.outcomes)} module(s) failed")
            raise click.exceptions.Exit(EXIT_FAILURE)

        print_success(f"All {len(report.outcomes)} module(s) built and deployed in {report.elapsed:.0f}s")

        if restart:
            print_info("Restarting Tomcat...")
            compose = ComposeClient(config.compose_file, config.compose_service)
            try:
                result = restart_container(compose, RESTART_WAIT, on_tick=_print_dot)
            except ComposeError as exc:
                print_error(f"Restart failed: {exc}")
                raise click.exceptions.Exit(EXIT_FAILURE)
            report_readiness(result, RESTART_WAIT)
        else:
            print_warning("JARs deployed. Restart with: dev-deploy --restart")

        raise click.exceptions.Exit(EXIT_SUCCESS)

    except click.exceptions.Exit:
        raise
    except Exception as exc:
        logging.exception("Unhandled error: %s", exc)
        print_error(f"Unexpected error: {exc}")
        ctx.exit(EXIT_FAILURE)


@click.command(context_settings=CONTEXT_SETTINGS)
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(version=__version__, prog_name="dev-setup")
def setup_main(verbose: bool) -> None:
    """Set up the CMDBuild development environment.

    Clones the source code, builds the WAR, extracts it, writes
    conf/database.conf and starts the container. Settings come from the
    environment or a .env file: GIT_REPO, GIT_BRANCH, GIT_TOKEN, DB_URL,
    DB_USER, DB_PASS.
    """
    _configure_logging(verbose)
    ctx = click.get_current_context(silent=True)

    click.echo("\n" + "=" * 60)
    click.echo("CMDBuild Dev Environment Setup".center(60))
    click.echo("=" * 60)

    total_steps = 6
    current_step = 0

    try:
        config = _load_workspace()

        # Step 1: Prerequisites
        current_step += 1
        print_step(current_step, total_steps, "Checking Prerequisites")
        try:
            java_version = check_prerequisites()
        except PrerequisiteError as exc:
            print_error(str(exc))
            raise click.exceptions.Exit(EXIT_FAILURE)
        if java_version is not None and java_version < MIN_JAVA_VERSION:
            print_warning(f"Java {MIN_JAVA_VERSION}+ recommended (detected: {java_version})")
        print_success("All prerequisites found")

        # Step 2: Source
        current_step += 1
        print_step(current_step, total_steps, "Cloning Source")
        if not GitClient.is_repo(config.source_dir):
            print_info(f"Cloning {cyan(config.git_repo)} (branch: {cyan(config.git_branch)}) into ./source/")
        try:
            cloned, git = clone_source(config)
            if cloned:
                print_success("Source cloned successfully")
            else:
                print_success("Source already cloned at ./source/")
                print_info(f"Current branch: {git.get_current_branch()}", indent=1)
        except GitError as exc:
            print_error(f"Git error: {exc}")
            raise click.exceptions.Exit(EXIT_FAILURE)

        # Step 3: WAR builder
        current_step += 1
        print_step(current_step, total_steps, "Preparing WAR Builder")
        war_builder = WarBuilder(config.war_builder_dir, config.war_builder_repo)
        try:
            if war_builder.ensure_cloned():
                print_success("war-builder cloned")
            else:
                print_success("war-builder already present at ./war-builder/")
        except WarBuildError as exc:
            print_error(str(exc))
            raise click.exceptions.Exit(EXIT_FAILURE)

        # Step 4: Build and extract
        current_step += 1
        print_step(current_step, total_steps, "Building WAR")
        try:
            war = build_war(config, war_builder, git)
            print_success(f"WAR built: {cyan(war.name)}")
            with ProgressIndicator("Extracting WAR to ./webapp/"):
                install_webapp(war, config)
        except (WarBuildError, GitError) as exc:
            print_error(str(exc))
            raise click.exceptions.Exit(EXIT_FAILURE)

        # Step 5: Database configuration
        current_step += 1
        print_step(current_step, total_steps, "Database Configuration")
        try:
            outcome = write_database_conf(config)
        except ConfigError as exc:
            print_error(f"Configuration error: {exc}")
            raise click.exceptions.Exit(EXIT_FAILURE)
        if outcome == DB_CONF_WRITTEN:
            print_success("conf/database.conf created from env vars")
        elif outcome == DB_CONF_TEMPLATE:
            print_warning("Created conf/database.conf from example template")
            print_warning("Edit conf/database.conf with your database connection details before starting!")
            click.echo(f"\n  {cyan('vi conf/database.conf')}\n")
            click.pause("Press Enter after editing database.conf (or Ctrl+C to abort)...")
        else:
            print_success("conf/database.conf already exists")

        # Step 6: Container
        current_step += 1
        print_step(current_step, total_steps, "Starting Container")
        compose = ComposeClient(config.compose_file, config.compose_service)
        try:
            print_info("Container starting, waiting for CMDBuild to be READY...")
            result = start_container(compose, config, START_WAIT, on_tick=_print_dot)
        except ComposeError as exc:
            print_error(f"Failed to start container: {exc}")
            raise click.exceptions.Exit(EXIT_FAILURE)

        click.echo("")
        if result is Readiness.READY:
            print_success(click.style("CMDBuild is READY!", fg="green", bold=True))
            print_summary_box(
                f"Open {config.app_url}",
                [
                    "Default login:   admin / admin",
                    "Daily workflow:  dev-deploy",
                    "Restart:         dev-deploy -r",
                    "Full rebuild:    dev-deploy -f",
                    "Status:          dev-deploy -s",
                    "Logs:            docker compose logs -f",
                ],
            )
        else:
            print_warning(f"Timeout waiting for READY ({START_WAIT}s)")
            print_warning("Check logs: docker compose logs -f")
            print_warning("CMDBuild may still be initializing the database on first run.")

        print_success("Setup complete!")
        raise click.exceptions.Exit(EXIT_SUCCESS)

    except click.exceptions.Exit:
        raise
    except Exception as exc:
        logging.exception("Unhandled error: %s", exc)
        print_error(f"Unexpected error: {exc}")
        ctx.exit(EXIT_FAILURE)
