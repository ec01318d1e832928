"""ci-housekeeping CLI interface.

Commands:
- check: Validate external tool availability
- init: Initialize ci-housekeeping configuration
- less-check: Verify theme .less sources against committed .css
- build-check: Verify built JavaScript modules against git
- rebase-security: Rebase the security branch onto integration
- gc: Run git garbage collection when due
- patch-summary: Summarize patch files
- manage-queues: Maintain the integration queues in the tracker
- prelaunch-jobs: Launch developer-requested CI jobs for issues

Global options:
- --config: Path to configuration file
- --verbose: Enable verbose output with timestamps
- --quiet: Suppress info messages
- --ci: JSON log lines
- --version: Show version and exit
"""

import json
import re
from datetime import date
from pathlib import Path
from typing import Annotated

import typer

from ci_housekeeping import __version__
from ci_housekeeping.config import HousekeepingConfig, create_default_config, load_config, parse_ymd
from ci_housekeeping.errors import HousekeepingError
from ci_housekeeping.utils.logging import configure_from_cli, get_logger
from ci_housekeeping.utils.process import CommandRunner

# Create Typer app
app = typer.Typer(
    name="ci-housekeeping",
    help="CI housekeeping jobs: artifact checks, security rebase, tracker queues",
    add_completion=False,
    no_args_is_help=True,
)

# Global state
_config: HousekeepingConfig | None = None
_logger = get_logger()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"ci-housekeeping {__version__}")
        raise typer.Exit()


def _get_config() -> HousekeepingConfig:
    return _config if _config is not None else HousekeepingConfig()


def _runner() -> CommandRunner:
    return CommandRunner(timeout=_get_config().ci.timeout)


def _path(value: str | Path | None) -> Path | None:
    return Path(value) if value else None


def _fail(e: Exception) -> typer.Exit:
    _logger.error(str(e))
    return typer.Exit(1)


@app.callback()
def main(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output with timestamps",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress info messages (warnings and errors only)",
        ),
    ] = False,
    ci: Annotated[
        bool,
        typer.Option(
            "--ci",
            help="Enable CI mode with JSON output",
        ),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """ci-housekeeping - CI housekeeping jobs.

    Checks generated artifacts, keeps the security branch rebased and
    maintains the integration queues of the issue tracker.
    """
    global _config

    configure_from_cli(verbose=verbose, quiet=quiet, ci=ci)

    try:
        _config = load_config(config_path=config)
        if _config.config_path:
            _logger.debug(f"Loaded config from: {_config.config_path}")
    except FileNotFoundError as e:
        _logger.error(str(e))
        raise typer.Exit(1)
    except (ValueError, TypeError, KeyError) as e:
        _logger.error(f"Failed to load config: {e}")
        raise typer.Exit(1)


# =============================================================================
# check command
# =============================================================================


@app.command()
def check(
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results as JSON",
        ),
    ] = False,
    gitdir: Annotated[
        Path | None,
        typer.Option(
            "--gitdir",
            help="Checkout directory (enables the checkout-local grunt check)",
            file_okay=False,
        ),
    ] = None,
) -> None:
    """Validate external tool availability.

    Exit codes:
        0: All required tools available
        1: One or more required tools missing
        2: Only optional tools missing (warnings)
    """
    from ci_housekeeping.utils.preflight import PreflightChecker

    cfg = _get_config()
    checker = PreflightChecker()
    result = checker.check_all(
        gitcmd=cfg.git.cmd,
        npmcmd=cfg.npm.cmd,
        gitdir=gitdir or _path(cfg.git.dir),
        tracker_cli=cfg.tracker.cli if cfg.tracker.server else None,
        jenkins_cli=cfg.jenkins.cli if cfg.jenkins.server else None,
    )

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        typer.echo("\nPreflight Check Results\n")

        for check_result in result.checks:
            status = "OK" if check_result.available else "MISSING"
            version_str = f" ({check_result.version})" if check_result.version else ""
            required_str = " [required]" if check_result.required else " [optional]"

            typer.echo(f"  {status} {check_result.name}{version_str}{required_str}")
            if check_result.available and check_result.path:
                typer.echo(f"     └─ {check_result.path}")
            elif not check_result.available:
                typer.echo(f"     └─ {check_result.message}")

        typer.echo()

    if result.errors:
        if not json_output:
            typer.echo("Preflight check FAILED")
            for error in result.errors:
                typer.echo(f"   • {error}")
        raise typer.Exit(1)
    elif result.warnings:
        if not json_output:
            typer.echo("Preflight check passed with WARNINGS")
            for warning in result.warnings:
                typer.echo(f"   • {warning}")
        raise typer.Exit(2)
    else:
        if not json_output:
            typer.echo("All preflight checks passed")
        raise typer.Exit(0)


# =============================================================================
# init command
# =============================================================================


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Overwrite existing config",
        ),
    ] = False,
) -> None:
    """Initialize ci-housekeeping configuration.

    Creates .ci_housekeeping/config.yaml mapping the CI job parameters
    (environment variables) onto the configuration.
    """
    config_dir = Path(".ci_housekeeping")
    config_dir.mkdir(exist_ok=True)
    config_file = config_dir / "config.yaml"

    if config_file.exists() and not force:
        _logger.error(f"Config already exists: {config_file}")
        _logger.info("Use --force to overwrite")
        raise typer.Exit(1)

    config_file.write_text(create_default_config())
    _logger.info(f"Created config: {config_file}")

    typer.echo("\nci-housekeeping configuration initialized")
    typer.echo(f"   Config: {config_file}")
    raise typer.Exit(0)


# =============================================================================
# artifact checks
# =============================================================================


def _print_check(report_dict: dict, json_output: bool) -> None:
    if json_output:
        typer.echo(json.dumps(report_dict, indent=2))


@app.command("less-check")
def less_check(
    gitdir: Annotated[
        Path | None,
        typer.Option("--gitdir", help="Checkout directory (overrides config)"),
    ] = None,
    branch: Annotated[
        str | None,
        typer.Option("--branch", "-b", help="Branch to check (overrides config)"),
    ] = None,
    workspace: Annotated[
        Path | None,
        typer.Option("--workspace", "-w", help="Directory for less_checker.txt"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the report as JSON"),
    ] = False,
) -> None:
    """Verify every theme's .less sources compile to the committed .css.

    Exit codes:
        0: All style sheets match git
        1: Errors found, or the check could not run
    """
    from ci_housekeeping.checks import LessChecker

    cfg = _get_config()
    try:
        checker = LessChecker(
            _runner(),
            gitdir=gitdir or _path(cfg.git.dir),
            branch=branch or cfg.git.branch,
            workspace=workspace or cfg.workspace_path,
            gitcmd=cfg.git.cmd,
            npmcmd=cfg.npm.cmd,
            recess_version=cfg.npm.recess_version,
        )
        report = checker.run()
    except HousekeepingError as e:
        raise _fail(e)

    _print_check(report.to_dict(), json_output)
    raise typer.Exit(0 if report.success else 1)


@app.command("build-check")
def build_check(
    gitdir: Annotated[
        Path | None,
        typer.Option("--gitdir", help="Checkout directory (overrides config)"),
    ] = None,
    branch: Annotated[
        str | None,
        typer.Option("--branch", "-b", help="Branch to check (overrides config)"),
    ] = None,
    workspace: Annotated[
        Path | None,
        typer.Option("--workspace", "-w", help="Directory for build_checker.txt"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the report as JSON"),
    ] = False,
) -> None:
    """Verify built AMD and YUI modules match git.

    Exit codes:
        0: All built modules match git
        1: Differences found, or the check could not run
    """
    from ci_housekeeping.checks import BuildChecker

    cfg = _get_config()
    try:
        checker = BuildChecker(
            _runner(),
            gitdir=gitdir or _path(cfg.git.dir),
            branch=branch or cfg.git.branch,
            workspace=workspace or cfg.workspace_path,
            gitcmd=cfg.git.cmd,
            npmcmd=cfg.npm.cmd,
        )
        report = checker.run()
    except HousekeepingError as e:
        raise _fail(e)

    _print_check(report.to_dict(), json_output)
    raise typer.Exit(0 if report.success else 1)


# =============================================================================
# security rebase
# =============================================================================


@app.command("rebase-security")
def rebase_security(
    gitdir: Annotated[
        Path | None,
        typer.Option("--gitdir", help="Checkout directory (overrides config)"),
    ] = None,
    branch: Annotated[
        str | None,
        typer.Option("--branch", "-b", help="Branch to rebase (overrides config)"),
    ] = None,
    integration_remote: Annotated[
        str | None,
        typer.Option("--integration-remote", help="Integration repository URL"),
    ] = None,
    security_remote: Annotated[
        str | None,
        typer.Option("--security-remote", help="Security repository URL"),
    ] = None,
    max_loops: Annotated[
        int | None,
        typer.Option("--max-loops", min=1, help="Maximum failed `rebase --continue` attempts"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Rebase but do not push"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the result as JSON"),
    ] = False,
) -> None:
    """Rebase the security branch onto the integration branch.

    Conflicts in compiled style sheets and built JavaScript modules are
    regenerated automatically. Any other conflict aborts the rebase.

    Exit codes:
        0: Rebased (and pushed unless --dry-run)
        1: Rebase failed and was aborted, or could not start
    """
    from ci_housekeeping.rebase import SecurityRebaser
    from ci_housekeeping.tools import GitGarbageCollector, GitRepository

    cfg = _get_config()
    runner = _runner()
    try:
        checkout = gitdir or _path(cfg.git.dir)
        gc = None
        if checkout is not None:
            gc = GitGarbageCollector(
                GitRepository(checkout, runner, cfg.git.cmd),
                interval_days=cfg.gc.interval_days,
                loose_objects_threshold=cfg.gc.loose_objects_threshold,
            )
        rebaser = SecurityRebaser(
            runner,
            gitdir=checkout,
            branch=branch or cfg.git.branch,
            integration_remote=integration_remote or cfg.rebase.integration_remote,
            security_remote=security_remote or cfg.rebase.security_remote,
            gitcmd=cfg.git.cmd,
            npmcmd=cfg.npm.cmd,
            clone_url=cfg.rebase.clone_url,
            max_loops=max_loops or cfg.rebase.max_loops,
            style_targets=cfg.rebase.style_targets,
            gc=gc,
            dry_run=dry_run or cfg.rebase.dry_run,
        )
        result = rebaser.run()
    except HousekeepingError as e:
        raise _fail(e)

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    elif result.clean:
        typer.echo(f"Security branch {result.branch} rebased without conflicts")
    else:
        typer.echo(
            f"Security branch {result.branch} rebased, "
            f"{len(result.conflicts_resolved)} conflict(s) regenerated"
        )
    raise typer.Exit(0)


@app.command()
def gc(
    gitdir: Annotated[
        Path | None,
        typer.Option("--gitdir", help="Checkout directory (overrides config)"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Run gc regardless of thresholds"),
    ] = False,
) -> None:
    """Run `git gc` in the checkout when it is due."""
    from ci_housekeeping.errors import ConfigurationError
    from ci_housekeeping.tools import GitGarbageCollector, GitRepository

    cfg = _get_config()
    checkout = gitdir or _path(cfg.git.dir)
    try:
        if checkout is None:
            raise ConfigurationError("git.dir")
        repo = GitRepository(checkout, _runner(), cfg.git.cmd)
        if not repo.exists:
            raise ConfigurationError("git.dir", f"Not a git checkout: {checkout}")
        collector = GitGarbageCollector(
            repo,
            interval_days=cfg.gc.interval_days,
            loose_objects_threshold=cfg.gc.loose_objects_threshold,
        )
        ran = collector.run(force=force)
    except HousekeepingError as e:
        raise _fail(e)

    typer.echo("git gc completed" if ran else "git gc not required")
    raise typer.Exit(0)


# =============================================================================
# patch summary
# =============================================================================


@app.command("patch-summary")
def patch_summary(
    patches: Annotated[
        list[Path],
        typer.Argument(help="Patch files (git format-patch output or unified diffs)"),
    ],
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: markdown or json"),
    ] = "markdown",
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the summary to a file"),
    ] = None,
) -> None:
    """Summarize patch files: subjects, issues, files and line counts."""
    from ci_housekeeping.patches import summarize_files
    from ci_housekeeping.templates import TemplateRenderer

    if format not in {"markdown", "json"}:
        _logger.error(f"Invalid format: {format}. Use 'markdown' or 'json'")
        raise typer.Exit(1)

    try:
        summary = summarize_files(patches, style_targets=_get_config().rebase.style_targets)
    except OSError as e:
        _logger.error(f"Cannot read patch: {e}")
        raise typer.Exit(1)

    if format == "json":
        content = json.dumps(summary.to_dict(), indent=2) + "\n"
    else:
        content = TemplateRenderer().render_patch_summary(summary)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(content, encoding="utf-8")
        _logger.info(f"Summary written to: {output}")
    else:
        typer.echo(content, nl=False)
    raise typer.Exit(0)


# =============================================================================
# tracker automations
# =============================================================================


def _tracker_client(workspace: Path, result_name: str, dry_run: bool):
    from ci_housekeeping.tools import TrackerClient

    cfg = _get_config()
    return TrackerClient(
        _runner(),
        cfg.tracker.cli,
        cfg.tracker.server,
        cfg.tracker.user,
        cfg.tracker.password,
        result_file=workspace / result_name,
        dry_run=dry_run,
    )


@app.command("manage-queues")
def manage_queues(
    release_date: Annotated[
        str | None,
        typer.Option("--release-date", help="Release date, YYYY-MM-DD (overrides config)"),
    ] = None,
    lastweek_date: Annotated[
        str | None,
        typer.Option("--lastweek-date", help="Start of the last week, YYYY-MM-DD"),
    ] = None,
    today: Annotated[
        str | None,
        typer.Option("--today", help="Evaluate the rules for this date, YYYY-MM-DD"),
    ] = None,
    workspace: Annotated[
        Path | None,
        typer.Option("--workspace", "-w", help="Directory for the action log"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Only read from the tracker"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the result as JSON"),
    ] = False,
) -> None:
    """Maintain the candidates and current integration queues.

    Run from freeze day to packaging day.
    """
    from dataclasses import replace

    from ci_housekeeping.errors import ConfigurationError
    from ci_housekeeping.tracker.queues import RESULT_FILE, QueueManager

    cfg = _get_config()
    settings = replace(
        cfg.tracker,
        release_date=release_date or cfg.tracker.release_date,
        lastweek_date=lastweek_date or cfg.tracker.lastweek_date,
    )
    workdir = workspace or cfg.workspace_path

    try:
        evaluation_day = date.today()
        if today:
            try:
                evaluation_day = parse_ymd(today, "--today")
            except ValueError as e:
                raise ConfigurationError("--today", str(e))
        client = _tracker_client(workdir, RESULT_FILE, dry_run or settings.dry_run)
        manager = QueueManager(client, settings, workdir)
        result = manager.run(today=evaluation_day)
    except HousekeepingError as e:
        raise _fail(e)

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        typer.echo(
            f"{result.today.isoformat()} ({result.phase.value} release): "
            f"rules {', '.join(result.rules)}, {len(result.actions)} action(s)"
        )
    raise typer.Exit(0)


@app.command("prelaunch-jobs")
def prelaunch_jobs(
    issues: Annotated[
        str,
        typer.Option("--issues", "-i", help="Issue keys, comma or space separated"),
    ],
    job_type: Annotated[
        str,
        typer.Option("--job-type", "-j", help="Job type: all, phpunit, behat-goutte, behat-chrome, behat-app"),
    ] = "all",
    repository: Annotated[
        str | None,
        typer.Option("--repository", help="Repository for every issue (default: read from the tracker)"),
    ] = None,
    branch: Annotated[
        str | None,
        typer.Option("--branch", "-b", help="Branch for every issue (default: read from the tracker)"),
    ] = None,
    result_name: Annotated[
        str,
        typer.Option("--result-name", help="Result file name, .jenkinscli is appended"),
    ] = "prelaunch",
    workspace: Annotated[
        Path | None,
        typer.Option("--workspace", "-w", help="Directory for the result file"),
    ] = None,
) -> None:
    """Launch developer-requested CI jobs for a list of issues.

    Exit codes:
        0: All jobs launched
        1: A launch failed, or the run could not start
        2: Some issues were skipped
    """
    from ci_housekeeping.tools import JenkinsClient
    from ci_housekeeping.tracker.prelaunch import PrelaunchRunner

    cfg = _get_config()
    workdir = workspace or cfg.workspace_path
    keys = [key for key in re.split(r"[\s,]+", issues) if key]

    try:
        tracker = None
        if not (repository and branch):
            tracker = _tracker_client(workdir, f"{result_name}.csv", dry_run=False)
        jenkins = JenkinsClient(
            _runner(),
            cfg.jenkins.cli,
            server=cfg.jenkins.server,
            user=cfg.jenkins.user,
            token=cfg.jenkins.token,
        )
        runner = PrelaunchRunner(jenkins, workdir, result_name, tracker=tracker, settings=cfg.tracker)
        result = runner.run(keys, job_type=job_type, repository=repository, branch=branch)
    except HousekeepingError as e:
        raise _fail(e)

    typer.echo(
        f"{len(result.launches)} job(s) launched, {len(result.skipped)} issue(s) skipped. "
        f"Output in {runner.result_file}"
    )
    if not result.success:
        raise typer.Exit(1)
    if result.skipped:
        raise typer.Exit(2)
    raise typer.Exit(0)


if __name__ == "__main__":
    app()
