"""ci-housekeeping configuration system.

Configuration is YAML-based with per-run CLI overrides.
Supports environment variable substitution in config files:
- ${VAR}: value of VAR, error if unset
- ${VAR:-default}: value of VAR, or default when unset or empty

CI jobs pass their parameters as environment variables, so a config such as
``git: {dir: "${gitdir}"}`` maps job parameters straight onto the config.

Configuration file discovery (in priority order):
1. CLI --config argument
2. ./.ci_housekeeping/config.yaml
3. ./ci_housekeeping.yaml
"""

import os
import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

import yaml

DATE_PATTERN = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")

# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class GitConfig:
    """Checkout to operate on.

    Attributes:
        cmd: Path to the git executable
        dir: Directory containing the git repository
        branch: Branch to verify or rebase
    """

    cmd: str = "git"
    dir: str | None = None
    branch: str | None = None


@dataclass
class NpmConfig:
    """Node toolchain settings.

    Attributes:
        cmd: Path to the npm executable
        recess_version: recess version installed for style-sheet compilation
    """

    cmd: str = "npm"
    recess_version: str = "1.1.9"


@dataclass
class StyleTarget:
    """A compiled style sheet and the .less source it is built from."""

    less: str
    css: str


def default_style_targets() -> list[StyleTarget]:
    """Style sheets regenerated when they conflict during a rebase."""
    return [
        StyleTarget(
            less="theme/bootstrapbase/less/moodle.less",
            css="theme/bootstrapbase/style/moodle.css",
        ),
        StyleTarget(
            less="theme/bootstrapbase/less/editor.less",
            css="theme/bootstrapbase/style/editor.css",
        ),
    ]


@dataclass
class RebaseConfig:
    """Security branch rebase settings.

    Attributes:
        integration_remote: URL integration is fetched from
        security_remote: URL security branches are pushed to
        clone_url: Repository cloned when the checkout does not exist yet
        max_loops: Safety limit on `rebase --continue` attempts
        style_targets: Compiled style sheets regenerated on conflict
        dry_run: Skip the final force pushes
    """

    integration_remote: str | None = None
    security_remote: str | None = None
    clone_url: str = "git://git.moodle.org/moodle.git"
    max_loops: int = 100
    style_targets: list[StyleTarget] = field(default_factory=default_style_targets)
    dry_run: bool = False

    def __post_init__(self) -> None:
        """Validate rebase configuration."""
        if self.max_loops < 1:
            raise ValueError(f"rebase.max_loops must be positive (got {self.max_loops})")


@dataclass
class GCConfig:
    """Git garbage collection thresholds.

    Attributes:
        interval_days: Run gc when the last run is older than this
        loose_objects_threshold: Run gc when more loose objects than this exist
    """

    interval_days: int = 7
    loose_objects_threshold: int = 5000


@dataclass
class TrackerConfig:
    """Issue tracker CLI and integration queue settings.

    Attributes:
        cli: Path to the tracker CLI executable
        server: Tracker server URL
        user: User performing the changes
        password: Password of that user
        release_date: Release date (YYYY-MM-DD), before/after release switch
        lastweek_date: Start of the last week before release (YYYY-MM-DD),
            defaults to release_date minus 7 days
        current_min: Feed the current queue when it holds fewer issues than this
        move_max: Maximum issues moved to current in one feeding
        dry_run: Perform read operations only
        candidates_filter: Issues awaiting integration, not held
        after_release_filter: Issues agreed to land after the release
        mustfix_filter: Issues with a must-fix version
        current_jql: Issues in the current integration queue
        important_components: Components that make an issue important
        held_label: Label keeping an issue out of integration
        current_field: Field flagging an issue as in current integration
        repository_field: Field holding the pull repository
        branch_field: Field holding the pull branch
    """

    cli: str = "jira"
    server: str | None = None
    user: str | None = None
    password: str | None = None
    release_date: str | None = None
    lastweek_date: str | None = None
    current_min: int = 6
    move_max: int = 3
    dry_run: bool = False
    candidates_filter: str = "filter=14000"
    after_release_filter: str = "filter=21366"
    mustfix_filter: str = "filter=21363"
    current_jql: str = 'project = MDL AND "Currently in integration" IS NOT EMPTY'
    important_components: list[str] = field(
        default_factory=lambda: [
            "Privacy",
            "Automated functional tests (behat)",
            "Unit tests",
        ]
    )
    held_label: str = "integration_held"
    current_field: str = "Currently in integration"
    repository_field: str = "Pull from Repository"
    branch_field: str = "Pull Master Branch"

    def __post_init__(self) -> None:
        """Validate tracker configuration."""
        if self.current_min < 0:
            raise ValueError(f"tracker.current_min must not be negative (got {self.current_min})")
        if self.move_max < 0:
            raise ValueError(f"tracker.move_max must not be negative (got {self.move_max})")


@dataclass
class JenkinsConfig:
    """Jenkins CLI settings.

    Attributes:
        cli: Command launching the Jenkins CLI (e.g. "java -jar jenkins-cli.jar")
        server: Jenkins URL
        user: User launching the jobs
        token: API token of that user
    """

    cli: str = "jenkins-cli"
    server: str | None = None
    user: str | None = None
    token: str | None = None


@dataclass
class CIConfig:
    """CI/CD-specific configuration.

    Attributes:
        timeout: Timeout for external tools in seconds
    """

    timeout: int = 1800


@dataclass
class HousekeepingConfig:
    """Top-level configuration.

    Attributes:
        workspace: Directory where results/artifacts are written
        git: Checkout settings
        npm: Node toolchain settings
        rebase: Security branch rebase settings
        gc: Git garbage collection thresholds
        tracker: Tracker CLI and queue settings
        jenkins: Jenkins CLI settings
        ci: CI/CD settings
    """

    workspace: str = "."
    git: GitConfig = field(default_factory=GitConfig)
    npm: NpmConfig = field(default_factory=NpmConfig)
    rebase: RebaseConfig = field(default_factory=RebaseConfig)
    gc: GCConfig = field(default_factory=GCConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    jenkins: JenkinsConfig = field(default_factory=JenkinsConfig)
    ci: CIConfig = field(default_factory=CIConfig)

    _config_path: Path | None = field(default=None, repr=False)

    @property
    def config_path(self) -> Path | None:
        """Get the path to the config file that was loaded."""
        return self._config_path

    @property
    def workspace_path(self) -> Path:
        """Workspace as a resolved path."""
        return Path(self.workspace).resolve()


# =============================================================================
# Environment Variable Substitution
# =============================================================================

ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def substitute_env_vars(value: Any) -> Any:
    """Substitute environment variables in config values.

    Args:
        value: Config value (string, dict, list, or other)

    Returns:
        Value with environment variables substituted

    Raises:
        ValueError: If a variable without default is not set
    """
    if isinstance(value, str):

        def replace_var(match: re.Match[str]) -> str:
            var_name, default = match.group(1), match.group(2)
            env_value = os.environ.get(var_name)
            if default is not None:
                return env_value or default
            if env_value is None:
                raise ValueError(f"Environment variable not set: {var_name}")
            return env_value

        return ENV_PATTERN.sub(replace_var, value)

    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]

    return value


def as_bool(value: Any) -> bool:
    """Interpret a config or job parameter value as a flag.

    Job parameters arrive as strings, and an empty string means "off".
    """
    if isinstance(value, str):
        return value.strip().lower() not in {"", "0", "false", "no", "off"}
    return bool(value)


def _as_int(value: Any, default: int) -> int:
    """Interpret an optional integer parameter, empty meaning default."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    return int(value)


def parse_ymd(value: str, name: str) -> date:
    """Parse a strict YYYY-MM-DD date.

    Args:
        value: Date string
        name: Parameter name used in the error message

    Returns:
        Parsed date

    Raises:
        ValueError: If the format is wrong or the date does not exist
    """
    if not DATE_PATTERN.match(value or ""):
        raise ValueError(f"{name}. Incorrect YYYY-MM-DD format detected: {value}")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"{name}. Invalid date: {value}")


# =============================================================================
# Config File Discovery
# =============================================================================


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find configuration file in standard locations.

    Search order:
    1. ./.ci_housekeeping/config.yaml
    2. ./ci_housekeeping.yaml

    Args:
        start_path: Starting directory for search (defaults to cwd)

    Returns:
        Path to config file if found, None otherwise
    """
    if start_path is None:
        start_path = Path.cwd()

    start_path = start_path.resolve()

    candidates = [
        start_path / ".ci_housekeeping" / "config.yaml",
        start_path / "ci_housekeeping.yaml",
    ]

    for candidate in candidates:
        if candidate.exists():
            return candidate

    return None


# =============================================================================
# Config Loading
# =============================================================================


def load_config_from_dict(data: dict[str, Any]) -> HousekeepingConfig:
    """Load configuration from a dictionary.

    Args:
        data: Configuration dictionary

    Returns:
        HousekeepingConfig instance
    """
    data = substitute_env_vars(data)

    config = HousekeepingConfig()

    if "workspace" in data:
        config.workspace = str(data["workspace"])

    if "git" in data:
        git_data = data["git"] or {}
        config.git = GitConfig(
            cmd=git_data.get("cmd", config.git.cmd),
            dir=git_data.get("dir") or None,
            branch=git_data.get("branch") or None,
        )

    if "npm" in data:
        npm_data = data["npm"] or {}
        config.npm = NpmConfig(
            cmd=npm_data.get("cmd") or config.npm.cmd,
            recess_version=str(npm_data.get("recess_version") or config.npm.recess_version),
        )

    if "rebase" in data:
        rebase_data = data["rebase"] or {}
        targets = rebase_data.get("style_targets")
        config.rebase = RebaseConfig(
            integration_remote=rebase_data.get("integration_remote") or None,
            security_remote=rebase_data.get("security_remote") or None,
            clone_url=rebase_data.get("clone_url", config.rebase.clone_url),
            max_loops=int(rebase_data.get("max_loops", 100)),
            style_targets=(
                [StyleTarget(less=t["less"], css=t["css"]) for t in targets]
                if targets
                else default_style_targets()
            ),
            dry_run=as_bool(rebase_data.get("dry_run", False)),
        )

    if "gc" in data:
        gc_data = data["gc"] or {}
        config.gc = GCConfig(
            interval_days=int(gc_data.get("interval_days", 7)),
            loose_objects_threshold=int(gc_data.get("loose_objects_threshold", 5000)),
        )

    if "tracker" in data:
        tracker_data = data["tracker"] or {}
        defaults = TrackerConfig()
        config.tracker = TrackerConfig(
            cli=tracker_data.get("cli", defaults.cli),
            server=tracker_data.get("server") or None,
            user=tracker_data.get("user") or None,
            password=tracker_data.get("password") or None,
            release_date=tracker_data.get("release_date") or None,
            lastweek_date=tracker_data.get("lastweek_date") or None,
            current_min=_as_int(tracker_data.get("current_min"), defaults.current_min),
            move_max=_as_int(tracker_data.get("move_max"), defaults.move_max),
            dry_run=as_bool(tracker_data.get("dry_run", False)),
            candidates_filter=tracker_data.get("candidates_filter", defaults.candidates_filter),
            after_release_filter=tracker_data.get(
                "after_release_filter", defaults.after_release_filter
            ),
            mustfix_filter=tracker_data.get("mustfix_filter", defaults.mustfix_filter),
            current_jql=tracker_data.get("current_jql", defaults.current_jql),
            important_components=tracker_data.get(
                "important_components", defaults.important_components
            ),
            held_label=tracker_data.get("held_label", defaults.held_label),
            current_field=tracker_data.get("current_field", defaults.current_field),
            repository_field=tracker_data.get("repository_field", defaults.repository_field),
            branch_field=tracker_data.get("branch_field", defaults.branch_field),
        )

    if "jenkins" in data:
        jenkins_data = data["jenkins"] or {}
        config.jenkins = JenkinsConfig(
            cli=jenkins_data.get("cli", config.jenkins.cli),
            server=jenkins_data.get("server") or None,
            user=jenkins_data.get("user") or None,
            token=jenkins_data.get("token") or None,
        )

    if "ci" in data:
        ci_data = data["ci"] or {}
        config.ci = CIConfig(timeout=int(ci_data.get("timeout", 1800)))

    return config


def load_config(
    config_path: Path | None = None,
    auto_discover: bool = True,
) -> HousekeepingConfig:
    """Load configuration from file.

    Args:
        config_path: Explicit path to config file
        auto_discover: Whether to search for config file if not specified

    Returns:
        HousekeepingConfig instance

    Raises:
        FileNotFoundError: If config_path specified but doesn't exist
    """
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        found_path = config_path
    elif auto_discover:
        found_path = find_config_file()
    else:
        found_path = None

    if found_path is not None:
        with open(found_path) as f:
            data = yaml.safe_load(f) or {}
        config = load_config_from_dict(data)
        config._config_path = found_path
    else:
        config = HousekeepingConfig()

    return config


def create_default_config() -> str:
    """Create default configuration YAML content.

    Returns:
        YAML string with default configuration and comments
    """
    return '''# ci-housekeeping configuration
# ${VAR} reads an environment variable (error if unset),
# ${VAR:-default} falls back to default when unset or empty.

# Directory where results/artifacts will be created
workspace: "${WORKSPACE:-.}"

# Checkout to operate on
git:
  cmd: "${gitcmd:-git}"
  dir: "${gitdir:-}"
  branch: "${gitbranch:-}"

# Node toolchain (grunt, recess, shifter are installed in the checkout)
npm:
  cmd: "${npmcmd:-npm}"
  recess_version: "${recessversion:-1.1.9}"

# Security branch rebase
rebase:
  integration_remote: "${integrationremote:-}"
  security_remote: "${securityremote:-}"
  clone_url: "git://git.moodle.org/moodle.git"
  max_loops: 100
  # style_targets:
  #   - less: "theme/bootstrapbase/less/moodle.less"
  #     css: "theme/bootstrapbase/style/moodle.css"

# Git garbage collection
gc:
  interval_days: 7
  loose_objects_threshold: 5000

# Tracker CLI and integration queues
tracker:
  cli: "${jiraclicmd:-jira}"
  server: "${jiraserver:-}"
  user: "${jirauser:-}"
  password: "${jirapass:-}"
  release_date: "${releasedate:-}"      # YYYY-MM-DD
  lastweek_date: "${lastweekdate:-}"    # YYYY-MM-DD, defaults to release - 7 days
  current_min: "${currentmin:-6}"
  move_max: "${movemax:-3}"
  dry_run: "${dryrun:-}"

# Jenkins CLI used to launch developer-requested jobs
jenkins:
  cli: "${jenkinscli:-jenkins-cli}"
  server: "${jenkinsserver:-}"
  user: "${jenkinsuser:-}"
  token: "${jenkinstoken:-}"

# CI/CD settings
ci:
  timeout: 1800
'''
