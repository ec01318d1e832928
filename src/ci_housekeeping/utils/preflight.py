"""Preflight validation.

External tools are validated before a job starts, not halfway through it.
Missing required tools cause an immediate exit with a clear error message;
missing optional tools are reported as warnings.
"""

import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class ToolCheck:
    """Result of checking a single tool.

    Attributes:
        name: Tool name
        available: Whether tool is available
        version: Tool version if available
        required: Whether tool is required for this run
        path: Path to executable if available
        message: Status message (human-readable context)
    """

    name: str
    available: bool
    version: str | None = None
    required: bool = True
    path: str | None = None
    message: str = ""


@dataclass
class PreflightResult:
    """Result of preflight validation.

    Attributes:
        success: Whether all required tools are available
        checks: Individual tool check results
        errors: Error messages for missing required tools
        warnings: Warning messages for missing optional tools
    """

    success: bool = True
    checks: list[ToolCheck] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_check(self, check: ToolCheck) -> None:
        """Add a tool check result."""
        self.checks.append(check)

        if not check.available:
            if check.required:
                self.success = False
                self.errors.append(f"Required tool not found: {check.name}")
            else:
                self.warnings.append(f"Optional tool not found: {check.name}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "success": self.success,
            "checks": [
                {
                    "name": c.name,
                    "available": c.available,
                    "version": c.version,
                    "required": c.required,
                    "path": c.path,
                    "message": c.message,
                }
                for c in self.checks
            ],
            "errors": self.errors,
            "warnings": self.warnings,
        }


class PreflightChecker:
    """Validates external tool availability before a job runs.

    Usage:
        checker = PreflightChecker()
        result = checker.check_all(gitdir=Path("/srv/moodle"))
        if not result.success:
            raise typer.Exit(1)
    """

    def __init__(self, timeout: int = 10) -> None:
        """Initialize preflight checker.

        Args:
            timeout: Timeout in seconds for version checks
        """
        self.timeout = timeout

    def check_command_available(self, command: str) -> tuple[bool, str | None]:
        """Check if a command is available in PATH (or as a path).

        Args:
            command: Command name to check

        Returns:
            Tuple of (available, path)
        """
        path = shutil.which(command)
        return path is not None, path

    def get_command_version(
        self,
        command: str,
        version_args: list[str] | None = None,
    ) -> str | None:
        """Get version string for a command.

        Args:
            command: Command to get version for
            version_args: Arguments to get version (default: ["--version"])

        Returns:
            Version string if available, None otherwise
        """
        if version_args is None:
            version_args = ["--version"]

        try:
            result = subprocess.run(
                [command, *version_args],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                stdin=subprocess.DEVNULL,
            )
            if result.returncode == 0:
                output = result.stdout.strip() or result.stderr.strip()
                return output.split("\n")[0] if output else None
        except (subprocess.TimeoutExpired, OSError):
            pass
        return None

    def check_executable(
        self,
        name: str,
        command: str,
        required: bool,
        message: str,
        install_hint: str,
        version_args: list[str] | None = None,
    ) -> ToolCheck:
        """Check a configured command, which may carry arguments.

        Args:
            name: Tool name for reporting
            command: Configured command line (first word is the executable)
            required: Whether the tool is required for this run
            message: Description when available
            install_hint: Hint when missing
            version_args: Arguments printing the version

        Returns:
            ToolCheck result
        """
        words = shlex.split(command) if command else []
        if not words:
            return ToolCheck(name=name, available=False, required=required, message=install_hint)

        available, path = self.check_command_available(words[0])
        if not available:
            return ToolCheck(name=name, available=False, required=required, message=install_hint)

        version = None
        if version_args is not None:
            version = self.get_command_version(path, version_args)
        return ToolCheck(
            name=name,
            available=True,
            version=version,
            required=required,
            path=path,
            message=message,
        )

    def check_git(self, command: str = "git", required: bool = True) -> ToolCheck:
        return self.check_executable(
            "git",
            command,
            required,
            "Version control",
            "Install from: https://git-scm.com",
            ["--version"],
        )

    def check_npm(self, command: str = "npm", required: bool = True) -> ToolCheck:
        return self.check_executable(
            "npm",
            command,
            required,
            "Node package manager (installs grunt, recess, shifter)",
            "Install Node.js from: https://nodejs.org",
            ["--version"],
        )

    def check_grunt(self, gitdir: Path, required: bool = False) -> ToolCheck:
        """Check the checkout-local grunt.

        Branches without a Gruntfile.js never need grunt, so it is not
        reported there at all.

        Args:
            gitdir: Checkout directory
            required: Whether grunt is required

        Returns:
            ToolCheck result
        """
        grunt = Path(gitdir) / "node_modules" / ".bin" / "grunt"
        if grunt.is_file() and os.access(grunt, os.X_OK):
            return ToolCheck(
                name="grunt",
                available=True,
                version=self.get_command_version(str(grunt)),
                required=required,
                path=str(grunt),
                message="Build runner (checkout-local)",
            )
        return ToolCheck(
            name="grunt",
            available=False,
            required=required,
            message=f"Run `npm install` in {gitdir} (installed by the jobs when needed)",
        )

    def check_tracker_cli(self, command: str, required: bool = False) -> ToolCheck:
        return self.check_executable(
            "tracker-cli",
            command,
            required,
            "Issue tracker command line interface",
            f"Tracker CLI not found: {command}",
        )

    def check_jenkins_cli(self, command: str, required: bool = False) -> ToolCheck:
        return self.check_executable(
            "jenkins-cli",
            command,
            required,
            "Jenkins command line interface",
            f"Jenkins CLI not found: {command}",
        )

    def check_all(
        self,
        gitcmd: str = "git",
        npmcmd: str = "npm",
        gitdir: Path | None = None,
        tracker_cli: str | None = None,
        jenkins_cli: str | None = None,
        skip_npm: bool = False,
    ) -> PreflightResult:
        """Run all preflight checks.

        Args:
            gitcmd: Configured git command
            npmcmd: Configured npm command
            gitdir: Checkout directory (enables the grunt check)
            tracker_cli: Configured tracker CLI (optional tool)
            jenkins_cli: Configured Jenkins CLI (optional tool)
            skip_npm: Whether the node toolchain is needed by this run

        Returns:
            PreflightResult with all check results
        """
        result = PreflightResult()

        result.add_check(self.check_git(gitcmd, required=True))

        if not skip_npm:
            result.add_check(self.check_npm(npmcmd, required=True))
            if gitdir is not None and (Path(gitdir) / "Gruntfile.js").exists():
                result.add_check(self.check_grunt(gitdir, required=False))

        if tracker_cli:
            result.add_check(self.check_tracker_cli(tracker_cli, required=False))

        if jenkins_cli:
            result.add_check(self.check_jenkins_cli(jenkins_cli, required=False))

        return result
