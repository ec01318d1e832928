"""Built JavaScript module check.

Rebuilds the AMD and YUI modules with the checkout's build tools and
verifies the committed build output is exactly what the tools produce.
"""

import logging
from pathlib import Path

from ci_housekeeping.errors import ConfigurationError
from ci_housekeeping.models.results import CheckReport
from ci_housekeeping.tools.git import GitRepository
from ci_housekeeping.tools.npm import NpmToolchain
from ci_housekeeping.utils.process import CommandResult, CommandRunner
from ci_housekeeping.utils.report import Report

logger = logging.getLogger(__name__)

REPORT_FILE = "build_checker.txt"

AMD_BUILD = "/amd/build/"
YUI_BUILD = "/yui/build/"

STDERR_TAIL_LINES = 20


def is_build_artifact(path: str) -> bool:
    """Return True for paths inside an AMD or YUI build directory."""
    candidate = "/" + path.lstrip("/")
    return AMD_BUILD in candidate or YUI_BUILD in candidate


class BuildChecker:
    """Verifies built AMD/YUI modules match their sources.

    Usage:
        checker = BuildChecker(runner, gitdir, branch, workspace)
        report = checker.run()
    """

    def __init__(
        self,
        runner: CommandRunner,
        gitdir: Path | None,
        branch: str | None,
        workspace: Path | None,
        gitcmd: str = "git",
        npmcmd: str = "npm",
    ) -> None:
        for name, value in (("workspace", workspace), ("git.dir", gitdir), ("git.branch", branch)):
            if not value:
                raise ConfigurationError(name)

        self.gitdir = Path(gitdir)
        self.branch = branch
        self.workspace = Path(workspace)
        self.runner = runner
        self.git = GitRepository(self.gitdir, runner, gitcmd)
        self.npm = NpmToolchain(runner, self.gitdir, npmcmd)

    def _build(self, label: str, args: list[str], report: Report) -> bool:
        report.line(f"  Building {label}: {Path(args[0]).name} {' '.join(args[1:])}")
        result = self.runner.run(args, cwd=self.gitdir)
        if result.ok:
            report.line(f"    - OK: {label} built without errors")
            return True
        report.error(f"    - ERROR: Problems building {label}")
        for line in _tail(result):
            report.line(f"      {line}")
        return False

    def run(self) -> CheckReport:
        """Run the check.

        Returns:
            CheckReport (success False when a build fails or output differs)
        """
        result = CheckReport(name="build-check")
        report = Report(self.workspace / REPORT_FILE, logger)

        self.git.reset_hard(self.branch)
        self.npm.prepare()

        report.line(f"Processing {self.gitdir}")

        if self.npm.grunt_available():
            grunt = self.npm.grunt
            if grunt is None:
                report.error("Error: grunt executable not found")
                result.fail()
                result.lines = report.lines
                return result
            if not self._build("AMD modules", [grunt, "--no-color", "amd"], report):
                result.fail()
            if not self._build("YUI modules", [grunt, "--no-color", "shifter"], report):
                result.fail()
        else:
            report.line("  - NOTE: No Gruntfile.js, AMD modules not supported by this branch")
            shifter = self.npm.shifter
            if shifter is None:
                report.error("Error: shifter executable not found")
                result.fail()
                result.lines = report.lines
                return result
            if not self._build("YUI modules", [shifter, "--walk", "--recursive"], report):
                result.fail()

        changes = []
        for path in self.git.modified_files() + self.git.untracked_files():
            if is_build_artifact(path):
                changes.append(path)
            else:
                logger.debug("Ignoring change outside build directories: %s", path)

        report.line()
        if not changes:
            report.line("OK: All built modules are matching git contents")
        else:
            report.error("ERROR: Some built modules are not matching git contents. Changes detected:")
            report.line()
            for change in changes:
                report.line(change)
            report.line()
            result.changes = changes
            result.fail()

        result.lines = report.lines
        return result


def _tail(result: CommandResult) -> list[str]:
    output = (result.stderr or result.stdout).strip().splitlines()
    return output[-STDERR_TAIL_LINES:]
