"""Theme style-sheet check.

For every theme in the checkout, verifies the basic theme files exist, that
.less sources live under the theme's less/ directory, that each source
compiles with recess and that the committed .css counterpart is exactly what
the compiler produces. Any difference left in the working tree after
recompiling everything fails the check.
"""

import logging
import re
from pathlib import Path

from ci_housekeeping.errors import ConfigurationError
from ci_housekeeping.models.results import CheckReport
from ci_housekeeping.tools.git import GitRepository
from ci_housekeeping.tools.npm import NpmToolchain
from ci_housekeeping.utils.process import CommandRunner
from ci_housekeeping.utils.report import Report

logger = logging.getLogger(__name__)

REPORT_FILE = "less_checker.txt"

# $THEME->lessfile = 'name'; in a theme's config.php (built-in compiler).
BUILTIN_LESSFILE = re.compile(r"^\$THEME->lessfile *= *'(.*)';$")


def find_builtin_lessfile(config_file: Path) -> str | None:
    """Name of the .less file compiled by the built-in compiler, if any."""
    if not config_file.is_file():
        return None
    for line in config_file.read_text(encoding="utf-8", errors="replace").splitlines():
        match = BUILTIN_LESSFILE.match(line)
        if match:
            return match.group(1)
    return None


class LessChecker:
    """Verifies theme .less sources against their committed .css.

    Usage:
        checker = LessChecker(runner, gitdir=Path("/ci/moodle"), branch="main",
                              workspace=Path("/ci/workspace"))
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
        recess_version: str | None = None,
    ) -> None:
        """Initialize the checker.

        Args:
            runner: Command runner
            gitdir: Checkout directory
            branch: Branch to verify
            workspace: Directory where the report is written
            gitcmd: git executable
            npmcmd: npm executable
            recess_version: recess version to install

        Raises:
            ConfigurationError: If a required parameter is missing
        """
        for name, value in (("workspace", workspace), ("git.dir", gitdir), ("git.branch", branch)):
            if not value:
                raise ConfigurationError(name)

        self.gitdir = Path(gitdir)
        self.branch = branch
        self.workspace = Path(workspace)
        self.git = GitRepository(self.gitdir, runner, gitcmd)
        self.npm = NpmToolchain(runner, self.gitdir, npmcmd)
        self.runner = runner
        self.recess_version = recess_version

    def run(self) -> CheckReport:
        """Run the check.

        Returns:
            CheckReport (success False when any verification failed)
        """
        result = CheckReport(name="less-check")
        report = Report(self.workspace / REPORT_FILE, logger)

        self.git.reset_hard(self.branch)
        (self.gitdir / "config.php").unlink(missing_ok=True)

        self.npm.prepare(require_recess=True, recess_version=self.recess_version)

        themes_dir = self.gitdir / "theme"
        report.line(f"Processing {themes_dir}")

        recess = self.npm.recess
        if recess is None:
            report.error("Error: recess executable not found")
            result.fail()
            result.lines = report.lines
            return result

        for theme in sorted(themes_dir.iterdir()) if themes_dir.is_dir() else []:
            if not theme.is_dir():
                continue
            if not self._check_theme(theme, recess, report):
                result.fail()

        changes = self.git.modified_files()
        report.line()
        if not changes:
            report.line("OK: All .less files are perfectly compiled and matching git contents")
        else:
            report.error("ERROR: Some .less files are not matching git contents. Changes detected:")
            report.line()
            for change in changes:
                report.line(change)
            report.line()
            result.changes = changes
            result.fail()

        result.lines = report.lines
        return result

    def _compile(self, recess: str, lessfile: Path) -> tuple[bool, str]:
        compiled = self.runner.run([recess, "--compile", "--compress", str(lessfile)], cwd=self.gitdir)
        return compiled.ok, compiled.stdout

    def _check_theme(self, theme: Path, recess: str, report: Report) -> bool:
        """Check one theme directory; False when anything is wrong."""
        ok = True
        name = theme.name
        report.line(f"  Processing {name}")

        if not (theme / "config.php").is_file():
            report.warning("    - WARN: The theme is missing a config.php file")
            ok = False
        if not (theme / "version.php").is_file():
            report.warning("    - WARN: The theme is missing a version.php file")
            ok = False
        if not (theme / "style").is_dir():
            report.warning("    - WARN: The theme is missing a style directory")
            ok = False

        builtin = find_builtin_lessfile(theme / "config.php")
        builtin_file = None
        if builtin:
            report.line(f"    - NOTE: Found $THEME->lessfile with '{builtin}' contents")
            builtin_file = f"{builtin}.less"
            builtin_path = theme / "less" / builtin_file
            if not builtin_path.is_file():
                report.error(f"      - ERROR: /theme/{name}/less/{builtin_file} not found")
                ok = False
            report.line(f"      - Compiling .less file: {builtin_path}")
            compiled, _ = self._compile(recess, builtin_path)
            if compiled:
                report.line("        - OK: File compiled (recess) without errors")
            else:
                report.error("        - ERROR: Problems compiling (recess) the file")
                ok = False

        less_dir = theme / "less"
        for lessfile in sorted(theme.rglob("*.less")):
            if less_dir not in lessfile.parents:
                report.error(f"    - ERROR: Wrong path for .less file found: {lessfile}")
                ok = False

        if not less_dir.is_dir():
            report.line("    - NOTE: Skipped, theme does not have a less directory to process")
            return ok

        for lessfile in sorted(less_dir.glob("*.less")):
            cssfile = theme / "style" / f"{lessfile.stem}.css"
            report.line(f"    - Verifying .less file: {lessfile}")

            if lessfile.name == builtin_file:
                report.line("      - OK: Skipping .less file. It's handled by builtin compiler")
                continue

            if not cssfile.is_file():
                report.error(f"      - ERROR: css counterpart not found: {cssfile}")
                ok = False
                continue
            report.line(f"      - OK: css counterpart found: {cssfile}")

            report.line(f"    - Compiling .less file: {lessfile}")
            compiled, css = self._compile(recess, lessfile)
            cssfile.write_text(css, encoding="utf-8")
            if compiled:
                report.line("      - OK: File compiled (recess) without errors")
            else:
                report.error("      - ERROR: Problems compiling (recess) the file")
                ok = False

        return ok
