"""Unit tests for the theme style-sheet check."""

from collections.abc import Callable
from pathlib import Path

import pytest

from conftest import FakeRunner
from ci_housekeeping.checks.less import REPORT_FILE, LessChecker, find_builtin_lessfile
from ci_housekeeping.errors import ConfigurationError


@pytest.fixture
def recess(checkout: Path, install_tool: Callable[[Path, str], Path]) -> Path:
    """Install recess into the checkout."""
    return install_tool(checkout, "recess")


@pytest.fixture
def checker(checkout: Path, workspace: Path, runner: FakeRunner) -> LessChecker:
    return LessChecker(runner, gitdir=checkout, branch="main", workspace=workspace)


class TestFindBuiltinLessfile:
    """Tests for $THEME->lessfile detection."""

    def test_found(self, tmp_path: Path) -> None:
        config = tmp_path / "config.php"
        config.write_text("<?php\n$THEME->name = 'x';\n$THEME->lessfile = 'moodle';\n")

        assert find_builtin_lessfile(config) == "moodle"

    def test_not_found(self, tmp_path: Path) -> None:
        config = tmp_path / "config.php"
        config.write_text("<?php\n// $THEME->lessfile = 'moodle';\n")

        assert find_builtin_lessfile(config) is None

    def test_missing_file(self, tmp_path: Path) -> None:
        assert find_builtin_lessfile(tmp_path / "config.php") is None


class TestLessChecker:
    """Tests for LessChecker."""

    @pytest.mark.parametrize("missing", ["workspace", "gitdir", "branch"])
    def test_required_parameters(self, missing: str, runner: FakeRunner, tmp_path: Path) -> None:
        params = {"gitdir": tmp_path, "branch": "main", "workspace": tmp_path}
        params[missing] = None

        with pytest.raises(ConfigurationError):
            LessChecker(runner, **params)

    def test_all_matching(
        self,
        checker: LessChecker,
        checkout: Path,
        workspace: Path,
        runner: FakeRunner,
        recess: Path,
        theme_factory: Callable[..., Path],
    ) -> None:
        theme = theme_factory("clean", less={"moodle.less": "@a: 1;"}, css=["moodle.css"])
        (checkout / "config.php").write_text("<?php\n")
        runner.on("recess", "--compile", "--compress", stdout="body{color:red}")

        report = checker.run()

        assert report.success
        assert runner.calls[0].command == ["git", "reset", "--hard", "main"]
        assert not (checkout / "config.php").exists()
        assert (theme / "style" / "moodle.css").read_text() == "body{color:red}"
        assert report.lines[0] == f"Processing {checkout / 'theme'}"
        assert "  Processing clean" in report.lines
        assert report.lines[-1] == "OK: All .less files are perfectly compiled and matching git contents"
        assert (workspace / REPORT_FILE).read_text().splitlines() == report.lines

    def test_incomplete_theme(
        self,
        checker: LessChecker,
        recess: Path,
        theme_factory: Callable[..., Path],
    ) -> None:
        theme_factory("broken", complete=False)

        report = checker.run()

        assert not report.success
        assert "    - WARN: The theme is missing a config.php file" in report.lines
        assert "    - WARN: The theme is missing a version.php file" in report.lines
        assert "    - WARN: The theme is missing a style directory" in report.lines
        assert "    - NOTE: Skipped, theme does not have a less directory to process" in report.lines

    def test_themes_processed_in_order(
        self,
        checker: LessChecker,
        checkout: Path,
        recess: Path,
        theme_factory: Callable[..., Path],
    ) -> None:
        theme_factory("zeta")
        theme_factory("alpha")
        (checkout / "theme" / "README.txt").write_text("not a theme")

        report = checker.run()

        processed = [line for line in report.lines if line.startswith("  Processing")]
        assert processed == ["  Processing alpha", "  Processing zeta"]

    def test_wrong_less_path(
        self,
        checker: LessChecker,
        recess: Path,
        theme_factory: Callable[..., Path],
    ) -> None:
        theme = theme_factory("misplaced")
        (theme / "style" / "bad.less").write_text("")

        report = checker.run()

        assert not report.success
        assert f"    - ERROR: Wrong path for .less file found: {theme / 'style' / 'bad.less'}" in report.lines

    def test_missing_css_counterpart(
        self,
        checker: LessChecker,
        runner: FakeRunner,
        recess: Path,
        theme_factory: Callable[..., Path],
    ) -> None:
        theme = theme_factory("nocss", less={"extra.less": ""})

        report = checker.run()

        assert not report.success
        assert f"      - ERROR: css counterpart not found: {theme / 'style' / 'extra.css'}" in report.lines
        assert not runner.ran("recess")

    def test_compile_failure(
        self,
        checker: LessChecker,
        runner: FakeRunner,
        recess: Path,
        theme_factory: Callable[..., Path],
    ) -> None:
        theme_factory("failing", less={"moodle.less": "{"}, css=["moodle.css"])
        runner.on("recess", returncode=1, stderr="Parse error")

        report = checker.run()

        assert not report.success
        assert "      - ERROR: Problems compiling (recess) the file" in report.lines

    def test_builtin_lessfile(
        self,
        checker: LessChecker,
        runner: FakeRunner,
        recess: Path,
        theme_factory: Callable[..., Path],
    ) -> None:
        theme = theme_factory(
            "builtin",
            less={"moodle.less": "", "editor.less": ""},
            css=["editor.css"],
            lessfile="moodle",
        )
        runner.on("recess", stdout="compiled")

        report = checker.run()

        assert report.success
        assert "    - NOTE: Found $THEME->lessfile with 'moodle' contents" in report.lines
        assert "      - OK: Skipping .less file. It's handled by builtin compiler" in report.lines
        compiled = [call.args[-1] for call in runner.calls if call.command[0] == "recess"]
        assert compiled == [str(theme / "less" / "moodle.less"), str(theme / "less" / "editor.less")]
        assert not (theme / "style" / "moodle.css").exists()

    def test_builtin_lessfile_missing(
        self,
        checker: LessChecker,
        recess: Path,
        theme_factory: Callable[..., Path],
    ) -> None:
        theme_factory("builtin", less={"other.less": ""}, css=["other.css"], lessfile="moodle")

        report = checker.run()

        assert not report.success
        assert "      - ERROR: /theme/builtin/less/moodle.less not found" in report.lines

    def test_changes_detected(
        self,
        checker: LessChecker,
        runner: FakeRunner,
        recess: Path,
        theme_factory: Callable[..., Path],
    ) -> None:
        theme_factory("stale", less={"moodle.less": ""}, css=["moodle.css"])
        runner.on("git", "ls-files", "-m", stdout="theme/stale/style/moodle.css\n")

        report = checker.run()

        assert not report.success
        assert report.changes == ["theme/stale/style/moodle.css"]
        assert "ERROR: Some .less files are not matching git contents. Changes detected:" in report.lines
        assert "theme/stale/style/moodle.css" in report.lines

    def test_recess_installed_by_npm(
        self,
        checker: LessChecker,
        checkout: Path,
        runner: FakeRunner,
        install_tool: Callable[[Path, str], Path],
    ) -> None:
        runner.on("npm", "install", effect=lambda args, cwd: install_tool(checkout, "recess"))

        report = checker.run()

        assert report.success
        assert runner.commands("npm") == [["npm", "install", "--no-save", "recess@1.1.9", "shifter"]]

    def test_recess_missing(self, checker: LessChecker) -> None:
        report = checker.run()

        assert not report.success
        assert report.lines[-1] == "Error: recess executable not found"
