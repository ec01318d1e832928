"""Unit tests for the issue tracker client."""

from pathlib import Path

import pytest

from conftest import FakeRunner
from ci_housekeeping.errors import ConfigurationError, ToolExecutionError
from ci_housekeeping.tools.jira import TrackerClient, parse_issue_keys

BASE = ["jira", "--server", "https://tracker.example.org", "--user", "bot", "--password", "secret"]


def make_client(runner: FakeRunner, tmp_path: Path, **kwargs) -> TrackerClient:
    return TrackerClient(
        runner,
        cli="jira",
        server="https://tracker.example.org",
        user="bot",
        password="secret",
        result_file=tmp_path / "issues.csv",
        **kwargs,
    )


class TestParseIssueKeys:
    """Tests for CSV issue list parsing."""

    def test_with_header(self) -> None:
        content = '"Key","Summary"\n"MDL-1","First"\n"MDL-2","Second, with comma"\n'

        assert parse_issue_keys(content) == ["MDL-1", "MDL-2"]

    def test_key_not_first_column(self) -> None:
        assert parse_issue_keys("Summary,Key\nx,MDL-3\n") == ["MDL-3"]

    def test_without_header(self) -> None:
        assert parse_issue_keys("MDL-4\n\nMDL-5\n") == ["MDL-4", "MDL-5"]

    def test_empty(self) -> None:
        assert parse_issue_keys("") == []


class TestTrackerClient:
    """Tests for TrackerClient."""

    @pytest.mark.parametrize("missing", ["server", "user", "password"])
    def test_missing_connection_parameter(self, missing: str, runner: FakeRunner, tmp_path: Path) -> None:
        params = {"server": "https://tracker.example.org", "user": "bot", "password": "secret"}
        params[missing] = None

        with pytest.raises(ConfigurationError) as exc_info:
            TrackerClient(runner, cli="jira", result_file=tmp_path / "x.csv", **params)

        assert exc_info.value.parameter == f"tracker.{missing}"

    def test_get_issue_list(self, runner: FakeRunner, tmp_path: Path) -> None:
        client = make_client(runner, tmp_path)

        def write_csv(args: list[str], cwd: Path | None) -> None:
            Path(args[args.index("--file") + 1]).write_text("Key\nMDL-10\nMDL-11\n")

        runner.on("jira", effect=write_csv)

        assert client.get_issue_list("project = MDL") == ["MDL-10", "MDL-11"]
        assert runner.calls[0].command == [
            *BASE,
            "--action", "getIssueList",
            "--jql", "project = MDL",
            "--file", str(tmp_path / "issues.csv"),
            "--outputFormat", "101",
            "--quiet",
        ]
        assert runner.calls[0].stdin_devnull

    def test_get_issue_list_without_file(self, runner: FakeRunner, tmp_path: Path) -> None:
        assert make_client(runner, tmp_path).get_issue_list("project = MDL") == []

    def test_action_failure(self, runner: FakeRunner, tmp_path: Path) -> None:
        runner.on("jira", returncode=1, stderr="Unauthorized")

        with pytest.raises(ToolExecutionError, match="action getFieldValue failed") as exc_info:
            make_client(runner, tmp_path).get_field_value("MDL-1", "Repository")

        assert exc_info.value.stderr == "Unauthorized"
        assert exc_info.value.exit_code == 1

    def test_get_field_value(self, runner: FakeRunner, tmp_path: Path) -> None:
        runner.on("jira", stdout="git://github.com/someone/moodle.git\n")

        value = make_client(runner, tmp_path).get_field_value("MDL-1", "Pull from Repository")

        assert value == "git://github.com/someone/moodle.git"
        assert runner.calls[0].command[len(BASE):] == [
            "--action", "getFieldValue", "--issue", "MDL-1", "--field", "Pull from Repository", "--quiet",
        ]

    def test_write_actions(self, runner: FakeRunner, tmp_path: Path) -> None:
        client = make_client(runner, tmp_path)

        client.add_labels("MDL-1", "integration_held")
        client.add_comment("MDL-1", "Held.")
        client.set_field_value("MDL-2", "Currently in integration", "Yes")

        actions = [c.command[len(BASE):] for c in runner.calls]
        assert actions == [
            ["--action", "addLabels", "--issue", "MDL-1", "--labels", "integration_held"],
            ["--action", "addComment", "--issue", "MDL-1", "--comment", "Held."],
            ["--action", "setFieldValue", "--issue", "MDL-2", "--field", "Currently in integration", "--values", "Yes"],
        ]
        assert client.performed == [
            ("MDL-1", "addLabels", "integration_held"),
            ("MDL-1", "addComment", "comment"),
            ("MDL-2", "setFieldValue", "Currently in integration=Yes"),
        ]

    def test_dry_run_skips_writes(self, runner: FakeRunner, tmp_path: Path) -> None:
        client = make_client(runner, tmp_path, dry_run=True)

        client.add_labels("MDL-1", "integration_held")
        client.get_field_value("MDL-1", "Repository")

        assert [c.command[len(BASE) + 1] for c in runner.calls] == ["getFieldValue"]
        assert client.performed == [("MDL-1", "addLabels", "integration_held")]

    def test_cli_with_arguments(self, runner: FakeRunner, tmp_path: Path) -> None:
        client = TrackerClient(
            runner,
            cli="java -jar jira-cli.jar",
            server="s",
            user="u",
            password="p",
            result_file=tmp_path / "x.csv",
        )

        assert client.base[:3] == ["java", "-jar", "jira-cli.jar"]

    def test_cleanup(self, runner: FakeRunner, tmp_path: Path) -> None:
        client = make_client(runner, tmp_path)
        client.result_file.write_text("Key\n")

        client.cleanup()
        client.cleanup()

        assert not client.result_file.exists()
