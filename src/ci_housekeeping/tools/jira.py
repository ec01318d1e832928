"""Issue tracker command-line client.

Wraps the tracker CLI (`<cli> --server S --user U --password P --action ...`).
Write actions are skipped in dry-run mode; reads always run.
"""

import csv
import io
import logging
import shlex
from pathlib import Path

from ci_housekeeping.errors import ConfigurationError, ToolExecutionError
from ci_housekeeping.utils.process import CommandRunner

logger = logging.getLogger(__name__)


class TrackerClient:
    """Runs tracker CLI actions.

    Attributes:
        dry_run: Skip write actions
        performed: Write actions issued so far, as (issue, action, value) tuples
    """

    def __init__(
        self,
        runner: CommandRunner,
        cli: str,
        server: str | None,
        user: str | None,
        password: str | None,
        result_file: Path,
        dry_run: bool = False,
    ) -> None:
        """Initialize the tracker client.

        Args:
            runner: Command runner
            cli: Tracker CLI executable (may include arguments)
            server: Tracker server URL
            user: User performing the execution
            password: Password of the user
            result_file: CSV file issue lists are written to
            dry_run: Skip write actions

        Raises:
            ConfigurationError: If a connection parameter is missing
        """
        for name, value in (("server", server), ("user", user), ("password", password)):
            if not value:
                raise ConfigurationError(f"tracker.{name}")

        self.runner = runner
        self.base = [*shlex.split(cli), "--server", server, "--user", user, "--password", password]
        self.result_file = Path(result_file)
        self.dry_run = dry_run
        self.performed: list[tuple[str, str, str]] = []

    def _action(self, action: str, *args: str) -> str:
        result = self.runner.run([*self.base, "--action", action, *args], stdin_devnull=True)
        if not result.ok:
            raise ToolExecutionError(
                "tracker",
                f"action {action} failed",
                exit_code=result.returncode,
                stderr=result.stderr or result.stdout,
            )
        return result.stdout

    def _write(self, action: str, issue: str, value: str, *args: str) -> None:
        if self.dry_run:
            logger.info("Dry-run: skipping %s on %s", action, issue)
        else:
            self._action(action, "--issue", issue, *args)
        self.performed.append((issue, action, value))

    def get_issue_list(self, jql: str) -> list[str]:
        """Issue keys matching a JQL search, in the tracker's order."""
        self.result_file.parent.mkdir(parents=True, exist_ok=True)
        self.result_file.unlink(missing_ok=True)
        self._action(
            "getIssueList",
            "--jql", jql,
            "--file", str(self.result_file),
            "--outputFormat", "101",
            "--quiet",
        )
        if not self.result_file.exists():
            return []
        return parse_issue_keys(self.result_file.read_text(encoding="utf-8"))

    def get_field_value(self, issue: str, field: str) -> str:
        """Value of a field for an issue (empty string if unset)."""
        output = self._action("getFieldValue", "--issue", issue, "--field", field, "--quiet")
        return output.strip()

    def add_labels(self, issue: str, *labels: str) -> None:
        self._write("addLabels", issue, ",".join(labels), "--labels", ",".join(labels))

    def add_comment(self, issue: str, comment: str) -> None:
        self._write("addComment", issue, "comment", "--comment", comment)

    def set_field_value(self, issue: str, field: str, value: str) -> None:
        self._write("setFieldValue", issue, f"{field}={value}", "--field", field, "--values", value)

    def cleanup(self) -> None:
        """Remove the result file; issue lists are not published."""
        self.result_file.unlink(missing_ok=True)


def parse_issue_keys(content: str) -> list[str]:
    """Extract issue keys from a CSV issue list.

    Uses the "Key" column when there is a header row, otherwise the first column.
    """
    rows = [row for row in csv.reader(io.StringIO(content)) if row and row[0].strip()]
    if not rows:
        return []

    header = [cell.strip().lower() for cell in rows[0]]
    if "key" in header:
        index = header.index("key")
        rows = rows[1:]
    else:
        index = 0

    keys = []
    for row in rows:
        if len(row) > index and row[index].strip():
            keys.append(row[index].strip())
    return keys
