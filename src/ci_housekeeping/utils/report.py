"""Result report files.

Check jobs publish a plain-text report in the workspace for later inspection.
Every report line is also logged, so the console and the file tell the same story.
"""

import logging
from pathlib import Path


class Report:
    """Line-oriented report written to a file and to the log.

    The file is truncated when the report is opened.

    Usage:
        report = Report(workspace / "less_checker.txt")
        report.line("Processing theme")
        report.error("ERROR: something broke")
    """

    def __init__(self, path: Path | None, logger: logging.Logger | None = None) -> None:
        """Initialize the report.

        Args:
            path: Report file (None keeps lines in memory and log only)
            logger: Logger receiving every line
        """
        self.path = path
        self.logger = logger or logging.getLogger(__name__)
        self.lines: list[str] = []

        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("", encoding="utf-8")

    def _write(self, text: str) -> None:
        self.lines.append(text)
        if self.path is not None:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(text + "\n")

    def line(self, text: str = "") -> None:
        """Record an informational line."""
        self._write(text)
        self.logger.info(text)

    def warning(self, text: str) -> None:
        """Record a line describing a failed check that is not a hard error."""
        self._write(text)
        self.logger.warning(text)

    def error(self, text: str) -> None:
        """Record an error line."""
        self._write(text)
        self.logger.error(text)

    @property
    def text(self) -> str:
        """Full report content."""
        return "\n".join(self.lines)
