"""External command execution.

The jobs run their external binaries (git, npm, grunt, recess, shifter, the
tracker and Jenkins CLIs) through CommandRunner so operations can be tested
with a scripted runner instead of real tools. Preflight version checks call
subprocess directly.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from ci_housekeeping.errors import ToolExecutionError, ToolNotAvailableError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a single external command.

    Attributes:
        args: Command line that was executed
        returncode: Process exit status
        stdout: Captured standard output
        stderr: Captured standard error
    """

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """Return True if the command exited with status 0."""
        return self.returncode == 0

    @property
    def lines(self) -> list[str]:
        """Non-empty stdout lines."""
        return [line for line in self.stdout.splitlines() if line.strip()]


class CommandRunner:
    """Runs external commands with captured text output.

    Usage:
        runner = CommandRunner(timeout=300)
        result = runner.run(["git", "status"], cwd=repo)
        if not result.ok:
            ...
    """

    def __init__(self, timeout: int | None = 300) -> None:
        """Initialize command runner.

        Args:
            timeout: Default timeout in seconds (None disables it)
        """
        self.timeout = timeout

    def run(
        self,
        args: list[str],
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
        stdin_devnull: bool = False,
        check: bool = False,
        timeout: int | None = None,
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            args: Command and arguments
            cwd: Working directory
            env: Extra environment variables merged over os.environ
            stdin_devnull: Close stdin (CLIs that otherwise drain the caller's stdin)
            check: Raise ToolExecutionError on non-zero exit
            timeout: Per-call timeout overriding the runner default

        Returns:
            CommandResult

        Raises:
            ToolNotAvailableError: If the executable cannot be started
            ToolExecutionError: On timeout, or on failure when check is set
        """
        tool = Path(args[0]).name
        full_env = None
        if env:
            full_env = {**os.environ, **env}

        logger.debug("Running: %s", " ".join(args))
        try:
            completed = subprocess.run(
                args,
                cwd=cwd,
                env=full_env,
                stdin=subprocess.DEVNULL if stdin_devnull else None,
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ToolExecutionError(
                tool,
                f"timed out after {e.timeout} seconds",
                stderr=str(e),
            )
        except OSError as e:
            raise ToolNotAvailableError(tool, f"Failed to execute {args[0]}: {e}")

        result = CommandResult(
            args=list(args),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

        if check and not result.ok:
            raise ToolExecutionError(
                tool,
                " ".join(args[1:]) or "command failed",
                exit_code=result.returncode,
                stderr=result.stderr,
            )

        return result
