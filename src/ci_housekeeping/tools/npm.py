"""Node toolchain preparation.

Installs the checkout's node dependencies and locates the build tools the
jobs drive: grunt (branches shipping a Gruntfile.js), and recess/shifter for
older branches and for direct style-sheet compilation.
"""

import logging
import os
import shlex
from pathlib import Path

from ci_housekeeping.errors import ToolNotAvailableError
from ci_housekeeping.utils.process import CommandRunner

logger = logging.getLogger(__name__)

DEFAULT_RECESS_VERSION = "1.1.9"
LOCK_FILES = ("package-lock.json", "npm-shrinkwrap.json")


class NpmToolchain:
    """Build tools installed into a checkout's node_modules.

    Usage:
        toolchain = NpmToolchain(runner, gitdir)
        toolchain.prepare(require_recess=True)
        recess = toolchain.require("recess")
    """

    def __init__(
        self,
        runner: CommandRunner,
        gitdir: Path,
        npmcmd: str = "npm",
    ) -> None:
        """Initialize the toolchain.

        Args:
            runner: Command runner
            gitdir: Checkout directory
            npmcmd: npm executable
        """
        self.runner = runner
        self.gitdir = Path(gitdir)
        self.npmcmd = npmcmd

    @property
    def bin_dir(self) -> Path:
        """Directory holding the locally installed executables."""
        return self.gitdir / "node_modules" / ".bin"

    def grunt_available(self) -> bool:
        """Grunt drives the builds on branches shipping a Gruntfile.js."""
        return (self.gitdir / "Gruntfile.js").is_file()

    def _npm(self, *args: str) -> None:
        self.runner.run([*shlex.split(self.npmcmd), *args], cwd=self.gitdir, check=True)

    def prepare(
        self,
        require_recess: bool = False,
        recess_version: str | None = None,
    ) -> None:
        """Install node dependencies and the tools this run needs.

        Args:
            require_recess: Install recess even when grunt is available
            recess_version: recess version to install

        Raises:
            ToolExecutionError: If npm fails
        """
        if (self.gitdir / "package.json").is_file():
            if any((self.gitdir / lock).is_file() for lock in LOCK_FILES):
                logger.info("Installing node dependencies (npm ci)")
                self._npm("ci")
            else:
                logger.info("Installing node dependencies (npm install)")
                self._npm("install")

        packages: list[str] = []
        if (require_recess or not self.grunt_available()) and self.tool_path("recess") is None:
            packages.append(f"recess@{recess_version or DEFAULT_RECESS_VERSION}")
        if not self.grunt_available() and self.tool_path("shifter") is None:
            packages.append("shifter")

        if packages:
            logger.info("Installing %s", ", ".join(packages))
            self._npm("install", "--no-save", *packages)

    def tool_path(self, tool: str) -> Path | None:
        """Path to an installed executable, None if missing."""
        path = self.bin_dir / tool
        if path.is_file() and os.access(path, os.X_OK):
            return path
        return None

    def require(self, tool: str) -> str:
        """Path to an installed executable.

        Raises:
            ToolNotAvailableError: If the executable is missing
        """
        path = self.tool_path(tool)
        if path is None:
            raise ToolNotAvailableError(tool, f"{tool} executable not found in {self.bin_dir}")
        return str(path)

    @property
    def grunt(self) -> str | None:
        path = self.tool_path("grunt")
        return str(path) if path else None

    @property
    def recess(self) -> str | None:
        path = self.tool_path("recess")
        return str(path) if path else None

    @property
    def shifter(self) -> str | None:
        path = self.tool_path("shifter")
        return str(path) if path else None
