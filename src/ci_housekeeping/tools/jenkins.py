"""Jenkins command-line client."""

import logging
import shlex

from ci_housekeeping.utils.process import CommandResult, CommandRunner

logger = logging.getLogger(__name__)


class JenkinsClient:
    """Launches Jenkins builds through the Jenkins CLI.

    The CLI reads stdin in some connection modes, which silently stops any
    loop feeding it from a file. Every call runs with stdin closed.
    """

    def __init__(
        self,
        runner: CommandRunner,
        cli: str,
        server: str | None = None,
        user: str | None = None,
        token: str | None = None,
    ) -> None:
        self.runner = runner
        self.base = shlex.split(cli)
        if server:
            self.base += ["-s", server]
        if user and token:
            self.base += ["-auth", f"{user}:{token}"]

    def build(
        self,
        job: str,
        parameters: dict[str, str],
        wait: bool = True,
    ) -> CommandResult:
        """Launch a job.

        Args:
            job: Jenkins job name
            parameters: Build parameters
            wait: Wait for the build to start and report it

        Returns:
            CommandResult of the CLI call
        """
        args = [*self.base, "build", job]
        for key, value in parameters.items():
            args += ["-p", f"{key}={value}"]
        if wait:
            args.append("-w")

        logger.debug("Launching %s", job)
        return self.runner.run(args, stdin_devnull=True)
