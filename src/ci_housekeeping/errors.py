"""Exceptions raised by ci-housekeeping operations.

Operations raise these; the CLI catches them at the command boundary and
maps them to exit code 1.
"""


class HousekeepingError(Exception):
    """Base class for all ci-housekeeping errors."""


class ConfigurationError(HousekeepingError):
    """Raised when a required parameter is missing or malformed."""

    def __init__(self, parameter: str, message: str | None = None) -> None:
        self.parameter = parameter
        self.message = message or (
            f"{parameter} is not defined. Set it in the config file or on the command line."
        )
        super().__init__(self.message)


class ToolNotAvailableError(HousekeepingError):
    """Raised when a required tool is not installed or accessible."""

    def __init__(self, tool_name: str, message: str | None = None) -> None:
        self.tool_name = tool_name
        self.message = message or f"Tool not available: {tool_name}"
        super().__init__(self.message)


class ToolExecutionError(HousekeepingError):
    """Raised when a tool execution fails."""

    def __init__(
        self,
        tool_name: str,
        message: str,
        exit_code: int | None = None,
        stderr: str | None = None,
    ) -> None:
        self.tool_name = tool_name
        self.exit_code = exit_code
        self.stderr = stderr
        full_message = f"Tool execution failed: {tool_name} - {message}"
        if exit_code is not None:
            full_message += f" (exit code: {exit_code})"
        super().__init__(full_message)


class RebaseError(HousekeepingError):
    """Raised when the security branch cannot be rebased automatically."""
