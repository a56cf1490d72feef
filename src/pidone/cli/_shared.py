"""Shared CLI utilities.

This module provides common utilities used by the entrypoint command:
- Standardized exit codes
- Console utilities for error handling
"""

from enum import IntEnum
from typing import TYPE_CHECKING, Never

from pidone.exceptions import (
    AuxiliaryStopError,
    ConfigError,
    ControlInterfaceError,
    EnvironmentTuningError,
)

if TYPE_CHECKING:
    from rich.console import Console

__all__ = [
    "ExitCode",
    "exit_code_for",
    "exit_with_error",
    "get_error_console",
]


class ExitCode(IntEnum):
    """Process exit codes of the entrypoint."""

    SUCCESS = 0
    FATAL = 1
    CONFIG_ERROR = 2
    ENVIRONMENT_ERROR = 3
    CONTROL_ERROR = 4
    AUXILIARY_ERROR = 5


def exit_code_for(error: Exception) -> ExitCode:
    """Map a fatal error to the process exit code.

    Args:
        error: The error that ended the run.

    Returns:
        The exit code for the error's category.
    """
    if isinstance(error, ConfigError):
        return ExitCode.CONFIG_ERROR
    if isinstance(error, EnvironmentTuningError):
        return ExitCode.ENVIRONMENT_ERROR
    if isinstance(error, ControlInterfaceError):
        return ExitCode.CONTROL_ERROR
    if isinstance(error, AuxiliaryStopError):
        return ExitCode.AUXILIARY_ERROR
    return ExitCode.FATAL


def get_error_console() -> "Console":
    """Get a Rich console configured for error output to stderr.

    Returns:
        Console instance writing to stderr.
    """
    from rich.console import Console

    return Console(stderr=True)


def exit_with_error(
    message: str,
    code: ExitCode = ExitCode.FATAL,
    *,
    console: "Console | None" = None,
) -> Never:
    """Print an error message and exit with the specified code.

    Args:
        message: The error message to display.
        code: The exit code to use (defaults to FATAL).
        console: Optional Rich console for output. If not provided,
            a new stderr console will be created.

    Raises:
        SystemExit: Always raised with the specified exit code.
    """
    if console is None:
        console = get_error_console()

    console.print(f"[red]Error:[/red] {message}", markup=True, highlight=False)
    raise SystemExit(code)
