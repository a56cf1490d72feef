"""Execution utilities for external commands.

This module provides the default command runner used to talk to the control
interface, the kernel parameter interface and user-supplied auxiliary
commands. Commands run without timeouts: the entrypoint waits for them as
long as they take.
"""

import shlex
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING, final

import anyio

if TYPE_CHECKING:
    from collections.abc import Sequence

    import anyio.abc

# Maximum output size in bytes kept for diagnostics
MAX_OUTPUT_BYTES: int = 102400  # 100KB


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Result from running an external command.

    Attributes:
        argv: The command and arguments that were executed.
        success: Whether the command could be launched and ran to completion.
        exit_code: Process exit code, or None if the command never ran.
        stdout: Standard output from the command.
        stderr: Standard error from the command.
        error: Error message if the command could not be launched.
        command_not_found: Whether the executable was not found.
    """

    argv: tuple[str, ...]
    success: bool
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    error: str | None = None
    command_not_found: bool = False

    @property
    def ok(self) -> bool:
        """Return True if the command ran and exited with status 0."""
        return self.success and self.exit_code == 0

    def describe(self) -> str:
        """Return a one-line diagnostic summary of the result."""
        if not self.success:
            return self.error or "command could not be launched"
        detail = (self.stderr or self.stdout).strip()
        if detail:
            return f"exit status {self.exit_code}: {truncate_output(detail, 512)}"
        return f"exit status {self.exit_code}"


def truncate_output(output: str, max_bytes: int = MAX_OUTPUT_BYTES) -> str:
    """Truncate output to max bytes, preserving valid UTF-8.

    Args:
        output: The string to truncate.
        max_bytes: Maximum size in bytes.

    Returns:
        Truncated string with indicator if truncated.
    """
    if not output:
        return output

    encoded = output.encode("utf-8")
    if len(encoded) <= max_bytes:
        return output

    # Use 'ignore' to skip incomplete multi-byte sequences at the end
    truncated = encoded[:max_bytes].decode("utf-8", errors="ignore")

    return truncated + "\n... [output truncated]"


def split_command(command: str) -> list[str]:
    """Split a user-supplied command string into an argument list.

    Args:
        command: Command line, e.g. "/opt/start.sh --verbose".

    Returns:
        The argument list. Empty if the command is blank.

    Raises:
        ValueError: If the command has unbalanced quotes.
    """
    return shlex.split(command)


@final
class SubprocessRunner:
    """Run external commands with anyio subprocess support."""

    __slots__ = ()

    async def run(self, argv: "Sequence[str]") -> CommandResult:
        """Run a command to completion and capture its output.

        Args:
            argv: The command and its arguments.

        Returns:
            CommandResult describing the outcome. Launch failures are reported
            in the result rather than raised.
        """
        args = tuple(argv)
        try:
            completed = await anyio.run_process(list(args), check=False)
        except FileNotFoundError as e:
            return CommandResult(
                argv=args,
                success=False,
                error=str(e),
                command_not_found=True,
            )
        except OSError as e:
            return CommandResult(argv=args, success=False, error=str(e))

        return CommandResult(
            argv=args,
            success=True,
            exit_code=completed.returncode,
            stdout=completed.stdout.decode("utf-8", errors="replace"),
            stderr=completed.stderr.decode("utf-8", errors="replace"),
        )

    async def spawn(self, argv: "Sequence[str]") -> "anyio.abc.Process":
        """Launch a command without waiting for it to finish.

        The child reads from /dev/null and inherits stdout/stderr so that
        its output reaches the container log.

        Args:
            argv: The command and its arguments.

        Returns:
            The running process.

        Raises:
            OSError: If the command cannot be launched.
        """
        return await anyio.open_process(
            list(argv),
            stdin=subprocess.DEVNULL,
            stdout=None,
            stderr=None,
        )
