"""Protocol definitions for the supervisor system.

This module defines the interfaces that decouple the lifecycle components
from the outside world:
- OutputSink: Protocol for consuming followed log lines
- CommandRunner: Protocol for executing external commands
- ProcessHandle: Protocol for a spawned, detached process
- SignalWaiter: Callable that blocks until a termination signal arrives
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    import signal
    from collections.abc import Awaitable, Callable, Sequence

    from pidone.utils import CommandResult

    type SignalWaiter = Callable[[], Awaitable[signal.Signals]]


@runtime_checkable
class OutputSink(Protocol):
    """Protocol for consuming lines followed from a log file.

    Sinks receive raw lines and decide how to display or store them. The
    protocol is async so implementations may perform non-blocking I/O.
    """

    async def write_line(self, source: str, line: str) -> None:
        """Write one followed line.

        Args:
            source: Name of the file the line came from.
            line: The line, without its trailing newline.
        """
        ...


@runtime_checkable
class ProcessHandle(Protocol):
    """Protocol for a process launched without waiting for it."""

    @property
    def pid(self) -> int:
        """Return the process ID."""
        ...

    async def wait(self) -> int:
        """Wait for the process to exit and return its exit code."""
        ...


@runtime_checkable
class CommandRunner(Protocol):
    """Protocol for executing external commands.

    The default implementation is SubprocessRunner. Tests substitute a
    recording fake so that no real control interface is needed.
    """

    async def run(self, argv: "Sequence[str]") -> "CommandResult":
        """Run a command to completion.

        Args:
            argv: The command and its arguments.

        Returns:
            The command result. Launch failures are reported, not raised.
        """
        ...

    async def spawn(self, argv: "Sequence[str]") -> ProcessHandle:
        """Launch a command without waiting for it.

        Args:
            argv: The command and its arguments.

        Returns:
            A handle to the running process.

        Raises:
            OSError: If the command cannot be launched.
        """
        ...
