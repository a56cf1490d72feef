"""Output sink implementations for the supervisor system."""

from typing import final

from rich.console import Console


@final
class ConsoleOutputSink:
    """Output sink that writes followed lines verbatim to stdout.

    Lines are written without markup, highlighting or prefixes so that the
    primary service's console log appears in the container log unchanged.
    """

    __slots__ = ("_console",)

    def __init__(self, console: Console | None = None) -> None:
        """Initialize the output sink.

        Args:
            console: Rich Console instance for output. If None, creates one
                writing to stdout.
        """
        self._console = console or Console(soft_wrap=True)

    async def write_line(self, source: str, line: str) -> None:  # noqa: ARG002
        """Write a followed line.

        Args:
            source: Name of the file the line came from (unused).
            line: The line, without its trailing newline.
        """
        self._console.out(line, highlight=False)
