"""Console log follower.

Follows the primary service's console log from its current end, writing
every new line to an output sink until cancelled.
"""

from typing import TYPE_CHECKING, final

import anyio

if TYPE_CHECKING:
    from pathlib import Path

    from structlog.typing import FilteringBoundLogger

    from ._protocol import OutputSink

# Polling interval in seconds
POLL_INTERVAL = 0.5


def console_log_path(install_path: "Path", log_name: str) -> "Path":
    """Return the console log location for an installation."""
    return install_path / "mgr" / log_name


@final
class ConsoleLogFollower:
    """Tails a log file by polling its size and reading appended bytes."""

    __slots__ = ("_logger", "_output_sink", "_partial", "_path", "_poll_interval", "_position")

    def __init__(
        self,
        path: "Path",
        output_sink: "OutputSink",
        logger: "FilteringBoundLogger",
        *,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self._path = path
        self._output_sink = output_sink
        self._logger = logger.bind(component="follower", path=str(path))
        self._poll_interval = poll_interval
        self._position = 0
        self._partial = b""

    @property
    def path(self) -> "Path":
        """Return the followed file."""
        return self._path

    def seek_to_end(self) -> None:
        """Skip existing content; a missing file is followed from its start."""
        self._position = self._path.stat().st_size if self._path.exists() else 0
        self._partial = b""

    def read_new_lines(self) -> list[str]:
        """Read complete lines appended since the last call.

        A trailing line without newline is held back until it is completed.

        Returns:
            The new lines, without line terminators.
        """
        if not self._path.exists():
            return []

        current_size = self._path.stat().st_size

        # Handle file truncation (log rotation)
        if current_size < self._position:
            self._position = 0
            self._partial = b""

        if current_size == self._position:
            return []

        with self._path.open("rb") as f:
            _ = f.seek(self._position)
            chunk = f.read(current_size - self._position)
        self._position += len(chunk)

        data = self._partial + chunk
        *complete, self._partial = data.split(b"\n")
        return [raw.decode("utf-8", errors="replace").rstrip("\r") for raw in complete]

    async def follow(self) -> None:
        """Follow the file until the enclosing task is cancelled.

        Read errors are logged and retried on the next poll.
        """
        try:
            self.seek_to_end()
        except OSError as e:
            self._logger.error("console_log_unavailable", error=str(e))

        self._logger.info("following_console_log")
        while True:
            try:
                lines = self.read_new_lines()
            except OSError as e:
                self._logger.error("console_log_read_failed", error=str(e))
                lines = []

            for line in lines:
                await self._output_sink.write_line(self._path.name, line)

            await anyio.sleep(self._poll_interval)
