"""Auxiliary service manager.

The auxiliary service is a user-supplied side process (sshd, a web server,
a shell script...). It is launched from a background task so the entrypoint
keeps listening for termination signals; only the launch outcome is handed
back to the supervisor.
"""

from typing import TYPE_CHECKING, final

import anyio

from pidone.exceptions import AuxiliaryStopError
from pidone.utils import split_command

from ._models import AuxiliaryOutcome

if TYPE_CHECKING:
    import anyio.abc
    from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
    from structlog.typing import FilteringBoundLogger

    from ._protocol import CommandRunner


@final
class AuxiliaryHandle:
    """One-shot receiver for the launch outcome of the auxiliary service."""

    __slots__ = ("_lock", "_outcome", "_receive_stream", "command")

    def __init__(
        self,
        command: str,
        receive_stream: "MemoryObjectReceiveStream[AuxiliaryOutcome]",
    ) -> None:
        self.command = command
        self._receive_stream = receive_stream
        self._outcome: AuxiliaryOutcome | None = None
        self._lock = anyio.Lock()

    async def outcome(self) -> AuxiliaryOutcome:
        """Wait for the launch outcome.

        Blocks until the launcher reports. Later calls return the same
        outcome without waiting.

        Returns:
            The launch outcome.
        """
        async with self._lock:
            if self._outcome is None:
                with self._receive_stream:
                    try:
                        self._outcome = await self._receive_stream.receive()
                    except anyio.EndOfStream:
                        self._outcome = AuxiliaryOutcome(
                            success=False,
                            message="launcher exited without reporting an outcome",
                        )
            return self._outcome


@final
class AuxiliaryServiceManager:
    """Starts and stops the auxiliary service."""

    __slots__ = ("_logger", "_runner")

    def __init__(self, runner: "CommandRunner", logger: "FilteringBoundLogger") -> None:
        self._runner = runner
        self._logger = logger.bind(component="auxiliary")

    def start(self, command: str, task_group: "anyio.abc.TaskGroup") -> AuxiliaryHandle:
        """Launch the auxiliary service in the background.

        Does not wait for the launch. Exactly one outcome is delivered
        through the returned handle, whether the launch succeeds or not.

        Args:
            command: Command line of the start command.
            task_group: Task group that owns the launcher task.

        Returns:
            Handle for the launch outcome.
        """
        self._logger.info("starting_auxiliary", command=command)

        send_stream, receive_stream = anyio.create_memory_object_stream[AuxiliaryOutcome](1)
        task_group.start_soon(self._launch, command, send_stream, name="auxiliary-launcher")
        return AuxiliaryHandle(command, receive_stream)

    async def _launch(
        self,
        command: str,
        send_stream: "MemoryObjectSendStream[AuxiliaryOutcome]",
    ) -> None:
        async with send_stream:
            try:
                argv = split_command(command)
                if not argv:
                    msg = "empty command"
                    raise ValueError(msg)  # noqa: TRY301
                process = await self._runner.spawn(argv)
            except (OSError, ValueError) as e:
                self._logger.debug("auxiliary_launch_failed", command=command, error=str(e))
                await send_stream.send(AuxiliaryOutcome(success=False, message=str(e)))
                return

            await send_stream.send(
                AuxiliaryOutcome(
                    success=True,
                    message=f"launched '{command}'",
                    pid=process.pid,
                )
            )

        # Reap the child when it exits; its exit status is not supervised
        exit_code = await process.wait()
        self._logger.info("auxiliary_exited", command=command, exit_code=exit_code)

    async def stop(self, command: str) -> None:
        """Run the stop command to completion.

        Raises:
            AuxiliaryStopError: If the command cannot be run or exits non-zero.
        """
        self._logger.info("stopping_auxiliary", command=command)

        try:
            argv = split_command(command)
        except ValueError as e:
            msg = f"Error in stopping service(s) {command}: {e}"
            raise AuxiliaryStopError(msg, command=command) from e

        if not argv:
            msg = "Auxiliary stop command is empty"
            raise AuxiliaryStopError(msg, command=command)

        result = await self._runner.run(argv)
        if not result.ok:
            msg = f"Error in stopping service(s) {command}: {result.describe()}"
            raise AuxiliaryStopError(
                msg,
                command=command,
                hints=("stop command not found or not executable",),
            )

        self._logger.info("auxiliary_stopped", command=command)
