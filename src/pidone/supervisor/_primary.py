"""Primary service controller.

Starts and stops the primary service through the control interface and
verifies every transition with the status prober.
"""

from typing import TYPE_CHECKING, final

from pidone.exceptions import RoutineLaunchError, ServiceStartError, ServiceStopError

from ._follower import POLL_INTERVAL, ConsoleLogFollower, console_log_path
from ._models import ServiceState
from ._output import ConsoleOutputSink

if TYPE_CHECKING:
    from pathlib import Path

    import anyio.abc
    from structlog.typing import FilteringBoundLogger

    from pidone.config import StartupConfig

    from ._prober import StatusProber
    from ._protocol import CommandRunner, OutputSink


@final
class PrimaryServiceController:
    """Controls the primary service via the control interface.

    Attributes:
        prober: Status prober used to confirm transitions.
    """

    __slots__ = (
        "_control_command",
        "_logger",
        "_output_sink",
        "_poll_interval",
        "_runner",
        "prober",
    )

    def __init__(
        self,
        runner: "CommandRunner",
        prober: "StatusProber",
        logger: "FilteringBoundLogger",
        *,
        control_command: str = "ccontrol",
        output_sink: "OutputSink | None" = None,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        """Initialize the controller.

        Args:
            runner: Runner for control interface commands.
            prober: Status prober for the same control interface.
            logger: Logger to bind.
            control_command: Executable of the control interface.
            output_sink: Sink for followed console log lines. Uses
                ConsoleOutputSink if None.
            poll_interval: Console log polling interval in seconds.
        """
        self._runner = runner
        self.prober = prober
        self._logger = logger.bind(component="primary")
        self._control_command = control_command
        self._output_sink: OutputSink = output_sink or ConsoleOutputSink()
        self._poll_interval = poll_interval

    async def start(
        self,
        config: "StartupConfig",
        *,
        task_group: "anyio.abc.TaskGroup | None" = None,
    ) -> None:
        """Start the primary service and confirm it is running.

        The instance is probed once before the start command; an instance
        that is already running is left untouched. When console log
        streaming is enabled, the follower is spawned into ``task_group``
        before the start command so that startup messages are shown.

        Args:
            config: Startup configuration.
            task_group: Task group for the console log follower.

        Raises:
            ControlInterfaceError: If the status record cannot be read.
            ServiceStartError: If the service does not reach RUNNING.
        """
        instance = config.instance
        self._logger.info("starting_primary", single_user=config.single_user)

        before = await self.prober.record(instance)

        if config.follow_console_log:
            self._spawn_follower(config, before.install_path, task_group)

        if before.state is ServiceState.RUNNING:
            self._logger.info("primary_already_running")
            return

        argv = [self._control_command, "start", instance]
        if config.single_user:
            argv.append("nostu")
        argv.append("quietly")
        self._logger.debug("primary_start_command", argv=argv)

        result = await self._runner.run(argv)
        if not result.ok:
            msg = f"Error starting instance '{instance}': {result.describe()}"
            raise ServiceStartError(
                msg,
                instance=instance,
                hints=(
                    "the primary service was not installed successfully",
                    "wrong instance name",
                    "missing privileges to start/stop the service; process not in the service's group",
                ),
            )

        state = await self.prober.query(instance)
        if state is ServiceState.RUNNING:
            self._logger.info("primary_started")
            return

        hints: tuple[str, ...] = ()
        if state is ServiceState.SIGN_ON_INHIBITED:
            self._logger.warning(
                "sign_on_inhibited",
                hint="something is preventing multi-user start; "
                "restart the container with --no-start to fix it",
            )
            hints = ("restart the container with --no-start and fix the instance",)

        msg = f"Instance '{instance}' was not brought up successfully (state: {state.value})"
        raise ServiceStartError(msg, instance=instance, hints=hints)

    def _spawn_follower(
        self,
        config: "StartupConfig",
        install_path: "Path",
        task_group: "anyio.abc.TaskGroup | None",
    ) -> None:
        if task_group is None:
            self._logger.warning("console_log_not_followed", reason="no task group")
            return

        path = console_log_path(install_path, config.console_log_name)
        follower = ConsoleLogFollower(
            path,
            self._output_sink,
            self._logger,
            poll_interval=self._poll_interval,
        )
        task_group.start_soon(follower.follow, name="console-log-follower")

    async def launch_routine(self, instance: str, namespace: str, routine: str) -> None:
        """Launch the application routine in a namespace.

        Raises:
            RoutineLaunchError: If the session command fails.
        """
        self._logger.info("starting_app", routine=routine, namespace=namespace)

        argv = (self._control_command, "session", instance, "-U", namespace, routine)
        self._logger.debug("app_session_command", argv=list(argv))

        result = await self._runner.run(argv)
        if not result.ok:
            msg = (
                f"Error in launching routine {routine} in namespace {namespace}: "
                f"{result.describe()}"
            )
            raise RoutineLaunchError(
                msg,
                instance=instance,
                hints=("routine or namespace does not exist", "routine raised an error"),
            )

        self._logger.info("app_started", routine=routine, namespace=namespace)

    async def stop(self, instance: str) -> None:
        """Stop the primary service and confirm it is down.

        Raises:
            ControlInterfaceError: If the status record cannot be read.
            ServiceStopError: If the service does not reach DOWN.
        """
        self._logger.info("stopping_primary")

        argv = (self._control_command, "stop", instance, "quietly")
        result = await self._runner.run(argv)
        if not result.ok:
            msg = f"Error shutting down instance '{instance}': {result.describe()}"
            raise ServiceStopError(
                msg,
                instance=instance,
                hints=(
                    "wrong instance name",
                    "service up in single-user mode (there was trouble at startup)",
                ),
            )

        state = await self.prober.query(instance)
        if state is not ServiceState.DOWN:
            msg = f"Instance '{instance}' was not shut down successfully (state: {state.value})"
            raise ServiceStopError(msg, instance=instance)

        self._logger.info("primary_stopped")
