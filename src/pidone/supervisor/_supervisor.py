"""Signal-driven supervisor for the container entrypoint.

This module provides the Supervisor class that runs the startup phases,
blocks until a termination signal arrives, then runs the shutdown phases.
Every phase is a hard gate: a fatal error ends the run immediately and
skips all later phases, shutdown included.

Termination signals are trapped from the moment the supervisor enters
RUNNING until the run ends. The first one starts shutdown; any later ones
are logged and ignored so they cannot interrupt it.
"""

import signal
from contextlib import contextmanager
from typing import TYPE_CHECKING, final

import anyio

from pidone.exceptions import LifecycleError, SupervisorError
from pidone.utils import SubprocessRunner

from ._auxiliary import AuxiliaryServiceManager
from ._follower import POLL_INTERVAL
from ._models import LifecyclePhase
from ._primary import PrimaryServiceController
from ._prober import StatusProber
from ._tuner import EnvironmentTuner

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    import anyio.abc
    from structlog.typing import FilteringBoundLogger

    from pidone.config import StartupConfig

    from ._protocol import CommandRunner, OutputSink, SignalWaiter

TERMINATION_SIGNALS: tuple[signal.Signals, ...] = tuple(
    getattr(signal, name)
    for name in ("SIGINT", "SIGTERM", "SIGABRT", "SIGHUP")
    if hasattr(signal, name)
)


@final
class Supervisor:
    """Runs the entrypoint lifecycle for one primary service.

    The supervisor owns the lifecycle phase and the startup configuration;
    the components it drives only receive read-only values. Background work
    (console log follower, auxiliary launcher, late signal handling) runs in
    a task group that is cancelled when run() returns or fails.

    Attributes:
        received_signal: The termination signal that triggered shutdown.
    """

    __slots__ = (
        "_auxiliary",
        "_config",
        "_logger",
        "_phase",
        "_primary",
        "_signal_waiter",
        "_tuner",
        "received_signal",
    )

    def __init__(  # noqa: PLR0913
        self,
        config: "StartupConfig",
        logger: "FilteringBoundLogger",
        *,
        runner: "CommandRunner | None" = None,
        output_sink: "OutputSink | None" = None,
        signal_waiter: "SignalWaiter | None" = None,
        platform: str | None = None,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        """Initialize the supervisor.

        Args:
            config: Startup configuration for this run.
            logger: Logger injected into every component.
            runner: Runner for external commands. Uses SubprocessRunner if None.
            output_sink: Sink for followed console log lines.
            signal_waiter: Coroutine function returning the termination
                signal. If None, the process's own TERMINATION_SIGNALS are
                trapped.
            platform: Platform identifier for the tuner. Defaults to sys.platform.
            poll_interval: Console log polling interval in seconds.
        """
        command_runner: CommandRunner = runner or SubprocessRunner()

        self._config = config
        self._logger = logger.bind(component="supervisor")
        self._signal_waiter: SignalWaiter | None = signal_waiter
        self._phase = LifecyclePhase.INIT
        self.received_signal: signal.Signals | None = None

        self._tuner = EnvironmentTuner(command_runner, logger, platform=platform)
        prober = StatusProber(
            command_runner, logger, control_command=config.control_command
        )
        self._primary = PrimaryServiceController(
            command_runner,
            prober,
            logger,
            control_command=config.control_command,
            output_sink=output_sink,
            poll_interval=poll_interval,
        )
        self._auxiliary = AuxiliaryServiceManager(command_runner, logger)

    @property
    def phase(self) -> LifecyclePhase:
        """Return the current lifecycle phase."""
        return self._phase

    @property
    def config(self) -> "StartupConfig":
        """Return the startup configuration."""
        return self._config

    def _advance(self, phase: LifecyclePhase) -> None:
        if phase.ordinal <= self._phase.ordinal:
            msg = f"Invalid lifecycle transition {self._phase.value} -> {phase.value}"
            raise LifecycleError(msg)
        self._logger.debug("phase_changed", previous=self._phase.value, phase=phase.value)
        self._phase = phase

    async def run(self) -> None:
        """Run the full lifecycle.

        Returns after the shutdown phases complete.

        Raises:
            SupervisorError: On the first fatal error in any phase.
        """
        failure: SupervisorError | None = None

        async with anyio.create_task_group() as tg:
            try:
                await self._startup(tg)
                with self._trap_signals(tg) as wait_for_signal:
                    self._advance(LifecyclePhase.RUNNING)
                    await self._wait_for_signal(wait_for_signal)
                    await self._shutdown()
            except SupervisorError as e:
                failure = e
            finally:
                tg.cancel_scope.cancel()

        if failure is not None:
            self._logger.debug("run_failed", phase=self._phase.value)
            raise failure

    @contextmanager
    def _trap_signals(self, tg: "anyio.abc.TaskGroup") -> "Iterator[SignalWaiter]":
        if self._signal_waiter is not None:
            yield self._signal_waiter
            return

        with anyio.open_signal_receiver(*TERMINATION_SIGNALS) as receiver:

            async def first_signal() -> signal.Signals:
                received = await anext(receiver)
                tg.start_soon(self._ignore_signals, receiver, name="late-signal-handler")
                return received

            yield first_signal

    async def _ignore_signals(self, receiver: "AsyncIterator[signal.Signals]") -> None:
        async for received in receiver:
            self._logger.warning(
                "signal_ignored",
                signal=received.name,
                reason="shutdown already in progress",
            )

    async def _startup(self, tg: "anyio.abc.TaskGroup") -> None:
        config = self._config

        if config.start_enabled:
            self._advance(LifecyclePhase.TUNING)
            await self._tuner.tune(config.shmem_mb)

            self._advance(LifecyclePhase.STARTING_PRIMARY)
            await self._primary.start(config, task_group=tg)
            self._logger.info("primary_up")

            app_launch = config.app_launch
            if app_launch is not None:
                self._advance(LifecyclePhase.STARTING_APP)
                namespace, routine = app_launch
                await self._primary.launch_routine(config.instance, namespace, routine)
            elif config.app_launch_incomplete:
                self._logger.warning(
                    "app_launch_skipped",
                    reason="both namespace and routine are required",
                    namespace=config.namespace,
                    routine=config.routine,
                )
        else:
            self._logger.info("primary_start_disabled")

        if config.aux_start:
            self._advance(LifecyclePhase.STARTING_AUXILIARY)
            handle = self._auxiliary.start(config.aux_start, tg)
            outcome = await handle.outcome()
            if outcome.success:
                self._logger.info("auxiliary_up", pid=outcome.pid)
            else:
                self._logger.error(
                    "auxiliary_start_failed",
                    command=config.aux_start,
                    error=outcome.message,
                )

    async def _wait_for_signal(self, wait_for_signal: "SignalWaiter") -> None:
        self._logger.info("waiting_for_signal", signals=[s.name for s in TERMINATION_SIGNALS])
        received = await wait_for_signal()
        self.received_signal = received
        self._logger.info("signal_trapped", signal=received.name, signum=int(received))

    async def _shutdown(self) -> None:
        config = self._config

        if config.stops_primary:
            self._advance(LifecyclePhase.SHUTTING_DOWN_PRIMARY)
            await self._primary.stop(config.instance)
            self._logger.info("primary_down")

        if config.aux_stop:
            self._advance(LifecyclePhase.STOPPING_AUXILIARY)
            await self._auxiliary.stop(config.aux_stop)
            self._logger.info("auxiliary_down")

        self._advance(LifecyclePhase.TERMINATED)
