"""Tests for pidone.supervisor._supervisor module."""

import io
import os
import signal
import sys
from collections.abc import Sequence
from pathlib import Path

import anyio
import pytest
from fakes import (
    FakeRunner,
    RecordingSink,
    SignalWaiterFunc,
    StatusLineFactory,
    event_names,
    log_events,
)
from structlog.typing import FilteringBoundLogger

from pidone.config import StartupConfig
from pidone.exceptions import (
    AuxiliaryStopError,
    LifecycleError,
    RoutineLaunchError,
    StatusRecordError,
)
from pidone.supervisor import (
    TERMINATION_SIGNALS,
    LifecyclePhase,
    Supervisor,
)
from pidone.utils import CommandResult

pytestmark = pytest.mark.anyio

QLIST = ("ccontrol", "qlist", "CACHE")
START = ("ccontrol", "start", "CACHE", "quietly")
STOP = ("ccontrol", "stop", "CACHE", "quietly")


@pytest.fixture
def lifecycle_runner(fake_runner: FakeRunner, make_status_line: StatusLineFactory) -> FakeRunner:
    """FakeRunner whose instance is down, then running, then down again."""
    fake_runner.respond(QLIST, stdout=make_status_line("down"))
    fake_runner.respond(QLIST, stdout=make_status_line("running"))
    fake_runner.respond(QLIST, stdout=make_status_line("down"))
    return fake_runner


def make_supervisor(
    config: StartupConfig,
    runner: FakeRunner,
    logger: FilteringBoundLogger,
    signal_waiter: SignalWaiterFunc,
    sink: RecordingSink | None = None,
) -> Supervisor:
    return Supervisor(
        config,
        logger,
        runner=runner,
        output_sink=sink or RecordingSink(),
        signal_waiter=signal_waiter,
        platform="linux",
        poll_interval=0.01,
    )


def phases(stream: io.StringIO) -> list[str]:
    return [str(e["phase"]) for e in log_events(stream) if e["event"] == "phase_changed"]


class TestScenarios:
    async def test_start_wait_stop_on_new_kernel(
        self,
        lifecycle_runner: FakeRunner,
        logger: FilteringBoundLogger,
        sigterm_waiter: SignalWaiterFunc,
    ) -> None:
        supervisor = make_supervisor(
            StartupConfig(shmem_mb=512), lifecycle_runner, logger, sigterm_waiter
        )

        await supervisor.run()

        assert lifecycle_runner.calls == [("uname", "-r"), QLIST, START, QLIST, STOP, QLIST]
        assert supervisor.phase is LifecyclePhase.TERMINATED
        assert supervisor.received_signal is signal.SIGTERM

    async def test_clamped_tuning_before_start(
        self,
        lifecycle_runner: FakeRunner,
        logger: FilteringBoundLogger,
        sigterm_waiter: SignalWaiterFunc,
    ) -> None:
        lifecycle_runner.reset(("uname", "-r"))
        lifecycle_runner.respond(("uname", "-r"), stdout="3.10.0-123.el7.x86_64\n")
        supervisor = make_supervisor(
            StartupConfig(shmem_mb=10000), lifecycle_runner, logger, sigterm_waiter
        )

        await supervisor.run()

        sysctl = ("sysctl", "-w", "kernel.shmmax=8589934592")
        assert sysctl in lifecycle_runner.calls
        assert lifecycle_runner.calls.index(sysctl) < lifecycle_runner.calls.index(START)

    async def test_start_disabled_skips_stop(
        self,
        lifecycle_runner: FakeRunner,
        logger: FilteringBoundLogger,
        log_stream: io.StringIO,
        sigterm_waiter: SignalWaiterFunc,
    ) -> None:
        config = StartupConfig(start_enabled=False, stop_enabled=True)
        supervisor = make_supervisor(config, lifecycle_runner, logger, sigterm_waiter)

        await supervisor.run()

        assert lifecycle_runner.calls == []
        assert supervisor.phase is LifecyclePhase.TERMINATED
        assert phases(log_stream) == ["running", "terminated"]

    async def test_empty_status_record_is_fatal(
        self,
        fake_runner: FakeRunner,
        logger: FilteringBoundLogger,
        sigterm_waiter: SignalWaiterFunc,
    ) -> None:
        fake_runner.respond(QLIST, stdout="")
        supervisor = make_supervisor(StartupConfig(), fake_runner, logger, sigterm_waiter)

        with pytest.raises(StatusRecordError):
            await supervisor.run()

        assert fake_runner.commands("start") == []
        assert fake_runner.commands("stop") == []
        assert supervisor.phase is LifecyclePhase.STARTING_PRIMARY
        assert supervisor.received_signal is None


class TestLifecycle:
    async def test_full_phase_order(
        self,
        lifecycle_runner: FakeRunner,
        logger: FilteringBoundLogger,
        log_stream: io.StringIO,
        sigterm_waiter: SignalWaiterFunc,
    ) -> None:
        config = StartupConfig(
            namespace="USER",
            routine="^START",
            aux_start="/usr/sbin/sshd -D",
            aux_stop="pkill sshd",
        )
        supervisor = make_supervisor(config, lifecycle_runner, logger, sigterm_waiter)

        await supervisor.run()

        assert phases(log_stream) == [
            "tuning",
            "starting-primary",
            "starting-app",
            "starting-auxiliary",
            "running",
            "shutting-down-primary",
            "stopping-auxiliary",
            "terminated",
        ]
        assert ("ccontrol", "session", "CACHE", "-U", "USER", "^START") in lifecycle_runner.calls
        assert lifecycle_runner.spawned == [("/usr/sbin/sshd", "-D")]
        assert lifecycle_runner.calls[-1] == ("pkill", "sshd")

    async def test_stop_disabled(
        self,
        lifecycle_runner: FakeRunner,
        logger: FilteringBoundLogger,
        sigterm_waiter: SignalWaiterFunc,
    ) -> None:
        supervisor = make_supervisor(
            StartupConfig(stop_enabled=False), lifecycle_runner, logger, sigterm_waiter
        )

        await supervisor.run()

        assert lifecycle_runner.commands("start") == [START]
        assert lifecycle_runner.commands("stop") == []

    async def test_blocks_until_signal(
        self,
        lifecycle_runner: FakeRunner,
        logger: FilteringBoundLogger,
    ) -> None:
        released = anyio.Event()

        async def wait_for_release() -> signal.Signals:
            await released.wait()
            return signal.SIGHUP

        supervisor = make_supervisor(StartupConfig(), lifecycle_runner, logger, wait_for_release)

        async with anyio.create_task_group() as tg:
            tg.start_soon(supervisor.run)
            with anyio.fail_after(5):
                while supervisor.phase is not LifecyclePhase.RUNNING:
                    await anyio.sleep(0.01)
            await anyio.sleep(0.05)

            assert supervisor.phase is LifecyclePhase.RUNNING
            assert lifecycle_runner.commands("stop") == []
            released.set()

        assert supervisor.phase is LifecyclePhase.TERMINATED
        assert supervisor.received_signal is signal.SIGHUP

    async def test_incomplete_app_launch_is_skipped(
        self,
        lifecycle_runner: FakeRunner,
        logger: FilteringBoundLogger,
        log_stream: io.StringIO,
        sigterm_waiter: SignalWaiterFunc,
    ) -> None:
        supervisor = make_supervisor(
            StartupConfig(namespace="USER"), lifecycle_runner, logger, sigterm_waiter
        )

        await supervisor.run()

        assert lifecycle_runner.commands("session") == []
        assert "app_launch_skipped" in event_names(log_stream)
        assert "starting-app" not in phases(log_stream)

    async def test_routine_failure_skips_shutdown(
        self,
        lifecycle_runner: FakeRunner,
        logger: FilteringBoundLogger,
        sigterm_waiter: SignalWaiterFunc,
    ) -> None:
        lifecycle_runner.respond(
            ("ccontrol", "session", "CACHE", "-U", "USER", "^START"), exit_code=1
        )
        config = StartupConfig(namespace="USER", routine="^START")
        supervisor = make_supervisor(config, lifecycle_runner, logger, sigterm_waiter)

        with pytest.raises(RoutineLaunchError):
            await supervisor.run()

        assert lifecycle_runner.commands("stop") == []
        assert supervisor.phase is LifecyclePhase.STARTING_APP

    async def test_rerun_is_rejected(
        self,
        lifecycle_runner: FakeRunner,
        logger: FilteringBoundLogger,
        sigterm_waiter: SignalWaiterFunc,
    ) -> None:
        supervisor = make_supervisor(StartupConfig(), lifecycle_runner, logger, sigterm_waiter)
        await supervisor.run()

        with pytest.raises(LifecycleError, match="terminated -> tuning"):
            await supervisor.run()

    async def test_console_log_follower_is_cancelled(
        self,
        tmp_path: Path,
        fake_runner: FakeRunner,
        logger: FilteringBoundLogger,
        sigterm_waiter: SignalWaiterFunc,
        make_status_line: StatusLineFactory,
    ) -> None:
        fake_runner.respond(QLIST, stdout=make_status_line("running", install_path=str(tmp_path)))
        fake_runner.respond(QLIST, stdout=make_status_line("down", install_path=str(tmp_path)))
        supervisor = make_supervisor(
            StartupConfig(follow_console_log=True), fake_runner, logger, sigterm_waiter
        )

        with anyio.fail_after(5):
            await supervisor.run()

        assert supervisor.phase is LifecyclePhase.TERMINATED


class TestAuxiliary:
    async def test_launch_failure_is_not_fatal(
        self,
        lifecycle_runner: FakeRunner,
        logger: FilteringBoundLogger,
        log_stream: io.StringIO,
        sigterm_waiter: SignalWaiterFunc,
    ) -> None:
        lifecycle_runner.spawn_error = PermissionError(13, "Permission denied")
        supervisor = make_supervisor(
            StartupConfig(aux_start="/opt/side.sh"), lifecycle_runner, logger, sigterm_waiter
        )

        await supervisor.run()

        assert supervisor.phase is LifecyclePhase.TERMINATED
        failures = [e for e in log_events(log_stream) if e["event"] == "auxiliary_start_failed"]
        assert failures[0]["level"] == "error"

    async def test_auxiliary_without_primary(
        self,
        fake_runner: FakeRunner,
        logger: FilteringBoundLogger,
        sigterm_waiter: SignalWaiterFunc,
    ) -> None:
        config = StartupConfig(start_enabled=False, aux_start="sshd", aux_stop="pkill sshd")
        supervisor = make_supervisor(config, fake_runner, logger, sigterm_waiter)

        await supervisor.run()

        assert fake_runner.spawned == [("sshd",)]
        assert fake_runner.calls == [("pkill", "sshd")]

    async def test_stop_failure_is_fatal(
        self,
        lifecycle_runner: FakeRunner,
        logger: FilteringBoundLogger,
        sigterm_waiter: SignalWaiterFunc,
    ) -> None:
        lifecycle_runner.respond(("pkill", "sshd"), exit_code=1)
        supervisor = make_supervisor(
            StartupConfig(aux_stop="pkill sshd"), lifecycle_runner, logger, sigterm_waiter
        )

        with pytest.raises(AuxiliaryStopError):
            await supervisor.run()

        assert supervisor.phase is LifecyclePhase.STOPPING_AUXILIARY
        assert STOP in lifecycle_runner.calls


class SlowStopRunner(FakeRunner):
    """FakeRunner whose stop command takes a while to finish."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay
        self.stopping = anyio.Event()

    async def run(self, argv: Sequence[str]) -> CommandResult:
        if tuple(argv) == STOP:
            self.stopping.set()
            await anyio.sleep(self.delay)
        return await super().run(argv)


async def wait_for_phase(supervisor: Supervisor, phase: LifecyclePhase) -> None:
    while supervisor.phase is not phase:
        await anyio.sleep(0.01)


@pytest.mark.skipif(sys.platform == "win32", reason="requires POSIX signals")
class TestProcessSignals:
    async def test_sigterm_starts_shutdown(
        self,
        lifecycle_runner: FakeRunner,
        logger: FilteringBoundLogger,
    ) -> None:
        supervisor = Supervisor(
            StartupConfig(),
            logger,
            runner=lifecycle_runner,
            output_sink=RecordingSink(),
            platform="linux",
        )

        with anyio.fail_after(5):
            async with anyio.create_task_group() as tg:
                tg.start_soon(supervisor.run)
                await wait_for_phase(supervisor, LifecyclePhase.RUNNING)
                os.kill(os.getpid(), signal.SIGTERM)

        assert supervisor.received_signal is signal.SIGTERM
        assert supervisor.phase is LifecyclePhase.TERMINATED
        assert lifecycle_runner.commands("stop") == [STOP]

    async def test_second_signal_does_not_interrupt_shutdown(
        self,
        logger: FilteringBoundLogger,
        log_stream: io.StringIO,
        make_status_line: StatusLineFactory,
    ) -> None:
        runner = SlowStopRunner(delay=0.3)
        runner.respond(("uname", "-r"), stdout="4.4.0-21-generic\n")
        runner.respond(QLIST, stdout=make_status_line("down"))
        runner.respond(QLIST, stdout=make_status_line("running"))
        runner.respond(QLIST, stdout=make_status_line("down"))
        supervisor = Supervisor(
            StartupConfig(aux_stop="/etc/init.d/sshd stop"),
            logger,
            runner=runner,
            output_sink=RecordingSink(),
            platform="linux",
        )

        with anyio.fail_after(5):
            async with anyio.create_task_group() as tg:
                tg.start_soon(supervisor.run)
                await wait_for_phase(supervisor, LifecyclePhase.RUNNING)
                os.kill(os.getpid(), signal.SIGTERM)
                await runner.stopping.wait()
                os.kill(os.getpid(), signal.SIGINT)

        assert supervisor.received_signal is signal.SIGTERM
        assert supervisor.phase is LifecyclePhase.TERMINATED
        assert ("/etc/init.d/sshd", "stop") in runner.calls
        ignored = [e for e in log_events(log_stream) if e["event"] == "signal_ignored"]
        assert [e["signal"] for e in ignored] == ["SIGINT"]


def test_termination_signals() -> None:
    assert signal.SIGINT in TERMINATION_SIGNALS
    assert signal.SIGTERM in TERMINATION_SIGNALS
