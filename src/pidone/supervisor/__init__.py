"""Supervisor package for the container entrypoint lifecycle.

This package brings up one primary service through its control interface,
optionally launches an application routine and an auxiliary process,
waits for a termination signal, then shuts everything down in order.

Key Components:
    - ServiceState: Classified status of the primary service
    - LifecyclePhase: Strictly forward supervisor phases
    - StatusRecord: Parsed control interface status record
    - EnvironmentTuner: Shared-memory pre-flight tuning
    - StatusProber: Control interface status queries
    - PrimaryServiceController: Start/stop of the primary service
    - ConsoleLogFollower: Console log streaming
    - AuxiliaryServiceManager: Side process start/stop
    - Supervisor: Signal-driven orchestrator

Example:
    >>> from pidone.config import StartupConfig
    >>> from pidone.supervisor import Supervisor
    >>> supervisor = Supervisor(StartupConfig(instance="CACHE"), logger)
    >>> await supervisor.run()  # Blocks until a termination signal
"""

from ._auxiliary import AuxiliaryHandle, AuxiliaryServiceManager
from ._follower import ConsoleLogFollower, console_log_path
from ._models import (
    AuxiliaryOutcome,
    KernelVersion,
    LifecyclePhase,
    ServiceState,
    StatusRecord,
)
from ._output import ConsoleOutputSink
from ._primary import PrimaryServiceController
from ._prober import StatusProber, parse_status_record
from ._protocol import CommandRunner, OutputSink, ProcessHandle
from ._supervisor import TERMINATION_SIGNALS, Supervisor
from ._tuner import (
    KERNEL_3_16,
    PRE_3_16_MAX_SHMALL_MB,
    EnvironmentTuner,
    effective_shmem_mb,
    mb_to_bytes,
    parse_kernel_version,
)

__all__ = [
    "KERNEL_3_16",
    "PRE_3_16_MAX_SHMALL_MB",
    "TERMINATION_SIGNALS",
    "AuxiliaryHandle",
    "AuxiliaryOutcome",
    "AuxiliaryServiceManager",
    "CommandRunner",
    "ConsoleLogFollower",
    "ConsoleOutputSink",
    "EnvironmentTuner",
    "KernelVersion",
    "LifecyclePhase",
    "OutputSink",
    "PrimaryServiceController",
    "ProcessHandle",
    "ServiceState",
    "StatusProber",
    "StatusRecord",
    "Supervisor",
    "console_log_path",
    "effective_shmem_mb",
    "mb_to_bytes",
    "parse_kernel_version",
    "parse_status_record",
]
