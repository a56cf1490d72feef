"""Top-level runner for the entrypoint.

This is the only place where a fatal supervisor error turns into a process
exit status. Components below raise; nothing else terminates the process.
"""

from typing import TYPE_CHECKING, Any

import anyio

from pidone.exceptions import SupervisorError
from pidone.supervisor import Supervisor

from ._shared import ExitCode, exit_code_for

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from pidone.config import StartupConfig


def report_fatal(logger: "FilteringBoundLogger", error: SupervisorError) -> None:
    """Log a fatal error with its probable causes."""
    logger.error("fatal_error", error=str(error), error_type=type(error).__name__)
    for hint in error.hints:
        logger.error("possible_cause", cause=hint)


def run_entrypoint(
    config: "StartupConfig",
    logger: "FilteringBoundLogger",
    **supervisor_options: Any,  # pyright: ignore[reportAny,reportExplicitAny]
) -> ExitCode:
    """Run the supervisor to completion and return the exit code.

    Args:
        config: Startup configuration.
        logger: Logger injected into the supervisor.
        **supervisor_options: Extra keyword arguments for Supervisor.

    Returns:
        SUCCESS after a graceful shutdown, or the code for the fatal error.
    """
    supervisor = Supervisor(config, logger, **supervisor_options)  # pyright: ignore[reportAny]

    try:
        anyio.run(supervisor.run)
    except SupervisorError as e:
        report_fatal(logger, e)
        return exit_code_for(e)

    signal_name = supervisor.received_signal.name if supervisor.received_signal else None
    logger.info("entrypoint_finished", signal=signal_name)
    return ExitCode.SUCCESS
