"""The command-line interface for pidone."""
# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing

from pathlib import Path
from typing import Annotated, Any

from cyclopts import App, Parameter
from rich.console import Console

from pidone import __version__
from pidone.config import LogFormat, LogLevel, load_config
from pidone.exceptions import ConfigError
from pidone.utils import create_logger

from ._runner import run_entrypoint
from ._shared import ExitCode, exit_with_error

APP_HELP = "Container entrypoint: start a service, wait for a signal, stop it cleanly."


def build_cli_overrides(  # noqa: PLR0913
    *,
    instance: str | None = None,
    namespace: str | None = None,
    routine: str | None = None,
    stop: bool | None = None,
    start: bool | None = None,
    single_user: bool | None = None,
    shmem: int | None = None,
    console_log: bool | None = None,
    xstart: str | None = None,
    xstop: str | None = None,
    control_command: str | None = None,
    console_log_name: str | None = None,
    log_level: LogLevel | None = None,
    log_format: LogFormat | None = None,
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Map command-line flags to configuration keys.

    Flags that were not given (None) are omitted so that lower-precedence
    sources keep their values.

    Returns:
        Configuration overrides.
    """
    flags: dict[str, object] = {
        "instance": instance,
        "namespace": namespace,
        "routine": routine,
        "stop_enabled": stop,
        "start_enabled": start,
        "single_user": single_user,
        "shmem_mb": shmem,
        "follow_console_log": console_log,
        "aux_start": xstart,
        "aux_stop": xstop,
        "control_command": control_command,
        "console_log_name": console_log_name,
    }
    overrides: dict[str, Any] = {k: v for k, v in flags.items() if v is not None}  # pyright: ignore[reportExplicitAny]

    logging_overrides: dict[str, str] = {}
    if log_level is not None:
        logging_overrides["level"] = log_level.value
    if log_format is not None:
        logging_overrides["format"] = log_format.value
    if logging_overrides:
        overrides["logging"] = logging_overrides

    return overrides


def pidone_main(  # noqa: PLR0913
    *,
    instance: Annotated[
        str | None,
        Parameter(name=["--instance", "-i"], help="Instance name to start/stop. [default: CACHE]"),
    ] = None,
    namespace: Annotated[
        str | None,
        Parameter(name=["--namespace", "-n"], help="Namespace of the application routine."),
    ] = None,
    routine: Annotated[
        str | None,
        Parameter(name=["--routine", "-r"], help="Routine started once the service is up."),
    ] = None,
    stop: Annotated[
        bool | None,
        Parameter(
            name=["--stop", "--cstop"],
            negative=["--no-stop", "--no-cstop"],
            help="Stop the service on shutdown; --no-stop suits throw-away containers.",
        ),
    ] = None,
    start: Annotated[
        bool | None,
        Parameter(
            name=["--start", "--cstart"],
            negative=["--no-start", "--no-cstart"],
            help="Start the service and tune shared memory at startup.",
        ),
    ] = None,
    single_user: Annotated[
        bool | None,
        Parameter(
            name=["--single-user", "--nostu"],
            negative="",
            help="Start in single-user mode for maintenance.",
        ),
    ] = None,
    shmem: Annotated[
        int | None,
        Parameter(help="Shared memory segment ceiling in MB for pre-3.16 kernels. [default: 512]"),
    ] = None,
    console_log: Annotated[
        bool | None,
        Parameter(
            name=["--console-log", "--cconsole"],
            negative="",
            help="Stream the service's console log to stdout.",
        ),
    ] = None,
    xstart: Annotated[
        str | None,
        Parameter(help="Command that starts an auxiliary service (sshd, a script...)."),
    ] = None,
    xstop: Annotated[
        str | None,
        Parameter(help="Command that stops the auxiliary service."),
    ] = None,
    control_command: Annotated[
        str | None,
        Parameter(help="Control interface executable. [default: ccontrol]"),
    ] = None,
    console_log_name: Annotated[
        str | None,
        Parameter(help="Console log file name under <install>/mgr. [default: cconsole.log]"),
    ] = None,
    log_level: Annotated[LogLevel | None, Parameter(help="Log level threshold.")] = None,
    log_format: Annotated[LogFormat | None, Parameter(help="Log output format.")] = None,
    config: Annotated[
        Path | None,
        Parameter(name="--config", help="Path to a TOML config file (or PIDONE_CONFIG)."),
    ] = None,
) -> None:
    """Run the container entrypoint.

    Starts the primary service, waits for SIGINT, SIGTERM, SIGABRT or
    SIGHUP, then shuts down in order. Unset flags fall back to PIDONE_*
    environment variables, the config file, then defaults.
    """
    overrides = build_cli_overrides(
        instance=instance,
        namespace=namespace,
        routine=routine,
        stop=stop,
        start=start,
        single_user=single_user,
        shmem=shmem,
        console_log=console_log,
        xstart=xstart,
        xstop=xstop,
        control_command=control_command,
        console_log_name=console_log_name,
        log_level=log_level,
        log_format=log_format,
    )

    try:
        loaded = load_config(config_path=config, cli_overrides=overrides)
    except ConfigError as e:
        exit_with_error(str(e), ExitCode.CONFIG_ERROR)

    logger = create_logger(
        level=loaded.logging.level.value,
        log_format=loaded.logging.format.value,  # type: ignore[arg-type]
        log_file=loaded.logging.file,
        instance=loaded.instance,
        max_bytes=loaded.logging.max_bytes,
        backup_count=loaded.logging.backup_count,
    )
    logger.debug("config_loaded", config=loaded.model_dump(mode="json"))

    code = run_entrypoint(loaded, logger)
    if code != ExitCode.SUCCESS:
        raise SystemExit(code)


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="pidone",
        help=APP_HELP,
        version=__version__,
        help_on_error=True,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )
    app.default(pidone_main)
    return app


app = create_app()


def main() -> None:
    """Default entrypoint for the `pidone` CLI."""
    create_app()()
