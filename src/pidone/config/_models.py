"""Configuration models.

This module provides the Pydantic models that hold the entrypoint's
startup configuration. Instances are frozen: the configuration is captured
once at process start and only read afterwards.
"""

from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LogLevel(StrEnum):
    """Log level threshold values.

    Values are ordered from most verbose (debug) to least verbose (error).
    """

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Log output format.
        file: Path to log file (empty logs to stderr).
        max_bytes: Size in bytes at which the log file is rotated.
        backup_count: Number of rotated log files to keep.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.TEXT
    file: str = ""
    max_bytes: int | None = Field(
        default=None,
        ge=1,
        description=(
            "Maximum size of the log file in bytes before rotation. "
            "Must be set together with backup_count for rotation to be enabled."
        ),
    )
    backup_count: int | None = Field(
        default=None,
        ge=0,
        description=(
            "Number of rotated log files to keep. "
            "Must be set together with max_bytes for rotation to be enabled."
        ),
    )


class StartupConfig(BaseModel):
    """Startup configuration for one entrypoint run.

    Attributes:
        instance: Name of the primary service instance.
        namespace: Namespace in which to launch the application routine.
        routine: Routine or entry point launched after the service is up.
        single_user: Start the primary service in single-user mode.
        stop_enabled: Stop the primary service on shutdown.
        start_enabled: Start the primary service (and tune the host) at startup.
        shmem_mb: Shared-memory segment ceiling to apply on old kernels, in MB.
        follow_console_log: Stream the primary service's console log to stdout.
        aux_start: Command that starts the auxiliary service.
        aux_stop: Command that stops the auxiliary service.
        control_command: Executable of the control interface.
        console_log_name: File name of the console log under `<install>/mgr`.
        logging: Logging settings.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    instance: str = Field(default="CACHE", min_length=1)
    namespace: str | None = None
    routine: str | None = None
    single_user: bool = False
    stop_enabled: bool = True
    start_enabled: bool = True
    shmem_mb: int = Field(default=512, gt=0)
    follow_console_log: bool = False
    aux_start: str | None = None
    aux_stop: str | None = None
    control_command: str = Field(default="ccontrol", min_length=1)
    console_log_name: str = Field(default="cconsole.log", min_length=1)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("namespace", "routine", "aux_start", "aux_stop", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def app_launch(self) -> tuple[str, str] | None:
        """Return (namespace, routine) when both are configured."""
        if self.namespace and self.routine:
            return self.namespace, self.routine
        return None

    @property
    def app_launch_incomplete(self) -> bool:
        """Return True when exactly one of namespace and routine is set."""
        return (self.namespace is None) != (self.routine is None)

    @property
    def stops_primary(self) -> bool:
        """Return True when shutdown must stop the primary service.

        Nothing is stopped if nothing was started.
        """
        return self.start_enabled and self.stop_enabled
