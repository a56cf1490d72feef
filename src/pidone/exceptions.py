"""pidone exceptions."""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path


class PidoneError(Exception):
    """Base exception for pidone errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(PidoneError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: "Path | None" = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """Raised when configuration fails validation."""

    def __init__(
        self,
        message: str,
        *,
        key: str,
        value: Any,  # pyright: ignore[reportAny,reportExplicitAny]
        expected: str,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.key: str = key
        self.value: Any = value  # pyright: ignore[reportExplicitAny]
        self.expected: str = expected


# =============================================================================
# Supervisor Exceptions
# =============================================================================


class SupervisorError(PidoneError):
    """Base exception for fatal supervisor errors.

    Attributes:
        hints: Probable causes shown to the operator before exiting.
    """

    def __init__(self, message: str, *, hints: "Iterable[str]" = ()) -> None:
        """Initialize with error message and remediation hints.

        Args:
            message: Human-readable error message.
            hints: Probable causes of the failure.
        """
        super().__init__(message)
        self.hints: tuple[str, ...] = tuple(hints)


class LifecycleError(SupervisorError):
    """Raised when the supervisor attempts an invalid phase transition."""


class EnvironmentTuningError(SupervisorError):
    """Base exception for host environment pre-flight errors."""


class KernelVersionError(EnvironmentTuningError):
    """Raised when the kernel version cannot be determined.

    Attributes:
        raw_version: The version text that could not be parsed, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        raw_version: str | None = None,
        hints: "Iterable[str]" = (),
    ) -> None:
        """Initialize with error message and the offending version text."""
        super().__init__(message, hints=hints)
        self.raw_version: str | None = raw_version


class TuningError(EnvironmentTuningError):
    """Raised when the shared-memory ceiling cannot be applied.

    Attributes:
        shmmax_bytes: The value that was being applied.
    """

    def __init__(
        self,
        message: str,
        *,
        shmmax_bytes: int,
        hints: "Iterable[str]" = (),
    ) -> None:
        """Initialize with error message and the requested value."""
        super().__init__(message, hints=hints)
        self.shmmax_bytes: int = shmmax_bytes


class ControlInterfaceError(SupervisorError):
    """Base exception for primary service control errors.

    Attributes:
        instance: The instance the failing operation targeted.
    """

    def __init__(
        self,
        message: str,
        *,
        instance: str | None = None,
        hints: "Iterable[str]" = (),
    ) -> None:
        """Initialize with error message and instance context."""
        super().__init__(message, hints=hints)
        self.instance: str | None = instance


class ControlCommandError(ControlInterfaceError):
    """Raised when a control interface invocation fails to run or exits non-zero.

    Attributes:
        argv: The command that was executed.
        exit_code: The exit code, or None if the command could not be launched.
    """

    def __init__(
        self,
        message: str,
        *,
        argv: "Sequence[str]",
        exit_code: int | None = None,
        instance: str | None = None,
        hints: "Iterable[str]" = (),
    ) -> None:
        """Initialize with error message and command context."""
        super().__init__(message, instance=instance, hints=hints)
        self.argv: tuple[str, ...] = tuple(argv)
        self.exit_code: int | None = exit_code


class StatusRecordError(ControlInterfaceError):
    """Raised when a status record is empty or malformed.

    Attributes:
        record: The raw record text.
    """

    def __init__(
        self,
        message: str,
        *,
        record: str,
        instance: str | None = None,
        hints: "Iterable[str]" = (),
    ) -> None:
        """Initialize with error message and the raw record."""
        super().__init__(message, instance=instance, hints=hints)
        self.record: str = record


class ServiceStartError(ControlInterfaceError):
    """Raised when the primary service does not reach the running state."""


class ServiceStopError(ControlInterfaceError):
    """Raised when the primary service does not reach the down state."""


class RoutineLaunchError(ControlInterfaceError):
    """Raised when the application routine cannot be launched."""


class AuxiliaryStopError(SupervisorError):
    """Raised when the auxiliary stop command fails.

    Attributes:
        command: The stop command string.
    """

    def __init__(
        self,
        message: str,
        *,
        command: str,
        hints: "Iterable[str]" = (),
    ) -> None:
        """Initialize with error message and the stop command."""
        super().__init__(message, hints=hints)
        self.command: str = command
