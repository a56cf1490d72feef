"""Data models for the supervisor system.

This module defines the core data types of the entrypoint lifecycle:
- ServiceState: Classification of the primary service's reported status
- LifecyclePhase: The supervisor's own, strictly forward, phase sequence
- StatusRecord: Parsed control interface status record
- KernelVersion: Comparable major.minor kernel version
- AuxiliaryOutcome: Launch outcome of the auxiliary service
"""

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path  # noqa: TC003 - Used in runtime type annotations
from typing import NamedTuple


class ServiceState(StrEnum):
    """Primary service states as reported by the control interface.

    - RUNNING: Service is up and accepting sign-ons
    - DOWN: Service is stopped
    - SIGN_ON_INHIBITED: Service is up but refusing multi-user sign-on
    - UNKNOWN: Status text was not recognized
    """

    RUNNING = "running"
    DOWN = "down"
    SIGN_ON_INHIBITED = "sign-on inhibited"
    UNKNOWN = "unknown"

    @classmethod
    def from_status_text(cls, status_text: str) -> "ServiceState":  # noqa: UP037
        """Classify the status text of a status record.

        Prefixes are matched case-sensitively; surrounding whitespace is
        ignored.

        Args:
            status_text: Status field up to the first comma, e.g. "running".

        Returns:
            The matching state, or UNKNOWN for unrecognized text.
        """
        text = status_text.strip()
        for state in (cls.RUNNING, cls.DOWN, cls.SIGN_ON_INHIBITED):
            if text.startswith(state.value):
                return state
        return cls.UNKNOWN


class LifecyclePhase(StrEnum):
    """Supervisor lifecycle phases, in execution order.

    Optional phases may be skipped, but the supervisor never returns to an
    earlier phase.
    """

    INIT = "init"
    TUNING = "tuning"
    STARTING_PRIMARY = "starting-primary"
    STARTING_APP = "starting-app"
    STARTING_AUXILIARY = "starting-auxiliary"
    RUNNING = "running"
    SHUTTING_DOWN_PRIMARY = "shutting-down-primary"
    STOPPING_AUXILIARY = "stopping-auxiliary"
    TERMINATED = "terminated"

    @property
    def ordinal(self) -> int:
        """Return the position of this phase in the lifecycle."""
        return list(LifecyclePhase).index(self)


@dataclass(frozen=True, slots=True)
class StatusRecord:
    """A parsed control interface status record.

    Records are caret-delimited, e.g.
    ``C151^/usr/cachesys^2015.1.0.429.0^running, since Mon Jun  8 2015^cache.cpf^...``

    Attributes:
        name: Instance name (field 1).
        install_path: Installation directory (field 2).
        version: Product version (field 3).
        status_text: Field 4 up to the first comma.
        detail: Field 4 after the first comma, stripped.
        fields: All fields of the record.
    """

    name: str
    install_path: Path
    version: str
    status_text: str
    detail: str
    fields: tuple[str, ...]

    @property
    def state(self) -> ServiceState:
        """Return the classified service state."""
        return ServiceState.from_status_text(self.status_text)


class KernelVersion(NamedTuple):
    """Kernel major.minor version with numeric ordering.

    Ordering compares (major, minor) as integers, so 3.8 sorts before 3.16.
    """

    major: int
    minor: int

    def as_number(self) -> float:
        """Return the version as the number ``<major>.<minor>``."""
        return float(f"{self.major}.{self.minor}")

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


@dataclass(frozen=True, slots=True)
class AuxiliaryOutcome:
    """Launch outcome of the auxiliary service.

    Attributes:
        success: Whether the command was launched.
        message: Diagnostic text for the launch.
        pid: Process ID of the launched command, if any.
    """

    success: bool
    message: str = ""
    pid: int | None = None
