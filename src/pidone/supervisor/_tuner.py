"""Host environment tuning.

Linux kernels before 3.16 ship a default shared-memory segment ceiling
(``kernel.shmmax``) that is too small for the primary service. On those
kernels the ceiling is raised with ``sysctl`` before the service starts.
"""

import re
import sys
from typing import TYPE_CHECKING, final

from pidone.exceptions import KernelVersionError, TuningError

from ._models import KernelVersion

if TYPE_CHECKING:
    from collections.abc import Sequence

    from structlog.typing import FilteringBoundLogger

    from ._protocol import CommandRunner

# First kernel whose default shmmax is large enough
KERNEL_3_16 = KernelVersion(3, 16)

# Pre-3.16 kernels have 8192MB of total shared memory (shmall), so a single
# segment cannot be larger than that
PRE_3_16_MAX_SHMALL_MB = 8192

LINUX_TYPE_PLATFORMS = ("linux", "freebsd", "openbsd", "netbsd", "dragonfly")

_VERSION_RE = re.compile(r"^\s*(\d+)\.(\d+)")


def parse_kernel_version(raw: str) -> KernelVersion:
    """Parse the major.minor part of a kernel release string.

    Patch levels and build suffixes are ignored, e.g.
    ``3.16.6-2-desktop`` -> 3.16 and ``3.10.0-123.el7.x86_64`` -> 3.10.

    Raises:
        KernelVersionError: If the string does not start with major.minor.
    """
    match = _VERSION_RE.match(raw)
    if match is None:
        msg = f"Cannot parse kernel version from {raw.strip()!r}"
        raise KernelVersionError(msg, raw_version=raw)
    return KernelVersion(int(match.group(1)), int(match.group(2)))


def effective_shmem_mb(target_mb: int, kernel: KernelVersion) -> int:
    """Return the shared-memory target that can actually be granted.

    Args:
        target_mb: Requested segment ceiling in MB.
        kernel: The running kernel version.

    Returns:
        ``target_mb`` clamped to 8192 on pre-3.16 kernels, unchanged otherwise.
    """
    if kernel < KERNEL_3_16:
        return min(target_mb, PRE_3_16_MAX_SHMALL_MB)
    return target_mb


def mb_to_bytes(value_mb: int) -> int:
    """Convert megabytes to bytes."""
    return value_mb * 1024 * 1024


def is_linux_type(platform: str) -> bool:
    """Return True for Linux and BSD-family platforms."""
    return platform.startswith(LINUX_TYPE_PLATFORMS)


@final
class EnvironmentTuner:
    """Adjusts the shared-memory segment ceiling on old kernels."""

    __slots__ = ("_logger", "_platform", "_runner", "_sysctl_command", "_version_command")

    def __init__(
        self,
        runner: "CommandRunner",
        logger: "FilteringBoundLogger",
        *,
        platform: str | None = None,
        version_command: "Sequence[str]" = ("uname", "-r"),
        sysctl_command: str = "sysctl",
    ) -> None:
        """Initialize the tuner.

        Args:
            runner: Runner for the version query and sysctl.
            logger: Logger to bind.
            platform: Platform identifier. Defaults to sys.platform.
            version_command: Command printing the kernel release.
            sysctl_command: Privileged kernel parameter command.
        """
        self._runner = runner
        self._logger = logger.bind(component="tuner")
        self._platform = platform if platform is not None else sys.platform
        self._version_command = tuple(version_command)
        self._sysctl_command = sysctl_command

    async def kernel_version(self) -> KernelVersion:
        """Query and parse the running kernel version.

        Raises:
            KernelVersionError: If the query fails or its output is unparsable.
        """
        result = await self._runner.run(self._version_command)
        if not result.ok:
            msg = f"Error in checking kernel version: {result.describe()}"
            raise KernelVersionError(
                msg,
                hints=(
                    "insufficient privileges to run the uname command",
                    "missing uname command in container",
                ),
            )

        self._logger.debug("kernel_release", release=result.stdout.strip())
        return parse_kernel_version(result.stdout)

    async def tune(self, target_mb: int) -> None:
        """Apply the shared-memory ceiling if the platform requires it.

        Args:
            target_mb: Requested segment ceiling in MB.

        Raises:
            KernelVersionError: If the kernel version cannot be determined.
            TuningError: If the ceiling cannot be applied.
        """
        if not is_linux_type(self._platform):
            self._logger.info("tuning_skipped", platform=self._platform, reason="unsupported platform")
            return

        kernel = await self.kernel_version()
        if kernel >= KERNEL_3_16:
            self._logger.info("tuning_skipped", kernel=str(kernel), reason="kernel >= 3.16")
            return

        self._logger.info("tuning_shmmax", kernel=str(kernel))

        value_mb = effective_shmem_mb(target_mb, kernel)
        if value_mb != target_mb:
            self._logger.warning(
                "shmmax_clamped",
                requested_mb=target_mb,
                applied_mb=value_mb,
                reason="pre-3.16 kernels have only 8192MB of total shared memory (shmall)",
            )

        await self.apply_shmmax(mb_to_bytes(value_mb))

    async def apply_shmmax(self, shmmax_bytes: int) -> None:
        """Set kernel.shmmax with the privileged sysctl command.

        Raises:
            TuningError: If the command fails.
        """
        argv = (self._sysctl_command, "-w", f"kernel.shmmax={shmmax_bytes}")
        self._logger.debug("applying_kernel_parameter", argv=list(argv))

        result = await self._runner.run(argv)
        if not result.ok:
            msg = f"Error setting shared memory: {result.describe()}"
            raise TuningError(
                msg,
                shmmax_bytes=shmmax_bytes,
                hints=(
                    "insufficient privileges to run sysctl on a pre-3.16 kernel",
                    "container running without --privileged (needed for setting shared memory)",
                ),
            )

        self._logger.info("shmmax_applied", shmmax_bytes=shmmax_bytes)
