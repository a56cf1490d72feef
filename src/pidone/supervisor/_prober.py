"""Status prober for the primary service.

This module parses the control interface's ``qlist`` record and classifies
the primary service's state.
"""

from pathlib import Path
from typing import TYPE_CHECKING, final

from pidone.exceptions import ControlCommandError, StatusRecordError

from ._models import ServiceState, StatusRecord

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ._protocol import CommandRunner

# name^installPath^version^statusText[,detail]^...
RECORD_SEPARATOR = "^"
MIN_RECORD_FIELDS = 4


def parse_status_record(text: str) -> StatusRecord:
    """Parse a caret-delimited status record.

    Only the first non-blank line of ``text`` is considered.

    Args:
        text: Raw output of ``<control> qlist <instance>``.

    Returns:
        The parsed record.

    Raises:
        StatusRecordError: If the record is empty or has fewer than four fields.
    """
    line = next((ln.strip() for ln in text.splitlines() if ln.strip()), "")
    if not line:
        msg = "Status record from the control interface is empty"
        raise StatusRecordError(msg, record=text)

    fields = tuple(line.split(RECORD_SEPARATOR))
    if len(fields) < MIN_RECORD_FIELDS:
        msg = (
            f"Status record has {len(fields)} field(s), "
            f"expected at least {MIN_RECORD_FIELDS}: {line!r}"
        )
        raise StatusRecordError(msg, record=text)

    status_text, _, detail = fields[3].partition(",")
    return StatusRecord(
        name=fields[0],
        install_path=Path(fields[1]),
        version=fields[2],
        status_text=status_text.strip(),
        detail=detail.strip(),
        fields=fields,
    )


@final
class StatusProber:
    """Queries the control interface for the primary service's status."""

    __slots__ = ("_control_command", "_logger", "_runner")

    def __init__(
        self,
        runner: "CommandRunner",
        logger: "FilteringBoundLogger",
        *,
        control_command: str = "ccontrol",
    ) -> None:
        self._runner = runner
        self._logger = logger.bind(component="prober")
        self._control_command = control_command

    async def record(self, instance: str) -> StatusRecord:
        """Fetch and parse the status record of an instance.

        Args:
            instance: The instance name.

        Returns:
            The parsed status record.

        Raises:
            ControlCommandError: If ``qlist`` fails to run or exits non-zero.
            StatusRecordError: If the record is empty or malformed.
        """
        argv = (self._control_command, "qlist", instance)
        result = await self._runner.run(argv)
        if not result.ok:
            msg = f"Error while querying status of instance '{instance}': {result.describe()}"
            raise ControlCommandError(
                msg,
                argv=argv,
                exit_code=result.exit_code,
                instance=instance,
                hints=(
                    "the control interface is not installed or not on PATH",
                    "wrong instance name",
                ),
            )

        try:
            return parse_status_record(result.stdout)
        except StatusRecordError as e:
            raise StatusRecordError(
                str(e),
                record=e.record,
                instance=instance,
                hints=("cannot tell a stopped instance from a broken one",),
            ) from e

    async def query(self, instance: str) -> ServiceState:
        """Return the classified state of an instance.

        Unrecognized status text yields UNKNOWN; the caller decides whether
        that is acceptable.
        """
        record = await self.record(instance)
        state = record.state
        if state is ServiceState.UNKNOWN:
            self._logger.warning(
                "unrecognized_status",
                status_text=record.status_text,
                record=RECORD_SEPARATOR.join(record.fields),
            )
        else:
            self._logger.debug("status_probed", state=state.value)
        return state

    async def install_location(self, instance: str) -> Path:
        """Resolve the installation directory of an instance."""
        record = await self.record(instance)
        self._logger.debug("install_location_resolved", path=str(record.install_path))
        return record.install_path
