"""Shared utilities for pidone."""

from ._exec import (
    MAX_OUTPUT_BYTES,
    CommandResult,
    SubprocessRunner,
    split_command,
    truncate_output,
)
from ._logging import LogFormatType, create_logger

__all__ = [
    "MAX_OUTPUT_BYTES",
    "CommandResult",
    "LogFormatType",
    "SubprocessRunner",
    "create_logger",
    "split_command",
    "truncate_output",
]
