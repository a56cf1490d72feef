"""Utilities used by the pidone CLI."""

from ._app import app, build_cli_overrides, create_app, main
from ._runner import report_fatal, run_entrypoint
from ._shared import ExitCode, exit_code_for

__all__ = [
    "ExitCode",
    "app",
    "build_cli_overrides",
    "create_app",
    "exit_code_for",
    "main",
    "report_fatal",
    "run_entrypoint",
]
