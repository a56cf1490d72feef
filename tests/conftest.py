"""Shared test fixtures for pidone tests."""

import io
import signal

import pytest
from fakes import FakeRunner, RecordingSink, SignalWaiterFunc, StatusLineFactory
from structlog.typing import FilteringBoundLogger

from pidone.utils import create_logger

DEFAULT_INSTALL_PATH = "/usr/cachesys"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Create a FakeRunner that reports a 4.4 kernel."""
    runner = FakeRunner()
    runner.respond(("uname", "-r"), stdout="4.4.0-21-generic\n")
    return runner


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_status_line() -> StatusLineFactory:
    """Return a factory for caret-delimited qlist records."""

    def _make(
        status: str,
        *,
        name: str = "CACHE",
        install_path: str = DEFAULT_INSTALL_PATH,
    ) -> str:
        return (
            f"{name}^{install_path}^2015.1.0.429.0^{status}^cache.cpf^1972^57772^62972^ok^\n"
        )

    return _make


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream: io.StringIO) -> FilteringBoundLogger:
    """Create a debug logger writing JSON records to log_stream."""
    return create_logger(level="debug", log_format="json", stream=log_stream)


@pytest.fixture
def sigterm_waiter() -> SignalWaiterFunc:
    """Return a signal waiter that immediately reports SIGTERM."""

    async def _wait() -> signal.Signals:
        return signal.SIGTERM

    return _wait
