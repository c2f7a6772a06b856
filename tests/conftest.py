"""
Pytest configuration and fixtures for log-mailer.

Provides cross-platform event loop configuration, a controllable clock and pipeline factories.
"""

import asyncio
import sys
from datetime import datetime, timedelta, timezone

import pytest

from log_mailer.coordinator import EmailLogPipeline, FileLogStore
from log_mailer.mail import DryRunTransport, MessageRenderer, RenderOptions
from log_mailer.models import LogRecord, Severity

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


class FakeClock:
    """Settable wall clock + monotonic seconds."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 3, 15, 10, 30, 0, tzinfo=timezone.utc)
        self.mono = 1000.0

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.mono

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)
        self.mono += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    s = FileLogStore(tmp_path / "logs")
    yield s
    s.close()


@pytest.fixture
def transport():
    return DryRunTransport()


@pytest.fixture
def make_record():
    def _make(message: str = "hello", level: Severity | str = Severity.INFO, **kw) -> LogRecord:
        return LogRecord(level=level, message=message, **kw)

    return _make


@pytest.fixture
def make_pipeline(store, transport, clock):
    """Factory building a pipeline on tmp storage with a dry-run transport and no pacing."""

    def _make(**overrides) -> EmailLogPipeline:
        kwargs = dict(
            store=store,
            renderer=MessageRenderer(RenderOptions(), host="test-host"),
            transport=transport,
            clock=clock,
            rotation_cycle="HOURLY",
            part_delay_sec=0,
            offload_io=False,
        )
        kwargs.update(overrides)
        return EmailLogPipeline(**kwargs)

    return _make
