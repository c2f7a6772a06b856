from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from ..models import LogRecord, Severity


class DispatchState(str, Enum):
    """Explicit state of the (single) dispatch cycle."""

    IDLE = "idle"
    SWAPPING = "swapping"
    PARTITIONING = "partitioning"
    DELIVERING = "delivering"
    COMPLETED = "completed"
    FAILED = "failed"


class CycleResult(str, Enum):
    NOOP_BUSY = "noop_busy"  # another cycle holds the exclusion flag
    NOOP_EMPTY = "noop_empty"  # nothing buffered
    DELIVERED = "delivered"
    RATE_LIMITED = "rate_limited"
    DELIVERY_FAILED = "delivery_failed"
    STORAGE_FAILED = "storage_failed"


class TriggerDecision(str, Enum):
    NONE = "none"
    DISPATCH_NOW = "dispatch_now"


class TriggerReason(str, Enum):
    ERROR_THRESHOLD = "error_threshold"
    ROTATION_BOUNDARY = "rotation_boundary"


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time detachment of the live log file."""

    path: Path
    size_bytes: int
    created_at: datetime
    content: bytes = field(default=b"", repr=False)


@dataclass(frozen=True)
class Part:
    """One line-aligned slice of a snapshot, delivered as a single message."""

    index: int  # 1-based
    total: int
    content: bytes
    line_count: int

    @property
    def size_bytes(self) -> int:
        return len(self.content)

    @property
    def label(self) -> str:
        return f"{self.index} of {self.total}"

    def lines(self) -> list[bytes]:
        return self.content.splitlines(keepends=True)

    def records(self) -> list[LogRecord]:
        """Decode NDJSON lines; blank lines are skipped.

        A line that does not decode (torn write, foreign content) is kept as a WARN record
        carrying the raw text, so one bad line never blocks the rest of the part.
        """
        return [_decode(line) for line in self.lines() if line.strip()]


@dataclass(frozen=True)
class CycleOutcome:
    result: CycleResult
    parts_total: int = 0
    parts_delivered: int = 0
    snapshot_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.result == CycleResult.DELIVERED


@dataclass(frozen=True)
class RetainedSnapshot:
    """Undelivered snapshot kept on disk for manual inspection/resend."""

    path: Path
    reason: str
    retained_at: datetime
    parts_delivered: int = 0
    total_parts: int = 0
    error: Optional[str] = None


@dataclass
class RenderedMessage:
    """Deliverable message produced by a renderer."""

    subject: str
    text_body: str
    html_body: Optional[str] = None
    attachment_name: Optional[str] = None
    attachment: Optional[bytes] = None
    headers: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class LogStore(Protocol):
    """Durable substrate for the live buffer and its snapshots."""

    def append(self, data: bytes) -> None: ...

    def size_bytes(self) -> int: ...

    def detach_and_reset(self) -> Optional[Path]: ...

    def read_all(self, handle: Path) -> bytes: ...

    def delete(self, handle: Path) -> None: ...


class Renderer(Protocol):
    def render(self, part: Part, metadata: Mapping[str, Any]) -> RenderedMessage: ...


class Transport(Protocol):
    async def send(self, message: RenderedMessage) -> None:
        """Deliver the message; raise DeliveryError on failure."""
        ...


class Clock(Protocol):
    def now(self) -> datetime: ...

    def monotonic(self) -> float: ...



CORRUPT_LOGGER = "log_mailer.corrupt"


def _decode(line: bytes) -> LogRecord:
    try:
        return LogRecord.from_line(line)
    except ValueError:
        return LogRecord(
            level=Severity.WARN,
            message=line.decode("utf-8", errors="replace").rstrip("\r\n"),
            logger_name=CORRUPT_LOGGER,
        )
