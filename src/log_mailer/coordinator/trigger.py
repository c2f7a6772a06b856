from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from loguru import logger

from ..models import LogRecord, Severity
from .clock import RotationClock
from .types import TriggerDecision, TriggerReason


class ErrorAccumulator:
    """Records at or above ``level`` seen since the last dispatch cycle started."""

    def __init__(self, level: Severity = Severity.ERROR):
        self.level = level
        self._records: List[LogRecord] = []

    def offer(self, record: LogRecord) -> bool:
        if record.level >= self.level:
            self._records.append(record)
            return True
        return False

    def reset(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> tuple[LogRecord, ...]:
        return tuple(self._records)


class TriggerPolicy:
    """Decides, per incoming record, whether a dispatch cycle should be requested.

    The record has already been appended to the live path when this runs. The rotation
    baseline is not moved here; the dispatcher advances it once a cycle actually starts.
    """

    def __init__(
        self,
        clock: RotationClock,
        *,
        error_level: Severity = Severity.ERROR,
        immediate_error_threshold: int = 10,
        send_immediately_on_error: bool = True,
    ):
        if immediate_error_threshold <= 0:
            raise ValueError("immediate_error_threshold must be > 0")
        self.clock = clock
        self.errors = ErrorAccumulator(error_level)
        self.immediate_error_threshold = immediate_error_threshold
        self.send_immediately_on_error = send_immediately_on_error
        self.last_reason: Optional[TriggerReason] = None

    def on_record(self, record: LogRecord, now: datetime) -> TriggerDecision:
        self.last_reason = None
        self.errors.offer(record)
        if self.send_immediately_on_error and len(self.errors) >= self.immediate_error_threshold:
            logger.info(
                f"Immediate error threshold reached ({len(self.errors)} errors), requesting send"
            )
            self.last_reason = TriggerReason.ERROR_THRESHOLD
            return TriggerDecision.DISPATCH_NOW

        if self.clock.crossed(now):
            logger.info(f"Rotation boundary reached ({self.clock.cycle.name}), requesting send")
            self.last_reason = TriggerReason.ROTATION_BOUNDARY
            return TriggerDecision.DISPATCH_NOW

        return TriggerDecision.NONE

    def on_cycle_started(self, now: datetime) -> None:
        """Commit the cycle start: clear accumulated errors and move the rotation baseline."""
        self.errors.reset()
        self.clock.advance(now)
