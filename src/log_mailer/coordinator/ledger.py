from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from loguru import logger

from ..metrics.registry import metrics_registry
from .types import CycleResult, RetainedSnapshot


@dataclass(frozen=True)
class PipelineStatistics:
    """Read-only view returned by ``EmailLogPipeline.get_statistics()``."""

    successful_sends: int
    failed_sends: int
    rate_limited_skips: int
    storage_errors: int
    rate_limit_remaining: int
    error_buffer_size: int
    state: str
    current_log_file: Optional[str] = None
    last_send_time: Optional[datetime] = None
    last_error: Optional[str] = None
    last_rotation_check: Optional[datetime] = None
    next_send_time: Optional[datetime] = None
    retained_snapshot_path: Optional[Path] = None
    retained_snapshots: List[Path] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        out = asdict(self)
        for key, value in out.items():
            if isinstance(value, datetime):
                out[key] = value.isoformat()
            elif isinstance(value, Path):
                out[key] = str(value)
        out["retained_snapshots"] = [str(p) for p in self.retained_snapshots]
        return out


class DispatchLedger:
    """Success/failure counters and the list of retained (undelivered) snapshots."""

    def __init__(self, coordinator_id: str = "default"):
        self.coordinator_id = coordinator_id
        self.successful_sends = 0
        self.failed_sends = 0
        self.rate_limited_skips = 0
        self.storage_errors = 0
        self.last_send_time: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self._retained: List[RetainedSnapshot] = []

    # --------------- outcomes

    def record_success(self, at: datetime) -> None:
        self.successful_sends += 1
        self.last_send_time = at
        metrics_registry.sends_total.labels(self.coordinator_id, "success").inc()

    def record_failure(self, error: str) -> None:
        self.failed_sends += 1
        self.last_error = error
        metrics_registry.sends_total.labels(self.coordinator_id, "failure").inc()

    def record_rate_limited(self) -> None:
        self.rate_limited_skips += 1
        metrics_registry.sends_total.labels(self.coordinator_id, "rate_limited").inc()

    def record_storage_error(self, error: str) -> None:
        self.storage_errors += 1
        self.last_error = error

    def record_cycle(self, result: CycleResult) -> None:
        metrics_registry.cycles_total.labels(self.coordinator_id, result.value).inc()

    # --------------- retained snapshots

    def retain(self, snapshot: RetainedSnapshot) -> None:
        self._retained = [r for r in self._retained if r.path != snapshot.path]
        self._retained.append(snapshot)
        metrics_registry.retained_snapshots.labels(self.coordinator_id).set(len(self._retained))
        logger.warning(
            f"Snapshot retained for recovery: {snapshot.path} ({snapshot.reason}, "
            f"{snapshot.parts_delivered}/{snapshot.total_parts} parts delivered)"
        )

    def release(self, path: Path) -> None:
        self._retained = [r for r in self._retained if r.path != path]
        metrics_registry.retained_snapshots.labels(self.coordinator_id).set(len(self._retained))

    @property
    def retained(self) -> tuple[RetainedSnapshot, ...]:
        return tuple(self._retained)

    @property
    def latest_retained(self) -> Optional[RetainedSnapshot]:
        return self._retained[-1] if self._retained else None
