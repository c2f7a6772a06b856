"""Capture/dispatch pipeline

Core append -> swap -> partition -> deliver pipeline with:
- RotationClock (boundary-aligned send schedule)
- SlidingWindowRateLimiter (deliveries per window, checked per part)
- SnapshotSwapper (atomic detach + pending side-buffer)
- partition (line-aligned, size-bounded parts)
- TriggerPolicy (error threshold / rotation boundary)
- Dispatcher (single active cycle, retain-on-failure)
- DispatchLedger (statistics and retained snapshots)
- FileLogStore (file-backed live buffer)
- EmailLogPipeline (public facade)
"""

from .types import (
    Clock,
    CycleOutcome,
    CycleResult,
    DispatchState,
    LogStore,
    Part,
    RenderedMessage,
    Renderer,
    RetainedSnapshot,
    Snapshot,
    Transport,
    TriggerDecision,
    TriggerReason,
)
from .clock import RotationClock, RotationCycle, SystemClock, boundary_crossed, next_boundary
from .rate import SlidingWindowRateLimiter
from .store import FileLogStore
from .swapper import SnapshotSwapper
from .partition import partition, part_count
from .trigger import ErrorAccumulator, TriggerPolicy
from .ledger import DispatchLedger, PipelineStatistics
from .dispatcher import Dispatcher
from .pipeline import EmailLogPipeline

__all__ = [
    # types
    "Clock",
    "CycleOutcome",
    "CycleResult",
    "DispatchState",
    "LogStore",
    "Part",
    "RenderedMessage",
    "Renderer",
    "RetainedSnapshot",
    "Snapshot",
    "Transport",
    "TriggerDecision",
    "TriggerReason",
    # schedule & policies
    "RotationClock",
    "RotationCycle",
    "SystemClock",
    "boundary_crossed",
    "next_boundary",
    "SlidingWindowRateLimiter",
    "ErrorAccumulator",
    "TriggerPolicy",
    # runtime
    "FileLogStore",
    "SnapshotSwapper",
    "partition",
    "part_count",
    "Dispatcher",
    "DispatchLedger",
    "PipelineStatistics",
    "EmailLogPipeline",
]
