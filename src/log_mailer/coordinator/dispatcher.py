"""
Dispatcher: one end-to-end dispatch cycle.

swap -> partition -> (rate gate -> render -> deliver) per part -> discard or retain snapshot.

At most one cycle runs per dispatcher; a second request while one is active is a no-op.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, List, Mapping, Optional

from loguru import logger

from ..errors import DeliveryError, LogMailerError, StorageError
from ..metrics.registry import metrics_registry
from .ledger import DispatchLedger
from .partition import partition
from .rate import SlidingWindowRateLimiter
from .swapper import SnapshotSwapper
from .trigger import TriggerPolicy
from .types import (
    Clock,
    CycleOutcome,
    CycleResult,
    DispatchState,
    Part,
    Renderer,
    RetainedSnapshot,
    Snapshot,
    Transport,
)


class Dispatcher:
    def __init__(
        self,
        *,
        swapper: SnapshotSwapper,
        renderer: Renderer,
        transport: Transport,
        rate_limiter: SlidingWindowRateLimiter,
        trigger: TriggerPolicy,
        ledger: DispatchLedger,
        clock: Clock,
        max_bytes_per_part: int,
        max_lines_per_part: Optional[int] = None,
        part_delay_sec: float = 2.0,
        metadata: Optional[Mapping[str, Any]] = None,
        coord_id: str = "default",
    ):
        self._swapper = swapper
        self._renderer = renderer
        self._transport = transport
        self._rate = rate_limiter
        self._trigger = trigger
        self._ledger = ledger
        self._clock = clock
        self._max_bytes = max_bytes_per_part
        self._max_lines = max_lines_per_part
        self._part_delay = part_delay_sec
        self._metadata = dict(metadata or {})
        self._coord_id = coord_id

        self._active = False
        self._state = DispatchState.IDLE
        self._transitions: List[DispatchState] = []

    # --------------- introspection

    @property
    def state(self) -> DispatchState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._active

    @property
    def transitions(self) -> tuple[DispatchState, ...]:
        """States visited by the current (or most recent) cycle."""
        return tuple(self._transitions)

    # --------------- public API

    async def run_cycle(self, *, raise_on_error: bool = False) -> CycleOutcome:
        """Swap the live buffer and deliver it.

        Args:
            raise_on_error: propagate DeliveryError/StorageError (manual sends) instead of
                only logging and counting them

        Returns:
            CycleOutcome describing what happened; NOOP_BUSY when another cycle is active
        """
        if self._active:
            logger.debug("Dispatch cycle already running, skipping duplicate request")
            self._ledger.record_cycle(CycleResult.NOOP_BUSY)
            return CycleOutcome(CycleResult.NOOP_BUSY)

        self._active = True
        self._transitions = []
        try:
            return await self._run(raise_on_error)
        finally:
            self._active = False
            self._state = DispatchState.IDLE

    async def resend(self, path: Path, *, raise_on_error: bool = True) -> CycleOutcome:
        """Redeliver a retained snapshot file; it is deleted once every part is sent."""
        if self._active:
            logger.debug("Dispatch cycle already running, resend skipped")
            return CycleOutcome(CycleResult.NOOP_BUSY)

        self._active = True
        self._transitions = []
        try:
            self._set_state(DispatchState.PARTITIONING)
            store = self._swapper.store
            try:
                content = store.read_all(Path(path))
            except StorageError as e:
                return self._storage_failed(e, raise_on_error)
            snapshot = Snapshot(
                path=Path(path),
                size_bytes=len(content),
                created_at=self._clock.now(),
                content=content,
            )
            logger.info(f"Resending retained snapshot {path} ({len(content)} bytes)")
            return await self._deliver(snapshot, raise_on_error)
        finally:
            self._active = False
            self._state = DispatchState.IDLE

    # --------------- internals

    def _set_state(self, state: DispatchState) -> None:
        self._state = state
        self._transitions.append(state)

    async def _run(self, raise_on_error: bool) -> CycleOutcome:
        now = self._clock.now()

        self._set_state(DispatchState.SWAPPING)
        try:
            snapshot = await self._swapper.swap()
        except StorageError as e:
            if e.path is not None:
                # data left the live file but could not be read back; keep it on disk
                self._trigger.on_cycle_started(now)
                self._ledger.retain(
                    RetainedSnapshot(
                        path=Path(e.path), reason="storage_error", retained_at=now, error=str(e)
                    )
                )
            return self._storage_failed(e, raise_on_error)

        # the cycle has started: commit the rotation baseline and clear the error accumulator
        self._trigger.on_cycle_started(now)

        if snapshot is None:
            self._set_state(DispatchState.COMPLETED)
            self._ledger.record_cycle(CycleResult.NOOP_EMPTY)
            return CycleOutcome(CycleResult.NOOP_EMPTY)

        metrics_registry.snapshot_bytes.labels(self._coord_id).observe(snapshot.size_bytes)
        self._set_state(DispatchState.PARTITIONING)
        return await self._deliver(snapshot, raise_on_error)

    def _partition(self, snapshot: Snapshot) -> List[Part]:
        parts = partition(snapshot.content, self._max_bytes, self._max_lines)
        if len(parts) > 1:
            logger.info(f"Splitting snapshot {snapshot.path.name} into {len(parts)} parts")
        return parts

    async def _deliver(self, snapshot: Snapshot, raise_on_error: bool) -> CycleOutcome:
        parts = self._partition(snapshot)
        total = len(parts)
        delivered = 0
        metadata = {
            **self._metadata,
            "snapshot_path": str(snapshot.path),
            "snapshot_bytes": snapshot.size_bytes,
            "snapshot_created_at": snapshot.created_at,
        }

        self._set_state(DispatchState.DELIVERING)
        for part in parts:
            if not self._rate.allow():
                logger.warning(
                    f"Email rate limit reached ({self._rate.max_per_window} per "
                    f"{self._rate.window_sec:.0f}s). Skipping part {part.label}"
                )
                self._ledger.record_rate_limited()
                self._retain(snapshot, "rate_limited", delivered, total)
                return self._finish(
                    CycleResult.RATE_LIMITED, DispatchState.FAILED, snapshot, total, delivered
                )

            try:
                message = self._renderer.render(part, metadata)
                await self._transport.send(message)
            except Exception as exc:
                logger.error(
                    f"Failed to send email part {part.label}: {type(exc).__name__}: {exc}"
                )
                self._ledger.record_failure(str(exc))
                self._retain(snapshot, "delivery_failed", delivered, total, str(exc))
                outcome = self._finish(
                    CycleResult.DELIVERY_FAILED,
                    DispatchState.FAILED,
                    snapshot,
                    total,
                    delivered,
                    str(exc),
                )
                if raise_on_error:
                    if isinstance(exc, LogMailerError):
                        raise
                    raise DeliveryError(str(exc)) from exc
                return outcome

            delivered += 1
            self._rate.record()
            self._ledger.record_success(self._clock.now())
            metrics_registry.rate_limit_remaining.labels(self._coord_id).set(self._rate.remaining())
            logger.info(f"Sent email part {part.label} from {snapshot.path.name}")

            if part.index < total and self._part_delay > 0:
                await asyncio.sleep(self._part_delay)

        try:
            self._swapper.store.delete(snapshot.path)
            logger.debug(f"Deleted swap file {snapshot.path}")
        except StorageError as e:
            logger.warning(f"Could not delete swap file: {e}")
        self._ledger.release(snapshot.path)
        return self._finish(CycleResult.DELIVERED, DispatchState.COMPLETED, snapshot, total, total)

    def _retain(
        self,
        snapshot: Snapshot,
        reason: str,
        delivered: int,
        total: int,
        error: Optional[str] = None,
    ) -> None:
        self._ledger.retain(
            RetainedSnapshot(
                path=snapshot.path,
                reason=reason,
                retained_at=self._clock.now(),
                parts_delivered=delivered,
                total_parts=total,
                error=error,
            )
        )

    def _finish(
        self,
        result: CycleResult,
        state: DispatchState,
        snapshot: Snapshot,
        total: int,
        delivered: int,
        error: Optional[str] = None,
    ) -> CycleOutcome:
        self._set_state(state)
        self._ledger.record_cycle(result)
        return CycleOutcome(
            result,
            parts_total=total,
            parts_delivered=delivered,
            snapshot_path=snapshot.path,
            error=error,
        )

    def _storage_failed(self, e: StorageError, raise_on_error: bool) -> CycleOutcome:
        logger.error(f"Error during swap: {e}")
        self._ledger.record_storage_error(str(e))
        self._set_state(DispatchState.FAILED)
        self._ledger.record_cycle(CycleResult.STORAGE_FAILED)
        if raise_on_error:
            raise e
        return CycleOutcome(CycleResult.STORAGE_FAILED, error=str(e))
