"""
EmailLogPipeline: capture log records into a durable file and mail them out in batches.

Producers call ``append()`` (sync, non-blocking, never raises). Trigger decisions schedule a
dispatch cycle as an asyncio task on the pipeline's loop; the dispatcher guarantees that only
one cycle runs at a time.
"""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Optional

from loguru import logger

from ..errors import LogMailerError
from ..models import LogRecord, Severity
from ..utils import hostname
from .clock import RotationClock, RotationCycle, SystemClock
from .dispatcher import Dispatcher
from .ledger import DispatchLedger, PipelineStatistics
from .rate import SlidingWindowRateLimiter
from .store import FileLogStore
from .swapper import SnapshotSwapper
from .trigger import TriggerPolicy
from .types import (
    Clock,
    CycleOutcome,
    CycleResult,
    LogStore,
    Renderer,
    RetainedSnapshot,
    Transport,
    TriggerDecision,
)

if TYPE_CHECKING:
    from ..config import MailerSettings


class EmailLogPipeline:
    """Owns every piece of mutable state of the capture/dispatch pipeline.

    Example:
        pipeline = EmailLogPipeline.from_settings(load_settings())
        async with pipeline:
            pipeline.append(LogRecord(level="ERROR", message="disk full"))
    """

    def __init__(
        self,
        *,
        store: LogStore,
        renderer: Renderer,
        transport: Transport,
        rotation_cycle: RotationCycle | str = RotationCycle.HOURLY,
        clock: Optional[Clock] = None,
        min_level: Severity = Severity.TRACE,
        error_level: Severity = Severity.ERROR,
        immediate_error_threshold: int = 10,
        send_immediately_on_error: bool = True,
        max_bytes_per_part: int = 8 * 1024 * 1024,
        max_lines_per_part: Optional[int] = 5000,
        max_per_window: int = 20,
        rate_window_sec: float = 3600.0,
        part_delay_sec: float = 2.0,
        offload_io: bool = True,
        metadata: Optional[Mapping[str, Any]] = None,
        coord_id: str = "default",
    ):
        self._clock = clock or SystemClock()
        self._store = store
        self._min_level = Severity.parse(min_level)
        self._coord_id = coord_id

        self._rotation = RotationClock(rotation_cycle, baseline=self._clock.now())
        self._trigger = TriggerPolicy(
            self._rotation,
            error_level=Severity.parse(error_level),
            immediate_error_threshold=immediate_error_threshold,
            send_immediately_on_error=send_immediately_on_error,
        )
        self._rate = SlidingWindowRateLimiter(
            max_per_window, rate_window_sec, time_fn=self._clock.monotonic
        )
        self._ledger = DispatchLedger(coord_id)
        self._swapper = SnapshotSwapper(store, now=self._clock.now, offload_io=offload_io)
        self._dispatcher = Dispatcher(
            swapper=self._swapper,
            renderer=renderer,
            transport=transport,
            rate_limiter=self._rate,
            trigger=self._trigger,
            ledger=self._ledger,
            clock=self._clock,
            max_bytes_per_part=max_bytes_per_part,
            max_lines_per_part=max_lines_per_part,
            part_delay_sec=part_delay_sec,
            metadata={
                "rotation_cycle": self._rotation.cycle.name,
                "hostname": hostname(),
                **(metadata or {}),
            },
            coord_id=coord_id,
        )

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_thread: Optional[int] = None
        self._task: Optional[asyncio.Task[CycleOutcome]] = None
        self._dispatch_requested = False
        self._closed = False

    # --------------- construction from settings

    @classmethod
    def from_settings(
        cls,
        settings: "MailerSettings",
        *,
        transport: Optional[Transport] = None,
        clock: Optional[Clock] = None,
        **kwargs: Any,
    ) -> "EmailLogPipeline":
        from ..mail.render import MessageRenderer
        from ..mail.transport import DryRunTransport, SmtpTransport

        store = FileLogStore(settings.log_dir, settings.file_pattern, settings.file_extension)
        if settings.delete_log_on_restart:
            dropped = store.reset_live()
            if dropped:
                logger.info(f"Deleted existing log file on restart ({dropped} bytes)")
        if transport is None:
            if settings.dry_run:
                transport = DryRunTransport()
            else:
                transport = SmtpTransport(settings.smtp_config())

        metadata = {"app_version": settings.app_version} if settings.app_version else {}
        pipeline = cls(
            store=store,
            renderer=MessageRenderer(settings.render_options()),
            transport=transport,
            rotation_cycle=settings.rotation_cycle,
            clock=clock,
            min_level=settings.min_level,
            error_level=settings.error_level,
            immediate_error_threshold=settings.immediate_error_threshold,
            send_immediately_on_error=settings.send_immediately_on_error,
            max_bytes_per_part=settings.max_email_size_bytes,
            max_lines_per_part=settings.max_lines_per_email,
            max_per_window=settings.max_emails_per_hour,
            rate_window_sec=settings.rate_limit_window_sec,
            part_delay_sec=settings.part_delay_sec,
            metadata=metadata,
            **kwargs,
        )
        logger.info(
            f"EmailLogPipeline initialized: smtp {settings.smtp_host}:{settings.smtp_port}, "
            f"to {', '.join(settings.to_emails)}, rotation {settings.rotation_cycle.name}, "
            f"path {store.live_path}"
        )
        return pipeline

    # --------------- lifecycle

    async def start(self) -> None:
        """Bind to the running loop; run any dispatch requested before start."""
        self._loop = asyncio.get_running_loop()
        self._loop_thread = threading.get_ident()
        self._closed = False
        self._adopt_leftover_snapshots()
        if self._dispatch_requested:
            self._schedule_dispatch()

    async def stop(self, *, flush: bool = True) -> None:
        """Wait for the in-flight cycle and, optionally, send what is still buffered."""
        # no new records or follow-up cycles once shutdown begins
        self._closed = True
        if flush:
            try:
                await self.flush()
            except LogMailerError as e:
                logger.error(f"Final flush failed, records stay on disk: {e}")
        elif self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        if isinstance(self._store, FileLogStore):
            self._store.close()

    async def __aenter__(self) -> "EmailLogPipeline":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # --------------- producer API

    def append(self, record: LogRecord) -> None:
        """Capture a record; may schedule a dispatch cycle but never waits for it."""
        if self._closed or record.level < self._min_level:
            return
        loop = self._loop
        if (
            loop is not None
            and self._loop_thread != threading.get_ident()
            and not loop.is_closed()
        ):
            # hand over to the owning loop so ordering and ownership stay single-threaded
            loop.call_soon_threadsafe(self._append_local, record)
            return
        self._append_local(record)

    def _append_local(self, record: LogRecord) -> None:
        try:
            data = record.to_line()
        except ValueError as e:
            logger.error(f"Dropping unserializable log record: {e}")
            return
        self._swapper.append(data)
        if self._trigger.on_record(record, self._clock.now()) == TriggerDecision.DISPATCH_NOW:
            self._request_dispatch()

    # --------------- manual triggers

    async def send_now(self) -> CycleOutcome:
        """Run one cycle immediately; delivery/storage errors propagate to the caller."""
        logger.info("Manual email send triggered")
        try:
            return await self._dispatcher.run_cycle(raise_on_error=True)
        finally:
            self._redispatch_later()

    async def flush(self) -> CycleOutcome:
        """Let any in-flight cycle finish, then send whatever is buffered."""
        if self._task is not None and not self._task.done():
            await asyncio.gather(self._task, return_exceptions=True)
        self._dispatch_requested = False
        return await self.send_now()

    async def resend_retained(self, path: str | Path) -> CycleOutcome:
        """Redeliver a retained snapshot (operator recovery)."""
        try:
            return await self._dispatcher.resend(Path(path))
        finally:
            self._redispatch_later()

    async def wait_idle(self) -> None:
        """Wait until no scheduled cycle is pending or running."""
        while self._task is not None and not self._task.done():
            await asyncio.gather(self._task, return_exceptions=True)

    # --------------- introspection

    def get_statistics(self) -> PipelineStatistics:
        now = self._clock.now()
        latest = self._ledger.latest_retained
        return PipelineStatistics(
            successful_sends=self._ledger.successful_sends,
            failed_sends=self._ledger.failed_sends,
            rate_limited_skips=self._ledger.rate_limited_skips,
            storage_errors=self._ledger.storage_errors,
            rate_limit_remaining=self._rate.remaining(),
            error_buffer_size=len(self._trigger.errors),
            state=self._dispatcher.state.value,
            current_log_file=str(getattr(self._store, "live_path", "")) or None,
            last_send_time=self._ledger.last_send_time,
            last_error=self._ledger.last_error,
            last_rotation_check=self._rotation.baseline,
            next_send_time=self._rotation.next_send_time(now),
            retained_snapshot_path=latest.path if latest else None,
            retained_snapshots=[r.path for r in self._ledger.retained],
        )

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def retained(self) -> tuple[RetainedSnapshot, ...]:
        return self._ledger.retained

    @property
    def pending_task(self) -> Optional[asyncio.Task[CycleOutcome]]:
        return self._task

    # --------------- internals

    def _request_dispatch(self) -> None:
        self._dispatch_requested = True
        if self._loop is None:
            logger.debug("Dispatch requested before start(); deferring")
            return
        self._schedule_dispatch()

    def _schedule_dispatch(self) -> None:
        if self._task is not None and not self._task.done():
            logger.debug("Dispatch already scheduled, skipping duplicate request")
            return
        if self._dispatcher.busy:
            logger.debug("Dispatch cycle already running, skipping duplicate request")
            return
        self._dispatch_requested = False
        self._task = self._loop.create_task(self._background_cycle())

    async def _background_cycle(self) -> CycleOutcome:
        try:
            return await self._dispatcher.run_cycle(raise_on_error=False)
        except Exception as exc:
            # errors never reach the producer that triggered the cycle
            logger.error(f"Failed to send email: {type(exc).__name__}: {exc}")
            return CycleOutcome(CycleResult.DELIVERY_FAILED, error=str(exc))
        finally:
            self._redispatch_later()

    def _redispatch_later(self) -> None:
        """Honor a trigger that fired while a cycle was running, once that cycle is over."""
        if self._loop is None or self._closed:
            return
        self._loop.call_soon(self._redispatch_if_requested)

    def _redispatch_if_requested(self) -> None:
        if self._dispatch_requested and not self._closed:
            logger.debug("Running dispatch requested during the previous cycle")
            self._schedule_dispatch()

    def _adopt_leftover_snapshots(self) -> None:
        lister = getattr(self._store, "list_detached", None)
        if lister is None:
            return
        for path in lister():
            self._ledger.retain(
                RetainedSnapshot(
                    path=path,
                    reason="left_over_from_previous_run",
                    retained_at=self._clock.now(),
                )
            )
