from __future__ import annotations

import asyncio
from collections import deque
from pathlib import Path
from datetime import datetime
from typing import Callable, Deque, Optional

from loguru import logger

from ..errors import StorageError
from .types import LogStore, Snapshot


class SnapshotSwapper:
    """Detaches the live buffer into a snapshot without blocking or losing writes.

    While a detach is in flight, appends land in a pending side-buffer which is drained into the
    fresh live buffer, in arrival order, as soon as the detach returns. The side-buffer is never
    part of the snapshot.
    """

    def __init__(
        self,
        store: LogStore,
        *,
        now: Callable[[], datetime],
        offload_io: bool = True,
    ):
        self._store = store
        self._now = now
        self._offload_io = offload_io
        self._swapping = False
        self._pending: Deque[bytes] = deque()

    @property
    def swapping(self) -> bool:
        return self._swapping

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def store(self) -> LogStore:
        return self._store

    def append(self, data: bytes) -> None:
        """Synchronous, never raises; storage failures keep the data pending."""
        if self._swapping:
            self._pending.append(data)
            return
        if self._pending:
            self._pending.append(data)
            self._drain_pending()
            return
        try:
            self._store.append(data)
        except StorageError as e:
            logger.error(f"Log store write failed, holding record in memory: {e}")
            self._pending.append(data)

    async def swap(self) -> Optional[Snapshot]:
        """Detach the live buffer; None when a swap is running or there is nothing to send.

        Raises:
            StorageError: the detach failed. When ``path`` is set the live buffer was already
                detached to that file and must be kept; otherwise it is left as it was
        """
        if self._swapping:
            logger.debug("Swap already in progress, skipping")
            return None

        self._swapping = True
        try:
            if self._offload_io:
                detached = await asyncio.to_thread(self._detach)
            else:
                detached = self._detach()
        finally:
            self._swapping = False
            self._drain_pending()

        if detached is None:
            logger.debug("Live log empty, nothing to swap")
            return None
        path, content = detached
        logger.debug(f"Created snapshot {path} ({len(content)} bytes)")
        return Snapshot(
            path=path, size_bytes=len(content), created_at=self._now(), content=content
        )

    def _detach(self) -> Optional[tuple[Path, bytes]]:
        handle = self._store.detach_and_reset()
        if handle is None:
            return None
        try:
            return handle, self._store.read_all(handle)
        except StorageError as e:
            raise StorageError(str(e), path=handle) from e

    def _drain_pending(self) -> None:
        drained = 0
        while self._pending:
            try:
                self._store.append(self._pending[0])
            except StorageError as e:
                logger.error(f"Flushing pending records failed ({len(self._pending)} left): {e}")
                break
            self._pending.popleft()
            drained += 1
        if drained:
            logger.debug(f"Flushed {drained} pending record(s) into live log")
