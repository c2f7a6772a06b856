"""
File-backed log store.

The live file is detached by an atomic rename; a fresh live file is created by the next append.
Detached files keep a ``.swap.<epoch_ms>`` suffix and, when undelivered, stay on disk as the
retained snapshots.
"""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import IO, List, Optional

from loguru import logger

from ..errors import StorageError

SWAP_MARKER = ".swap."


class FileLogStore:
    def __init__(
        self,
        directory: str | Path,
        file_pattern: str = "email_log",
        extension: str = "log",
        *,
        mkdirs: bool = True,
    ):
        self.directory = Path(directory).expanduser()
        self.file_pattern = file_pattern
        self.extension = extension
        self._fh: Optional[IO[bytes]] = None
        if mkdirs:
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError(f"Cannot create log directory {self.directory}: {e}") from e

    @property
    def live_path(self) -> Path:
        return self.directory / f"{self.file_pattern}.{self.extension}"

    # --------------- live file

    def append(self, data: bytes) -> None:
        try:
            fh = self._handle()
            fh.write(data)
            fh.flush()
        except OSError as e:
            self._close()
            raise StorageError(f"Write to {self.live_path} failed: {e}") from e

    def size_bytes(self) -> int:
        try:
            return self.live_path.stat().st_size
        except FileNotFoundError:
            return 0
        except OSError as e:
            raise StorageError(f"Cannot stat {self.live_path}: {e}") from e

    def reset_live(self) -> int:
        """Truncate the live file; returns the number of bytes dropped."""
        size = self.size_bytes()
        self._close()
        if size:
            try:
                with open(self.live_path, "wb"):
                    pass
            except OSError as e:
                raise StorageError(f"Cannot truncate {self.live_path}: {e}") from e
        return size

    # --------------- snapshots

    def detach_and_reset(self) -> Optional[Path]:
        """Rename the live file to a swap file; None when there is nothing to detach."""
        if self.size_bytes() == 0:
            return None
        self._close()
        target = self._swap_path()
        try:
            os.replace(self.live_path, target)
        except OSError as e:
            raise StorageError(f"Cannot detach {self.live_path}: {e}") from e
        logger.debug(f"Detached live log to {target}")
        return target

    def read_all(self, handle: Path) -> bytes:
        try:
            return Path(handle).read_bytes()
        except OSError as e:
            raise StorageError(f"Cannot read snapshot {handle}: {e}") from e

    def delete(self, handle: Path) -> None:
        try:
            Path(handle).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Cannot delete snapshot {handle}: {e}") from e

    def list_detached(self) -> List[Path]:
        """Swap files left on disk, oldest first."""
        prefix = self.live_path.name + SWAP_MARKER
        if not self.directory.exists():
            return []
        found = [p for p in self.directory.iterdir() if p.name.startswith(prefix)]
        return sorted(found, key=lambda p: p.name)

    def close(self) -> None:
        self._close()

    # --------------- internals

    def _close(self) -> None:
        if self._fh is not None:
            try:
                self._fh.close()
            except OSError as e:
                logger.debug(f"Closing {self.live_path} failed: {e}")
            self._fh = None

    def _handle(self) -> IO[bytes]:
        if self._fh is not None and not self._still_live(self._fh):
            # another process renamed or removed the live file under us
            logger.warning(f"Live log {self.live_path} was moved or deleted, reopening")
            self._close()
        if self._fh is None:
            self._fh = open(self.live_path, "ab")
            if self._fh.tell() > 0 and not self._ends_with_newline():
                # a torn write must not fuse with the next record
                self._fh.write(b"\n")
        return self._fh

    def _still_live(self, fh: IO[bytes]) -> bool:
        try:
            on_disk = self.live_path.stat()
        except FileNotFoundError:
            return False
        opened = os.fstat(fh.fileno())
        return (on_disk.st_dev, on_disk.st_ino) == (opened.st_dev, opened.st_ino)

    def _ends_with_newline(self) -> bool:
        with open(self.live_path, "rb") as f:
            f.seek(-1, os.SEEK_END)
            return f.read(1) == b"\n"

    def _swap_path(self) -> Path:
        stamp = int(time.time() * 1000)
        target = self.live_path.with_name(f"{self.live_path.name}{SWAP_MARKER}{stamp}")
        # two swaps inside the same millisecond must not collide
        while target.exists():
            stamp += 1
            target = self.live_path.with_name(f"{self.live_path.name}{SWAP_MARKER}{stamp}")
        return target
