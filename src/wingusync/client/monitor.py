"""Progress reporting and cooperative cancellation for byte streams.

This module provides:
- ProgressMonitor: capability object supplied by the caller of a transfer
- CancellableMonitor: thread-safe monitor backed by a threading.Event
- TransferCancelled: internal signal raised by monitored streams
- MonitoredReader / MonitoredWriter: adapters that count bytes, poll the
  monitor for cancellation and publish progress at a fixed interval
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from typing import Protocol

# Tunables: notification interval (seconds) and the block size at which
# single-byte operations poll the monitor.
UPLOAD_NOTIFY_INTERVAL = 1.0
UPLOAD_BLOCK_SIZE = 1024
DOWNLOAD_NOTIFY_INTERVAL = 0.5
DOWNLOAD_BLOCK_SIZE = 4096


class TransferCancelled(Exception):
    """The monitor asked the running transfer to stop."""

    def __str__(self) -> str:
        return "the upload/download task has been cancelled"


class ProgressMonitor(ABC):
    """Observer polled by the transfer engine while bytes are streamed."""

    @abstractmethod
    def is_cancelled(self) -> bool:
        """Return True to abort the transfer."""
        ...

    @abstractmethod
    def on_progress_notify(self, bytes_so_far: int) -> None:
        """Receive the cumulative number of bytes transferred."""
        ...

    def on_transfer_size(self, total: int) -> None:  # noqa: B027
        """Receive the expected total size before streaming starts."""


class CancellableMonitor(ProgressMonitor):
    """Monitor that can be cancelled from any thread.

    Usage:
        monitor = CancellableMonitor(on_progress=lambda n: print(n))
        worker = threading.Thread(target=engine.fetch_file, args=(..., monitor))
        ...
        monitor.cancel()
    """

    def __init__(
        self,
        on_progress: Callable[[int], None] | None = None,
        on_total: Callable[[int], None] | None = None,
    ) -> None:
        self._cancelled = threading.Event()
        self._on_progress = on_progress
        self._on_total = on_total
        self.bytes_so_far = 0
        self.total: int | None = None

    def cancel(self) -> None:
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def on_progress_notify(self, bytes_so_far: int) -> None:
        self.bytes_so_far = bytes_so_far
        if self._on_progress:
            self._on_progress(bytes_so_far)

    def on_transfer_size(self, total: int) -> None:
        self.total = total
        if self._on_total:
            self._on_total(total)


class ByteSource(Protocol):
    def read(self, size: int = -1, /) -> bytes: ...


class ByteSink(Protocol):
    def write(self, data: bytes, /) -> int: ...


class _Checkpoint:
    """Byte counter with rate-limited progress notification."""

    def __init__(
        self,
        monitor: ProgressMonitor,
        interval: float,
        block_size: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._monitor = monitor
        self._interval = interval
        self._clock = clock
        self.block_size = block_size
        self.count = 0
        self._next_update = clock() + interval

    def add(self, n: int, single_byte: bool) -> None:
        if n <= 0:
            self.check()
            return
        before = self.count
        self.count += n
        if single_byte:
            # Poll only when crossing a block boundary.
            if before // self.block_size != self.count // self.block_size:
                self.check()
        else:
            self.check()

    def check(self) -> None:
        if self._monitor.is_cancelled():
            raise TransferCancelled()
        now = self._clock()
        if now > self._next_update:
            self._monitor.on_progress_notify(self.count)
            self._next_update = now + self._interval

    def flush(self) -> None:
        """Publish the final count."""
        self._monitor.on_progress_notify(self.count)


class MonitoredReader:
    """Read-side adapter over any object with ``read(size)``."""

    def __init__(
        self,
        source: ByteSource,
        monitor: ProgressMonitor,
        interval: float = UPLOAD_NOTIFY_INTERVAL,
        block_size: int = UPLOAD_BLOCK_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._checkpoint = _Checkpoint(monitor, interval, block_size, clock)

    @property
    def bytes_read(self) -> int:
        return self._checkpoint.count

    def read(self, size: int = -1) -> bytes:
        data = self._source.read(size)
        self._checkpoint.add(len(data), single_byte=size == 1)
        return data

    def iter_chunks(self, chunk_size: int) -> Iterator[bytes]:
        """Yield chunks until the source is exhausted."""
        while True:
            data = self.read(chunk_size)
            if not data:
                return
            yield data

    def finish(self) -> None:
        self._checkpoint.flush()


class MonitoredWriter:
    """Write-side adapter over any object with ``write(data)``."""

    def __init__(
        self,
        sink: ByteSink,
        monitor: ProgressMonitor,
        interval: float = DOWNLOAD_NOTIFY_INTERVAL,
        block_size: int = DOWNLOAD_BLOCK_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sink = sink
        self._checkpoint = _Checkpoint(monitor, interval, block_size, clock)

    @property
    def bytes_written(self) -> int:
        return self._checkpoint.count

    def write(self, data: bytes) -> int:
        written = self._sink.write(data)
        if written is None:
            written = len(data)
        self._checkpoint.add(written, single_byte=len(data) == 1)
        return written

    def finish(self) -> None:
        self._checkpoint.flush()
