"""Tests for monitored streams and cancellation."""

from __future__ import annotations

import io

import pytest

from wingusync.client.monitor import (
    CancellableMonitor,
    MonitoredReader,
    MonitoredWriter,
    ProgressMonitor,
    TransferCancelled,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class RecordingMonitor(ProgressMonitor):
    """Monitor recording every call."""

    def __init__(self, cancel_after_checks: int | None = None) -> None:
        self.checks = 0
        self.notified: list[int] = []
        self._cancel_after = cancel_after_checks

    def is_cancelled(self) -> bool:
        self.checks += 1
        return self._cancel_after is not None and self.checks > self._cancel_after

    def on_progress_notify(self, bytes_so_far: int) -> None:
        self.notified.append(bytes_so_far)


class TestMonitoredReader:
    """Tests for MonitoredReader."""

    def test_counts_bytes_and_passes_data(self) -> None:
        """Should return the source data unchanged while counting."""
        monitor = RecordingMonitor()
        reader = MonitoredReader(io.BytesIO(b"x" * 2500), monitor)

        data = b"".join(reader.iter_chunks(1000))

        assert data == b"x" * 2500
        assert reader.bytes_read == 2500

    def test_checks_cancellation_on_every_read(self) -> None:
        """Should poll the monitor on each multi-byte read."""
        monitor = RecordingMonitor()
        reader = MonitoredReader(io.BytesIO(b"x" * 300), monitor)

        reader.read(100)
        reader.read(100)

        assert monitor.checks == 2

    def test_single_byte_reads_check_at_block_boundary(self) -> None:
        """Should poll only when a block boundary is crossed."""
        monitor = RecordingMonitor()
        reader = MonitoredReader(io.BytesIO(b"x" * 3000), monitor, block_size=1024)

        for _ in range(2048):
            reader.read(1)

        assert monitor.checks == 2

    def test_cancel_raises(self) -> None:
        """Should abort with TransferCancelled once the monitor cancels."""
        monitor = RecordingMonitor(cancel_after_checks=1)
        reader = MonitoredReader(io.BytesIO(b"x" * 300), monitor)

        reader.read(100)
        with pytest.raises(TransferCancelled):
            reader.read(100)

    def test_progress_rate_limited(self) -> None:
        """Should notify at most once per interval."""
        clock = FakeClock()
        monitor = RecordingMonitor()
        reader = MonitoredReader(io.BytesIO(b"x" * 1000), monitor, interval=1.0, clock=clock)

        reader.read(100)
        assert monitor.notified == []

        clock.now = 1.5
        reader.read(100)
        reader.read(100)
        assert monitor.notified == [200]

        clock.now = 3.0
        reader.read(100)
        assert monitor.notified == [200, 400]

    def test_finish_publishes_total(self) -> None:
        """Should publish the final count on finish."""
        monitor = RecordingMonitor()
        reader = MonitoredReader(io.BytesIO(b"abc"), monitor)
        reader.read()
        reader.finish()
        assert monitor.notified[-1] == 3


class TestMonitoredWriter:
    """Tests for MonitoredWriter."""

    def test_writes_through(self) -> None:
        """Should write data to the sink and count it."""
        sink = io.BytesIO()
        writer = MonitoredWriter(sink, RecordingMonitor())

        writer.write(b"hello ")
        writer.write(b"world")

        assert sink.getvalue() == b"hello world"
        assert writer.bytes_written == 11

    def test_single_byte_writes_check_at_block_boundary(self) -> None:
        """Should poll only when crossing the block size."""
        monitor = RecordingMonitor()
        writer = MonitoredWriter(io.BytesIO(), monitor, block_size=4096)

        for _ in range(4095):
            writer.write(b"x")
        assert monitor.checks == 0

        writer.write(b"x")
        assert monitor.checks == 1

    def test_cancel_raises(self) -> None:
        """Should abort with TransferCancelled."""
        monitor = CancellableMonitor()
        writer = MonitoredWriter(io.BytesIO(), monitor)
        writer.write(b"abc")

        monitor.cancel()

        with pytest.raises(TransferCancelled):
            writer.write(b"def")


class TestCancellableMonitor:
    """Tests for CancellableMonitor."""

    def test_callbacks(self) -> None:
        """Should forward progress and total to the callbacks."""
        progress: list[int] = []
        totals: list[int] = []
        monitor = CancellableMonitor(on_progress=progress.append, on_total=totals.append)

        monitor.on_transfer_size(100)
        monitor.on_progress_notify(40)

        assert totals == [100]
        assert progress == [40]
        assert monitor.total == 100
        assert monitor.bytes_so_far == 40
        assert monitor.is_cancelled() is False

    def test_cancel(self) -> None:
        """Should report cancellation after cancel()."""
        monitor = CancellableMonitor()
        monitor.cancel()
        assert monitor.is_cancelled() is True
