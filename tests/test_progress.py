"""Tests for the progress observer."""
import asyncio
import io

import pytest

from parallel_upload.progress import ProgressMonitor, ProgressReader, ProgressState


class FailingReader:
    def __init__(self, data: bytes, fail_after: int):
        self.inner = io.BytesIO(data)
        self.fail_after = fail_after

    def read(self, size=-1):
        if self.inner.tell() >= self.fail_after:
            raise OSError("disk went away")
        return self.inner.read(size)


class TestProgressState:
    def test_increment_and_finish(self):
        state = ProgressState()
        state.increment(10)
        state.increment(5)

        assert state.finish() == 15
        assert state.finished

    def test_frozen_after_finish(self):
        state = ProgressState()
        state.increment(3)
        state.finish()
        state.increment(100)

        assert state.value == 3


class TestProgressReader:
    @pytest.mark.parametrize("block_size", [1, 7, 1024, 1 << 20])
    def test_passes_bytes_through_and_counts_exactly(self, sample_bytes, block_size):
        state = ProgressState()
        reader = ProgressReader(io.BytesIO(sample_bytes), state)

        out = b""
        while chunk := reader.read(block_size):
            out += chunk

        assert out == sample_bytes
        assert state.value == len(sample_bytes)

    def test_read_all(self, sample_bytes):
        state = ProgressState()

        assert ProgressReader(io.BytesIO(sample_bytes), state).read() == sample_bytes
        assert state.value == len(sample_bytes)

    def test_errors_propagate_untouched(self, sample_bytes):
        state = ProgressState()
        reader = ProgressReader(FailingReader(sample_bytes, fail_after=100), state)

        assert reader.read(100) == sample_bytes[:100]
        with pytest.raises(OSError, match="disk went away"):
            reader.read(100)
        assert state.value == 100

    def test_forwards_seek_and_tell(self, sample_bytes):
        reader = ProgressReader(io.BytesIO(sample_bytes), ProgressState())

        assert reader.seek(0, io.SEEK_END) == len(sample_bytes)
        assert reader.tell() == len(sample_bytes)

    @pytest.mark.asyncio
    async def test_aiter_blocks(self, sample_bytes):
        state = ProgressState()
        reader = ProgressReader(io.BytesIO(sample_bytes), state, block_size=100)

        blocks = [block async for block in reader.aiter_blocks()]

        assert b"".join(blocks) == sample_bytes
        assert max(len(b) for b in blocks) == 100
        assert state.value == len(sample_bytes)


class TestProgressMonitor:
    @pytest.mark.asyncio
    async def test_redraws_on_interval_and_reports_exact_total(self):
        out = io.StringIO()
        state = ProgressState()
        monitor = ProgressMonitor(
            state, total=2048, label="a.bin", update_interval=0.01, stream=out
        )
        monitor.start()

        state.increment(1024)
        await asyncio.sleep(0.05)
        state.increment(1024)
        final = await monitor.finish()

        assert final == 2048
        assert state.finished
        lines = out.getvalue()
        assert lines.count("\r") >= 2
        assert "2.00 KB/2.00 KB (100%)" in lines
        assert lines.endswith("\n")

    @pytest.mark.asyncio
    async def test_finish_without_reads(self):
        out = io.StringIO()
        monitor = ProgressMonitor(ProgressState(), total=0, stream=out)
        monitor.start()

        assert await monitor.finish() == 0
        assert "(100%)" in out.getvalue()
