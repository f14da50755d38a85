import asyncio
import contextlib
import os
import sys
import threading
import time

from parallel_upload.constants import DEFAULT_UPDATE_INTERVAL, READ_BLOCK_SIZE
from parallel_upload.utils import format_size, format_speed


class ProgressState:
    """Byte counter shared between a reader and the monitor that renders it."""

    def __init__(self):
        self._value = 0
        self._finished = False
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    @property
    def finished(self) -> bool:
        return self._finished

    def increment(self, n: int):
        with self._lock:
            if not self._finished:
                self._value += n

    def finish(self) -> int:
        """Freeze the counter. Later increments are ignored."""
        with self._lock:
            self._finished = True
            return self._value


class ProgressReader:
    """
    Pass-through wrapper around a binary file object that counts bytes read.

    The bytes handed out and any exception raised are exactly those of the
    inner object; the counter only moves after a successful read.
    """

    def __init__(self, inner, state: ProgressState, block_size: int = READ_BLOCK_SIZE):
        self.inner = inner
        self.state = state
        self.block_size = block_size

    def read(self, size: int = -1) -> bytes:
        chunk = self.inner.read(size)
        if chunk:
            self.state.increment(len(chunk))
        return chunk

    # httpx sizes multipart bodies through these
    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        return self.inner.seek(offset, whence)

    def tell(self) -> int:
        return self.inner.tell()

    def fileno(self) -> int:
        return self.inner.fileno()

    async def aiter_blocks(self):
        """Yield the inner content in fixed-size blocks, for streamed request bodies."""
        while chunk := self.read(self.block_size):
            yield chunk


class ProgressMonitor:
    """Render a single transfer's progress on a fixed interval."""

    def __init__(
        self,
        state: ProgressState,
        total: int,
        label: str = "",
        update_interval: float = DEFAULT_UPDATE_INTERVAL,
        speed_window_size: int = 5,
        stream=None,
    ):
        """
        Initialize the progress monitor.

        Args:
            state: Counter fed by a ProgressReader
            total: Expected number of bytes, used for the percentage
            label: Text shown in front of the bar, usually the file name
            update_interval: Interval in seconds between redraws
            speed_window_size: Number of recent measurements to use for speed calculation
            stream: Output stream, defaults to stdout
        """
        self.state = state
        self.total = total
        self.label = label
        self.update_interval = update_interval
        self.speed_window_size = speed_window_size
        self.stream = stream if stream is not None else sys.stdout
        self.start_time = None
        self.last_update = 0
        self.last_value = 0
        self.current_speed = 0
        self.recent_speeds = []
        self.last_line_length = 0  # Track the length of the last printed line
        self._ticker = None

    def start(self):
        """Start the ticker. Must be called from within a running event loop."""
        self.start_time = time.time()
        self.last_update = self.start_time
        self._ticker = asyncio.create_task(self._tick())

    async def _tick(self):
        while True:
            await asyncio.sleep(self.update_interval)
            self.refresh()

    def refresh(self):
        """Recompute the current speed and redraw the progress line."""
        current_time = time.time()
        value = self.state.value
        time_since_last_update = current_time - self.last_update

        if time_since_last_update > 0:
            recent_speed = (value - self.last_value) / time_since_last_update
            self.recent_speeds.append(recent_speed)

            # Keep only the most recent measurements
            if len(self.recent_speeds) > self.speed_window_size:
                self.recent_speeds = self.recent_speeds[-self.speed_window_size :]

            self.current_speed = sum(self.recent_speeds) / len(self.recent_speeds)

        self.last_value = value
        self.last_update = current_time
        self.display_progress(value)

    def display_progress(self, value: int):
        """Display elapsed time, transferred bytes, percentage and current speed."""
        elapsed = time.time() - self.start_time if self.start_time else 0
        percent = 100 * value / self.total if self.total > 0 else 100
        progress_str = (
            f"[{elapsed:6.1f}s] {self.label} "
            f"{format_size(value)}/{format_size(self.total)} ({percent:.0f}%)"
            f" | {format_speed(self.current_speed)}"
        )

        # Pad with spaces to overwrite any remaining characters from previous line
        if len(progress_str) < self.last_line_length:
            progress_str += " " * (self.last_line_length - len(progress_str))

        self.last_line_length = len(progress_str)

        print(f"\r{progress_str}", end="", file=self.stream, flush=True)

    async def finish(self) -> int:
        """Stop the ticker, freeze the counter and draw the exact final count."""
        if self._ticker is not None:
            self._ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._ticker
            self._ticker = None

        final = self.state.finish()
        self.display_progress(final)
        print(file=self.stream)
        return final
