import base64
import os
from enum import Enum
from typing import NamedTuple

from parallel_upload.constants import (
    DEFAULT_PARALLEL_CHUNKS,
    DEFAULT_PARALLEL_FILES,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
    MODE_BINARY,
    MODE_MULTIPART,
)


class UploadMode(str, Enum):
    MULTIPART = MODE_MULTIPART
    BINARY = MODE_BINARY

    def __str__(self) -> str:
        return self.value


class UploadTarget(NamedTuple):
    path: str
    size: int
    filename: str

    @classmethod
    def from_path(cls, path) -> "UploadTarget":
        """Stat the file once; the size is authoritative for the rest of the run."""
        path = os.path.abspath(path)
        return cls(path=path, size=os.stat(path).st_size, filename=os.path.basename(path))


class ChunkEnvelope(NamedTuple):
    filename: str
    chunk_id: int
    total_chunks: int
    data: str

    @classmethod
    def encode(
        cls, filename: str, chunk_id: int, total_chunks: int, payload: bytes
    ) -> "ChunkEnvelope":
        return cls(
            filename=filename,
            chunk_id=chunk_id,
            total_chunks=total_chunks,
            data=base64.b64encode(payload).decode("ascii"),
        )


class ChunkResult(NamedTuple):
    chunk_id: int
    bytes_transferred: int
    attempts: int
    error: str | None = None


class ChunkedUploadResult(NamedTuple):
    filename: str
    total_chunks: int
    chunks: list[ChunkResult]

    @property
    def failed_chunks(self) -> list[ChunkResult]:
        return [c for c in self.chunks if c.error is not None]

    @property
    def ok(self) -> bool:
        return not self.failed_chunks and len(self.chunks) == self.total_chunks


class FileUploadResult(NamedTuple):
    target: UploadTarget | None
    ok: bool
    time_taken: float
    response_text: str = ""
    error: str | None = None


class AggregateStats(NamedTuple):
    total_files: int
    uploaded_files: int
    failed_files: int
    total_bytes: int
    attempted_bytes: int
    total_time: float
    average_speed: float


class RunOptions(NamedTuple):
    progress: bool = False
    chunk_size: int | None = None
    parallel_chunks: int = DEFAULT_PARALLEL_CHUNKS
    parallel_files: int = DEFAULT_PARALLEL_FILES
    retries: int = DEFAULT_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY
    timeout: float = DEFAULT_TIMEOUT
