import asyncio
import logging
import sys

import httpx

from parallel_upload.constants import (
    DEFAULT_PARALLEL_CHUNKS,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_DELAY,
)
from parallel_upload.errors import TransferError
from parallel_upload.structs import (
    ChunkedUploadResult,
    ChunkEnvelope,
    ChunkResult,
    UploadTarget,
)
from parallel_upload.upload import TransferHeaders
from parallel_upload.utils import calculate_chunks, read_range

logger = logging.getLogger(__name__)


class ChunkedUploader:
    """Upload one file as independent JSON chunk envelopes, in parallel."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        url: str,
        chunk_size: int,
        max_concurrent: int = DEFAULT_PARALLEL_CHUNKS,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        headers: TransferHeaders | None = None,
    ):
        """
        Initialize the chunked uploader.

        Args:
            client: Shared httpx.AsyncClient instance
            url: Upload endpoint, the same one used for whole-file uploads
            chunk_size: Size of each chunk in bytes
            max_concurrent: Maximum number of chunk uploads in flight per file
            retries: Extra attempts per chunk after a failure
            retry_delay: Base delay in seconds for exponential backoff
            headers: Headers sent with every chunk request
        """
        if chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {chunk_size}")
        if max_concurrent < 1:
            raise ValueError(f"Chunk concurrency must be at least 1, got {max_concurrent}")

        self.client = client
        self.url = url
        self.chunk_size = chunk_size
        self.max_concurrent = max_concurrent
        self.retries = max(0, retries)
        self.retry_delay = retry_delay
        self.headers = headers if headers is not None else TransferHeaders()

    async def send_envelope(self, envelope: ChunkEnvelope) -> httpx.Response:
        """POST one envelope as JSON. Raises TransferError on a non-2xx status."""
        response = await self.client.post(
            self.url, json=envelope._asdict(), headers=self.headers.to_httpx()
        )
        if not response.is_success:
            raise TransferError(response.status_code, response.text)
        return response

    async def upload_chunk(
        self,
        semaphore: asyncio.Semaphore,
        target: UploadTarget,
        chunk_id: int,
        total_chunks: int,
        offset: int,
        length: int,
    ) -> ChunkResult:
        """
        Read, encode and upload a single chunk with semaphore for concurrency control.

        Failures are retried with exponential backoff; the last one is reported
        and returned in the result instead of raised, so siblings keep going.
        """
        async with semaphore:
            attempts = 0
            while True:
                attempts += 1
                try:
                    payload = await asyncio.to_thread(
                        read_range, target.path, offset, length
                    )
                    envelope = ChunkEnvelope.encode(
                        target.filename, chunk_id, total_chunks, payload
                    )
                    response = await self.send_envelope(envelope)
                except (httpx.HTTPError, TransferError, OSError) as exc:
                    if attempts <= self.retries:
                        delay = self.retry_delay * 2 ** (attempts - 1)
                        logger.debug(
                            "Chunk %d/%d of %s failed (%s), retrying in %.2fs",
                            chunk_id + 1,
                            total_chunks,
                            target.filename,
                            exc,
                            delay,
                        )
                        await asyncio.sleep(delay)
                        continue

                    print(
                        f"Error: chunk {chunk_id + 1}/{total_chunks} of "
                        f"{target.path}: {exc}",
                        file=sys.stderr,
                    )
                    return ChunkResult(
                        chunk_id=chunk_id,
                        bytes_transferred=0,
                        attempts=attempts,
                        error=str(exc),
                    )

                logger.debug(
                    "Chunk %d/%d of %s uploaded: %s",
                    chunk_id + 1,
                    total_chunks,
                    target.filename,
                    response.text,
                )
                return ChunkResult(
                    chunk_id=chunk_id,
                    bytes_transferred=len(payload),
                    attempts=attempts,
                )

    async def upload_all(self, target: UploadTarget) -> ChunkedUploadResult:
        """
        Upload every chunk of a file and wait for all of them.

        Args:
            target: File to upload; its pre-read size decides the chunk layout

        Returns:
            ChunkedUploadResult listing each chunk's outcome
        """
        chunks = calculate_chunks(target.size, self.chunk_size)
        total_chunks = len(chunks)
        logger.debug("Uploading %s in %d chunks", target.path, total_chunks)

        # One permit set per file, so concurrent files do not share a cap
        semaphore = asyncio.Semaphore(self.max_concurrent)

        tasks = []
        for chunk_id, (offset, length) in enumerate(chunks):
            tasks.append(
                self.upload_chunk(
                    semaphore, target, chunk_id, total_chunks, offset, length
                )
            )
        results = await asyncio.gather(*tasks)

        return ChunkedUploadResult(
            filename=target.filename,
            total_chunks=total_chunks,
            chunks=list(results),
        )
