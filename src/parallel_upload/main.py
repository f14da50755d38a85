"""
Upload coordinator.

Drives one or many file uploads on a single event loop with a shared httpx
client, then aggregates per-file outcomes into run statistics.
"""

import asyncio
import logging
import sys
import time

import httpx

from parallel_upload.chunked import ChunkedUploader
from parallel_upload.errors import TransferError
from parallel_upload.progress import ProgressMonitor, ProgressState
from parallel_upload.structs import (
    AggregateStats,
    FileUploadResult,
    RunOptions,
    UploadMode,
    UploadTarget,
)
from parallel_upload.upload import AsyncUploader, TransferHeaders
from parallel_upload.utils import format_size, format_speed

logger = logging.getLogger(__name__)


def _fail(path, target, start_time, exc) -> FileUploadResult:
    elapsed = time.time() - start_time
    print(f"Error: [{elapsed:.2f}s][{path}] {exc}", file=sys.stderr)
    return FileUploadResult(
        target=target, ok=False, time_taken=elapsed, error=str(exc)
    )


async def handle_upload_file(
    uploader: AsyncUploader, path: str, progress: bool = False
) -> FileUploadResult:
    """
    Upload one file in a single request, optionally rendering a progress bar.

    Errors are reported and returned, never raised.
    """
    start_time = time.time()
    try:
        target = UploadTarget.from_path(path)
    except OSError as exc:
        return _fail(path, None, start_time, exc)

    size = format_size(target.size)
    print(f"Starting upload of {target.path} [{size}]")

    state = monitor = None
    if progress:
        state = ProgressState()
        monitor = ProgressMonitor(state, target.size, label=target.filename)
        monitor.start()

    try:
        response = await uploader.upload_file(target, progress=state)
    except (httpx.HTTPError, TransferError, OSError) as exc:
        failure = exc
    else:
        failure = None
    finally:
        # Close the bar before anything else is printed
        if monitor is not None:
            await monitor.finish()

    if failure is not None:
        return _fail(target.path, target, start_time, failure)

    elapsed = time.time() - start_time
    print(f"[{elapsed:.2f}s][{target.path}][{size}] - Download: {response.text}")
    return FileUploadResult(
        target=target, ok=True, time_taken=elapsed, response_text=response.text
    )


async def handle_chunked_upload(
    chunked_uploader: ChunkedUploader, path: str
) -> FileUploadResult:
    """Upload one file as chunks and report how many of them failed, if any."""
    start_time = time.time()
    try:
        target = UploadTarget.from_path(path)
    except OSError as exc:
        return _fail(path, None, start_time, exc)

    size = format_size(target.size)
    print(f"Starting upload of {target.path} [{size}]")

    result = await chunked_uploader.upload_all(target)
    elapsed = time.time() - start_time

    if not result.ok:
        message = f"{len(result.failed_chunks)}/{result.total_chunks} chunks failed"
        print(f"Error: [{elapsed:.2f}s][{target.path}] {message}", file=sys.stderr)
        return FileUploadResult(
            target=target, ok=False, time_taken=elapsed, error=message
        )

    print(f"[{elapsed:.2f}s][{target.path}][{size}] - {result.total_chunks} chunks")
    return FileUploadResult(target=target, ok=True, time_taken=elapsed)


async def _limited(semaphore: asyncio.Semaphore | None, coro):
    if semaphore is None:
        return await coro
    async with semaphore:
        return await coro


async def run_uploads(
    paths: list[str],
    url: str,
    mode: UploadMode = UploadMode.MULTIPART,
    options: RunOptions = RunOptions(),
    headers: TransferHeaders | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AggregateStats:
    """
    Upload every path and aggregate the outcomes.

    Args:
        paths: Resolved file paths
        url: Upload endpoint
        mode: Whole-file body shape (ignored in chunked mode)
        options: Execution policy and limits
        headers: Headers sent with every request
        transport: Optional httpx transport, mainly for tests

    Returns:
        AggregateStats for the whole run
    """
    timeout = httpx.Timeout(options.timeout or None)
    client_kwargs = {"timeout": timeout, "follow_redirects": True}
    if transport is not None:
        client_kwargs["transport"] = transport

    start_time = time.time()

    async with httpx.AsyncClient(**client_kwargs) as client:
        uploader = AsyncUploader(client=client, url=url, mode=mode, headers=headers)

        if options.progress:
            # Terminal progress bars do not mix, so files go one at a time
            results = []
            for path in paths:
                results.append(await handle_upload_file(uploader, path, progress=True))
        else:
            semaphore = None
            if options.parallel_files > 0:
                semaphore = asyncio.Semaphore(options.parallel_files)

            if options.chunk_size:
                chunked_uploader = ChunkedUploader(
                    client=client,
                    url=url,
                    chunk_size=options.chunk_size,
                    max_concurrent=options.parallel_chunks,
                    retries=options.retries,
                    retry_delay=options.retry_delay,
                    headers=headers,
                )
                tasks = [
                    _limited(semaphore, handle_chunked_upload(chunked_uploader, path))
                    for path in paths
                ]
            else:
                tasks = [
                    _limited(semaphore, handle_upload_file(uploader, path))
                    for path in paths
                ]

            results = await asyncio.gather(*tasks)

    total_time = time.time() - start_time
    return enrich_results(results, total_time)


def enrich_results(results: list[FileUploadResult], total_time: float) -> AggregateStats:
    """
    Aggregate per-file results.

    Only successful files count toward total_bytes and the average speed;
    attempted_bytes also includes files whose upload failed.
    """
    uploaded = [r for r in results if r.ok]
    total_bytes = sum(r.target.size for r in uploaded)
    attempted_bytes = sum(r.target.size for r in results if r.target is not None)
    average_speed = total_bytes / total_time if total_time > 0 else 0.0

    return AggregateStats(
        total_files=len(results),
        uploaded_files=len(uploaded),
        failed_files=len(results) - len(uploaded),
        total_bytes=total_bytes,
        attempted_bytes=attempted_bytes,
        total_time=total_time,
        average_speed=average_speed,
    )


def display_final_stats(stats: AggregateStats):
    """Print the run summary."""
    print(f"\nTotal time: {stats.total_time:.2f}s")
    print(f"Total size: {format_size(stats.total_bytes)}")
    print(f"Average speed: {format_speed(stats.average_speed)}")
    print(f"Files: {stats.uploaded_files} uploaded, {stats.failed_files} failed")
    if stats.attempted_bytes != stats.total_bytes:
        print(f"Attempted size: {format_size(stats.attempted_bytes)}")
