"""Pytest fixtures for parallel_upload tests."""
import asyncio
import json

import httpx
import pytest


class FakeServer:
    """In-process upload endpoint backed by httpx.MockTransport."""

    def __init__(self, status=200, delay=0.0, text="https://files.example/dl/1"):
        self.status = status
        self.delay = delay
        self.text = text
        self.requests = []
        self.in_flight = 0
        self.max_in_flight = 0
        # chunk_id -> number of times to answer 500 before succeeding
        self.chunk_failures = {}
        # body substring -> delay in seconds, overriding the default delay
        self.slow = {}

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delay_for(request)
            if delay:
                await self.wait(request, delay)
            return httpx.Response(self.status_for(request), text=self.text)
        finally:
            self.in_flight -= 1

    def delay_for(self, request: httpx.Request) -> float:
        for marker, delay in self.slow.items():
            if marker in request.content:
                return delay
        return self.delay

    async def wait(self, request: httpx.Request, delay: float):
        """Sleep, giving up at the client's read timeout like a real socket would."""
        read_timeout = request.extensions.get("timeout", {}).get("read")
        if read_timeout is not None and delay > read_timeout:
            await asyncio.sleep(read_timeout)
            raise httpx.ReadTimeout("timed out", request=request)
        await asyncio.sleep(delay)

    def status_for(self, request: httpx.Request) -> int:
        if request.headers.get("content-type") == "application/json":
            chunk_id = json.loads(request.content)["chunk_id"]
            remaining = self.chunk_failures.get(chunk_id, 0)
            if remaining:
                self.chunk_failures[chunk_id] = remaining - 1
                return 500
        return self.status

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def envelopes(self) -> list[dict]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.headers.get("content-type") == "application/json"
        ]


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def make_file(tmp_path):
    """Create a file under tmp_path with the given content."""

    def _make(name: str, content: bytes):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    return _make


@pytest.fixture
def sample_bytes():
    """2.5 KiB of non-repeating-looking data."""
    return bytes(range(256)) * 10
