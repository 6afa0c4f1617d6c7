"""Pytest configuration and fixtures."""

import asyncio
import hashlib
import socket
import tempfile
import threading
from pathlib import Path

import pytest
from aiohttp import web

from packsync.config import SyncConfig
from packsync.core.cancel import CancelToken
from packsync.core.progress import ProgressAggregator


def sha1_of(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


class CancelAfter(ProgressAggregator):
    """Cancels the run once `limit` units are done."""

    def __init__(self, token: CancelToken, limit: int):
        super().__init__()
        self.token = token
        self.limit = limit

    def _changed(self):
        if self.snapshot().done >= self.limit:
            self.token.cancel()


def free_port() -> int:
    """A local port with nothing listening on it."""
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class ContentServer:
    """
    Local HTTP server serving a dict of {path: bytes}.

    `delay` holds every response back so concurrent requests overlap;
    `concurrency` records how many requests were open as each one arrived.

    Runs its own event loop on a background thread so engine code can call
    asyncio.run() from the test thread.
    """

    def __init__(self):
        self.files = {}
        self.status_overrides = {}
        self.requests = []
        self.delay = 0.0
        self.in_flight = 0
        self.concurrency = []
        self.port = None
        self._loop = None
        self._runner = None
        self._thread = None

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    async def _handle(self, request):
        path = request.match_info["path"]
        self.requests.append(path)
        self.in_flight += 1
        self.concurrency.append(self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if path in self.status_overrides:
                return web.Response(status=self.status_overrides[path])
            body = self.files.get(path)
            if body is None:
                raise web.HTTPNotFound()
            return web.Response(body=body)
        finally:
            self.in_flight -= 1

    def start(self):
        self._loop = asyncio.new_event_loop()
        ready = threading.Event()

        def run():
            asyncio.set_event_loop(self._loop)
            app = web.Application()
            app.router.add_get("/{path:.*}", self._handle)
            self._runner = web.AppRunner(app)
            self._loop.run_until_complete(self._runner.setup())
            site = web.TCPSite(self._runner, "127.0.0.1", 0)
            self._loop.run_until_complete(site.start())
            self.port = self._runner.addresses[0][1]
            ready.set()
            self._loop.run_forever()

        self._thread = threading.Thread(target=run, daemon=True)
        self._thread.start()
        ready.wait(timeout=10)

    def stop(self):
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=10)
        self._loop.run_until_complete(self._runner.cleanup())
        self._loop.close()


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def content_server():
    server = ContentServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def config(temp_dir, content_server):
    cfg = SyncConfig(
        server_base=content_server.url,
        data_dir=str(temp_dir / "data"),
        initial_workers=2,
        max_workers=4,
    )
    cfg.validate()
    return cfg
