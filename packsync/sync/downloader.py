"""
File downloader for Pack Sync.

Fetches download entries concurrently with asyncio + aiohttp. The worker
count follows an AdaptiveConcurrency policy, progress flows into a shared
ProgressSink, and the first failing entry fails the whole batch.
"""

import asyncio
import logging
import os
import random
import ssl
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Sequence

import aiohttp
import certifi

from ..config import SyncConfig
from ..core.cancel import CancelToken
from ..core.errors import (
    IntegrityError,
    LocalIOError,
    OfflineError,
    SyncCancelled,
    SyncError,
    TransientNetworkError,
)
from ..core.progress import NullProgress, ProgressSink
from .checksum import hash_file
from .concurrency import AdaptiveConcurrency
from .entries import DownloadEntry

logger = logging.getLogger(__name__)


def get_certifi_path() -> str:
    """Get path to certifi CA bundle, handling PyInstaller bundles."""
    if getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS"):
        bundled_cert = os.path.join(sys._MEIPASS, "certifi", "cacert.pem")
        if os.path.exists(bundled_cert):
            return bundled_cert
    return certifi.where()


@contextmanager
def translate_errors(url: str, path: Optional[Path] = None):
    """Map aiohttp and filesystem errors for one transfer onto SyncError types."""
    try:
        yield
    except aiohttp.ClientConnectorError as e:
        raise OfflineError(f"Could not connect for {url}: {e}") from e
    except aiohttp.ClientResponseError as e:
        raise TransientNetworkError(f"HTTP {e.status} for {url}", url, e.status) from e
    except aiohttp.ClientError as e:
        raise TransientNetworkError(f"Network error for {url}: {e}", url) from e
    except asyncio.TimeoutError as e:
        raise TransientNetworkError(f"Timed out downloading {url}", url) from e
    except OSError as e:
        raise LocalIOError(f"Could not write {path or url}: {e}", path) from e


class _FetchRun:
    """Mutable bookkeeping for one fetch() call."""

    def __init__(self, entries: List[DownloadEntry], policy: AdaptiveConcurrency, count_bytes: bool):
        self.queue: asyncio.Queue = asyncio.Queue()
        for entry in entries:
            self.queue.put_nowait(entry)
        self.policy = policy
        self.count_bytes = count_bytes
        self.active = 0
        self.bytes_done = 0
        self.completed = 0


class FileDownloader:
    """
    Async file downloader with adaptive concurrency.

    Args:
        min_workers / max_workers / initial_workers: Worker pool bounds
        timeout: (connect, read) timeout in seconds per request
        chunk_size: Bytes per streamed chunk
        verify_downloads: Re-hash files with a known digest after writing
        sample_interval: Seconds between throughput samples
        seed: Seed for the pre-dispatch shuffle (None for OS randomness)
    """

    def __init__(
        self,
        min_workers: int = 1,
        max_workers: int = 32,
        initial_workers: int = 4,
        timeout: tuple = (10, 60),
        chunk_size: int = 32768,
        verify_downloads: bool = True,
        sample_interval: float = 1.0,
        seed: Optional[int] = None,
    ):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.initial_workers = initial_workers
        self.timeout = aiohttp.ClientTimeout(connect=timeout[0], sock_read=timeout[1])
        self.chunk_size = chunk_size
        self.verify_downloads = verify_downloads
        self.sample_interval = sample_interval
        self._rng = random.Random(seed)

    @classmethod
    def from_config(cls, config: SyncConfig, **kwargs) -> "FileDownloader":
        return cls(
            min_workers=config.min_workers,
            max_workers=config.max_workers,
            initial_workers=config.initial_workers,
            timeout=(config.connect_timeout, config.read_timeout),
            chunk_size=config.chunk_size,
            verify_downloads=config.verify_downloads,
            **kwargs,
        )

    def _make_session(self, limit: int) -> aiohttp.ClientSession:
        ssl_context = ssl.create_default_context(cafile=get_certifi_path())
        connector = aiohttp.TCPConnector(
            limit=limit,
            ttl_dns_cache=300,
            keepalive_timeout=30,
            ssl=ssl_context,
        )
        return aiohttp.ClientSession(timeout=self.timeout, connector=connector)

    def fetch(
        self,
        entries: Sequence[DownloadEntry],
        progress: Optional[ProgressSink] = None,
        cancel: Optional[CancelToken] = None,
    ):
        """
        Download every entry. Blocking wrapper around fetch_async().

        Raises:
            SyncCancelled: the cancel token fired
            SyncError: any entry failed (files already written stay on disk)
        """
        asyncio.run(self.fetch_async(entries, progress, cancel))

    async def fetch_async(
        self,
        entries: Sequence[DownloadEntry],
        progress: Optional[ProgressSink] = None,
        cancel: Optional[CancelToken] = None,
    ):
        progress = progress or NullProgress()
        cancel = cancel or CancelToken()
        entries = list(entries)
        if not entries:
            return

        # Spread load across origin servers instead of every run hitting
        # them in the same order
        self._rng.shuffle(entries)

        count_bytes = all(e.size > 0 for e in entries)
        if count_bytes:
            progress.set_length(sum(e.size for e in entries))
        else:
            progress.set_length(len(entries))

        limit = min(self.max_workers, len(entries))
        policy = AdaptiveConcurrency(
            initial=min(self.initial_workers, limit),
            minimum=min(self.min_workers, limit),
            maximum=limit,
        )
        run = _FetchRun(entries, policy, count_bytes)
        logger.info("Downloading %d files with up to %d workers", len(entries), limit)

        async with self._make_session(limit) as session:
            await self._run_workers(session, run, progress, cancel)

        logger.info("Downloaded %d files (%d bytes)", run.completed, run.bytes_done)

    async def _run_workers(
        self,
        session: aiohttp.ClientSession,
        run: _FetchRun,
        progress: ProgressSink,
        cancel: CancelToken,
    ):
        workers = set()
        error: Optional[BaseException] = None
        last_sample = time.monotonic()
        last_bytes = 0

        def spawn():
            while run.active < run.policy.workers and not run.queue.empty():
                run.active += 1
                workers.add(asyncio.create_task(self._worker(session, run, progress, cancel)))

        spawn()
        try:
            while workers:
                done, _ = await asyncio.wait(
                    workers, timeout=self.sample_interval, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    workers.discard(task)
                    exc = task.exception()
                    if exc is not None and error is None:
                        error = exc

                if error is not None or cancel.cancelled:
                    break

                now = time.monotonic()
                if now - last_sample >= self.sample_interval:
                    throughput = (run.bytes_done - last_bytes) / (now - last_sample)
                    target = run.policy.update(throughput)
                    logger.debug("Throughput %.0f B/s, workers -> %d", throughput, target)
                    last_sample, last_bytes = now, run.bytes_done

                spawn()
        finally:
            for task in workers:
                task.cancel()
            if workers:
                await asyncio.gather(*workers, return_exceptions=True)

        if isinstance(error, SyncCancelled) or cancel.cancelled:
            raise SyncCancelled()
        if error is not None:
            if isinstance(error, SyncError):
                raise error
            raise SyncError(f"Download failed: {error}") from error

    async def _worker(
        self,
        session: aiohttp.ClientSession,
        run: _FetchRun,
        progress: ProgressSink,
        cancel: CancelToken,
    ):
        try:
            while True:
                # Checked before every entry: nothing new starts after cancel
                if cancel.cancelled:
                    return
                # Retire when the policy shrank the pool
                if run.active > run.policy.workers:
                    return
                try:
                    entry = run.queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                await self._fetch_entry(session, entry, run, progress, cancel)
        finally:
            run.active -= 1

    async def _fetch_entry(
        self,
        session: aiohttp.ClientSession,
        entry: DownloadEntry,
        run: _FetchRun,
        progress: ProgressSink,
        cancel: CancelToken,
    ):
        written = 0
        with translate_errors(entry.url, entry.path):
            async with session.get(entry.url) as response:
                response.raise_for_status()
                entry.path.parent.mkdir(parents=True, exist_ok=True)
                with open(entry.path, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.chunk_size):
                        cancel.raise_if_cancelled()
                        f.write(chunk)
                        written += len(chunk)
                        run.bytes_done += len(chunk)
                        if run.count_bytes:
                            progress.increment(len(chunk))

        if self.verify_downloads and entry.sha1:
            actual = await asyncio.get_running_loop().run_in_executor(None, hash_file, entry.path)
            if actual != entry.sha1:
                raise IntegrityError(entry.path, entry.sha1, actual)

        run.completed += 1
        if not run.count_bytes:
            progress.increment(1)
        logger.debug("OK: %s (%d bytes)", entry.path.name, written)

    async def download_to_memory_async(
        self,
        url: str,
        progress: Optional[ProgressSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> bytes:
        """Fetch a small document (version manifests, indexes) into memory."""
        progress = progress or NullProgress()
        cancel = cancel or CancelToken()
        cancel.raise_if_cancelled()
        buffer = bytearray()
        async with self._make_session(1) as session:
            with translate_errors(url):
                async with session.get(url) as response:
                    response.raise_for_status()
                    progress.set_length(response.content_length or 0)
                    async for chunk in response.content.iter_chunked(self.chunk_size):
                        cancel.raise_if_cancelled()
                        buffer.extend(chunk)
                        progress.increment(len(chunk))
        progress.finish()
        return bytes(buffer)

    def download_to_memory(
        self,
        url: str,
        progress: Optional[ProgressSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> bytes:
        """Blocking wrapper around download_to_memory_async()."""
        return asyncio.run(self.download_to_memory_async(url, progress, cancel))
