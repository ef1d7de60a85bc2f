"""Background reclamation of time-limited credentials.

Each cycle scans the registry under the shared lock, then handles the
collected ids one by one: drop the publisher (best effort), remove the record.
A record may change between scan and removal (e.g. get re-activated); the
window is bounded by local lock hold times and the worst case is one stale
drop/remove, which is accepted.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable

from loguru import logger

from app.services.nginx_control.control_client import NginxControlClient
from app.utils.app_errors import AppError, AppErrorCode

from .store import StreamStore


class ExpirySweeper:
    def __init__(
        self,
        store: StreamStore,
        control: NginxControlClient,
        interval: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.control = control
        self.interval = interval
        self.clock = clock
        self._task: asyncio.Task | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self, now: int | None = None) -> list[str]:
        """Run one sweep cycle.

        Args:
            now: Sweep time in Unix seconds (defaults to the clock)

        Returns:
            Ids removed from the registry in this cycle
        """
        if now is None:
            now = int(self.clock())

        expired = await self.store.expired_stream_ids(now)
        removed: list[str] = []

        for stream_id in expired:
            try:
                result = await self.control.drop_publisher(stream_id)
                logger.debug(result.describe())
            except AppError as e:
                logger.warning(f"Drop before expiring {stream_id} failed: {e.errmesg}")

            try:
                stream = await self.store.remove_stream(stream_id)
            except AppError as e:
                if e.errcode == AppErrorCode.E_STREAM_NOT_FOUND:
                    logger.info(f"Stream {stream_id} vanished before it could be expired")
                    continue
                if e.errcode != AppErrorCode.E_PERSISTENCE_FAILURE:
                    raise
                # removed in memory, the next successful write catches the file up
                removed.append(stream_id)
                continue

            logger.info(f"Expired stream {stream_id} ({stream.application}/{stream.name})")
            removed.append(stream_id)

        return removed

    async def _loop(self) -> None:
        logger.info(f"Expiry sweeper started, interval={self.interval}s")
        try:
            while True:
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
                if self._stopping.is_set():
                    break
                try:
                    await self.run_once()
                except Exception as e:
                    logger.exception(f"Expiry sweep failed: {e}")
        finally:
            logger.info("Expiry sweeper stopped")

    def start(self) -> None:
        if self.running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name="stream-expiry-sweeper")

    async def stop(self) -> None:
        """Stop the loop. A cycle in progress runs to completion first."""
        if self._task is None:
            return
        self._stopping.set()
        try:
            await self._task
        finally:
            self._task = None
