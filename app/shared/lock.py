import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger


class ReadWriteLock:
    """Process-local readers/writer lock (async).

    Any number of readers may hold the lock together; a writer holds it alone.
    Waiting writers block new readers so a steady stream of reads cannot
    starve a mutation.
    """

    def __init__(self, name: str = "rwlock"):
        self.name = name
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def write_locked(self) -> bool:
        return self._writer

    async def acquire_read(self) -> None:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._writers_waiting == 0)
            self._readers += 1

    async def release_read(self) -> None:
        async with self._cond:
            if self._readers <= 0:
                raise RuntimeError(f"{self.name}: release_read without a reader")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    async def acquire_write(self) -> None:
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            except asyncio.CancelledError:
                self._writers_waiting -= 1
                # readers may be parked behind this writer
                self._cond.notify_all()
                raise
            self._writers_waiting -= 1
            self._writer = True

    async def release_write(self) -> None:
        async with self._cond:
            if not self._writer:
                raise RuntimeError(f"{self.name}: release_write without a writer")
            self._writer = False
            self._cond.notify_all()

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        """Shared scope."""
        await self.acquire_read()
        try:
            yield
        finally:
            await self.release_read()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        """Exclusive scope."""
        await self.acquire_write()
        logger.trace("Acquired write lock: {}", self.name)
        try:
            yield
        finally:
            await self.release_write()
            logger.trace("Released write lock: {}", self.name)
