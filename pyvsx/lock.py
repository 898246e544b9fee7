import asyncio
from contextlib import asynccontextmanager


class ConnectionLock:
    """Shared/exclusive lock between connecting and sending.

    Connecting (and the status probe) hold it exclusively, every command
    transmission holds it shared. A waiting exclusive holder blocks new shared
    holders, so a reconnect is not starved by a busy queue.
    """

    def __init__(self):
        self._condition = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @property
    def exclusive_held(self) -> bool:
        return self._writer

    @property
    def shared_count(self) -> int:
        return self._readers

    @asynccontextmanager
    async def exclusive(self):
        async with self._condition:
            self._writers_waiting += 1
            try:
                await self._condition.wait_for(lambda: not self._writer and self._readers == 0)
            except asyncio.CancelledError:
                # Let the shared holders we were blocking through
                self._writers_waiting -= 1
                self._condition.notify_all()
                raise
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            async with self._condition:
                self._writer = False
                self._condition.notify_all()

    @asynccontextmanager
    async def shared(self):
        async with self._condition:
            await self._condition.wait_for(lambda: not self._writer and self._writers_waiting == 0)
            self._readers += 1
        try:
            yield
        finally:
            async with self._condition:
                self._readers -= 1
                self._condition.notify_all()
