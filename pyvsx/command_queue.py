import asyncio
import logging
from asyncio import Task
from collections import deque
from typing import Any, Optional

from pyvsx.connection import ConnectionManager
from pyvsx.lock import ConnectionLock
from pyvsx.router import Transport, TransportRouter

# Minimum delay between commands, the receiver garbles back-to-back commands
DEFAULT_SEND_DELAY = 0.1


class CommandQueue:
    """FIFO of command strings drained at a safe pace, one command at a time.

    Each command goes over the status endpoint or the control link, decided by
    the router when the command reaches the head of the queue. A command the
    endpoint fails to take is sent over the control link in the same position.

    There is no acknowledgement in the protocol, so a command that fails to
    write is logged and dropped rather than retried.
    """

    _command_worker_task: Optional[Task[Any]]

    def __init__(
        self,
        connection: ConnectionManager,
        lock: ConnectionLock,
        router: Optional[TransportRouter] = None,
        send_delay=DEFAULT_SEND_DELAY,
    ):
        self._logger = logging.getLogger(__name__)
        self._connection = connection
        self._lock = lock
        self._router = router
        self._send_delay = send_delay
        self._commands: deque[str] = deque()
        self._command_worker_task = None
        self._command_sequence_number: int = 0

    def __len__(self) -> int:
        return len(self._commands)

    @property
    def pending(self) -> list[str]:
        return list(self._commands)

    @property
    def draining(self) -> bool:
        return self._command_worker_task is not None and not self._command_worker_task.done()

    def _uses_status_endpoint(self, command: str) -> bool:
        return self._router is not None and self._router.route(command) is Transport.STATUS_ENDPOINT

    def _can_send_head(self) -> bool:
        return self._connection.connected or self._uses_status_endpoint(self._commands[0])

    def enqueue(self, command: str):
        """Queue a command. Never blocks; connects first if the link is needed and down."""
        self._commands.append(command)
        self._command_sequence_number += 1
        self._logger.info(
            f"QUEUE: Adding command #{self._command_sequence_number}: {command}, queue size = {len(self._commands)}"
        )
        if self._can_send_head():
            self.start()
        else:
            self._connection.ensure_connected()

    def start(self):
        """Begin draining unless already draining or the head has nowhere to go."""
        if not self._commands or self.draining or not self._can_send_head():
            return
        self._command_worker_task = asyncio.create_task(self._command_worker())

    def clear(self):
        if self._commands:
            self._logger.info(f"QUEUE: Discarding {len(self._commands)} pending commands")
        self._commands.clear()
        if self.draining and self._command_worker_task is not asyncio.current_task():
            self._command_worker_task.cancel()
        self._command_worker_task = None

    async def _command_worker(self):
        """Send queued commands one at a time, pausing between them."""
        while self._commands:
            # Only this worker pops, so the head stays put while HTTP is in flight
            command = self._commands[0]
            async with self._lock.shared():
                if self._uses_status_endpoint(command) and await self._router.send_over_status_endpoint(command):
                    self._commands.popleft()
                elif not self._connection.connected:
                    self._logger.info(f"[WORKER] Link down, keeping {len(self._commands)} commands queued")
                    self._connection.ensure_connected()
                    return
                else:
                    self._commands.popleft()
                    try:
                        self._logger.info(f"SEND: {command.encode()}")
                        self._connection.send(command)
                    except (ConnectionError, OSError, RuntimeError) as e:
                        self._logger.error(f"SEND FAILED: {command} dropped: {e}")
            if self._commands:
                await asyncio.sleep(self._send_delay)
