import asyncio
import logging
from asyncio import Task
from enum import Enum
from typing import Any, Callable, Optional

from pyvsx.listener import AVRListener
from pyvsx.lock import ConnectionLock
from pyvsx.protocol import AVRProtocol

DEFAULT_PORT = 23
DEFAULT_RECONNECT_TIME = 10
DEFAULT_KEEPALIVE_TIME = 3
DEFAULT_CONNECT_TIMEOUT = 5


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionManager:
    """Owns the control link to the receiver.

    - Connects under the exclusive side of the connection lock
    - Retries failed connects every reconnect_time seconds until connected or closed
    - Sends an empty keepalive line every keepalive_time seconds while connected
    - Does not reconnect by itself after an established link drops; the next
      ensure_connected() call does
    """

    _protocol: Optional[AVRProtocol]
    _keepalive_task: Optional[Task[Any]]
    _reconnect_task: Optional[Task[Any]]
    _connect_task: Optional[Task[Any]]

    def __init__(
        self,
        hostname: str,
        port: int,
        listener: AVRListener,
        lock: ConnectionLock,
        on_line: Callable[[str], None],
        on_connected: Callable[[], None],
        reconnect_time=DEFAULT_RECONNECT_TIME,
        keepalive_time=DEFAULT_KEEPALIVE_TIME,
        connect_timeout=DEFAULT_CONNECT_TIMEOUT,
    ):
        self._logger = logging.getLogger(__name__)
        self._hostname = hostname
        self._port = port
        self._listener = listener
        self._lock = lock
        self._on_line = on_line
        self._on_connected = on_connected
        self._reconnect_time = reconnect_time
        self._keepalive_time = keepalive_time
        self._connect_timeout = connect_timeout

        self._state = ConnectionState.DISCONNECTED
        self._closed = False
        self._protocol = None
        self._keepalive_task = None
        self._reconnect_task = None
        self._connect_task = None
        self.connect_attempts: int = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    async def async_connect(self) -> bool:
        """Connect, scheduling retries in the background if this attempt fails."""
        if await self._attempt_connect():
            return True
        self._schedule_reconnect()
        return False

    def ensure_connected(self):
        """Start connecting unless connected, already trying, or closed."""
        if self._closed or self._state is not ConnectionState.DISCONNECTED:
            return
        if self.reconnect_pending:
            return
        if self._connect_task is not None and not self._connect_task.done():
            return
        self._logger.info(f"Not connected to {self._hostname}, connecting")
        self._connect_task = asyncio.create_task(self.async_connect())

    async def _open_connection(self, protocol_factory):
        loop = asyncio.get_running_loop()
        return await loop.create_connection(protocol_factory, host=self._hostname, port=self._port)

    async def _attempt_connect(self) -> bool:
        async with self._lock.exclusive():
            if self._closed:
                return False
            if self._state is ConnectionState.CONNECTED:
                return True
            self._state = ConnectionState.CONNECTING
            self.connect_attempts += 1
            self._logger.info(f"Connecting to {self._hostname}:{self._port}")
            try:
                await asyncio.wait_for(
                    self._open_connection(
                        lambda: AVRProtocol(self._connection_made, self._on_line, self._connection_lost)
                    ),
                    timeout=self._connect_timeout,
                )
            except asyncio.TimeoutError:
                self._state = ConnectionState.DISCONNECTED
                self._logger.warning(
                    f"Connection to {self._hostname}:{self._port} timed out after {self._connect_timeout}s"
                )
                self._listener.timeout(self._hostname, self._port)
                return False
            except OSError as e:
                self._state = ConnectionState.DISCONNECTED
                self._logger.warning(f"Connect to {self._hostname}:{self._port} failed: {e}")
                return False

            if self._closed:
                # close() was called while the handshake was in flight
                if self._protocol is not None:
                    self._protocol.close()
                self._state = ConnectionState.DISCONNECTED
                return False
            if self._protocol is None:
                # Dropped straight after the handshake
                self._state = ConnectionState.DISCONNECTED
                return False

            self._state = ConnectionState.CONNECTED
            self._listener.connected(self._hostname, self._port)
            # Empty line to wake the receiver's telnet interface up
            self._write_noop()
            if self._keepalive_time:
                self._keepalive_task = asyncio.create_task(self._keepalive())
            self._on_connected()
            return True

    def _schedule_reconnect(self):
        if self._closed or self.reconnect_pending:
            return
        self._logger.error(f"Will try to reconnect to {self._hostname} in {self._reconnect_time} seconds")
        self._reconnect_task = asyncio.create_task(self._wait_to_reconnect())

    async def _wait_to_reconnect(self):
        """Retry until connected. The receiver may be unplugged for hours, so there is no limit."""
        while not self.connected and not self._closed:
            await asyncio.sleep(self._reconnect_time)
            try:
                await self._attempt_connect()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._logger.warning(f"Reconnect attempt failed: {e}")

    def _connection_made(self, protocol: AVRProtocol):
        self._protocol = protocol

    def _connection_lost(self, protocol: AVRProtocol, exc: Optional[Exception]):
        if protocol is not self._protocol:
            return
        self._protocol = None
        was_connected = self._state is ConnectionState.CONNECTED
        self._state = ConnectionState.DISCONNECTED
        self._stop_keepalive()
        if not was_connected:
            return

        disconnected_message = f"Disconnected from {self._hostname}"
        if exc is not None:
            disconnected_message = disconnected_message + f" ({exc})"
        if self._closed:
            # Only info in here as close has been called.
            self._logger.info(disconnected_message + ", not reconnecting")
        else:
            self._logger.error(disconnected_message + ", will reconnect on the next command")

        try:
            self._listener.disconnected(self._hostname, self._port)
        except Exception as e:
            self._logger.error(f"Exception in disconnected() callback: {e}")

    async def _keepalive(self):
        """Write an empty line periodically so a dead peer gets noticed."""
        while self.connected:
            await asyncio.sleep(self._keepalive_time)
            if not self.connected:
                break
            self._logger.debug("keepalive")
            self._write_noop()

    def _stop_keepalive(self):
        if self._keepalive_task is not None and self._keepalive_task is not asyncio.current_task():
            self._keepalive_task.cancel()
        self._keepalive_task = None

    def _write_noop(self):
        try:
            self.send("")
        except (ConnectionError, OSError, RuntimeError) as e:
            # The transport reports the close itself
            self._logger.warning(f"Keepalive to {self._hostname} failed: {e}")

    def send(self, message: str):
        """Write one command line. Raises ConnectionError when not connected."""
        if self._closed or not self.connected or self._protocol is None:
            raise ConnectionError(f"Not connected to {self._hostname}")
        self._protocol.write(message)

    def close(self):
        """Disconnect for good, no further reconnect attempts."""
        self._closed = True
        self._stop_keepalive()
        for task in (self._reconnect_task, self._connect_task):
            if task is not None and not task.done() and task is not asyncio.current_task():
                task.cancel()
        self._reconnect_task = None
        self._connect_task = None
        if self._protocol is not None:
            self._protocol.close()
        else:
            self._state = ConnectionState.DISCONNECTED
