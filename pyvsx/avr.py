"""Pioneer AVR - control link, command queue, status endpoint and state tracking.

This module contains the high-level receiver abstraction:
- Probing the optional HTTP status endpoint and seeding state from it
- Connecting the control link (with retry, keepalive and the connect/send lock)
- Queueing every command in order, each sent over the status endpoint or the control link
- Decoding responses into DeviceState and InputRegistry
- Input discovery

Every setter is fire-and-forget: it returns immediately and the resulting
state arrives later through AVRListener.state_changed once the receiver
reports it."""

import logging
from typing import Optional, Union

from pyvsx.command_queue import DEFAULT_SEND_DELAY, CommandQueue
from pyvsx.connection import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_KEEPALIVE_TIME,
    DEFAULT_PORT,
    DEFAULT_RECONNECT_TIME,
    ConnectionManager,
    ConnectionState,
)
from pyvsx.decoder import ResponseDecoder
from pyvsx.inputs import INPUT_CATALOG, INPUT_NAME_MAX_LENGTH, Input, pad_input_id
from pyvsx.listener import AVRListener, MultiplexingListener
from pyvsx.lock import ConnectionLock
from pyvsx.protocol import (
    COMMAND_MUTE_OFF,
    COMMAND_MUTE_ON,
    COMMAND_PANEL_LOCK_OFF,
    COMMAND_PANEL_LOCK_ON,
    COMMAND_POWER_OFF,
    COMMAND_POWER_ON,
    COMMAND_QUERY_INPUT,
    COMMAND_QUERY_MUTE,
    COMMAND_QUERY_PANEL_LOCK,
    COMMAND_QUERY_POWER,
    COMMAND_QUERY_VOLUME,
    COMMAND_VOLUME_DOWN,
    COMMAND_VOLUME_UP,
    REMOTE_KEYS,
    AVRProtocol,
)
from pyvsx.router import StatusEndpoint, TransportRouter
from pyvsx.state import DeviceState, InputRegistry, percent_to_native


class PioneerAVR:
    """High-level receiver control.

    This class:
    - Creates and wires the connection manager, command queue and router
    - Owns the device state and the input registry
    - Exposes request/set operations and listener registration

    Call async_connect() once to probe the status endpoint and open the
    control link; close() shuts everything down for good.
    """

    def __init__(self, hostname, port=DEFAULT_PORT, reconnect_time=DEFAULT_RECONNECT_TIME,
                 keepalive_time=DEFAULT_KEEPALIVE_TIME, connect_timeout=DEFAULT_CONNECT_TIMEOUT,
                 send_delay=DEFAULT_SEND_DELAY, use_status_endpoint=True, preferences=None):
        """Initialize receiver.

        Args:
            hostname: Receiver hostname or IP
            port: Control link TCP port (usually 23, some models use 8102)
            reconnect_time: Seconds to wait between connect attempts
            keepalive_time: Seconds between keepalive lines, 0 to disable
            connect_timeout: Seconds before a connect attempt is abandoned
            send_delay: Seconds between consecutive queued commands
            use_status_endpoint: Whether to probe the HTTP status endpoint
            preferences: Object answering is_input_hidden(input_id), e.g. PreferencesStore
        """
        self._hostname: str = hostname
        self._port = port
        self._use_status_endpoint = use_status_endpoint
        self._preferences = preferences

        self._logger = logging.getLogger(__name__)

        self._state = DeviceState()
        self._inputs = InputRegistry()

        self._multiplex_callback = MultiplexingListener()
        self._decoder = ResponseDecoder(self._state, self._inputs, self._multiplex_callback)

        self._lock = ConnectionLock()
        self._connection = ConnectionManager(
            hostname,
            port,
            self._multiplex_callback,
            self._lock,
            on_line=self._decoder.process_line,
            on_connected=self._on_connected,
            reconnect_time=reconnect_time,
            keepalive_time=keepalive_time,
            connect_timeout=connect_timeout,
        )
        self._status_endpoint = StatusEndpoint(hostname)
        if not use_status_endpoint:
            self._status_endpoint.disable()
        self._router = TransportRouter(self._status_endpoint)
        self._command_queue = CommandQueue(self._connection, self._lock, self._router, send_delay=send_delay)

    # ========== Connection lifecycle ==========

    async def async_connect(self) -> bool:
        """Probe the status endpoint (first call only) and connect the control link."""
        if self._status_endpoint.available is None:
            document = None
            async with self._lock.exclusive():
                # A concurrent call may have probed while this one waited
                if self._status_endpoint.available is None:
                    document = await self._status_endpoint.probe()
            if document is not None:
                self._decoder.process_status(document)
        return await self._connection.async_connect()

    def close(self):
        """Close the control link and stop reconnection attempts."""
        self._logger.info(f"Closing connection to {self._hostname}")
        self._command_queue.clear()
        self._connection.close()

    def _on_connected(self):
        self._logger.info("Receiver connected")
        self._command_queue.start()

    # ========== Public API ==========

    @property
    def hostname(self) -> str:
        return self._hostname

    @property
    def port(self) -> int:
        return self._port

    @property
    def state(self) -> DeviceState:
        return self._state

    @property
    def inputs(self) -> InputRegistry:
        return self._inputs

    @property
    def connected(self) -> bool:
        return self._connection.connected

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection.state

    @property
    def status_endpoint_available(self) -> Optional[bool]:
        return self._status_endpoint.available

    @property
    def discovered_count(self) -> int:
        return self._decoder.discovered_count

    @property
    def fully_discovered(self) -> bool:
        return self._decoder.fully_discovered

    def register_listener(self, listener: AVRListener):
        """Register external listener for receiver events."""
        self._multiplex_callback.register_listener(listener)

    def unregister_listener(self, listener: AVRListener):
        """Unregister external listener."""
        self._multiplex_callback.unregister_listener(listener)

    def is_input_hidden(self, input_id: Union[int, str]) -> bool:
        """Whether the user chose to hide this input. Hidden when no preferences are set."""
        if self._preferences is None:
            return True
        return self._preferences.is_input_hidden(pad_input_id(input_id))

    def visible_inputs(self) -> list[Input]:
        return [input_ for input_ in self._inputs.values() if not self.is_input_hidden(input_.id)]

    def request_power(self):
        self._send_command(COMMAND_QUERY_POWER)

    def set_power_on(self):
        self._send_command(COMMAND_POWER_ON)

    def set_power_off(self):
        self._send_command(COMMAND_POWER_OFF)

    def request_mute(self):
        self._send_command(COMMAND_QUERY_MUTE)

    def set_mute_on(self):
        self._send_command(COMMAND_MUTE_ON)

    def set_mute_off(self):
        self._send_command(COMMAND_MUTE_OFF)

    def request_panel_lock(self):
        self._send_command(COMMAND_QUERY_PANEL_LOCK)

    def set_panel_lock_on(self):
        self._send_command(COMMAND_PANEL_LOCK_ON)

    def set_panel_lock_off(self):
        self._send_command(COMMAND_PANEL_LOCK_OFF)

    def request_volume(self):
        self._send_command(COMMAND_QUERY_VOLUME)

    def set_volume(self, percent: int):
        """Set the volume in percent (0-100)."""
        if not isinstance(percent, int) or not (0 <= percent <= 100):
            self._logger.error(f"Invalid volume {percent!r}, must be 0-100")
            return
        native_level = percent_to_native(percent)
        self._logger.info(f"Volume request - {percent}% (native {native_level})")
        self._send_command(AVRProtocol.command_set_volume(native_level))

    def volume_up(self):
        self._send_command(COMMAND_VOLUME_UP)

    def volume_down(self):
        self._send_command(COMMAND_VOLUME_DOWN)

    def request_input(self):
        self._send_command(COMMAND_QUERY_INPUT)

    def set_input(self, input_id: Union[int, str]):
        self._send_command(AVRProtocol.command_select_input(pad_input_id(input_id)))

    def rename_input(self, input_id: Union[int, str], name: str):
        """Rename an input on the receiver.

        The registry keeps the old name until the receiver confirms with an
        RGB line, this does not touch the in-memory definition.
        """
        name = name.strip()[:INPUT_NAME_MAX_LENGTH]
        input_id = pad_input_id(input_id)
        self._logger.info(f"Rename request - Input {input_id} to {name}")
        self._send_command(AVRProtocol.command_rename_input(input_id, name))

    def send_remote_key(self, key: str):
        command = REMOTE_KEYS.get(key.lower()) if isinstance(key, str) else None
        if command is None:
            self._logger.error(f"Unknown remote key {key!r}, ignoring")
            return
        self._send_command(command)

    def request_input_definitions(self):
        """Probe every known input code; answers arrive as input_discovered events."""
        self._logger.debug("Discovering inputs")
        self._decoder.begin_discovery()
        for input_id in INPUT_CATALOG:
            self._send_command(AVRProtocol.command_query_input_definition(input_id))

    # ========== Helpers ==========

    def _send_command(self, command: str):
        if self._connection.closed:
            self._logger.error(f"Connection to {self._hostname} closed, dropping {command}")
            return
        self._command_queue.enqueue(command)
