import asyncio
import logging
import re
import string
from types import MappingProxyType
from typing import Callable, Optional

# Outgoing and incoming messages are terminated with CR LF
LINE_TERMINATOR = "\r\n"
LINE_SPLIT = re.compile(r"\r\n|\r|\n")
TRIM_CHARACTERS = string.whitespace + "".join(chr(c) for c in range(32)) + "\x7f"

COMMAND_QUERY_POWER = "?P"
COMMAND_POWER_ON = "PO"
COMMAND_POWER_OFF = "PF"
COMMAND_QUERY_MUTE = "?M"
COMMAND_MUTE_ON = "MO"
COMMAND_MUTE_OFF = "MF"
COMMAND_QUERY_PANEL_LOCK = "?PKL"
COMMAND_PANEL_LOCK_ON = "1PKL"
COMMAND_PANEL_LOCK_OFF = "0PKL"
COMMAND_QUERY_VOLUME = "?V"
COMMAND_VOLUME_UP = "VU"
COMMAND_VOLUME_DOWN = "VD"
COMMAND_QUERY_INPUT = "?F"

# Remote control cursor keys
REMOTE_KEYS = MappingProxyType({
    "up": "CUP",
    "down": "CDN",
    "left": "CLE",
    "right": "CRI",
    "enter": "CEN",
    "back": "CRT",
    "home": "HM",
})


class AVRProtocol(asyncio.Protocol):
    """Line framing for the receiver control link.

    Every complete line is handed to on_line in arrival order. Lines split
    across packets are buffered until their terminator arrives.
    """

    _transport: Optional[asyncio.Transport]

    def __init__(
        self,
        on_connection_made: Callable[["AVRProtocol"], None],
        on_line: Callable[[str], None],
        on_connection_lost: Callable[["AVRProtocol", Optional[Exception]], None],
    ):
        self._logger = logging.getLogger(__name__)
        self._on_connection_made = on_connection_made
        self._on_line = on_line
        self._on_connection_lost = on_connection_lost
        self._transport = None
        self._buffer = ""
        self.peer_name = None

    @property
    def transport(self) -> Optional[asyncio.Transport]:
        return self._transport

    def connection_made(self, transport):
        """Method from asyncio.Protocol"""
        self._transport = transport
        self.peer_name = transport.get_extra_info("peername")
        self._logger.info(f"Connection Made: {self.peer_name}")
        self._on_connection_made(self)

    def data_received(self, data):
        """Method from asyncio.Protocol"""
        self._logger.debug(f"data_received client: {data}")
        self._buffer += data.decode("ascii", errors="ignore")
        *lines, self._buffer = LINE_SPLIT.split(self._buffer)
        for line in lines:
            line = line.strip(TRIM_CHARACTERS)
            if line:
                self._logger.debug(f"Whole message: {line}")
                self._on_line(line)

    def connection_lost(self, exc):
        """Method from asyncio.Protocol"""
        self._buffer = ""
        self._on_connection_lost(self, exc)

    def write(self, message: str):
        if self._transport is None or self._transport.is_closing():
            raise ConnectionError("Control link is not open")
        self._transport.write((message + LINE_TERMINATOR).encode("ascii", errors="replace"))

    def close(self):
        if self._transport is not None:
            self._transport.close()

    @staticmethod
    def command_set_volume(native_level: int) -> str:
        return f"{native_level:03d}VL"

    @staticmethod
    def command_select_input(input_id: str) -> str:
        return f"{input_id}FN"

    @staticmethod
    def command_query_input_definition(input_id: str) -> str:
        return f"?RGB{input_id}"

    @staticmethod
    def command_rename_input(input_id: str, name: str) -> str:
        return f"{name}1RGB{input_id}"
