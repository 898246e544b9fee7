import asyncio
import logging
import re
from enum import Enum
from typing import Any, Optional

import aiohttp

STATUS_PATH = "/StatusHandler.asp"
COMMAND_PATH = "/EventHandler.asp"
COMMAND_PARAMETER = "WebToHostItem"
DEFAULT_HTTP_TIMEOUT = 5

# Commands the receiver web interface issues itself: power, volume step,
# mute and input select. Everything else needs the control link.
STATUS_ENDPOINT_COMMAND = re.compile(r"^(PO|PF|VU|VD|MO|MF|\d{2}FN)$")


class Transport(Enum):
    CONTROL_LINK = "control_link"
    STATUS_ENDPOINT = "status_endpoint"


class StatusEndpoint:
    """HTTP status and command interface found on some receiver firmware.

    Availability is decided once by probe() and only ever drops to False
    afterwards, when a command fails.
    """

    def __init__(self, hostname: str, timeout=DEFAULT_HTTP_TIMEOUT):
        self._logger = logging.getLogger(__name__)
        self._hostname = hostname
        self._timeout = timeout
        # None until probed
        self.available: Optional[bool] = None

    @property
    def status_url(self) -> str:
        return f"http://{self._hostname}{STATUS_PATH}"

    @property
    def command_url(self) -> str:
        return f"http://{self._hostname}{COMMAND_PATH}"

    def disable(self):
        self.available = False

    async def probe(self) -> Optional[Any]:
        """Fetch the status document, returning it if the endpoint answered."""
        try:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.status_url) as response:
                    if not 200 <= response.status < 300:
                        self._logger.info(f"Status endpoint answered {response.status}, using control link only")
                        self.available = False
                        return None
                    self.available = True
                    self._logger.info(f"Status endpoint available at {self.status_url}")
                    try:
                        # The receiver serves its JSON as text/html
                        return await response.json(content_type=None)
                    except ValueError as e:
                        self._logger.debug(f"Status endpoint returned invalid JSON: {e}")
                        return None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._logger.info(f"Status endpoint unreachable ({e!r}), using control link only")
            if self.available is None:
                self.available = False
            return None

    async def send(self, command: str) -> bool:
        try:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.command_url, params={COMMAND_PARAMETER: command}) as response:
                    if 200 <= response.status < 300:
                        self._logger.info(f"SEND (http): {command}")
                        return True
                    self._logger.warning(f"Status endpoint rejected {command} with {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._logger.warning(f"Status endpoint failed to send {command}: {e!r}")
        return False


class TransportRouter:
    """Decides per command whether the status endpoint or the control link carries it.

    The command queue asks at dequeue time, so a command queued while the
    endpoint was still being probed, or before it failed, follows the latest
    availability.
    """

    def __init__(self, status_endpoint: StatusEndpoint):
        self._logger = logging.getLogger(__name__)
        self._status_endpoint = status_endpoint

    def route(self, command: str) -> Transport:
        # An endpoint still being probed counts as unavailable
        if self._status_endpoint.available is True and STATUS_ENDPOINT_COMMAND.match(command):
            return Transport.STATUS_ENDPOINT
        return Transport.CONTROL_LINK

    async def send_over_status_endpoint(self, command: str) -> bool:
        """Send over HTTP if routed there. False means the control link must carry it."""
        if self.route(command) is not Transport.STATUS_ENDPOINT:
            return False
        if await self._status_endpoint.send(command):
            return True
        self._logger.warning(f"Disabling status endpoint, sending {command} over the control link")
        self._status_endpoint.disable()
        return False
