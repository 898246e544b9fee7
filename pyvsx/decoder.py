import logging
import re
from typing import Any, Optional

from pyvsx.inputs import INPUT_CATALOG, Input, category_for, pad_input_id
from pyvsx.listener import AVRListener
from pyvsx.state import DeviceState, InputRegistry, native_to_percent

# Input definition response to ?RGBnn: RGB25 1BD Player
# 2 character input id, 1 digit renamed flag, then the display name
INPUT_DEFINITION_RESPONSE = re.compile(r"^RGB(\w{2})(\d)(.*)$")

# Returned instead of RGB when the probed input doesn't exist on this model
INPUT_NOT_FOUND_RESPONSE = re.compile(r"^E06")

# Power response: PWR0 is on, anything else is standby
POWER_RESPONSE = re.compile(r"^PWR(\d)")

# Mute response: MUT0 is muted
MUTE_RESPONSE = re.compile(r"^MUT(\d)")

# Panel lock response: PKL0 is engaged
PANEL_LOCK_RESPONSE = re.compile(r"^PKL(\d)")

# Volume response with the native level: VOL121
VOLUME_RESPONSE = re.compile(r"^VOL(\d{3})")

# Current input response: FN25
INPUT_RESPONSE = re.compile(r"^FN(\w{2})")

# Keys of the status endpoint document
STATUS_ZONES = "Z"
STATUS_ZONE_VOLUME = "V"
STATUS_ZONE_MUTE = "M"
STATUS_INPUT_CODES = "IL"
STATUS_INPUT_NAMES = "IN"


class ResponseDecoder:
    """Applies receiver responses to the device state and notifies the listener.

    Decoding is synchronous, so lines take effect in the order they are fed in.
    """

    def __init__(self, state: DeviceState, registry: InputRegistry, listener: AVRListener):
        self._logger = logging.getLogger(__name__)
        self._state = state
        self._registry = registry
        self._listener = listener
        self._expected_count = len(INPUT_CATALOG)
        self._discovered_count = 0
        # Set once every probed input got its RGB or E06 answer. Nothing acts
        # on it yet beyond stopping the count.
        self._fully_discovered = False

    @property
    def discovered_count(self) -> int:
        return self._discovered_count

    @property
    def fully_discovered(self) -> bool:
        return self._fully_discovered

    def begin_discovery(self):
        """Reset the counter before a new round of ?RGB probes."""
        self._discovered_count = 0
        self._fully_discovered = False

    def _count_discovery_response(self):
        if self._fully_discovered:
            return
        self._discovered_count += 1
        self._logger.debug(f"Discovery response {self._discovered_count}/{self._expected_count}")
        if self._discovered_count >= self._expected_count:
            self._fully_discovered = True
            self._logger.info(f"All {self._expected_count} inputs probed, {len(self._registry)} found")

    def _state_changed(self):
        self._listener.state_changed(self._state.copy())

    # noinspection DuplicatedCode
    def process_line(self, line: str):
        input_definition_match = INPUT_DEFINITION_RESPONSE.match(line)
        if input_definition_match:
            self._logger.info(f"RECV: Input definition: {line}")
            input_id = input_definition_match.group(1)
            input_ = Input(input_id, input_definition_match.group(3), category_for(input_id))
            self._registry.upsert(input_)
            self._count_discovery_response()
            self._listener.input_discovered(self._discovered_count, input_)
            current = self._state.input
            if current is not None and current.id == input_.id and current != input_:
                self._state._input = input_
                self._state_changed()
            return

        if INPUT_NOT_FOUND_RESPONSE.match(line):
            self._logger.debug(f"RECV: Input not present: {line}")
            self._count_discovery_response()
            return

        power_match = POWER_RESPONSE.match(line)
        if power_match:
            self._logger.info(f"RECV: Power response: {line}")
            self._state._power = power_match.group(1) == "0"
            self._state_changed()
            return

        mute_match = MUTE_RESPONSE.match(line)
        if mute_match:
            self._logger.info(f"RECV: Mute response: {line}")
            self._state._muted = mute_match.group(1) == "0"
            self._state_changed()
            return

        panel_lock_match = PANEL_LOCK_RESPONSE.match(line)
        if panel_lock_match:
            self._logger.info(f"RECV: Panel lock response: {line}")
            self._state._panel_lock = panel_lock_match.group(1) == "0"
            self._state_changed()
            return

        volume_match = VOLUME_RESPONSE.match(line)
        if volume_match:
            self._logger.info(f"RECV: Volume response: {line}")
            self._state._volume = native_to_percent(int(volume_match.group(1)))
            self._state_changed()
            return

        input_match = INPUT_RESPONSE.match(line)
        if input_match:
            input_id = input_match.group(1)
            input_ = self._registry.get(input_id)
            if input_ is None:
                # The receiver may report an input before discovery has seen it
                self._logger.debug(f"RECV: Unknown input {input_id} selected, ignoring")
                return
            self._logger.info(f"RECV: Input response: {line}")
            self._state._input = input_
            self._state_changed()
            return

        self._logger.debug(f"Unhandled message received: {line}")

    def process_status(self, document: Any):
        """Seed state and inputs from the status endpoint document."""
        try:
            zone = document[STATUS_ZONES][0]
            volume = zone.get(STATUS_ZONE_VOLUME)
            mute = zone.get(STATUS_ZONE_MUTE)
            codes = document.get(STATUS_INPUT_CODES) or []
            names = document.get(STATUS_INPUT_NAMES) or []
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            self._logger.debug(f"Ignoring malformed status document: {e!r}")
            return
        if not isinstance(codes, list) or not isinstance(names, list):
            self._logger.debug(f"Ignoring status inputs, expected lists: {codes!r} {names!r}")
            codes, names = [], []

        state_updated = False
        if isinstance(volume, int) and not isinstance(volume, bool) and volume >= 0:
            self._state._volume = native_to_percent(volume)
            state_updated = True
        if mute is not None:
            self._state._muted = mute in (1, "1", True)
            state_updated = True

        for code, name in zip(codes, names):
            input_ = self._status_input(code, name)
            if input_ is None:
                continue
            self._registry.upsert(input_)
            self._count_discovery_response()
            self._logger.info(f"RECV: Input definition from status: {input_.id} {input_.name}")
            self._listener.input_discovered(self._discovered_count, input_)

        if state_updated:
            self._state_changed()

    def _status_input(self, code, name) -> Optional[Input]:
        try:
            input_id = pad_input_id(int(code))
        except (TypeError, ValueError):
            self._logger.debug(f"Ignoring invalid input code in status: {code!r}")
            return None
        return Input(input_id, str(name), category_for(input_id))
