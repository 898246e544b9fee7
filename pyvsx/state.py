from typing import Iterator, Optional

from pyvsx.inputs import Input

# The receiver volume runs from 0 (-80dB) to 185 (+12dB) in 0.5dB steps
NATIVE_VOLUME_MAX = 185


def native_to_percent(native: int) -> int:
    """Project a native volume (0-185) onto 0-100 percent, rounding down."""
    native = max(0, min(NATIVE_VOLUME_MAX, native))
    return native * 100 // NATIVE_VOLUME_MAX


def percent_to_native(percent: int) -> int:
    """Project 0-100 percent onto the native volume, rounding down.

    Not the inverse of native_to_percent: both directions floor, so
    percent -> native -> percent can come back one lower (1% -> 1 -> 0%).
    """
    percent = max(0, min(100, percent))
    return percent * NATIVE_VOLUME_MAX // 100


class DeviceState:
    """Last known state of the receiver.

    Only the response decoder writes to it. Everyone else reads the properties,
    which never block and may reflect a burst of lines only partially.
    """

    def __init__(self):
        self._power: bool = False
        self._muted: bool = False
        self._panel_lock: bool = False
        self._volume: int = 0
        self._input: Optional[Input] = None

    @property
    def power(self) -> bool:
        return self._power

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def panel_lock(self) -> bool:
        return self._panel_lock

    @property
    def volume(self) -> int:
        """Volume in percent (0-100)."""
        return self._volume

    @property
    def input(self) -> Optional[Input]:
        """Current input, None until the receiver reported a known one."""
        return self._input

    def copy(self) -> "DeviceState":
        snapshot = DeviceState()
        snapshot._power = self._power
        snapshot._muted = self._muted
        snapshot._panel_lock = self._panel_lock
        snapshot._volume = self._volume
        snapshot._input = self._input
        return snapshot

    def __repr__(self):
        input_id = self._input.id if self._input else None
        return (
            f"DeviceState(power={self._power}, muted={self._muted}, panel_lock={self._panel_lock}, "
            f"volume={self._volume}, input={input_id!r})"
        )


class InputRegistry:
    """Inputs discovered on this receiver, keyed by id. Entries are replaced, never removed."""

    def __init__(self):
        self._inputs: dict[str, Input] = {}

    def upsert(self, input_: Input) -> Optional[Input]:
        """Store an input, returning the definition it replaced."""
        previous = self._inputs.get(input_.id)
        self._inputs[input_.id] = input_
        return previous

    def get(self, input_id: str) -> Optional[Input]:
        return self._inputs.get(input_id)

    def values(self) -> list[Input]:
        return list(self._inputs.values())

    def __contains__(self, input_id) -> bool:
        return input_id in self._inputs

    def __len__(self) -> int:
        return len(self._inputs)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._inputs))
