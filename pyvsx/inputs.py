from enum import IntEnum
from types import MappingProxyType
from typing import Union

# Receivers truncate input names in their front panel display
INPUT_NAME_MAX_LENGTH = 14

INPUT_ID_WIDTH = 2


class InputCategory(IntEnum):
    """Kind of connector behind an input, numbered like the hub input source types."""
    OTHER = 0
    HOME_SCREEN = 1
    TUNER = 2
    HDMI = 3
    COMPOSITE_VIDEO = 4
    S_VIDEO = 5
    COMPONENT_VIDEO = 6
    DVI = 7
    AIRPLAY = 8
    USB = 9
    APPLICATION = 10


# Input code -> category. The wire protocol never reports the category, so
# every code the receiver family knows about is listed here. Discovery probes
# exactly these codes.
INPUT_CATALOG = MappingProxyType({
    "00": InputCategory.OTHER,  # PHONO
    "01": InputCategory.OTHER,  # CD
    "02": InputCategory.TUNER,  # TUNER
    "03": InputCategory.OTHER,  # TAPE
    "04": InputCategory.OTHER,  # DVD
    "05": InputCategory.HDMI,  # TV
    "06": InputCategory.HDMI,  # CBL/SAT
    "10": InputCategory.COMPOSITE_VIDEO,  # VIDEO
    "12": InputCategory.OTHER,  # MULTI CH IN
    "13": InputCategory.OTHER,  # USB-DAC
    "14": InputCategory.COMPONENT_VIDEO,  # VIDEO 2
    "15": InputCategory.HDMI,  # DVR/BDR
    "17": InputCategory.USB,  # USB/iPod
    "18": InputCategory.TUNER,  # XM RADIO
    "19": InputCategory.HDMI,  # HDMI 1
    "20": InputCategory.HDMI,  # HDMI 2
    "21": InputCategory.HDMI,  # HDMI 3
    "22": InputCategory.HDMI,  # HDMI 4
    "23": InputCategory.HDMI,  # HDMI 5
    "24": InputCategory.HDMI,  # HDMI 6
    "25": InputCategory.HDMI,  # BD
    "26": InputCategory.APPLICATION,  # MEDIA GALLERY
    "27": InputCategory.OTHER,  # SIRIUS
    "31": InputCategory.HDMI,  # HDMI CYCLE
    "33": InputCategory.OTHER,  # ADAPTER
    "34": InputCategory.HDMI,  # HDMI 7
    "35": InputCategory.HDMI,  # HDMI 8
    "38": InputCategory.TUNER,  # NETRADIO
    "40": InputCategory.OTHER,  # SIRIUS
    "41": InputCategory.OTHER,  # PANDORA
    "44": InputCategory.OTHER,  # MEDIA SERVER
    "45": InputCategory.OTHER,  # FAVORITE
    "48": InputCategory.OTHER,  # MHL
    "49": InputCategory.OTHER,  # GAME
    "57": InputCategory.OTHER,  # SPOTIFY
})


def pad_input_id(input_id: Union[int, str]) -> str:
    """Zero-pad an input id to the two characters the receiver expects."""
    return str(input_id).strip().zfill(INPUT_ID_WIDTH)


def category_for(input_id: Union[int, str]) -> InputCategory:
    return INPUT_CATALOG.get(pad_input_id(input_id), InputCategory.OTHER)


class Input:
    """An input of the receiver. Immutable, a rename produces a new Input."""

    __slots__ = ("_id", "_name", "_category")

    def __init__(self, input_id: str, name: str, category: InputCategory = InputCategory.OTHER):
        self._id = pad_input_id(input_id)
        self._name = name.strip()[:INPUT_NAME_MAX_LENGTH]
        self._category = InputCategory(category)

    @property
    def id(self) -> str:
        """Two character input code."""
        return self._id

    @property
    def name(self) -> str:
        """Display name, at most INPUT_NAME_MAX_LENGTH characters."""
        return self._name

    @property
    def category(self) -> InputCategory:
        return self._category

    def renamed(self, name: str) -> "Input":
        return Input(self._id, name, self._category)

    def __eq__(self, other):
        if not isinstance(other, Input):
            return NotImplemented
        return (self._id, self._name, self._category) == (other._id, other._name, other._category)

    def __hash__(self):
        return hash((self._id, self._name, self._category))

    def __repr__(self):
        return f"Input(id={self._id!r}, name={self._name!r}, category={self._category.name})"
