"""pyvsx Python Package

Python library for controlling Pioneer VSX/SC audio/video receivers.
"""

from pyvsx.avr import PioneerAVR
from pyvsx.inputs import Input, InputCategory
from pyvsx.listener import AVRListener
from pyvsx.state import DeviceState

__all__ = ["PioneerAVR", "AVRListener", "DeviceState", "Input", "InputCategory"]
