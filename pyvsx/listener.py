from abc import ABC, abstractmethod
from typing import List
import logging

from pyvsx.inputs import Input
from pyvsx.state import DeviceState


class AVRListener(ABC):

    @abstractmethod
    def connected(self, host: str, port: int):
        pass

    @abstractmethod
    def disconnected(self, host: str, port: int):
        pass

    @abstractmethod
    def input_discovered(self, count: int, input_: Input):
        """Called for every input definition received.

        Args:
            count: Number of discovery probes answered so far
            input_: The input as defined by the receiver
        """
        pass

    @abstractmethod
    def state_changed(self, state: DeviceState):
        """Called with a snapshot of the state after each status line."""
        pass

    def timeout(self, host: str, port: int):
        # By default, do nothing but can be overwritten to be notified of connect timeouts.
        pass


class MultiplexingListener(AVRListener):

    _listeners: List[AVRListener]

    def __init__(self):
        self._listeners = []

    def connected(self, host: str, port: int):
        for listener in self._listeners:
            listener.connected(host, port)

    def disconnected(self, host: str, port: int):
        for listener in self._listeners:
            listener.disconnected(host, port)

    def timeout(self, host: str, port: int):
        for listener in self._listeners:
            listener.timeout(host, port)

    def input_discovered(self, count: int, input_: Input):
        for listener in self._listeners:
            listener.input_discovered(count, input_)

    def state_changed(self, state: DeviceState):
        for listener in self._listeners:
            listener.state_changed(state)

    def register_listener(self, listener: AVRListener):
        self._listeners.append(listener)

    def unregister_listener(self, listener: AVRListener):
        if listener in self._listeners:
            self._listeners.remove(listener)
        else:
            logging.info("Listener isn't registered")


class LoggingListener(AVRListener):

    def __init__(self, logger = logging):
        self.logger = logger

    def connected(self, host: str, port: int):
        self.logger.info(f"Connected to {host}:{port}")

    def disconnected(self, host: str, port: int):
        self.logger.info(f"Disconnected from {host}:{port}")

    def timeout(self, host: str, port: int):
        self.logger.info(f"Connection to {host}:{port} timed out")

    def input_discovered(self, count: int, input_: Input):
        self.logger.info(f"Input {input_.id} discovered: {input_.name} ({input_.category.name}), count {count}")

    def state_changed(self, state: DeviceState):
        self.logger.info(f"State changed: {state}")
