#!/usr/bin/env python3
"""Shared fixtures: an in-memory control link and a recording listener."""
# pylint: disable=protected-access,redefined-outer-name

import asyncio

import pytest
import pytest_asyncio

from pyvsx.avr import PioneerAVR
from pyvsx.connection import ConnectionManager
from pyvsx.listener import AVRListener

HOST = "avr.local"
PORT = 23


class FakeTransport(asyncio.Transport):
    """Transport that records writes and reports close to its protocol."""

    def __init__(self, protocol, events):
        super().__init__()
        self.protocol = protocol
        self.events = events
        self.written = []
        self.write_times = []
        self._closing = False

    def write(self, data):
        self.written.append(data)
        self.write_times.append(asyncio.get_running_loop().time())
        self.events.append(("write", data))

    def is_closing(self):
        return self._closing

    def close(self):
        if self._closing:
            return
        self._closing = True
        asyncio.get_running_loop().call_soon(self.protocol.connection_lost, None)

    def abort(self):
        self.close()

    def get_extra_info(self, name, default=None):
        if name == "peername":
            return (HOST, PORT)
        return default


class FakeLink:
    """Stands in for loop.create_connection, one FakeTransport per attempt."""

    def __init__(self):
        self.events = []
        self.transports = []
        self.attempts = 0
        self.handshake_delay = 0.0
        self.fail = None

    async def open_connection(self, protocol_factory):
        self.attempts += 1
        if self.handshake_delay:
            await asyncio.sleep(self.handshake_delay)
        if self.fail is not None:
            raise self.fail
        protocol = protocol_factory()
        transport = FakeTransport(protocol, self.events)
        self.transports.append(transport)
        protocol.connection_made(transport)
        return transport, protocol

    @property
    def transport(self) -> FakeTransport:
        return self.transports[-1]

    def receive(self, data: bytes):
        self.transport.protocol.data_received(data)

    def drop(self):
        self.transport.close()

    def sent(self) -> list:
        """Every line written over every connection, without terminators."""
        return [
            data.decode("ascii").rstrip("\r\n")
            for transport in self.transports
            for data in transport.written
        ]

    def commands(self) -> list:
        """Written lines minus the empty priming and keepalive lines."""
        return [line for line in self.sent() if line]


class RecordingListener(AVRListener):

    def __init__(self, events=None):
        self.events = events if events is not None else []
        self.discovered = []
        self.states = []

    def connected(self, host: str, port: int):
        self.events.append(("connected", host, port))

    def disconnected(self, host: str, port: int):
        self.events.append(("disconnected", host, port))

    def timeout(self, host: str, port: int):
        self.events.append(("timeout", host, port))

    def input_discovered(self, count, input_):
        self.discovered.append((count, input_))

    def state_changed(self, state):
        self.states.append(state)


@pytest.fixture
def fake_link(monkeypatch):
    link = FakeLink()

    async def open_connection(self, protocol_factory):
        return await link.open_connection(protocol_factory)

    monkeypatch.setattr(ConnectionManager, "_open_connection", open_connection)
    return link


@pytest.fixture
def recorder(fake_link):
    return RecordingListener(fake_link.events)


@pytest_asyncio.fixture
async def make_avr(recorder):
    """Build receivers wired to the fake link, closing them afterwards."""
    created = []

    def factory(**kwargs):
        options = {
            "use_status_endpoint": False,
            "reconnect_time": 0.05,
            "keepalive_time": 0,
            "connect_timeout": 1,
            "send_delay": 0.01,
        }
        options.update(kwargs)
        avr = PioneerAVR(HOST, PORT, **options)
        avr.register_listener(recorder)
        created.append(avr)
        return avr

    yield factory
    for avr in created:
        avr.close()
    await asyncio.sleep(0)


@pytest_asyncio.fixture
async def avr(make_avr):
    return make_avr()
