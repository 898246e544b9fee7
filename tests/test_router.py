#!/usr/bin/env python3
"""Tests for routing commands between the status endpoint and the control link"""
# pylint: disable=protected-access,redefined-outer-name

import asyncio
import re

import aiohttp
import pytest
from aioresponses import aioresponses

from conftest import HOST
from pyvsx.router import StatusEndpoint, Transport, TransportRouter

STATUS_URL = f"http://{HOST}/StatusHandler.asp"
COMMAND_URL = re.compile(rf"^http://{re.escape(HOST)}/EventHandler\.asp\?WebToHostItem=.*$")


@pytest.fixture
def mock_http():
    """Fixture that provides aioresponses for mocking HTTP calls."""
    with aioresponses() as mock:
        yield mock


def request_count(mock) -> int:
    return sum(len(calls) for calls in mock.requests.values())


def mock_commands(mock, timeline, status=200):
    """Answer every EventHandler request with status, recording ("http", command) in timeline."""

    def record(url, **kwargs):
        timeline.append(("http", url.query.get("WebToHostItem")))

    mock.get(COMMAND_URL, status=status, repeat=True, callback=record)


def transmissions(timeline) -> list:
    """HTTP commands and control link lines in the order they went out, keepalives left out."""
    sent = []
    for event in timeline:
        if event[0] == "http":
            sent.append(event)
        elif event[0] == "write" and event[1] != b"\r\n":
            sent.append(("link", event[1].decode("ascii").rstrip("\r\n")))
    return sent


@pytest.mark.parametrize("available", [None, False])
def test_unavailable_endpoint_routes_to_control_link(available):
    endpoint = StatusEndpoint(HOST)
    endpoint.available = available
    router = TransportRouter(endpoint)
    for command in ["PO", "PF", "VU", "VD", "MO", "MF", "25FN", "?P", "074VL"]:
        assert router.route(command) is Transport.CONTROL_LINK


def test_available_endpoint_routes_eligible_commands():
    endpoint = StatusEndpoint(HOST)
    endpoint.available = True
    router = TransportRouter(endpoint)
    for command in ["PO", "PF", "VU", "VD", "MO", "MF", "25FN", "05FN"]:
        assert router.route(command) is Transport.STATUS_ENDPOINT
    for command in ["?P", "?V", "074VL", "1PKL", "?RGB25", "CUP", "HM", "BD1RGB25", "5FN", "PON"]:
        assert router.route(command) is Transport.CONTROL_LINK


def test_endpoint_urls():
    endpoint = StatusEndpoint("192.168.1.50")
    assert endpoint.status_url == "http://192.168.1.50/StatusHandler.asp"
    assert endpoint.command_url == "http://192.168.1.50/EventHandler.asp"


@pytest.mark.asyncio
async def test_send_over_status_endpoint_skips_link_commands(mock_http):
    endpoint = StatusEndpoint(HOST)
    endpoint.available = True
    router = TransportRouter(endpoint)
    assert not await router.send_over_status_endpoint("?P")
    assert request_count(mock_http) == 0


@pytest.mark.asyncio
async def test_send_over_status_endpoint_disables_on_failure(mock_http):
    timeline = []
    mock_commands(mock_http, timeline, status=500)
    endpoint = StatusEndpoint(HOST)
    endpoint.available = True
    router = TransportRouter(endpoint)

    assert not await router.send_over_status_endpoint("PO")
    assert endpoint.available is False
    assert router.route("PO") is Transport.CONTROL_LINK
    assert timeline == [("http", "PO")]


@pytest.mark.asyncio
async def test_status_not_found_uses_control_link_only(make_avr, fake_link, mock_http):
    mock_http.get(STATUS_URL, status=404)
    avr = make_avr(use_status_endpoint=True)
    assert await avr.async_connect()
    assert avr.status_endpoint_available is False

    avr.set_power_on()
    avr.volume_up()
    avr.set_mute_off()
    avr.set_input(25)
    await asyncio.sleep(0.1)

    assert fake_link.commands() == ["PO", "VU", "MF", "25FN"]
    assert request_count(mock_http) == 1


@pytest.mark.asyncio
async def test_status_unreachable_uses_control_link_only(make_avr, fake_link, mock_http):
    mock_http.get(STATUS_URL, exception=aiohttp.ClientConnectionError("refused"))
    avr = make_avr(use_status_endpoint=True)
    await avr.async_connect()
    assert avr.status_endpoint_available is False

    avr.set_power_off()
    await asyncio.sleep(0.05)
    assert fake_link.commands() == ["PF"]


@pytest.mark.asyncio
async def test_available_endpoint_splits_commands(make_avr, fake_link, recorder, mock_http):
    mock_http.get(STATUS_URL, payload={"Z": [{"V": 121, "M": 1}], "IL": [25, 4], "IN": ["BD", "DVD"]})
    mock_commands(mock_http, fake_link.events)
    avr = make_avr(use_status_endpoint=True)
    await avr.async_connect()
    assert avr.status_endpoint_available is True

    # Seeded from the status document before the link came up
    assert avr.state.volume == 65
    assert avr.state.muted is True
    assert avr.inputs.get("25").name == "BD"
    assert avr.inputs.get("04").name == "DVD"
    assert [count for count, _ in recorder.discovered] == [1, 2]

    avr.set_power_on()
    avr.request_power()
    avr.set_volume(50)
    avr.set_input(5)
    await asyncio.sleep(0.15)

    assert transmissions(fake_link.events) == [
        ("http", "PO"),
        ("link", "?P"),
        ("link", "092VL"),
        ("http", "05FN"),
    ]


@pytest.mark.asyncio
async def test_mixed_transports_keep_enqueue_order(make_avr, fake_link, mock_http):
    mock_http.get(STATUS_URL, payload={})
    mock_commands(mock_http, fake_link.events)
    avr = make_avr(use_status_endpoint=True)
    await avr.async_connect()

    avr.set_power_on()
    avr.request_power()
    avr.set_input(5)
    avr.set_mute_on()
    avr.request_volume()
    await asyncio.sleep(0.15)

    assert transmissions(fake_link.events) == [
        ("http", "PO"),
        ("link", "?P"),
        ("http", "05FN"),
        ("http", "MO"),
        ("link", "?V"),
    ]


@pytest.mark.asyncio
async def test_failed_http_command_keeps_its_place(make_avr, fake_link, mock_http):
    mock_http.get(STATUS_URL, payload={})
    mock_commands(mock_http, fake_link.events, status=500)
    avr = make_avr(use_status_endpoint=True)
    await avr.async_connect()
    assert avr.status_endpoint_available is True

    avr.set_power_on()
    avr.set_mute_on()
    avr.request_volume()
    await asyncio.sleep(0.15)

    assert avr.status_endpoint_available is False
    assert fake_link.commands() == ["PO", "MO", "?V"]
    # Routed again at dequeue, MO never tries the failed endpoint
    assert transmissions(fake_link.events) == [
        ("http", "PO"),
        ("link", "PO"),
        ("link", "MO"),
        ("link", "?V"),
    ]


@pytest.mark.asyncio
async def test_http_commands_sent_while_link_down(make_avr, fake_link, mock_http):
    mock_http.get(STATUS_URL, payload={})
    mock_commands(mock_http, fake_link.events)
    fake_link.fail = ConnectionRefusedError("refused")
    avr = make_avr(use_status_endpoint=True, reconnect_time=10)
    assert not await avr.async_connect()

    avr.set_power_on()
    await asyncio.sleep(0.05)
    assert transmissions(fake_link.events) == [("http", "PO")]
    assert fake_link.attempts == 1


@pytest.mark.asyncio
async def test_status_fetched_once(make_avr, fake_link, mock_http):
    mock_http.get(STATUS_URL, status=404)
    avr = make_avr(use_status_endpoint=True)
    await avr.async_connect()
    avr.close()
    await avr.async_connect()
    assert request_count(mock_http) == 1


@pytest.mark.asyncio
async def test_concurrent_connects_fetch_status_once(make_avr, fake_link, mock_http):
    mock_http.get(STATUS_URL, status=404, repeat=True)
    avr = make_avr(use_status_endpoint=True)
    results = await asyncio.gather(avr.async_connect(), avr.async_connect())
    assert results == [True, True]
    assert request_count(mock_http) == 1
    assert fake_link.attempts == 1


@pytest.mark.asyncio
async def test_malformed_status_document_still_connects(make_avr, fake_link, recorder, mock_http):
    mock_http.get(STATUS_URL, payload={"Z": [{"V": 10, "M": 0}], "IL": 5, "IN": []})
    avr = make_avr(use_status_endpoint=True)
    assert await avr.async_connect()
    assert avr.connected
    assert avr.status_endpoint_available is True
    assert recorder.discovered == []


@pytest.mark.asyncio
async def test_disabled_endpoint_is_never_contacted(avr, fake_link, mock_http):
    await avr.async_connect()
    assert avr.status_endpoint_available is False
    assert request_count(mock_http) == 0
