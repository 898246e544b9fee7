"""
Main command-line interface for pyvsx.

This script provides a CLI to interact with a Pioneer VSX receiver.
"""

import argparse
import asyncio
import logging

from pyvsx.avr import PioneerAVR
from pyvsx.connection import DEFAULT_PORT
from pyvsx.listener import LoggingListener
from pyvsx.preferences import PreferencesStore
from pyvsx.protocol import REMOTE_KEYS


def create_avr(args) -> PioneerAVR:
    preferences = PreferencesStore(args.prefs) if args.prefs else None
    avr = PioneerAVR(args.host, args.port, use_status_endpoint=not args.no_web, preferences=preferences)
    avr.register_listener(LoggingListener(logging.getLogger("pyvsx.events")))
    return avr


async def connect(avr: PioneerAVR) -> bool:
    print(f"Connecting to receiver at {avr.hostname}:{avr.port}...")
    if not await avr.async_connect():
        print("Could not connect")
        avr.close()
        return False
    return True


async def show_status(avr: PioneerAVR):
    """Query and display power, volume, mute and input."""
    if not await connect(avr):
        return

    avr.request_input_definitions()
    avr.request_power()
    avr.request_volume()
    avr.request_mute()
    avr.request_panel_lock()
    avr.request_input()

    # 35 discovery probes plus 5 queries at 0.1s each
    print("Querying inputs and status...")
    await asyncio.sleep(6)

    state = avr.state
    current = f"{state.input.id} - {state.input.name}" if state.input else "unknown"
    print("-" * 60)
    print(f"{'Power:':14s} {'ON' if state.power else 'STANDBY'}")
    print(f"{'Volume:':14s} {state.volume}%{' (muted)' if state.muted else ''}")
    print(f"{'Panel lock:':14s} {'ON' if state.panel_lock else 'OFF'}")
    print(f"{'Input:':14s} {current}")
    print("-" * 60)

    avr.close()


async def list_inputs(avr: PioneerAVR):
    """Run discovery and list the inputs found."""
    if not await connect(avr):
        return

    avr.request_input_definitions()
    print("Discovering inputs...")
    await asyncio.sleep(5)

    print("-" * 60)
    for input_ in sorted(avr.inputs.values(), key=lambda i: i.id):
        visibility = "hidden" if avr.is_input_hidden(input_.id) else "visible"
        print(f"{input_.id}  {input_.name:14s}  {input_.category.name:16s}  {visibility}")
    print("-" * 60)
    if not avr.fully_discovered:
        print(f"Only {avr.discovered_count} of the inputs answered")

    avr.close()


async def send(avr: PioneerAVR, action):
    """Connect, run one fire-and-forget operation and wait for it to be sent."""
    if not await connect(avr):
        return

    action(avr)

    # Wait for command to be processed and sent
    await asyncio.sleep(2)

    avr.close()
    print("Done")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Control a Pioneer VSX receiver")
    parser.add_argument("--host", default="192.168.1.50", help="Receiver hostname or IP (default: 192.168.1.50)")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Control link port (default: {DEFAULT_PORT})")
    parser.add_argument("--no-web", action="store_true", help="Don't use the HTTP status endpoint")
    parser.add_argument("--prefs", help="Directory holding the input preferences file")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("status", help="Show power, volume, mute and input")
    subparsers.add_parser("inputs", help="Discover and list inputs")

    power_parser = subparsers.add_parser("power", help="Switch power on or off")
    power_parser.add_argument("state", choices=["on", "off"])

    volume_parser = subparsers.add_parser("volume", help="Set volume")
    volume_parser.add_argument("percent", type=int, help="Volume in percent (0-100)")

    input_parser = subparsers.add_parser("input", help="Select an input")
    input_parser.add_argument("input_id", help="Input code, e.g. 25 for BD")

    key_parser = subparsers.add_parser("key", help="Press a remote control key")
    key_parser.add_argument("key", choices=sorted(REMOTE_KEYS))

    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    # Always enable debug logging for now
    logging.basicConfig(level=logging.DEBUG)

    if args.command == "status":
        asyncio.run(show_status(create_avr(args)))
    elif args.command == "inputs":
        asyncio.run(list_inputs(create_avr(args)))
    elif args.command == "power":
        action = PioneerAVR.set_power_on if args.state == "on" else PioneerAVR.set_power_off
        asyncio.run(send(create_avr(args), action))
    elif args.command == "volume":
        asyncio.run(send(create_avr(args), lambda avr: avr.set_volume(args.percent)))
    elif args.command == "input":
        asyncio.run(send(create_avr(args), lambda avr: avr.set_input(args.input_id)))
    elif args.command == "key":
        asyncio.run(send(create_avr(args), lambda avr: avr.send_remote_key(args.key)))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
