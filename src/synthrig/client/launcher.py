"""
Command-line monitor for a synthrig server.

Connects to the control channel, logs connection changes, MIDI input lists
and replica updates, and optionally pings the server once connected.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from typing import Optional, Sequence

from synthrig.client import events
from synthrig.client.api import RigApi, describe_nodes
from synthrig.client.config import load_client_config
from synthrig.client.control.replica_store import ReplicaSnapshot
from synthrig.client.errors import RigClientError
from synthrig.client.session import RigClient
from synthrig.protocol.deltas import CONTROL_NODES, RENDER_NODES
from synthrig.utils.debug_log import DEBUG_FORMAT

logger = logging.getLogger(__name__)


def _log_cache(snapshot: ReplicaSnapshot) -> None:
    logger.info(
        "cache-update rev=%d render_nodes=%s control_nodes=%s",
        snapshot.revision,
        describe_nodes(snapshot.collection(RENDER_NODES)),
        describe_nodes(snapshot.collection(CONTROL_NODES)),
    )


async def monitor(
    client: RigClient,
    *,
    duration: Optional[float] = None,
    ping: bool = False,
    verbose: bool = False,
) -> None:
    """Attach logging listeners to *client* and run until *duration* elapses."""

    client.add_listener(events.CONNECTED, lambda _detail: logger.info("connected to %s", client.config.url))
    client.add_listener(events.DISCONNECTED, lambda detail: logger.info("disconnected (%s)", detail or "closed"))
    client.add_listener(events.CACHE_UPDATE, _log_cache)
    client.add_listener(events.AVAILABLE_MIDI_INPUTS, lambda names: logger.info("available MIDI inputs: %s", names))
    client.add_listener(events.CONNECTED_MIDI_INPUTS, lambda slots: logger.info("connected MIDI inputs: %s", slots))
    if verbose:
        client.add_listener(events.MIDI, lambda message: logger.debug("midi: %s", message))
        client.add_listener(events.BEAT_STATE, lambda beat: logger.debug("beat: %s", beat))

    async with client:
        if ping:
            await client.wait_connected()
            api = RigApi(client)
            try:
                reply = await api.ping()
            except RigClientError as exc:
                logger.warning("ping failed: %s", exc)
            else:
                logger.info("ping reply: %s", reply)
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Monitor a synthrig server's control channel")
    parser.add_argument("--host", default=None, help="Server host (default: $SYNTHRIG_HOST or localhost)")
    parser.add_argument("--port", type=int, default=None, help="Server port (default: $SYNTHRIG_PORT or 3000)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--ping", action="store_true", help="Send a Ping request once connected")
    parser.add_argument("--duration", type=float, default=None, help="Stop after this many seconds")
    args = parser.parse_args(argv)

    debug = bool(args.debug) or os.getenv("SYNTHRIG_DEBUG", "").lower() in ("1", "true", "yes")
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=DEBUG_FORMAT)

    config = load_client_config(host=args.host, port=args.port)
    client = RigClient(config)
    try:
        asyncio.run(monitor(client, duration=args.duration, ping=args.ping, verbose=debug))
    except KeyboardInterrupt:
        logger.info("interrupted; shutting down")


if __name__ == "__main__":
    main()
