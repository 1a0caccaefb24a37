"""Explicitly owned control client for one rig server.

``RigClient`` wires the transport, the request correlator, the broadcast
router and the replica store together and exposes the surface UI code
consumes: named events, ``request``/``send`` and ``get_cache``.

Typical use::

    async with RigClient(load_client_config(host="rig.local")) as client:
        await client.wait_connected(timeout=5.0)
        client.add_listener("cache-update", on_cache)
        reply = await client.request({"RendererRequest": {"AddNode": {"kind": "OxiSynth"}}})
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Tuple

from synthrig.client import events
from synthrig.client.config import ClientConfig, load_client_config
from synthrig.client.control.broadcast_router import BroadcastRouter
from synthrig.client.control.correlator import PendingRequest, RequestCorrelator
from synthrig.client.control.replica_store import ReplicaSnapshot, ReplicaStore
from synthrig.client.control.transport import Connector, Sleeper, Transport
from synthrig.client.errors import ClientDestroyedError
from synthrig.client.events import EventHub, EventListener
from synthrig.protocol.messages import ProtocolError, ServerEnvelope

logger = logging.getLogger(__name__)


class RigClient:
    """Mirror of the rig server state plus correlated requests over one socket.

    Lifecycle is ``RigClient(...)`` -> :meth:`start` -> :meth:`destroy`. All
    methods must be called from the event loop the client was started on.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        connect: Optional[Connector] = None,
        sleep: Optional[Sleeper] = None,
    ) -> None:
        self.config = config if config is not None else load_client_config()
        self._hub = EventHub()
        self._store = ReplicaStore()
        self._router = BroadcastRouter(self._store, self._hub.emit)
        self._transport = Transport(
            self.config.url,
            reconnect_delay_s=self.config.reconnect_delay_s,
            on_connected=self._on_connected,
            on_disconnected=self._on_disconnected,
            on_envelope=self._on_envelope,
            on_decode_error=self._on_decode_error,
            connect=connect,
            sleep=sleep,
        )
        self._correlator = RequestCorrelator(
            self._transport.send_text,
            default_timeout_ms=self.config.request_timeout_ms,
        )
        self._store.add_listener(self._on_replica_changed)
        self._connected = asyncio.Event()
        self._destroyed = False

    # ------------------------------------------------------------------ lifecycle
    async def start(self) -> "RigClient":
        if self._destroyed:
            raise ClientDestroyedError("client was destroyed")
        self._transport.start()
        return self

    async def wait_connected(self, timeout: Optional[float] = None) -> None:
        """Wait until a connection is open; raises ``TimeoutError`` on timeout."""

        if timeout is None:
            await self._connected.wait()
            return
        try:
            await asyncio.wait_for(self._connected.wait(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise TimeoutError(f"not connected to {self.config.url} after {timeout:g}s") from exc

    def destroy(self) -> None:
        """Release the connection; no events are delivered afterwards."""

        if self._destroyed:
            return
        self._destroyed = True
        self._hub.close()
        self._store.remove_listener(self._on_replica_changed)
        self._transport.destroy()
        self._connected.clear()
        rejected = self._correlator.reject_all(_destroyed_error)
        if rejected:
            logger.info("destroy: abandoned %d pending request(s)", rejected)

    async def aclose(self) -> None:
        self.destroy()
        await self._transport.wait_closed()

    async def __aenter__(self) -> "RigClient":
        return await self.start()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ state
    @property
    def is_connected(self) -> bool:
        return self._transport.connected

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def available_midi_inputs(self) -> Tuple[str, ...]:
        return self._router.available_midi_inputs

    @property
    def connected_midi_inputs(self) -> Tuple[Optional[str], ...]:
        return self._router.connected_midi_inputs

    def get_cache(self) -> ReplicaSnapshot:
        return self._store.snapshot()

    def record_key(self, collection: str, index: int) -> int:
        """Stable key of the record currently at *index*."""

        return self._store.key_at(collection, index)

    def record_index(self, collection: str, key: int) -> int:
        """Current wire index of the record with stable *key*."""

        return self._store.index_of(collection, key)

    def pending_count(self) -> int:
        return self._correlator.pending_count()

    # ------------------------------------------------------------------ events
    def add_listener(self, event: str, callback: EventListener) -> None:
        self._hub.add_listener(event, callback)

    def remove_listener(self, event: str, callback: EventListener) -> None:
        self._hub.remove_listener(event, callback)

    # ------------------------------------------------------------------ outbound
    def send(self, payload: Any) -> int:
        """Fire-and-forget frame; returns the id it was sent with."""

        if self._destroyed:
            raise ClientDestroyedError("client was destroyed")
        return self._correlator.send(payload, is_request=False)

    def request(self, payload: Any, timeout_ms: Optional[float] = None) -> asyncio.Future[Any]:
        """Send *payload* as a request; the future yields the response payload."""

        if self._destroyed:
            raise ClientDestroyedError("client was destroyed")
        return self._correlator.request(payload, timeout_ms)

    # ------------------------------------------------------------------ transport callbacks
    def _on_connected(self) -> None:
        epoch = self._correlator.begin_epoch(reset_pending=self.config.reset_pending_on_reconnect)
        logger.debug("connection epoch %d started", epoch)
        self._connected.set()
        self._hub.emit(events.CONNECTED)

    def _on_disconnected(self, error: Optional[BaseException]) -> None:
        self._connected.clear()
        self._hub.emit(events.DISCONNECTED, error)

    def _on_envelope(self, envelope: ServerEnvelope) -> None:
        if envelope.response:
            self._correlator.resolve(envelope.id, envelope.payload)
        elif envelope.is_broadcast:
            self._router.route(envelope)
        else:
            logger.debug("ignoring non-response frame with id=%s", envelope.id)

    def _on_decode_error(self, raw: Any, error: ProtocolError) -> None:
        self._hub.emit(events.DECODE_ERROR, {"raw": raw, "error": error})

    def _on_replica_changed(self, snapshot: ReplicaSnapshot) -> None:
        self._hub.emit(events.CACHE_UPDATE, snapshot)


def _destroyed_error(entry: PendingRequest) -> BaseException:
    return ClientDestroyedError(f"request {entry.request_id} abandoned: client destroyed")
