"""WebSocket transport for the rig control channel.

Owns one physical connection at a time. When the connection fails or closes
the transport reports ``disconnected``, waits a fixed delay and connects
again, forever, until :meth:`Transport.destroy` is called.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from synthrig.protocol.messages import ProtocolError, ServerEnvelope, decode_server_frame
from synthrig.utils.debug_log import maybe_enable_debug_logger

logger = logging.getLogger(__name__)

_TRANSPORT_DEBUG = maybe_enable_debug_logger(logger, "SYNTHRIG_TRANSPORT_DEBUG", "SYNTHRIG_CLIENT_DEBUG")

Connector = Callable[[str], Any]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class TransportLoop:
    websocket: Any = None
    outbox: Optional[asyncio.Queue[str]] = None
    task: Optional[asyncio.Task[None]] = None
    stop_requested: bool = False


class Transport:
    """Maintains the WebSocket connection and decodes inbound frames.

    Callbacks run on the event loop thread in frame order:

    * ``on_connected()`` once the socket is open and ready to send,
    * ``on_envelope(envelope)`` for every decoded frame,
    * ``on_decode_error(raw, exc)`` for frames that do not parse,
    * ``on_disconnected(exc)`` after a connection ends or an attempt fails.
    """

    def __init__(
        self,
        url: str,
        *,
        reconnect_delay_s: float = 1.0,
        on_connected: Optional[Callable[[], None]] = None,
        on_disconnected: Optional[Callable[[Optional[BaseException]], None]] = None,
        on_envelope: Optional[Callable[[ServerEnvelope], None]] = None,
        on_decode_error: Optional[Callable[[Any, ProtocolError], None]] = None,
        connect: Optional[Connector] = None,
        sleep: Optional[Sleeper] = None,
    ) -> None:
        self.url = url
        self.reconnect_delay_s = float(reconnect_delay_s)
        self.on_connected = on_connected
        self.on_disconnected = on_disconnected
        self.on_envelope = on_envelope
        self.on_decode_error = on_decode_error
        self._connect: Connector = connect if connect is not None else websockets.connect
        self._sleep: Sleeper = sleep if sleep is not None else asyncio.sleep
        self._loop_state = TransportLoop()

    @property
    def connected(self) -> bool:
        return self._loop_state.outbox is not None

    @property
    def destroyed(self) -> bool:
        return self._loop_state.stop_requested

    def start(self) -> asyncio.Task[None]:
        """Schedule :meth:`run` on the running event loop."""

        loop_state = self._loop_state
        if loop_state.task is not None and not loop_state.task.done():
            return loop_state.task
        loop_state.task = asyncio.get_running_loop().create_task(self.run(), name="synthrig-transport")
        return loop_state.task

    async def run(self) -> None:
        """Connect, serve, and reconnect until destroyed."""

        loop_state = self._loop_state
        if loop_state.task is None:
            loop_state.task = asyncio.current_task()
        logger.info("Connecting to rig control channel at %s", self.url)
        while not loop_state.stop_requested:
            error: Optional[BaseException] = None
            try:
                async with self._connect(self.url) as ws:
                    await self._serve(loop_state, ws)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                error = exc
                self._log_connection_error(exc)
            finally:
                loop_state.websocket = None
                loop_state.outbox = None
            if loop_state.stop_requested:
                break
            self._notify_disconnected(error)
            await self._sleep(self.reconnect_delay_s)
            if loop_state.stop_requested:
                break
            logger.info("Reconnecting to rig control channel...")

    async def _serve(self, loop_state: TransportLoop, ws: Any) -> None:
        loop_state.websocket = ws
        loop_state.outbox = asyncio.Queue()
        logger.info("Connected to rig control channel")
        send_task = asyncio.create_task(self._sender(loop_state, ws, loop_state.outbox))
        try:
            if self.on_connected is not None:
                try:
                    self.on_connected()
                except Exception:
                    logger.debug("on_connected callback failed", exc_info=True)
            async for raw in ws:
                if loop_state.stop_requested:
                    break
                self._handle_frame(raw)
        finally:
            send_task.cancel()
            with suppress(asyncio.CancelledError):
                await send_task

    async def _sender(self, loop_state: TransportLoop, ws: Any, outbox: asyncio.Queue[str]) -> None:
        while True:
            text = await outbox.get()
            if _TRANSPORT_DEBUG:
                logger.debug("transport sender -> %s", text)
            try:
                await ws.send(text)
            except Exception:
                logger.debug("transport sender failed; closing connection", exc_info=True)
                break
        # stop accepting frames; the receive loop ends once the close completes
        if loop_state.outbox is outbox:
            loop_state.outbox = None
        try:
            await ws.close()
        except Exception:
            logger.debug("transport close after send failure failed", exc_info=True)

    def _handle_frame(self, raw: Any) -> None:
        try:
            envelope = decode_server_frame(raw)
        except ProtocolError as exc:
            logger.warning("Invalid message received: %r (%s)", raw, exc)
            if self.on_decode_error is not None:
                try:
                    self.on_decode_error(raw, exc)
                except Exception:
                    logger.debug("on_decode_error callback failed", exc_info=True)
            return
        if _TRANSPORT_DEBUG:
            logger.debug("transport received id=%s response=%s", envelope.id, envelope.response)
        if self.on_envelope is None:
            return
        try:
            self.on_envelope(envelope)
        except Exception:
            logger.debug("on_envelope callback failed", exc_info=True)

    def _notify_disconnected(self, error: Optional[BaseException]) -> None:
        if self.on_disconnected is None:
            return
        try:
            self.on_disconnected(error)
        except Exception:
            logger.debug("on_disconnected callback failed", exc_info=True)

    def _log_connection_error(self, exc: BaseException) -> None:
        msg = str(exc) or exc.__class__.__name__
        delay = self.reconnect_delay_s
        if isinstance(exc, (EOFError, ConnectionRefusedError)):
            logger.info("Rig control channel unavailable (%s); retrying in %.1fs", msg, delay)
        elif isinstance(exc, InvalidHandshake):
            logger.info("Rig control channel handshake failed (%s); retrying in %.1fs", msg, delay)
        elif isinstance(exc, ConnectionClosed):
            logger.info("Rig control channel closed (%s); retrying in %.1fs", msg, delay)
        elif isinstance(exc, OSError):
            logger.info("Rig control channel socket error (%s); retrying in %.1fs", msg, delay)
        else:
            logger.exception("Rig control channel error")

    # --- Outbound ---------------------------------------------------------------------
    def send_text(self, text: str) -> bool:
        """Queue a text frame on the current connection.

        Returns False when no connection is open or the transport is destroyed.
        """

        loop_state = self._loop_state
        outbox = loop_state.outbox
        if outbox is None or loop_state.stop_requested:
            return False
        outbox.put_nowait(text)
        return True

    def destroy(self) -> None:
        """Close the connection and cancel any scheduled reconnect."""

        loop_state = self._loop_state
        if loop_state.stop_requested:
            return
        loop_state.stop_requested = True
        loop_state.outbox = None
        task = loop_state.task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        logger.info("Rig control channel transport destroyed")

    async def wait_closed(self) -> None:
        """Wait for the run task to finish after :meth:`destroy`."""

        task = self._loop_state.task
        if task is None or task is asyncio.current_task():
            return
        with suppress(asyncio.CancelledError):
            await task
