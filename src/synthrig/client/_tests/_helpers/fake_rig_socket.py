"""In-memory stand-ins for the rig server's WebSocket endpoint.

``FakeConnector`` replaces ``websockets.connect``: every connection attempt
consumes the next scripted entry, either a :class:`FakeRigSocket` or an
exception to raise from the attempt. ``RecordingSleep`` replaces the
reconnect delay so tests can assert on it without waiting.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Callable, List, Optional, Sequence, Union

from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

_CLOSE = object()
_DROP = object()


class FakeRigSocket:
    """Minimal client connection consumed by ``Transport``."""

    def __init__(self) -> None:
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()
        self.sent: List[str] = []
        self.closed = False
        # when set, outbound sends fail as if the peer vanished mid-write
        self.fail_sends = False

    # --- scripting ----------------------------------------------------------------
    def push(self, frame: Any) -> None:
        """Queue an inbound frame; mappings are JSON-encoded."""

        self._incoming.put_nowait(frame if isinstance(frame, (str, bytes)) else json.dumps(frame))

    def push_response(self, request_id: int, payload: Any) -> None:
        self.push({"id": request_id, "response": True, "payload": payload})

    def push_broadcast(self, payload: Any) -> None:
        self.push({"id": 0, "response": False, "payload": payload})

    def drop(self) -> None:
        """Simulate the server vanishing without a close handshake."""

        self._incoming.put_nowait(_DROP)

    def sent_envelopes(self) -> List[dict]:
        return [json.loads(text) for text in self.sent]

    # --- connection protocol ------------------------------------------------------
    async def recv(self) -> Any:
        item = await self._incoming.get()
        if item is _CLOSE:
            self.closed = True
            raise ConnectionClosedOK(None, None)
        if item is _DROP:
            self.closed = True
            raise ConnectionClosedError(None, None)
        return item

    def __aiter__(self) -> "FakeRigSocket":
        return self

    async def __anext__(self) -> Any:
        try:
            return await self.recv()
        except ConnectionClosedOK as exc:
            raise StopAsyncIteration from exc

    async def send(self, text: str) -> None:
        if self.fail_sends:
            raise ConnectionClosedError(None, None)
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(text)

    async def close(self, *_: Any, **__: Any) -> None:
        if self.closed:
            return
        self.closed = True
        self._incoming.put_nowait(_CLOSE)


class _FakeConnection:
    def __init__(self, target: Union[FakeRigSocket, BaseException]) -> None:
        self._target = target

    async def __aenter__(self) -> FakeRigSocket:
        if isinstance(self._target, BaseException):
            raise self._target
        return self._target

    async def __aexit__(self, *exc_info: Any) -> None:
        if isinstance(self._target, FakeRigSocket):
            await self._target.close()


class FakeConnector:
    """Scripted replacement for ``websockets.connect``.

    Attempts past the end of the script are refused.
    """

    def __init__(self, script: Sequence[Union[FakeRigSocket, BaseException]] = ()) -> None:
        self._script = list(script)
        self.attempts: List[str] = []
        self.attempt_times: List[float] = []

    def __call__(self, url: str) -> _FakeConnection:
        self.attempts.append(url)
        self.attempt_times.append(time.monotonic())
        if self._script:
            return _FakeConnection(self._script.pop(0))
        return _FakeConnection(ConnectionRefusedError("connection refused"))


class RecordingSleep:
    """Record reconnect delays; the first *returns* calls complete at once.

    Later calls block until cancelled so a refused server does not spin.
    """

    def __init__(self, returns: int = 1) -> None:
        self.delays: List[float] = []
        self._returns = returns

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if len(self.delays) <= self._returns:
            await asyncio.sleep(0)
            return
        await asyncio.Event().wait()


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0, message: Optional[str] = None) -> None:
    """Poll *predicate* on the running loop until it holds."""

    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError(message or "condition not reached before timeout")
        await asyncio.sleep(0.002)
