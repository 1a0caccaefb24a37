"""Request/response correlation over the multiplexed control channel.

Each outbound frame gets a fresh id. Requests additionally register a pending
entry holding a single-assignment future and a one-shot timeout timer. The
first of response, timeout, reset or destroy to reach an entry settles it and
cancels the timer; every later path finds no entry and does nothing.

Ids restart at 1 on every connection epoch. Pending entries are keyed by
``(epoch, id)`` so a response on a new connection can never settle a request
issued on an older one.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from synthrig.client.errors import NotConnectedError, RequestResetError, RequestTimeoutError
from synthrig.protocol.messages import ClientEnvelope

logger = logging.getLogger(__name__)

PendingKey = Tuple[int, int]


@dataclass
class PendingRequest:
    request_id: int
    epoch: int
    future: asyncio.Future[Any]
    timer: Optional[asyncio.TimerHandle]
    timeout_ms: float

    def settle(self, *, result: Any = None, error: Optional[BaseException] = None) -> bool:
        """Complete the future once; returns False if it was already done."""

        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        if self.future.done():
            return False
        if error is not None:
            self.future.set_exception(error)
        else:
            self.future.set_result(result)
        return True


class RequestCorrelator:
    """Assign request ids, track pending requests and match responses."""

    def __init__(
        self,
        send_text: Callable[[str], bool],
        *,
        default_timeout_ms: float = 1000,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._send_text = send_text
        self.default_timeout_ms = float(default_timeout_ms)
        self._loop = loop
        self._epoch = 0
        self._id_counter = 0
        self._pending: Dict[PendingKey, PendingRequest] = {}

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def last_id(self) -> int:
        return self._id_counter

    def pending_count(self) -> int:
        return len(self._pending)

    def pending_ids(self) -> Tuple[int, ...]:
        return tuple(entry.request_id for entry in self._pending.values())

    # ------------------------------------------------------------------
    def begin_epoch(self, *, reset_pending: bool = True) -> int:
        """Start numbering for a new connection.

        With *reset_pending* every request still waiting on the previous
        connection fails with :class:`RequestResetError`; otherwise those
        requests keep waiting for their own timers.
        """

        previous = self._epoch
        self._epoch += 1
        self._id_counter = 0
        if reset_pending:
            stale = [entry for entry in self._pending.values() if entry.epoch == previous]
            for entry in stale:
                self._pending.pop((entry.epoch, entry.request_id), None)
                entry.settle(error=RequestResetError(entry.request_id, entry.epoch))
            if stale:
                logger.info("reset %d pending request(s) from epoch %d", len(stale), previous)
        return self._epoch

    def send(self, payload: Any, is_request: bool = False) -> int:
        """Wrap *payload* in an envelope, hand it to the transport, return its id."""

        self._id_counter += 1
        request_id = self._id_counter
        text = ClientEnvelope(id=request_id, request=bool(is_request), payload=payload).to_json()
        if not self._send_text(text):
            raise NotConnectedError(f"control channel not connected; frame {request_id} dropped")
        return request_id

    def request(self, payload: Any, timeout_ms: Optional[float] = None) -> asyncio.Future[Any]:
        """Send *payload* as a request and return a future for its response."""

        loop = self._loop or asyncio.get_running_loop()
        timeout = self.default_timeout_ms if timeout_ms is None else float(timeout_ms)
        request_id = self.send(payload, is_request=True)
        key = (self._epoch, request_id)
        entry = PendingRequest(
            request_id=request_id,
            epoch=self._epoch,
            future=loop.create_future(),
            timer=None,
            timeout_ms=timeout,
        )
        self._pending[key] = entry
        entry.timer = loop.call_later(timeout / 1000.0, self._expire, key)
        entry.future.add_done_callback(lambda _fut, key=key: self._forget_cancelled(key))
        return entry.future

    def resolve(self, request_id: int, payload: Any) -> bool:
        """Settle the current-epoch request *request_id* with *payload*."""

        entry = self._pending.pop((self._epoch, request_id), None)
        if entry is None:
            logger.debug("ignoring response for unknown or expired request id=%s", request_id)
            return False
        return entry.settle(result=payload)

    def reject_all(self, error_factory: Callable[[PendingRequest], BaseException]) -> int:
        entries = list(self._pending.values())
        self._pending.clear()
        for entry in entries:
            entry.settle(error=error_factory(entry))
        return len(entries)

    # ------------------------------------------------------------------
    def _expire(self, key: PendingKey) -> None:
        entry = self._pending.pop(key, None)
        if entry is None:
            return
        entry.timer = None
        logger.debug("request id=%s epoch=%s timed out after %.0f ms", entry.request_id, entry.epoch, entry.timeout_ms)
        entry.settle(error=RequestTimeoutError(entry.request_id, entry.timeout_ms))

    def _forget_cancelled(self, key: PendingKey) -> None:
        entry = self._pending.get(key)
        if entry is None or not entry.future.cancelled():
            return
        self._pending.pop(key, None)
        if entry.timer is not None:
            entry.timer.cancel()
            entry.timer = None
