from __future__ import annotations

import asyncio
import json

import pytest

from synthrig.client.control.correlator import RequestCorrelator
from synthrig.client.errors import (
    ClientDestroyedError,
    NotConnectedError,
    RequestResetError,
    RequestTimeoutError,
)


class _Wire:
    def __init__(self) -> None:
        self.frames: list[dict] = []
        self.open = True

    def __call__(self, text: str) -> bool:
        if not self.open:
            return False
        self.frames.append(json.loads(text))
        return True


def _correlator(timeout_ms: float = 1000) -> tuple[RequestCorrelator, _Wire]:
    wire = _Wire()
    correlator = RequestCorrelator(wire, default_timeout_ms=timeout_ms)
    correlator.begin_epoch()
    return correlator, wire


def test_ids_increase_and_flag_requests() -> None:
    async def scenario() -> None:
        correlator, wire = _correlator()
        assert correlator.send("Ping") == 1
        correlator.request("Ping")
        assert correlator.send({"Report": "x"}) == 3
        assert [frame["id"] for frame in wire.frames] == [1, 2, 3]
        assert [frame["request"] for frame in wire.frames] == [False, True, False]
        assert correlator.pending_ids() == (2,)

    asyncio.run(scenario())


def test_response_resolves_matching_request() -> None:
    async def scenario() -> None:
        correlator, _ = _correlator()
        first = correlator.request("Ping")
        second = correlator.request({"RendererRequest": {"RemoveNode": {"id": 0}}})
        assert correlator.resolve(2, "Ack")
        assert correlator.resolve(1, "Pong")
        assert await first == "Pong"
        assert await second == "Ack"
        assert correlator.pending_count() == 0

    asyncio.run(scenario())


def test_unknown_response_is_ignored() -> None:
    async def scenario() -> None:
        correlator, _ = _correlator()
        future = correlator.request("Ping")
        assert not correlator.resolve(99, "Ack")
        assert not future.done()
        correlator.resolve(1, "Pong")

    asyncio.run(scenario())


def test_timeout_rejects_and_late_response_is_dropped() -> None:
    async def scenario() -> None:
        correlator, _ = _correlator(timeout_ms=20)
        future = correlator.request("Ping")
        with pytest.raises(RequestTimeoutError) as excinfo:
            await future
        assert excinfo.value.request_id == 1
        assert excinfo.value.timeout_ms == 20
        assert correlator.pending_count() == 0
        assert not correlator.resolve(1, "Pong")

    asyncio.run(scenario())


def test_per_request_timeout_overrides_default() -> None:
    async def scenario() -> None:
        correlator, _ = _correlator(timeout_ms=10)
        slow = correlator.request({"RendererRequest": "LoadFile"}, timeout_ms=5000)
        await asyncio.sleep(0.05)
        assert not slow.done()
        correlator.resolve(1, "Ack")
        assert await slow == "Ack"

    asyncio.run(scenario())


def test_send_while_disconnected_raises_and_registers_nothing() -> None:
    async def scenario() -> None:
        correlator, wire = _correlator()
        wire.open = False
        with pytest.raises(NotConnectedError):
            correlator.request("Ping")
        assert correlator.pending_count() == 0
        assert correlator.last_id == 1

    asyncio.run(scenario())


def test_new_epoch_restarts_ids_and_resets_pending() -> None:
    async def scenario() -> None:
        correlator, wire = _correlator()
        stale = correlator.request("Ping")
        correlator.begin_epoch()
        with pytest.raises(RequestResetError) as excinfo:
            await stale
        assert excinfo.value.request_id == 1
        assert excinfo.value.epoch == 1

        fresh = correlator.request("Ping")
        assert wire.frames[-1]["id"] == 1
        correlator.resolve(1, "Pong")
        assert await fresh == "Pong"

    asyncio.run(scenario())


def test_response_on_new_epoch_never_settles_old_request() -> None:
    async def scenario() -> None:
        correlator, _ = _correlator(timeout_ms=50)
        old = correlator.request("Ping")
        correlator.begin_epoch(reset_pending=False)
        assert not correlator.resolve(1, "Pong")
        assert not old.done()
        with pytest.raises(RequestTimeoutError):
            await old

    asyncio.run(scenario())


def test_cancelled_future_forgets_entry() -> None:
    async def scenario() -> None:
        correlator, _ = _correlator()
        future = correlator.request("Ping")
        future.cancel()
        await asyncio.sleep(0)
        assert correlator.pending_count() == 0
        assert not correlator.resolve(1, "Pong")

    asyncio.run(scenario())


def test_reject_all_settles_every_pending_request() -> None:
    async def scenario() -> None:
        correlator, _ = _correlator()
        futures = [correlator.request("Ping") for _ in range(3)]
        count = correlator.reject_all(lambda entry: ClientDestroyedError(str(entry.request_id)))
        assert count == 3
        for future in futures:
            with pytest.raises(ClientDestroyedError):
                await future
        assert correlator.reject_all(lambda entry: ClientDestroyedError("again")) == 0

    asyncio.run(scenario())
