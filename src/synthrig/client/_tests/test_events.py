from __future__ import annotations

import pytest

from synthrig.client import events
from synthrig.client.events import EventHub


def test_listeners_run_in_registration_order() -> None:
    hub = EventHub()
    calls = []
    hub.add_listener(events.LOG, lambda text: calls.append(("first", text)))
    hub.add_listener(events.LOG, lambda text: calls.append(("second", text)))
    hub.emit(events.LOG, "hello")
    assert calls == [("first", "hello"), ("second", "hello")]


def test_unknown_event_name_is_rejected() -> None:
    hub = EventHub()
    with pytest.raises(ValueError):
        hub.add_listener("cache_update", lambda _detail: None)


def test_failing_listener_does_not_block_others() -> None:
    hub = EventHub()
    calls = []

    def broken(_detail) -> None:
        raise RuntimeError("listener bug")

    hub.add_listener(events.MIDI, broken)
    hub.add_listener(events.MIDI, calls.append)
    hub.emit(events.MIDI, {"NoteOff": {"note": 60}})
    assert calls == [{"NoteOff": {"note": 60}}]


def test_remove_listener_and_duplicates() -> None:
    hub = EventHub()
    calls = []
    hub.add_listener(events.CONNECTED, calls.append)
    hub.add_listener(events.CONNECTED, calls.append)
    hub.emit(events.CONNECTED)
    hub.remove_listener(events.CONNECTED, calls.append)
    hub.remove_listener(events.CONNECTED, calls.append)
    hub.emit(events.CONNECTED)
    assert calls == [None]


def test_closed_hub_drops_events() -> None:
    hub = EventHub()
    calls = []
    hub.add_listener(events.DISCONNECTED, calls.append)
    hub.close()
    hub.emit(events.DISCONNECTED, None)
    assert calls == []
