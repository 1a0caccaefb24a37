from __future__ import annotations

import logging

from synthrig.client import events
from synthrig.client.control.broadcast_router import BroadcastRouter
from synthrig.client.control.replica_store import ReplicaStore
from synthrig.protocol.messages import ServerEnvelope


def _router() -> tuple[BroadcastRouter, ReplicaStore, list]:
    store = ReplicaStore()
    emitted: list = []
    router = BroadcastRouter(store, lambda name, detail=None: emitted.append((name, detail)))
    return router, store, emitted


def _broadcast(payload) -> ServerEnvelope:
    return ServerEnvelope(id=0, response=False, payload=payload)


def test_midi_and_input_lists_become_events() -> None:
    router, _, emitted = _router()
    router.route(_broadcast({"MidiEvent": {"NoteOn": {"note": 60}}}))
    router.route(_broadcast({"AvailableMidiInputs": ["Keystation"]}))
    router.route(_broadcast({"ConnectedMidiInputs": [None, "Keystation"]}))
    assert emitted == [
        (events.MIDI, {"NoteOn": {"note": 60}}),
        (events.AVAILABLE_MIDI_INPUTS, ["Keystation"]),
        (events.CONNECTED_MIDI_INPUTS, [None, "Keystation"]),
    ]
    assert router.available_midi_inputs == ("Keystation",)
    assert router.connected_midi_inputs == (None, "Keystation")


def test_cache_and_renderer_updates_reach_store() -> None:
    router, store, _ = _router()
    router.route(_broadcast({"Cache": {"render_nodes": []}}))
    router.route(_broadcast({"RendererUpdate": {"AddNode": {"kind": "OxiSynth"}}}))
    assert store.snapshot().to_json() == {"render_nodes": [{"kind": "OxiSynth", "instance": {}}]}


def test_beat_state_is_emitted_not_applied() -> None:
    router, store, emitted = _router()
    router.route(_broadcast({"Cache": {"controller": {"tempo_bpm": 120.0}}}))
    router.route(_broadcast({"ControllerUpdate": {"BeatState": {"beat": 1, "div": 0}}}))
    router.route(_broadcast({"ControllerUpdate": {"TempoBpm": 100.0}}))
    assert emitted == [(events.BEAT_STATE, {"beat": 1, "div": 0})]
    assert store.snapshot().singleton("controller") == {"tempo_bpm": 100.0}
    assert store.revision == 2


def test_log_broadcast_is_logged_and_emitted(caplog) -> None:
    router, _, emitted = _router()
    with caplog.at_level(logging.INFO, logger="synthrig.client.control.broadcast_router"):
        router.route(_broadcast({"Log": "loaded soundfont"}))
    assert emitted == [(events.LOG, "loaded soundfont")]
    assert "loaded soundfont" in caplog.text


def test_invalid_broadcasts_are_dropped(caplog) -> None:
    router, store, emitted = _router()
    with caplog.at_level(logging.WARNING, logger="synthrig.client.control.broadcast_router"):
        router.route(_broadcast({"Unheard": 1}))
        router.route(_broadcast({"RendererUpdate": {"RemoveNode": {"id": 0}}}))
        router.route(_broadcast({"Cache": {"render_nodes": []}}))
        router.route(_broadcast({"RendererUpdate": {"RemoveNode": {"id": 3}}}))
        router.route(_broadcast({"ControllerUpdate": {"Swing": 0.2}}))
    assert emitted == []
    assert store.revision == 1
    assert "Dropping broadcast" in caplog.text
    assert "before the first snapshot" in caplog.text


def test_non_broadcast_envelopes_are_ignored() -> None:
    router, store, emitted = _router()
    router.route(ServerEnvelope(id=3, response=True, payload={"Cache": {}}))
    assert emitted == []
    assert not store.populated
