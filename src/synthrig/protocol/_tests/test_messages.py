from __future__ import annotations

import json

import pytest

from synthrig.protocol.messages import (
    AvailableMidiInputs,
    CacheBroadcast,
    ClientEnvelope,
    ConnectedMidiInputs,
    ControllerUpdate,
    DrumMachineUpdates,
    LogBroadcast,
    MidiEvent,
    ProtocolError,
    RendererUpdate,
    ServerEnvelope,
    UnknownTagError,
    decode_broadcast,
    decode_server_frame,
    field_updates_from_wire,
    is_ok_response,
    response_tag,
    split_tag,
    tagged,
)


def test_client_envelope_wire_shape() -> None:
    env = ClientEnvelope(id=3, request=True, payload={"RendererRequest": {"AddNode": {"kind": "OxiSynth"}}})
    assert json.loads(env.to_json()) == {
        "id": 3,
        "request": True,
        "payload": {"RendererRequest": {"AddNode": {"kind": "OxiSynth"}}},
    }
    assert " " not in env.to_json()


def test_server_frame_decodes_response_and_broadcast() -> None:
    response = decode_server_frame('{"id": 4, "response": true, "payload": "Ack"}')
    assert response == ServerEnvelope(id=4, response=True, payload="Ack")
    assert not response.is_broadcast

    broadcast = decode_server_frame('{"id": 0, "response": false, "payload": {"Log": "hi"}}')
    assert broadcast.is_broadcast


def test_non_response_with_nonzero_id_is_not_broadcast() -> None:
    env = ServerEnvelope(id=5, response=False, payload="Ack")
    assert not env.is_broadcast


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        b'{"id": 0, "response": false, "payload": "Ack"}',
        "[1, 2, 3]",
        '{"id": 1, "payload": "Ack"}',
        '{"id": "1", "response": true, "payload": "Ack"}',
        '{"id": true, "response": true, "payload": "Ack"}',
        '{"id": 1, "response": 1, "payload": "Ack"}',
    ],
)
def test_malformed_frames_raise_protocol_error(raw) -> None:
    with pytest.raises(ProtocolError):
        decode_server_frame(raw)


def test_split_tag_unit_and_data_variants() -> None:
    assert split_tag("Ack") == ("Ack", None)
    assert split_tag({"Log": "text"}) == ("Log", "text")
    with pytest.raises(ProtocolError):
        split_tag({"a": 1, "b": 2})
    with pytest.raises(ProtocolError):
        split_tag(17)


def test_tagged_builds_unit_or_data_variant() -> None:
    assert tagged("Ping") == "Ping"
    assert tagged("SetEnabled", False) == {"SetEnabled": False}
    assert tagged("Instrument", None) == {"Instrument": None}


def test_decode_broadcast_family() -> None:
    midi = decode_broadcast({"MidiEvent": {"NoteOn": {"channel": 0, "note": 60, "velocity": 100}}})
    assert isinstance(midi, MidiEvent)

    available = decode_broadcast({"AvailableMidiInputs": ["Keystation", "Launchpad"]})
    assert available == AvailableMidiInputs(names=("Keystation", "Launchpad"))

    connected = decode_broadcast({"ConnectedMidiInputs": ["Keystation", None]})
    assert connected == ConnectedMidiInputs(slots=("Keystation", None))

    cache = decode_broadcast({"Cache": {"render_nodes": []}})
    assert isinstance(cache, CacheBroadcast)

    renderer = decode_broadcast({"RendererUpdate": {"RemoveNode": {"id": 1}}})
    assert renderer == RendererUpdate(kind="RemoveNode", body={"id": 1})

    controller = decode_broadcast({"ControllerUpdate": {"TempoBpm": 128.0}})
    assert controller == ControllerUpdate(kind="TempoBpm", body=128.0)

    drums = decode_broadcast({"DrumMachineUpdates": [["step", 3]]})
    assert drums == DrumMachineUpdates(updates=(("step", 3),))

    assert decode_broadcast({"Log": "hello"}) == LogBroadcast(text="hello")


def test_decode_broadcast_rejects_unknown_tag() -> None:
    with pytest.raises(UnknownTagError) as excinfo:
        decode_broadcast({"Telemetry": {}})
    assert excinfo.value.tag == "Telemetry"
    assert excinfo.value.family == "broadcast"


def test_broadcast_inner_shape_is_checked() -> None:
    with pytest.raises(ProtocolError):
        decode_broadcast({"AvailableMidiInputs": "Keystation"})
    with pytest.raises(ProtocolError):
        decode_broadcast({"Cache": [1, 2]})


def test_field_updates_require_pairs() -> None:
    assert field_updates_from_wire([["gain", 0.5], ["name", "lead"]], "ctx") == (("gain", 0.5), ("name", "lead"))
    with pytest.raises(ProtocolError):
        field_updates_from_wire([["gain"]], "ctx")
    with pytest.raises(ProtocolError):
        field_updates_from_wire({"gain": 0.5}, "ctx")


def test_response_helpers() -> None:
    assert response_tag({"DirInfo": []}) == "DirInfo"
    assert is_ok_response("Ack")
    assert is_ok_response("Pong")
    assert not is_ok_response("Nak")
    assert is_ok_response({"RendererResponse": "Ok"})
    assert is_ok_response({"ControllerResponse": "Ok"})
    assert is_ok_response({"RendererResponse": {"NodeResponse": {"id": 0, "kind": "Ok"}}})
    assert not is_ok_response({"RendererResponse": {"NodeResponse": {"id": 0, "kind": {"Error": "bad"}}}})
    assert not is_ok_response({"RendererResponse": "Error"})
    assert not is_ok_response(42)
