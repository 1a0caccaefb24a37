"""Typed request helpers for the rig server's request vocabulary.

Each method builds the tagged request payload and awaits
:meth:`RigClient.request`, returning the raw response payload (for example
``"Ack"`` or ``{"RendererResponse": "Ok"}``). Use
:func:`synthrig.protocol.is_ok_response` to test for success.

Node arguments are wire positions: the index of the node in its collection at
the moment the request is sent.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from synthrig.client.session import RigClient
from synthrig.protocol.messages import DIR_INFO_TAG, split_tag, tagged


def _pairs(values: Iterable[Tuple[int, bool]]) -> List[List[Any]]:
    return [[int(number), bool(enabled)] for number, enabled in values]


class RigApi:
    """Domain-shaped requests issued through one :class:`RigClient`."""

    def __init__(self, client: RigClient) -> None:
        self._client = client

    @property
    def client(self) -> RigClient:
        return self._client

    @property
    def long_timeout_ms(self) -> int:
        return self._client.config.long_request_timeout_ms

    async def request(self, payload: Any, timeout_ms: Optional[float] = None) -> Any:
        return await self._client.request(payload, timeout_ms)

    # ------------------------------------------------------------------ session
    async def ping(self) -> Any:
        return await self.request(tagged("Ping"))

    async def report(self, text: str) -> Any:
        return await self.request(tagged("Report", str(text)))

    async def connect_midi_input(self, slot: int, input_name: str) -> Any:
        return await self.request(tagged("ConnectMidiInput", [int(slot), str(input_name)]))

    async def disconnect_midi_input(self, slot: int) -> Any:
        return await self.request(tagged("DisconnectMidiInput", int(slot)))

    # ------------------------------------------------------------------ renderer
    async def renderer_request(self, kind: Any, timeout_ms: Optional[float] = None) -> Any:
        return await self.request(tagged("RendererRequest", kind), timeout_ms)

    async def add_node(self, kind: str) -> Any:
        return await self.renderer_request(tagged("AddNode", {"kind": str(kind)}))

    async def remove_node(self, node_id: int) -> Any:
        return await self.renderer_request(tagged("RemoveNode", {"id": int(node_id)}))

    async def clone_node(self, node_id: int) -> Any:
        return await self.renderer_request(tagged("CloneNode", {"id": int(node_id)}))

    async def move_node(self, node_id: int, new_id: int) -> Any:
        return await self.renderer_request(tagged("MoveNode", {"id": int(node_id), "new_id": int(new_id)}))

    async def node_request(self, node_id: int, kind: Any, timeout_ms: Optional[float] = None) -> Any:
        return await self.renderer_request(
            tagged("NodeRequest", {"id": int(node_id), "kind": kind}),
            timeout_ms,
        )

    async def node_set_name(self, node_id: int, name: str) -> Any:
        return await self.node_request(node_id, tagged("SetName", str(name)))

    async def node_set_enabled(self, node_id: int, enabled: bool = True) -> Any:
        return await self.node_request(node_id, tagged("SetEnabled", bool(enabled)))

    async def node_load_file(self, node_id: int, path: str) -> Any:
        return await self.node_request(node_id, tagged("LoadFile", str(path)), self.long_timeout_ms)

    async def node_set_gain(self, node_id: int, gain: float) -> Any:
        return await self.node_request(node_id, tagged("SetGain", float(gain)))

    async def node_set_transposition(self, node_id: int, semitones: int) -> Any:
        return await self.node_request(node_id, tagged("SetTransposition", int(semitones)))

    async def node_set_velocity_mapping(self, node_id: int, mapping: Any) -> Any:
        return await self.node_request(node_id, tagged("SetVelocityMapping", mapping))

    async def node_set_velocity_mapping_identity(self, node_id: int) -> Any:
        return await self.node_set_velocity_mapping(node_id, "Identity")

    async def node_set_velocity_mapping_linear(self, node_id: int, minimum: int, maximum: int) -> Any:
        return await self.node_set_velocity_mapping(
            node_id,
            tagged("Linear", {"min": int(minimum), "max": int(maximum)}),
        )

    async def node_set_ignore_global_transposition(self, node_id: int, ignore: bool = True) -> Any:
        return await self.node_request(node_id, tagged("SetIgnoreGlobalTransposition", bool(ignore)))

    async def node_set_bank_and_preset(self, node_id: int, bank: int, preset: int) -> Any:
        return await self.node_request(node_id, tagged("SetBankAndPreset", [int(bank), int(preset)]))

    async def node_set_user_preset(self, node_id: int, preset_id: int) -> Any:
        return await self.node_request(node_id, tagged("SetUserPreset", int(preset_id)))

    async def node_set_user_preset_enabled(self, node_id: int, preset_id: int, enabled: bool = True) -> Any:
        return await self.node_request(node_id, tagged("SetUserPresetEnabled", [int(preset_id), bool(enabled)]))

    async def node_add_drum_machine_voice(self, node_id: int) -> Any:
        return await self.node_request(node_id, tagged("AddDrumMachineVoice"))

    async def node_remove_drum_machine_voice(self, node_id: int, voice_id: int) -> Any:
        return await self.node_request(node_id, tagged("RemoveDrumMachineVoice", int(voice_id)))

    async def node_clear_drum_machine_voices(self, node_id: int) -> Any:
        return await self.node_request(node_id, tagged("ClearDrumMachineVoices"))

    async def node_set_drum_machine_voice_instrument(
        self, node_id: int, voice_id: int, instrument_id: Optional[int]
    ) -> Any:
        instrument = None if instrument_id is None else int(instrument_id)
        return await self.node_request(node_id, tagged("SetDrumMachineVoiceInstrument", [int(voice_id), instrument]))

    async def node_set_drum_machine_voice_note(self, node_id: int, voice_id: int, note: int) -> Any:
        return await self.node_request(node_id, tagged("SetDrumMachineVoiceNote", [int(voice_id), int(note)]))

    async def node_set_drum_machine_slot(self, node_id: int, voice_id: int, slot_id: int, velocity: int) -> Any:
        return await self.node_request(
            node_id,
            tagged("SetDrumMachineSlot", [int(voice_id), int(slot_id), int(velocity)]),
        )

    # --- MIDI filter ------------------------------------------------------------------
    async def node_update_midi_filter(self, node_id: int, update: Any) -> Any:
        return await self.node_request(node_id, tagged("UpdateMidiFilter", update))

    async def node_update_midi_filter_enabled(self, node_id: int, enabled: bool = True) -> Any:
        return await self.node_update_midi_filter(node_id, tagged("Enabled", bool(enabled)))

    async def node_update_midi_filter_channel(self, node_id: int, channel: int, enabled: bool) -> Any:
        return await self.node_update_midi_filter(node_id, tagged("Channel", [int(channel), bool(enabled)]))

    async def node_update_midi_filter_channels(self, node_id: int, channels: Iterable[Tuple[int, bool]]) -> Any:
        return await self.node_update_midi_filter(node_id, tagged("Channels", _pairs(channels)))

    async def node_update_midi_filter_note(self, node_id: int, note: int, enabled: bool) -> Any:
        return await self.node_update_midi_filter(node_id, tagged("Note", [int(note), bool(enabled)]))

    async def node_update_midi_filter_notes(self, node_id: int, notes: Iterable[Tuple[int, bool]]) -> Any:
        return await self.node_update_midi_filter(node_id, tagged("Notes", _pairs(notes)))

    async def node_update_midi_filter_control_change(self, node_id: int, cc: int, enabled: bool) -> Any:
        return await self.node_update_midi_filter(node_id, tagged("ControlChange", [int(cc), bool(enabled)]))

    async def node_update_midi_filter_control_changes(self, node_id: int, ccs: Iterable[Tuple[int, bool]]) -> Any:
        return await self.node_update_midi_filter(node_id, tagged("ControlChanges", _pairs(ccs)))

    async def node_update_midi_filter_program_change(self, node_id: int, enabled: bool) -> Any:
        return await self.node_update_midi_filter(node_id, tagged("ProgramChange", bool(enabled)))

    async def node_update_midi_filter_channel_aftertouch(self, node_id: int, enabled: bool) -> Any:
        return await self.node_update_midi_filter(node_id, tagged("ChannelAftertouch", bool(enabled)))

    async def node_update_midi_filter_pitch_wheel(self, node_id: int, enabled: bool) -> Any:
        return await self.node_update_midi_filter(node_id, tagged("PitchWheel", bool(enabled)))

    # ------------------------------------------------------------------ controller
    async def controller_request(self, kind: Any, timeout_ms: Optional[float] = None) -> Any:
        return await self.request(tagged("ControllerRequest", kind), timeout_ms)

    async def controller_reset(self) -> Any:
        return await self.controller_request(tagged("Reset"))

    async def controller_set_enabled(self, enabled: bool = True) -> Any:
        return await self.controller_request(tagged("SetEnabled", bool(enabled)))

    async def controller_set_tempo_bpm(self, tempo_bpm: float) -> Any:
        return await self.controller_request(tagged("SetTempoBpm", float(tempo_bpm)))

    async def controller_set_rhythm(self, num_beats: int, num_divs: int) -> Any:
        return await self.controller_request(
            tagged("SetRhythm", {"num_beats": int(num_beats), "num_divs": int(num_divs)})
        )

    async def controller_set_user_preset(self, preset_id: int) -> Any:
        return await self.controller_request(tagged("SetUserPreset", int(preset_id)))

    async def controller_add_node(self, kind: str) -> Any:
        return await self.controller_request(tagged("AddNode", {"kind": str(kind)}))

    async def controller_remove_node(self, node_id: int) -> Any:
        return await self.controller_request(tagged("RemoveNode", {"id": int(node_id)}))

    async def controller_clone_node(self, node_id: int) -> Any:
        return await self.controller_request(tagged("CloneNode", {"id": int(node_id)}))

    async def controller_move_node(self, node_id: int, new_id: int) -> Any:
        return await self.controller_request(tagged("MoveNode", {"id": int(node_id), "new_id": int(new_id)}))

    async def control_node_request(self, node_id: int, kind: Any, timeout_ms: Optional[float] = None) -> Any:
        return await self.controller_request(
            tagged("NodeRequest", {"id": int(node_id), "kind": kind}),
            timeout_ms,
        )

    async def control_node_set_name(self, node_id: int, name: str) -> Any:
        return await self.control_node_request(node_id, tagged("SetName", str(name)))

    async def control_node_set_enabled(self, node_id: int, enabled: bool = True) -> Any:
        return await self.control_node_request(node_id, tagged("SetEnabled", bool(enabled)))

    async def control_node_load_preset(self, node_id: int, path: str) -> Any:
        return await self.control_node_request(node_id, tagged("LoadPreset", str(path)), self.long_timeout_ms)

    async def control_node_save_preset(self, node_id: int, path: str) -> Any:
        return await self.control_node_request(node_id, tagged("SavePreset", str(path)), self.long_timeout_ms)

    async def control_node_set_user_preset_enabled(self, node_id: int, preset_id: int, enabled: bool = True) -> Any:
        return await self.control_node_request(node_id, tagged("SetUserPresetEnabled", [int(preset_id), bool(enabled)]))

    async def control_node_add_voice(self, node_id: int) -> Any:
        return await self.control_node_request(node_id, tagged("AddVoice"))

    async def control_node_remove_voice(self, node_id: int, voice_id: int) -> Any:
        return await self.control_node_request(node_id, tagged("RemoveVoice", int(voice_id)))

    async def control_node_clear_voices(self, node_id: int) -> Any:
        return await self.control_node_request(node_id, tagged("ClearVoices"))

    async def control_node_set_voice_name(self, node_id: int, voice_id: int, name: str) -> Any:
        return await self.control_node_request(node_id, tagged("SetVoiceName", [int(voice_id), str(name)]))

    async def control_node_set_voice_instrument(self, node_id: int, voice_id: int, instrument_id: Optional[int]) -> Any:
        instrument = None if instrument_id is None else int(instrument_id)
        return await self.control_node_request(node_id, tagged("SetVoiceInstrument", [int(voice_id), instrument]))

    async def control_node_set_voice_note(self, node_id: int, voice_id: int, note: int) -> Any:
        return await self.control_node_request(node_id, tagged("SetVoiceNote", [int(voice_id), int(note)]))

    async def control_node_set_voice_velocity(self, node_id: int, voice_id: int, velocity: int) -> Any:
        return await self.control_node_request(node_id, tagged("SetVoiceVelocity", [int(voice_id), int(velocity)]))

    async def control_node_set_voice_channel(self, node_id: int, voice_id: int, channel: int) -> Any:
        return await self.control_node_request(node_id, tagged("SetVoiceChannel", [int(voice_id), int(channel)]))

    async def control_node_set_slot(self, node_id: int, voice_id: int, slot_id: int, active: bool) -> Any:
        return await self.control_node_request(
            node_id,
            tagged("SetSlot", [int(voice_id), int(slot_id), bool(active)]),
        )

    # ------------------------------------------------------------------ files
    async def read_dir(self, path: str) -> Optional[Tuple[List[str], List[str]]]:
        """List *path* on the server as ``(sorted dirs, sorted files)``.

        Returns ``None`` when the server cannot read the directory.
        """

        reply = await self.request(tagged("ReadDir", str(path)))
        tag, entries = split_tag(reply, "response")
        if tag != DIR_INFO_TAG or not isinstance(entries, Sequence) or isinstance(entries, (str, bytes)):
            return None
        dirs: List[str] = []
        files: List[str] = []
        for entry in entries:
            if not isinstance(entry, Sequence) or isinstance(entry, (str, bytes)) or len(entry) != 2:
                continue
            is_dir, name = entry
            (dirs if is_dir else files).append(str(name))
        return sorted(dirs), sorted(files)

    async def make_dir(self, path: str) -> Any:
        return await self.request(tagged("MakeDir", str(path)))

    async def delete_file(self, path: str) -> Any:
        return await self.request(tagged("DeleteFile", str(path)))

    async def rename_file(self, source: str, target: str) -> Any:
        return await self.request(tagged("RenameFile", [str(source), str(target)]))

    async def copy_file(self, source: str, target: str) -> Any:
        return await self.request(tagged("CopyFile", [str(source), str(target)]))


def describe_nodes(nodes: Sequence[Any]) -> List[Mapping[str, Any]]:
    """Summaries of replica node records for logging and CLIs."""

    summary: List[Mapping[str, Any]] = []
    for index, record in enumerate(nodes):
        instance = record.instance
        summary.append({"index": index, "key": record.key, "kind": record.kind, "name": instance.get("name")})
    return summary
