import json

from dubbing.errors import LocalEngineError
from dubbing.types import Cue, CustomVoiceRef, LocalVoiceRef, RemoteVoiceRef, SpeakerConfig, Voice
from dubbing.voices import (
    FPT_VOICES,
    CustomVoiceStore,
    VoiceRegistry,
    build_speaker_roster,
    parse_voice_ref,
    reconcile_voices,
)

from conftest import FakeEngine


def test_parse_voice_ref_by_prefix():
    assert parse_voice_ref("fpt-banmai") == RemoteVoiceRef("fpt", "banmai")
    assert parse_voice_ref("microsoft-vi-VN-HoaiMyNeural") == RemoteVoiceRef("microsoft", "vi-VN-HoaiMyNeural")
    assert parse_voice_ref("google-vi-VN-Standard-A") == RemoteVoiceRef("google", "vi-VN-Standard-A")
    assert parse_voice_ref("vi-VN-Wavenet-C") == RemoteVoiceRef("google", "vi-VN-Wavenet-C")
    assert parse_voice_ref("custom-1700000000000") == CustomVoiceRef("custom-1700000000000")
    assert parse_voice_ref("HKEY_LOCAL_MACHINE\\Voices\\Zira") == LocalVoiceRef("HKEY_LOCAL_MACHINE\\Voices\\Zira")
    assert parse_voice_ref("english") == LocalVoiceRef("english")


def test_custom_store_add_list_delete(tmp_path):
    path = tmp_path / "custom.json"
    store = CustomVoiceStore(str(path))

    voice = store.add("Narrator")
    assert voice.id.startswith("custom-")
    assert voice.name == "[Custom] Narrator"

    reloaded = CustomVoiceStore(str(path))
    assert reloaded.list() == [voice]

    reloaded.delete(voice.id)
    assert CustomVoiceStore(str(path)).list() == []


def test_custom_store_discards_corrupt_file(tmp_path):
    path = tmp_path / "custom.json"
    path.write_text("{not json", encoding="utf-8")

    store = CustomVoiceStore(str(path))
    assert store.list() == []
    assert not path.exists()


def test_registry_remote_catalog_for_vietnamese(tmp_path):
    store = CustomVoiceStore(str(tmp_path / "custom.json"))
    store.add("Mine")
    registry = VoiceRegistry(FakeEngine(), store)

    voices = registry.voices("vi-VN", "fpt")
    assert voices[0].name == "[Custom] Mine"
    assert voices[1:] == FPT_VOICES


def test_registry_local_voices_filtered_and_sorted():
    engine = FakeEngine([
        Voice("a", "eSpeak English", "Male", "en-GB"),
        Voice("b", "Microsoft Zira", "Female", "en-US"),
        Voice("c", "Native Voice", "Female", "en-AU"),
        Voice("d", "Vietnamese", "Male", "vi-VN"),
    ])
    voices = VoiceRegistry(engine).voices("en-US", "local")

    assert [v.id for v in voices] == ["b", "c", "a"]
    assert voices[0].name == "Microsoft Zira (en-US)"


def test_registry_resolves_custom_voice_to_base_voice():
    registry = VoiceRegistry(FakeEngine())
    assert registry.resolve("custom-1") == CustomVoiceRef("custom-1", base_handle="vi-voice")
    assert registry.resolve("fpt-leminh") == RemoteVoiceRef("fpt", "leminh")


def test_roster_assigns_voices_round_robin():
    cues = [
        Cue(1, "00:00:01,000", "00:00:02,000", "a", speaker="Joe"),
        Cue(2, "00:00:03,000", "00:00:04,000", "b", speaker="Ann"),
        Cue(3, "00:00:05,000", "00:00:06,000", "c", speaker="Joe"),
        Cue(4, "00:00:07,000", "00:00:08,000", "d", speaker="Bob"),
    ]
    voices = [Voice("v1", "One"), Voice("v2", "Two")]

    roster = build_speaker_roster(cues, voices)
    assert [(c.speaker_name, c.voice_id) for c in roster] == [("Joe", "v1"), ("Ann", "v2"), ("Bob", "v1")]


def test_roster_keeps_matching_configuration():
    cues = [Cue(1, "00:00:01,000", "00:00:02,000", "a", speaker="Joe")]
    current = [SpeakerConfig("Joe", "fpt-myan", id=5)]
    assert build_speaker_roster(cues, [Voice("v1", "One")], current) == current


def test_roster_defaults_to_single_speaker():
    roster = build_speaker_roster([Cue(1, "00:00:01,000", "00:00:02,000", "a")], [Voice("v1", "One")])
    assert len(roster) == 1
    assert roster[0].speaker_name == "Speaker A"
    assert roster[0].voice_id == "v1"


def test_reconcile_voices_replaces_stale_ids():
    configs = [SpeakerConfig("Joe", "gone", id=1), SpeakerConfig("Ann", "v2", id=2), SpeakerConfig("Bob", "", id=3)]
    voices = [Voice("v1", "One"), Voice("v2", "Two")]

    result = reconcile_voices(configs, voices)
    assert [c.voice_id for c in result] == ["v1", "v2", "v1"]
    assert [c.id for c in result] == [1, 2, 3]
    assert [c.voice_id for c in reconcile_voices(configs, [])] == ["", "", ""]


def test_custom_store_file_format(tmp_path):
    path = tmp_path / "nested" / "custom.json"
    voice = CustomVoiceStore(str(path)).add("Narrator")
    assert json.loads(path.read_text(encoding="utf-8")) == [{"id": voice.id, "name": "[Custom] Narrator"}]


class BrokenEngine(FakeEngine):
    def list_voices(self):
        raise LocalEngineError("Local speech engine unavailable: no espeak", provider="local")


def test_registry_without_local_engine_still_offers_remote_voices():
    registry = VoiceRegistry(BrokenEngine())

    assert registry.voices("vi-VN", "fpt") == FPT_VOICES
    assert registry.voices("en-US", "local") == []
    assert registry.base_voice_for_custom() is None
    assert registry.resolve("fpt-leminh") == RemoteVoiceRef("fpt", "leminh")
