from __future__ import annotations

import json
import os
import re
import time
from typing import Dict, List, Optional

from dubbing.errors import LocalEngineError
from dubbing.logging_utils import get_logger
from dubbing.types import (
    Cue,
    CustomVoiceRef,
    LocalVoiceRef,
    RemoteVoiceRef,
    SpeakerConfig,
    Voice,
    VoiceRef,
)

log = get_logger(__name__)

CUSTOM_PREFIX = "custom-"
FPT_PREFIX = "fpt-"
MICROSOFT_PREFIX = "microsoft-"
GOOGLE_PREFIX = "google-"

# Google voice names look like "vi-VN-Wavenet-A"
_GOOGLE_NAME_RE = re.compile(r"^[a-z]{2,3}-[A-Z]{2}-[A-Za-z0-9]+-[A-Za-z0-9]+$")

REMOTE_LANGUAGE = "vi-VN"

GOOGLE_VOICES: List[Voice] = [
    Voice("vi-VN-Standard-A", "Google Standard A (Female)", "Female", "vi-VN"),
    Voice("vi-VN-Standard-B", "Google Standard B (Male)", "Male", "vi-VN"),
    Voice("vi-VN-Standard-C", "Google Standard C (Female)", "Female", "vi-VN"),
    Voice("vi-VN-Standard-D", "Google Standard D (Male)", "Male", "vi-VN"),
    Voice("vi-VN-Wavenet-A", "Google Wavenet A (Female)", "Female", "vi-VN"),
    Voice("vi-VN-Wavenet-B", "Google Wavenet B (Male)", "Male", "vi-VN"),
    Voice("vi-VN-Wavenet-C", "Google Wavenet C (Female)", "Female", "vi-VN"),
    Voice("vi-VN-Wavenet-D", "Google Wavenet D (Male)", "Male", "vi-VN"),
]

MICROSOFT_VOICES: List[Voice] = [
    Voice("microsoft-vi-VN-HoaiMyNeural", "Microsoft Hoai My (Female)", "Female", "vi-VN"),
    Voice("microsoft-vi-VN-NamMinhNeural", "Microsoft Nam Minh (Male)", "Male", "vi-VN"),
]

FPT_VOICES: List[Voice] = [
    Voice("fpt-leminh", "Le Minh (Male, North)", "Male", "vi-VN"),
    Voice("fpt-banmai", "Ban Mai (Female, North)", "Female", "vi-VN"),
    Voice("fpt-giahuy", "Gia Huy (Male, South)", "Male", "vi-VN"),
    Voice("fpt-myan", "My An (Female, South)", "Female", "vi-VN"),
    Voice("fpt-lientrang", "Lien Trang (Female, Central)", "Female", "vi-VN"),
    Voice("fpt-thuminh", "Thu Minh (Female, Central)", "Female", "vi-VN"),
]

REMOTE_CATALOGS: Dict[str, List[Voice]] = {
    "google": GOOGLE_VOICES,
    "microsoft": MICROSOFT_VOICES,
    "fpt": FPT_VOICES,
}

PROVIDERS = ("local", "google", "microsoft", "fpt")


def parse_voice_ref(voice_id: str) -> VoiceRef:
    """Classify a voice id by its namespace prefix."""
    if voice_id.startswith(CUSTOM_PREFIX):
        return CustomVoiceRef(voice_id=voice_id)
    if voice_id.startswith(FPT_PREFIX):
        return RemoteVoiceRef("fpt", voice_id[len(FPT_PREFIX):])
    if voice_id.startswith(MICROSOFT_PREFIX):
        return RemoteVoiceRef("microsoft", voice_id[len(MICROSOFT_PREFIX):])
    if voice_id.startswith(GOOGLE_PREFIX):
        return RemoteVoiceRef("google", voice_id[len(GOOGLE_PREFIX):])
    if _GOOGLE_NAME_RE.match(voice_id):
        return RemoteVoiceRef("google", voice_id)
    return LocalVoiceRef(voice_id)


class CustomVoiceStore:
    """User-added voices persisted as a JSON list of ``{id, name}``."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._voices: List[Voice] = self._load()

    def _load(self) -> List[Voice]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return [Voice(id=v["id"], name=v["name"]) for v in data]
        except (ValueError, KeyError, TypeError) as e:
            log.error("custom voice store is corrupt, discarding", extra={"file": self.path, "error": str(e)})
            os.remove(self.path)
            return []

    def _save(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump([{"id": v.id, "name": v.name} for v in self._voices], f, ensure_ascii=False, indent=2)

    def list(self) -> List[Voice]:
        return list(self._voices)

    def add(self, name: str) -> Voice:
        voice = Voice(id=f"{CUSTOM_PREFIX}{int(time.time() * 1000)}", name=f"[Custom] {name}")
        self._voices.append(voice)
        self._save()
        log.info("custom voice added", extra={"voice_id": voice.id})
        return voice

    def delete(self, voice_id: str) -> None:
        self._voices = [v for v in self._voices if v.id != voice_id]
        self._save()


def _local_sort_key(voice: Voice):
    name = voice.name.lower()
    return ("microsoft" not in name, "native" not in name)


class VoiceRegistry:
    """Lists selectable voices and binds voice ids to backends."""

    def __init__(self, engine=None, custom_store: Optional[CustomVoiceStore] = None) -> None:
        self.engine = engine
        self.custom_store = custom_store

    def _local_voices(self) -> List[Voice]:
        if self.engine is None:
            return []
        try:
            return self.engine.list_voices()
        except LocalEngineError as e:
            # no platform speech driver: only custom and remote voices are offered
            log.warning("local voices unavailable", extra={"error": str(e)})
            return []

    def voices(self, language: str, provider: str = "local") -> List[Voice]:
        custom = [
            Voice(id=v.id, name=v.name, gender="Neutral") for v in (self.custom_store.list() if self.custom_store else [])
        ]
        provider_voices: List[Voice] = []
        if language == REMOTE_LANGUAGE:
            provider_voices = list(REMOTE_CATALOGS.get(provider, []))

        if not provider_voices:
            prefix = language.split("-")[0]
            matching = [
                Voice(id=v.id, name=f"{v.name} ({v.language})", gender="Neutral", language=v.language)
                for v in self._local_voices()
                if v.language == language or v.language.startswith(prefix)
            ]
            provider_voices = sorted(matching, key=_local_sort_key)

        return custom + provider_voices

    def base_voice_for_custom(self) -> Optional[str]:
        voices = self._local_voices()
        for voice in voices:
            if voice.language == REMOTE_LANGUAGE:
                return voice.id
        for voice in voices:
            if voice.language.startswith("vi"):
                return voice.id
        return voices[0].id if voices else None

    def resolve(self, voice_id: str) -> VoiceRef:
        ref = parse_voice_ref(voice_id)
        if isinstance(ref, CustomVoiceRef) and self.engine is not None:
            return CustomVoiceRef(voice_id=voice_id, base_handle=self.base_voice_for_custom())
        return ref


def build_speaker_roster(
    cues: List[Cue], voices: List[Voice], current: Optional[List[SpeakerConfig]] = None
) -> List[SpeakerConfig]:
    """Roster for the speakers labelled in ``cues``.

    Kept as-is when it already names exactly the detected speakers. A new
    roster assigns voices round-robin in order of first appearance.
    """
    current = list(current or [])
    detected: List[str] = []
    for cue in cues:
        if cue.speaker and cue.speaker not in detected:
            detected.append(cue.speaker)

    if detected and set(detected) != {c.speaker_name for c in current}:
        base_id = int(time.time() * 1000)
        return [
            SpeakerConfig(
                speaker_name=name,
                voice_id=voices[i % len(voices)].id if voices else "",
                id=base_id + i,
            )
            for i, name in enumerate(detected)
        ]
    if not current:
        return [SpeakerConfig(speaker_name="Speaker A", voice_id=voices[0].id if voices else "", id=int(time.time() * 1000))]
    return current


def reconcile_voices(configs: List[SpeakerConfig], voices: List[Voice]) -> List[SpeakerConfig]:
    """Point rows whose voice is no longer offered at the first available voice."""
    available = {v.id for v in voices}
    result = []
    for config in configs:
        if not voices:
            voice_id = ""
        elif config.voice_id and config.voice_id in available:
            voice_id = config.voice_id
        else:
            voice_id = voices[0].id
        result.append(SpeakerConfig(speaker_name=config.speaker_name, voice_id=voice_id, id=config.id))
    return result
