from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from dubbing.dispatcher import BackendDispatcher
from dubbing.session import SpeechSession
from dubbing.types import AudioClip, SpeakOptions, Voice


class FakeEngine:
    """Stands in for LocalSpeechEngine; records every utterance."""

    def __init__(self, voices: Optional[List[Voice]] = None, on_say=None) -> None:
        self.voices = voices if voices is not None else [
            Voice("en-voice", "English Voice", "Female", "en-US"),
            Voice("vi-voice", "Vietnamese Voice", "Male", "vi-VN"),
        ]
        self.said: List[Tuple[str, Optional[str], SpeakOptions]] = []
        self.stopped = 0
        self.on_say = on_say

    def list_voices(self) -> List[Voice]:
        return list(self.voices)

    def default_voice(self, language: str) -> Optional[str]:
        for voice in self.voices:
            if voice.language == language:
                return voice.id
        return self.voices[0].id if self.voices else None

    def say(self, text: str, handle: Optional[str], options: SpeakOptions) -> None:
        self.said.append((text, handle, options))
        if self.on_say is not None:
            self.on_say(text)

    def stop(self) -> None:
        self.stopped += 1


class FakeBackend:
    def __init__(self, name: str = "fpt", error: Optional[Exception] = None) -> None:
        self.name = name
        self.error = error
        self.requests: List[Tuple[str, str]] = []

    def synthesize(self, text: str, voice_name: str) -> AudioClip:
        self.requests.append((text, voice_name))
        if self.error is not None:
            raise self.error
        return AudioClip(data=b"ID3fake", format="mp3", provider=self.name)


class FakePlayer:
    def __init__(self) -> None:
        self.played: List[AudioClip] = []

    def play(self, clip: AudioClip, session: SpeechSession) -> None:
        if not session.cancelled:
            self.played.append(clip)


class RecordingSession(SpeechSession):
    """SpeechSession whose waits return immediately and are recorded."""

    def __init__(self) -> None:
        super().__init__()
        self.waits: List[float] = []

    def wait(self, seconds: float) -> bool:
        self.waits.append(seconds)
        return not self.cancelled


class FakeRecorder:
    def __init__(self, frames: int = 4800, open_error: Optional[Exception] = None, on_open=None) -> None:
        self.frames = frames
        self.open_error = open_error
        self.on_open = on_open
        self.samplerate = 48000
        self.events: List[str] = []

    def open(self) -> None:
        self.events.append("open")
        if self.on_open is not None:
            self.on_open()
        if self.open_error is not None:
            raise self.open_error

    def start(self) -> None:
        self.events.append("start")

    def stop(self) -> np.ndarray:
        self.events.append("stop")
        return np.zeros((self.frames, 2), dtype=np.float32)

    def close(self) -> None:
        self.events.append("close")


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def player() -> FakePlayer:
    return FakePlayer()


@pytest.fixture
def remotes():
    return {name: FakeBackend(name) for name in ("google", "microsoft", "fpt")}


@pytest.fixture
def dispatcher(engine, remotes, player) -> BackendDispatcher:
    return BackendDispatcher(engine, remotes, player=player)


@pytest.fixture
def session() -> RecordingSession:
    return RecordingSession()
