from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass
class Cue:
    """One timed subtitle entry.

    ``start_time``/``end_time`` are ``HH:MM:SS,mmm`` strings. Before
    normalization they may overlap, run backwards, or be out of order.
    """

    index: int
    start_time: str
    end_time: str
    text: str
    speaker: Optional[str] = None


@dataclass
class SpeakerConfig:
    speaker_name: str
    voice_id: str
    id: int = 0


@dataclass(frozen=True)
class Voice:
    id: str
    name: str
    gender: str = "Neutral"
    language: str = ""


@dataclass
class AdjustmentResult:
    adjusted_cues: List[Cue] = field(default_factory=list)
    adjustments_count: int = 0


@dataclass(frozen=True)
class TimelineInfo:
    cues: int
    duration: str


@dataclass(frozen=True)
class LocalVoiceRef:
    """A voice owned by the local synthesis engine (``handle`` is the engine's id)."""

    handle: str


@dataclass(frozen=True)
class RemoteVoiceRef:
    provider: str
    voice_name: str


@dataclass(frozen=True)
class CustomVoiceRef:
    """A user-added voice, rendered by a local base voice after a disclosure phrase."""

    voice_id: str
    base_handle: Optional[str] = None


VoiceRef = Union[LocalVoiceRef, RemoteVoiceRef, CustomVoiceRef]


@dataclass(frozen=True)
class SpeakOptions:
    rate: float = 1.0
    muted: bool = False

    @classmethod
    def normal(cls) -> "SpeakOptions":
        return cls(rate=1.0, muted=False)

    @classmethod
    def fast(cls) -> "SpeakOptions":
        """Silent, maximum-rate speech used while a capture is running."""
        return cls(rate=10.0, muted=True)


@dataclass(frozen=True)
class AudioClip:
    data: bytes
    format: str = "mp3"
    provider: str = ""
