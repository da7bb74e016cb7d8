from __future__ import annotations

import io
from typing import Tuple

import numpy as np
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from dubbing.errors import AudioPlaybackError
from dubbing.logging_utils import get_logger
from dubbing.session import SpeechSession
from dubbing.types import AudioClip

log = get_logger(__name__)

POLL_INTERVAL = 0.05


def decode_clip(clip: AudioClip) -> Tuple[np.ndarray, int]:
    """Decode a clip into float32 frames shaped ``(n, channels)`` and its sample rate."""
    try:
        segment = AudioSegment.from_file(io.BytesIO(clip.data), format=clip.format)
    except (CouldntDecodeError, IndexError, OSError) as e:
        raise AudioPlaybackError(
            f"Could not decode the downloaded audio ({clip.format}): {e}", provider=clip.provider
        )
    samples = np.array(segment.get_array_of_samples(), dtype=np.float32)
    samples = samples.reshape((-1, segment.channels))
    samples /= float(1 << (8 * segment.sample_width - 1))
    return samples, segment.frame_rate


class _OutputHandle:
    """Session slot entry for one sounddevice playback."""

    def __init__(self, sd) -> None:
        self._sd = sd

    def stop(self) -> None:
        self._sd.stop()


class AudioPlayer:
    """Plays remote-backend audio on the default output device."""

    def __init__(self, device=None) -> None:
        self.device = device

    def play(self, clip: AudioClip, session: SpeechSession) -> None:
        if session.cancelled:
            return
        samples, rate = decode_clip(clip)
        try:
            import sounddevice as sd
        except OSError as e:
            raise AudioPlaybackError(f"No audio output available: {e}", provider=clip.provider)

        handle = _OutputHandle(sd)
        session.claim(handle)
        try:
            sd.play(samples, rate, device=self.device)
            stream = sd.get_stream()
            while stream.active:
                if not session.wait(POLL_INTERVAL):
                    log.debug("playback interrupted", extra={"provider": clip.provider})
                    break
        except sd.PortAudioError as e:
            raise AudioPlaybackError(
                f"Could not play the downloaded audio: {e}", provider=clip.provider
            )
        finally:
            session.release(handle)
