from __future__ import annotations

import os
import threading
from typing import Callable, List, Optional

import numpy as np
import soundfile as sf

from dubbing.errors import CaptureError, CaptureUnavailableError, DubbingError, SessionCancelled
from dubbing.logging_utils import get_logger
from dubbing.scheduler import PlaybackMode, PlaybackScheduler, ProgressCallback
from dubbing.session import SessionState, SpeechSession
from dubbing.types import Cue, SpeakerConfig

log = get_logger(__name__)

DEFAULT_TAIL_SECONDS = 2.0
LOOPBACK_HINTS = ("monitor", "loopback", "stereo mix", "what u hear", "blackhole")


def _import_sounddevice():
    try:
        import sounddevice as sd
    except OSError as e:
        raise CaptureUnavailableError(f"Audio capture is not supported on this system: {e}")
    return sd


def find_loopback_device() -> Optional[int]:
    """Index of the first input device that taps system audio, if any."""
    sd = _import_sounddevice()
    for index, device in enumerate(sd.query_devices()):
        name = str(device.get("name", "")).lower()
        if device.get("max_input_channels", 0) > 0 and any(h in name for h in LOOPBACK_HINTS):
            return index
    return None


class SystemAudioRecorder:
    """Records what the system plays, through a loopback/monitor input device."""

    def __init__(self, device=None, samplerate: Optional[int] = None, channels: int = 2) -> None:
        self.device = device
        self.samplerate = samplerate
        self.channels = channels
        self._stream = None
        self._frames: List[np.ndarray] = []
        self._frames_lock = threading.Lock()

    def open(self) -> None:
        sd = _import_sounddevice()
        device = self.device if self.device is not None else find_loopback_device()
        if device is None:
            raise CaptureUnavailableError(
                "No system audio source was shared. Enable a loopback or monitor input "
                "device (or set DUBBING_CAPTURE_DEVICE) and try again."
            )
        try:
            info = sd.query_devices(device, "input")
        except (ValueError, sd.PortAudioError) as e:
            raise CaptureUnavailableError(f"Capture device unavailable: {e}")
        if info.get("max_input_channels", 0) < 1:
            raise CaptureUnavailableError(f"Device '{info.get('name')}' provides no audio track to record.")

        self.channels = min(self.channels, int(info["max_input_channels"]))
        self.samplerate = self.samplerate or int(info.get("default_samplerate") or 48000)
        try:
            self._stream = sd.InputStream(
                device=device,
                samplerate=self.samplerate,
                channels=self.channels,
                dtype="float32",
                callback=self._callback,
            )
        except sd.PortAudioError as e:
            raise CaptureUnavailableError(f"Permission to record system audio was denied: {e}")
        log.info("capture device opened", extra={"device": info.get("name"), "samplerate": self.samplerate})

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            log.debug("capture status", extra={"status": str(status)})
        with self._frames_lock:
            self._frames.append(indata.copy())

    def start(self) -> None:
        self._stream.start()

    def stop(self) -> np.ndarray:
        if self._stream is not None and self._stream.active:
            self._stream.stop()
        with self._frames_lock:
            frames, self._frames = self._frames, []
        if not frames:
            return np.zeros((0, self.channels), dtype=np.float32)
        return np.concatenate(frames, axis=0)

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None


class CaptureHarness:
    """Wraps a capture-mode playback in a system audio recording."""

    def __init__(
        self,
        scheduler: PlaybackScheduler,
        recorder_factory: Callable[[], SystemAudioRecorder] = SystemAudioRecorder,
        tail_seconds: float = DEFAULT_TAIL_SECONDS,
    ) -> None:
        self.scheduler = scheduler
        self.recorder_factory = recorder_factory
        self.tail_seconds = tail_seconds

    def record(
        self,
        cues: List[Cue],
        speaker_configs: List[SpeakerConfig],
        output_path: str,
        on_progress: Optional[ProgressCallback] = None,
        session: Optional[SpeechSession] = None,
    ) -> str:
        """Dub ``cues`` into a WAV file at ``output_path`` and return the path."""
        return self._capture(
            lambda s: self.scheduler.run(cues, speaker_configs, PlaybackMode.CAPTURE, on_progress, session=s),
            output_path,
            on_progress,
            session,
        )

    def record_text(
        self,
        text: str,
        voice_id: str,
        output_path: str,
        on_progress: Optional[ProgressCallback] = None,
        session: Optional[SpeechSession] = None,
    ) -> str:
        return self._capture(
            lambda s: self.scheduler.speak_text(text, voice_id, PlaybackMode.CAPTURE, session=s),
            output_path,
            on_progress,
            session,
        )

    def _capture(self, speak, output_path: str, on_progress, session: Optional[SpeechSession]) -> str:
        report = on_progress or (lambda _: None)
        session = self.scheduler.start_session(session)
        # RUNNING from here so a newer session cancels this one while the device opens
        session.state = SessionState.RUNNING

        report("Waiting for the capture device...")
        recorder = self.recorder_factory()
        try:
            recorder.open()
            recorder.start()
            report("Generating audio...")
            state = speak(session)
            if state == SessionState.CANCELLED:
                raise SessionCancelled()
            # Let the last utterance drain into the recording.
            if not session.wait(self.tail_seconds):
                raise SessionCancelled()
            frames = recorder.stop()
        except DubbingError:
            session.state = SessionState.FAILED
            raise
        except SessionCancelled:
            session.state = SessionState.CANCELLED
            raise
        finally:
            recorder.close()
            log.debug("capture device released")

        if len(frames) == 0:
            session.state = SessionState.FAILED
            raise CaptureError("No audio was recorded. Make sure system audio is being shared.")

        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        sf.write(output_path, frames, recorder.samplerate)
        log.info("capture written", extra={"output": output_path, "frames": len(frames)})
        return output_path
