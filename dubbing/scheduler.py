from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, List, Optional

from dubbing.dispatcher import BackendDispatcher
from dubbing.errors import DubbingError
from dubbing.logging_utils import get_logger
from dubbing.session import SessionState, SpeechSession
from dubbing.timecode import to_seconds
from dubbing.types import Cue, SpeakerConfig, SpeakOptions, VoiceRef
from dubbing.voices import VoiceRegistry, parse_voice_ref

log = get_logger(__name__)

ProgressCallback = Callable[[str], None]


class PlaybackMode(str, Enum):
    PREVIEW = "preview"
    CAPTURE = "capture"


def _options_for(mode: PlaybackMode) -> SpeakOptions:
    return SpeakOptions.fast() if mode == PlaybackMode.CAPTURE else SpeakOptions.normal()


def _noop(_: str) -> None:
    pass


class PlaybackScheduler:
    """Speaks subtitle cues one after another through a BackendDispatcher.

    Preview mode reproduces the silence between cues in real time; capture
    mode speaks back-to-back so a recorder can run as fast as the backends
    allow. Only one session runs at a time.
    """

    def __init__(self, dispatcher: BackendDispatcher, registry: Optional[VoiceRegistry] = None) -> None:
        self.dispatcher = dispatcher
        self.registry = registry
        self._lock = threading.Lock()
        self._current: Optional[SpeechSession] = None

    def start_session(self, session: Optional[SpeechSession] = None) -> SpeechSession:
        """Cancel the running session, if any, and register a new one."""
        session = session or SpeechSession()
        with self._lock:
            previous, self._current = self._current, session
        if previous is not None and previous is not session and previous.state == SessionState.RUNNING:
            log.info("cancelling previous session")
            previous.cancel()
        return session

    def cancel(self) -> None:
        with self._lock:
            current = self._current
        if current is not None:
            current.cancel()

    def _resolve(self, voice_id: str) -> VoiceRef:
        return self.registry.resolve(voice_id) if self.registry is not None else parse_voice_ref(voice_id)

    def run(
        self,
        cues: List[Cue],
        speaker_configs: List[SpeakerConfig],
        mode: PlaybackMode = PlaybackMode.PREVIEW,
        on_progress: Optional[ProgressCallback] = None,
        session: Optional[SpeechSession] = None,
    ) -> SessionState:
        """Play ``cues`` in order with each speaker's voice.

        Returns COMPLETED or CANCELLED. A backend failure marks the session
        FAILED and propagates.
        """
        session = self.start_session(session)
        report = on_progress or _noop
        options = _options_for(mode)
        verb = "Generating" if mode == PlaybackMode.CAPTURE else "Playing"
        session.state = SessionState.RUNNING
        last_end = 0.0
        total = len(cues)
        i = -1
        log.info("playback started", extra={"cues": total, "mode": mode.value})
        try:
            refs = {id(c): self._resolve(c.voice_id) for c in speaker_configs if c.voice_id}
            for i, cue in enumerate(cues):
                if session.cancelled:
                    break
                report(f"{verb} line {i + 1}/{total}...")

                start = to_seconds(cue.start_time)
                end = to_seconds(cue.end_time)
                delay = max(0.0, start - last_end)
                if mode == PlaybackMode.PREVIEW and delay > 0:
                    if not session.wait(delay):
                        break
                if session.cancelled:
                    break

                config = self._config_for(cue, speaker_configs)
                ref = refs.get(id(config)) if config is not None else None
                if ref is None:
                    log.warning(
                        "no voice configured for speaker, skipping cue",
                        extra={"speaker": cue.speaker, "cue": cue.index},
                    )
                    last_end = end
                    continue

                self.dispatcher.speak(cue.text, ref, options, session)
                last_end = end
        except DubbingError as e:
            session.state = SessionState.FAILED
            log.error("playback failed", extra={"error": str(e), "cue": i + 1})
            raise

        session.state = SessionState.CANCELLED if session.cancelled else SessionState.COMPLETED
        log.info("playback finished", extra={"state": session.state.value})
        return session.state

    def speak_text(
        self,
        text: str,
        voice_id: str,
        mode: PlaybackMode = PlaybackMode.PREVIEW,
        session: Optional[SpeechSession] = None,
    ) -> SessionState:
        """Speak a plain text with one voice."""
        session = self.start_session(session)
        session.state = SessionState.RUNNING
        try:
            self.dispatcher.speak(text, self._resolve(voice_id), _options_for(mode), session)
        except DubbingError:
            session.state = SessionState.FAILED
            raise
        session.state = SessionState.CANCELLED if session.cancelled else SessionState.COMPLETED
        return session.state

    @staticmethod
    def _config_for(cue: Cue, configs: List[SpeakerConfig]) -> Optional[SpeakerConfig]:
        for config in configs:
            if config.speaker_name == cue.speaker:
                return config
        return configs[0] if configs else None
