from __future__ import annotations

from typing import Dict, Optional, Union

from dubbing.audio import AudioPlayer
from dubbing.errors import SpeechBackendError
from dubbing.local_engine import MAX_CHUNK_CHARS, LocalSpeechEngine, chunk_text
from dubbing.logging_utils import get_logger
from dubbing.session import SpeechSession
from dubbing.types import CustomVoiceRef, LocalVoiceRef, RemoteVoiceRef, SpeakOptions, VoiceRef
from dubbing.voices import REMOTE_LANGUAGE, parse_voice_ref

log = get_logger(__name__)

DISCLOSURE_PHRASE = "This voice is synthesized. "


class _EngineHandle:
    """Session slot entry for one local-engine utterance."""

    def __init__(self, engine: LocalSpeechEngine) -> None:
        self.engine = engine

    def stop(self) -> None:
        self.engine.stop()


class BackendDispatcher:
    """Routes one utterance to the local engine or a remote backend and waits for it."""

    def __init__(
        self,
        local_engine: LocalSpeechEngine,
        remotes: Dict[str, object],
        player: Optional[AudioPlayer] = None,
        disclosure_phrase: str = DISCLOSURE_PHRASE,
        max_chunk_chars: int = MAX_CHUNK_CHARS,
    ) -> None:
        self.local_engine = local_engine
        self.remotes = remotes
        self.player = player or AudioPlayer()
        self.disclosure_phrase = disclosure_phrase
        self.max_chunk_chars = max_chunk_chars

    def speak(
        self,
        text: str,
        voice: Union[VoiceRef, str],
        options: SpeakOptions,
        session: SpeechSession,
    ) -> None:
        """Speak ``text`` and return once playback finished or the session was cancelled.

        Raises SpeechBackendError (or a subclass) when the backend fails.
        """
        if session.cancelled:
            return
        ref = parse_voice_ref(voice) if isinstance(voice, str) else voice

        if isinstance(ref, CustomVoiceRef):
            self._speak_custom(text, ref, options, session)
        elif isinstance(ref, RemoteVoiceRef):
            self._speak_remote(text, ref, session)
        elif isinstance(ref, LocalVoiceRef):
            self._speak_local(text, ref.handle, options, session)
        else:
            raise SpeechBackendError(f"Unsupported voice reference: {ref!r}")

    def _speak_local(self, text: str, handle: Optional[str], options: SpeakOptions, session: SpeechSession) -> None:
        for chunk in chunk_text(text, self.max_chunk_chars):
            if session.cancelled:
                return
            self._say(chunk, handle, options, session)

    def _say(self, chunk: str, handle: Optional[str], options: SpeakOptions, session: SpeechSession) -> None:
        slot = _EngineHandle(self.local_engine)
        session.claim(slot)
        try:
            if not session.cancelled:
                self.local_engine.say(chunk, handle, options)
        finally:
            session.release(slot)

    def _speak_custom(self, text: str, ref: CustomVoiceRef, options: SpeakOptions, session: SpeechSession) -> None:
        handle = ref.base_handle or self.local_engine.default_voice(REMOTE_LANGUAGE)
        if not handle:
            raise SpeechBackendError(
                "No local base voice was found to render the custom voice.", provider="custom"
            )
        # The disclosure is always audible, also while capturing.
        self._say(self.disclosure_phrase, handle, SpeakOptions.normal(), session)
        if session.cancelled:
            return
        self._speak_local(text, handle, options, session)

    def _speak_remote(self, text: str, ref: RemoteVoiceRef, session: SpeechSession) -> None:
        backend = self.remotes.get(ref.provider)
        if backend is None:
            raise SpeechBackendError(f"No speech backend registered for '{ref.provider}'.", provider=ref.provider)
        log.debug("remote synthesis", extra={"provider": ref.provider, "voice": ref.voice_name})
        clip = backend.synthesize(text, ref.voice_name)
        if session.cancelled:
            # The request could not be aborted; drop its result.
            log.debug("discarding audio from cancelled session", extra={"provider": ref.provider})
            return
        self.player.play(clip, session)
