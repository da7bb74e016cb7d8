from __future__ import annotations

import re
from typing import List, Optional

from dubbing.errors import LocalEngineError
from dubbing.logging_utils import get_logger
from dubbing.types import SpeakOptions, Voice

log = get_logger(__name__)

MAX_CHUNK_CHARS = 200
MAX_RATE_WPM = 600


def chunk_text(text: str, max_chars: int = MAX_CHUNK_CHARS) -> List[str]:
    """Split text by line, then into fixed-size pieces for engine stability."""
    chunks: List[str] = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        chunks.extend(line[i:i + max_chars] for i in range(0, len(line), max_chars))
    return chunks


def _language_of(raw_voice) -> str:
    languages = getattr(raw_voice, "languages", None) or []
    if not languages:
        return ""
    lang = languages[0]
    if isinstance(lang, bytes):
        lang = lang.decode("utf-8", errors="ignore")
    # espeak prefixes the code with a priority byte
    return re.sub(r"^[^A-Za-z]+", "", str(lang)).replace("_", "-")


class LocalSpeechEngine:
    """On-device synthesis through pyttsx3.

    The pyttsx3 engine is created on first use so that importing this module
    never touches the platform speech driver.
    """

    def __init__(self, driver_name: Optional[str] = None) -> None:
        self.driver_name = driver_name
        self._engine = None
        self._base_rate = 200

    def _get_engine(self):
        if self._engine is None:
            try:
                import pyttsx3

                self._engine = pyttsx3.init(self.driver_name)
            except (ImportError, OSError, RuntimeError) as e:
                raise LocalEngineError(f"Local speech engine unavailable: {e}", provider="local")
            self._base_rate = self._engine.getProperty("rate") or 200
            log.debug("local engine ready", extra={"driver": self.driver_name, "rate": self._base_rate})
        return self._engine

    def list_voices(self) -> List[Voice]:
        engine = self._get_engine()
        voices = []
        for raw in engine.getProperty("voices") or []:
            gender = (getattr(raw, "gender", None) or "Neutral").capitalize()
            if gender not in ("Male", "Female"):
                gender = "Neutral"
            voices.append(Voice(id=raw.id, name=raw.name, gender=gender, language=_language_of(raw)))
        return voices

    def default_voice(self, language: str) -> Optional[str]:
        """Best local voice for ``language``: exact match, then prefix, then any."""
        voices = self.list_voices()
        prefix = language.split("-")[0].lower()
        for voice in voices:
            if voice.language.lower() == language.lower():
                return voice.id
        for voice in voices:
            if voice.language.lower().startswith(prefix):
                return voice.id
        return voices[0].id if voices else None

    def say(self, text: str, handle: Optional[str], options: SpeakOptions) -> None:
        """Speak one chunk and block until the engine finishes or is stopped."""
        engine = self._get_engine()
        try:
            if handle:
                engine.setProperty("voice", handle)
            engine.setProperty("rate", min(int(self._base_rate * options.rate), MAX_RATE_WPM))
            engine.setProperty("volume", 0.0 if options.muted else 1.0)
            engine.say(text)
            engine.runAndWait()
        except RuntimeError as e:
            raise LocalEngineError(f"Local speech engine failed: {e}", provider="local")

    def stop(self) -> None:
        if self._engine is not None:
            self._engine.stop()
