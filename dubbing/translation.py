"""Contracts for the translation and transcription services that feed cue text.

The services themselves live outside this package; only batching, retry,
and parsing of their results are handled here.
"""
from __future__ import annotations

import time
from dataclasses import replace
from typing import Callable, List, Optional, Protocol

from dubbing.errors import TranslationError
from dubbing.logging_utils import get_logger
from dubbing.parser import parse_subtitle
from dubbing.types import Cue

log = get_logger(__name__)

BATCH_SIZE = 50
MAX_ATTEMPTS = 3
BACKOFF_SECONDS = 1.0


class Translator(Protocol):
    def translate_batch(self, texts: List[str], source: str, target: str) -> List[str]:
        ...


class Transcriber(Protocol):
    def transcribe(self, media_path: str) -> str:
        """Return subtitle (SRT) text for the media file."""
        ...


def _translate_with_retry(
    translator: Translator,
    texts: List[str],
    source: str,
    target: str,
    max_attempts: int,
    backoff_seconds: float,
    sleep: Callable[[float], None],
) -> List[str]:
    if all(not t.strip() for t in texts):
        return texts

    last_error: Optional[Exception] = None
    for attempt in range(1, max_attempts + 1):
        try:
            translated = translator.translate_batch(texts, source, target)
            if isinstance(translated, list) and len(translated) == len(texts):
                return translated
            log.warning("translation returned mismatched cue count", extra={"attempt": attempt})
        except Exception as e:
            last_error = e
            log.warning("translation attempt failed", extra={"attempt": attempt, "error": str(e)})
        if attempt < max_attempts:
            sleep(backoff_seconds)
    raise TranslationError(f"Failed to translate subtitle batch after {max_attempts} attempts.") from last_error


def translate_cues(
    cues: List[Cue],
    translator: Translator,
    source: str,
    target: str,
    on_progress: Optional[Callable[[str], None]] = None,
    batch_size: int = BATCH_SIZE,
    max_attempts: int = MAX_ATTEMPTS,
    backoff_seconds: float = BACKOFF_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> List[Cue]:
    """Translate cue texts batch by batch, keeping timing and speakers."""
    report = on_progress or (lambda _: None)
    total_batches = (len(cues) + batch_size - 1) // batch_size
    result: List[Cue] = []
    for start in range(0, len(cues), batch_size):
        report(f"Translating subtitles... (batch {start // batch_size + 1}/{total_batches})")
        batch = cues[start:start + batch_size]
        texts = _translate_with_retry(
            translator, [c.text for c in batch], source, target, max_attempts, backoff_seconds, sleep
        )
        result.extend(replace(cue, text=text or cue.text) for cue, text in zip(batch, texts))
    return result


def transcribe_to_cues(media_path: str, transcriber: Transcriber) -> List[Cue]:
    return parse_subtitle(transcriber.transcribe(media_path).strip())
