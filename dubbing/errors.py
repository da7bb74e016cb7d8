from __future__ import annotations

from typing import Optional


class DubbingError(Exception):
    """Base error for the subtitle dubbing core."""


class ConfigError(DubbingError):
    """Raised when an environment setting cannot be interpreted."""


class SpeechBackendError(DubbingError):
    """Raised when a speech backend fails to synthesize or play an utterance.

    The message is meant to be shown to the user as-is.
    """

    def __init__(self, message: str, provider: str = "", status: Optional[int] = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status


class MissingCredentialsError(SpeechBackendError):
    """Raised when a remote backend is used without its API key or region."""


class AudioPlaybackError(SpeechBackendError):
    """Raised when downloaded audio cannot be decoded or played."""


class LocalEngineError(SpeechBackendError):
    """Raised when the local synthesis engine is missing or errors out."""


class CaptureError(DubbingError):
    """Raised when a capture session produced no usable audio."""


class CaptureUnavailableError(CaptureError):
    """Raised when no system audio source can be opened for recording."""


class TranslationError(DubbingError):
    """Raised when a subtitle batch could not be translated."""


class SessionCancelled(Exception):
    """Raised when a session was cancelled before producing a result.

    Not a DubbingError: callers treat it as a normal outcome.
    """

    def __init__(self, message: str = "Speech session cancelled") -> None:
        super().__init__(message)

