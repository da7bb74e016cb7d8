from __future__ import annotations

import threading
from enum import Enum
from typing import Optional, Protocol

from dubbing.logging_utils import get_logger

log = get_logger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class AudioHandle(Protocol):
    def stop(self) -> None:
        ...


class SpeechSession:
    """Cancellation token plus the single "currently speaking" slot.

    One session covers one playback or capture run. ``cancel`` may be called
    from any thread; the playing thread notices it at its next suspension
    point (``wait``, the next chunk, or when the active handle is stopped).
    """

    def __init__(self) -> None:
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._active: Optional[AudioHandle] = None
        self.state = SessionState.IDLE

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()
        with self._lock:
            active, self._active = self._active, None
        if active is not None:
            log.debug("stopping active audio on cancel")
            active.stop()

    def claim(self, handle: AudioHandle) -> None:
        """Make ``handle`` the active audio, stopping whatever held the slot."""
        with self._lock:
            previous, self._active = self._active, None
        if previous is not None and previous is not handle:
            previous.stop()
        with self._lock:
            self._active = handle
        if self.cancelled:
            self.release(handle)
            handle.stop()

    def release(self, handle: AudioHandle) -> None:
        with self._lock:
            if self._active is handle:
                self._active = None

    @property
    def active(self) -> Optional[AudioHandle]:
        return self._active

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; False if the session was cancelled meanwhile."""
        if seconds <= 0:
            return not self.cancelled
        return not self._cancelled.wait(seconds)
