from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from dubbing.errors import ConfigError
from dubbing.logging_utils import get_logger

log = get_logger(__name__)

DEFAULT_CUSTOM_VOICES = os.path.join("~", ".subtitle_dubber", "custom_voices.json")


def load_env_file(env_path: Optional[str] = None) -> Optional[Path]:
    """Load a .env file without overriding variables already set.

    With no path, the nearest .env in the working directory or its parents
    is used. Returns the file that was loaded, if any.
    """
    if env_path is not None:
        path = Path(env_path)
        if not path.exists():
            raise ConfigError(f".env file not found: {env_path}")
        load_dotenv(path, override=False)
        return path

    cwd = Path.cwd().resolve()
    for parent in (cwd, *cwd.parents):
        candidate = parent / ".env"
        if candidate.exists():
            load_dotenv(candidate, override=False)
            log.debug("loaded .env", extra={"file": str(candidate)})
            return candidate
    return None


def _env_number(name: str, default, cast, positive: bool = False):
    """Read a finite, non-negative number (strictly positive with ``positive``)."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if not math.isfinite(value) or value < 0 or (positive and value == 0):
        bound = "greater than 0" if positive else "0 or greater"
        raise ConfigError(f"{name} must be a finite number {bound}, got {raw!r}")
    return value


@dataclass
class Settings:
    google_api_key: Optional[str] = None
    microsoft_api_key: Optional[str] = None
    microsoft_region: Optional[str] = None
    fpt_api_key: Optional[str] = None
    language: str = "vi-VN"
    minimum_gap_ms: int = 1
    default_duration: float = 2.0
    capture_device: Optional[str] = None
    capture_tail_seconds: float = 2.0
    custom_voices_path: str = DEFAULT_CUSTOM_VOICES
    disclosure_phrase: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            google_api_key=os.getenv("GOOGLE_API_KEY"),
            microsoft_api_key=os.getenv("MICROSOFT_API_KEY"),
            microsoft_region=os.getenv("MICROSOFT_API_REGION"),
            fpt_api_key=os.getenv("FPT_API_KEY"),
            language=os.getenv("DUBBING_LANGUAGE") or "vi-VN",
            minimum_gap_ms=_env_number("DUBBING_MIN_GAP_MS", 1, int),
            default_duration=_env_number("DUBBING_DEFAULT_DURATION", 2.0, float, positive=True),
            capture_device=os.getenv("DUBBING_CAPTURE_DEVICE") or None,
            capture_tail_seconds=_env_number("DUBBING_CAPTURE_TAIL", 2.0, float),
            custom_voices_path=os.path.expanduser(os.getenv("DUBBING_CUSTOM_VOICES") or DEFAULT_CUSTOM_VOICES),
            disclosure_phrase=os.getenv("DUBBING_DISCLOSURE_PHRASE") or None,
        )

    def capture_device_arg(self):
        """Device as sounddevice expects it: an index when numeric, else a name."""
        if self.capture_device is None:
            return None
        return int(self.capture_device) if self.capture_device.isdigit() else self.capture_device
