from __future__ import annotations

import math
import re


_FIELD_SPLIT = re.compile(r"[:,]")


def to_seconds(timecode: str) -> float:
    """Convert ``HH:MM:SS,mmm`` to seconds.

    Malformed input (wrong field count, non-numeric field) yields 0.0.
    """
    parts = _FIELD_SPLIT.split(timecode.strip()) if isinstance(timecode, str) else []
    if len(parts) != 4:
        return 0.0
    try:
        hours, minutes, seconds, millis = (int(p) for p in parts)
    except ValueError:
        return 0.0
    return hours * 3600 + minutes * 60 + seconds + millis / 1000


def seconds_to_timecode(total_seconds: float) -> str:
    """Convert seconds to ``HH:MM:SS,mmm``, rounding half-up to the millisecond."""
    if total_seconds is None or math.isnan(total_seconds) or total_seconds < 0:
        return "00:00:00,000"
    total_ms = int(math.floor(total_seconds * 1000 + 0.5))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1_000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{millis:03d}"


def timecode_to_ass(timecode: str) -> str:
    """``00:00:01,234`` -> ``0:00:01.23`` (centiseconds truncated)."""
    hms, _, millis = timecode.partition(",")
    hours, minutes, seconds = hms.split(":")
    return f"{int(hours)}:{minutes}:{seconds}.{millis[:2]}"
