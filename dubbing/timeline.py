from __future__ import annotations

import math
from dataclasses import replace
from typing import List, Optional

from dubbing.logging_utils import get_logger
from dubbing.timecode import seconds_to_timecode, to_seconds
from dubbing.types import AdjustmentResult, Cue, TimelineInfo

log = get_logger(__name__)

DEFAULT_MINIMUM_GAP_MS = 1
DEFAULT_CUE_DURATION = 2.0

# Timecodes are re-parsed from millisecond strings; ignore float noise below that.
_EPSILON = 1e-9


def adjust_timings(
    cues: List[Cue],
    minimum_gap_ms: int = DEFAULT_MINIMUM_GAP_MS,
    default_duration: float = DEFAULT_CUE_DURATION,
) -> AdjustmentResult:
    """Repair overlaps and invalid durations in a single forward pass.

    Each cue starts at least ``minimum_gap_ms`` after the previous cue ends.
    A cue that only needed moving keeps its original duration; a cue with a
    zero or negative duration gets ``default_duration`` seconds. Order and
    count are preserved.

    Raises ValueError for a negative gap or a duration that is not a finite
    positive number.
    """
    if not math.isfinite(minimum_gap_ms) or minimum_gap_ms < 0:
        raise ValueError(f"minimum_gap_ms must be 0 or greater, got {minimum_gap_ms!r}")
    if not math.isfinite(default_duration) or default_duration <= 0:
        raise ValueError(f"default_duration must be greater than 0, got {default_duration!r}")
    if not cues:
        return AdjustmentResult(adjusted_cues=[], adjustments_count=0)

    adjusted: List[Cue] = []
    adjustments = 0
    last_end = 0.0
    minimum_gap = minimum_gap_ms / 1000

    for cue in cues:
        was_adjusted = False
        start = to_seconds(cue.start_time)
        end = to_seconds(cue.end_time)
        duration = end - start

        if start < last_end + minimum_gap - _EPSILON:
            start = last_end + minimum_gap
            was_adjusted = True

        if duration <= 0:
            duration = default_duration
            was_adjusted = True

        end = start + duration
        if was_adjusted:
            adjustments += 1

        adjusted.append(
            replace(cue, start_time=seconds_to_timecode(start), end_time=seconds_to_timecode(end))
        )
        last_end = end

    log.debug("timings adjusted", extra={"cues": len(cues), "adjusted": adjustments})
    return AdjustmentResult(adjusted_cues=adjusted, adjustments_count=adjustments)


def timeline_info(cues: List[Cue]) -> Optional[TimelineInfo]:
    """Cue count and total duration (last cue end, without milliseconds)."""
    if not cues:
        return None
    return TimelineInfo(cues=len(cues), duration=cues[-1].end_time.split(",")[0])
