from __future__ import annotations

from typing import Callable, Dict, List

from dubbing.timecode import timecode_to_ass
from dubbing.types import Cue

ASS_HEADER = """[Script Info]
Title: Generated Subtitles
ScriptType: v4.00+
WrapStyle: 0
PlayResX: 1920
PlayResY: 1080
ScaledBorderAndShadow: yes

[V4+ Styles]
Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding
Style: Default,Arial,48,&H00FFFFFF,&H000000FF,&H00000000,&H00000000,0,0,0,0,100,100,0,0,1,2,2,2,10,10,10,1

[Events]
Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text"""


def _labelled(cue: Cue) -> str:
    return f"{cue.speaker}: {cue.text}" if cue.speaker else cue.text


def to_srt(cues: List[Cue]) -> str:
    return "\n\n".join(
        f"{cue.index}\n{cue.start_time} --> {cue.end_time}\n{_labelled(cue)}" for cue in cues
    )


def to_ass(cues: List[Cue]) -> str:
    events = []
    for cue in cues:
        start = timecode_to_ass(cue.start_time)
        end = timecode_to_ass(cue.end_time)
        text = cue.text.replace("\n", "\\N")
        events.append(f"Dialogue: 0,{start},{end},Default,{cue.speaker or ''},0,0,0,,{text}")
    return ASS_HEADER + "\n" + "\n".join(events)


def to_txt(cues: List[Cue]) -> str:
    return "\n".join(_labelled(cue) for cue in cues)


def to_script(cues: List[Cue], file_name: str) -> str:
    """Narration script: a title header, then one block per cue."""
    header = (
        "VOICE-OVER SCRIPT\n\n"
        f"Source file: {file_name}\n"
        f"Total lines: {len(cues)}\n"
        "===================================\n\n"
    )
    blocks = []
    for cue in cues:
        speaker = cue.speaker if cue.speaker else "(Default)"
        blocks.append(
            f"[Line {cue.index}]\n"
            f"Time: {cue.start_time} --> {cue.end_time}\n"
            f"Speaker: {speaker}\n"
            f"Text: {cue.text.replace(chr(10), ' ')}\n"
        )
    return header + "\n".join(blocks)


FORMATTERS: Dict[str, Callable[[List[Cue]], str]] = {
    "srt": to_srt,
    "ass": to_ass,
    "txt": to_txt,
}
