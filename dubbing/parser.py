"""Lenient SRT-style subtitle parser.

Unparseable blocks are skipped, never reported as errors: subtitle files
produced by transcription tools are routinely missing index lines or carry
stray blocks, and the rest of the track is still worth dubbing.
"""
from __future__ import annotations

import re
from typing import List, Optional, Protocol, Tuple

from dubbing.logging_utils import get_logger
from dubbing.types import Cue

log = get_logger(__name__)

TIME_ARROW_RE = re.compile(
    r"(\d{2}:\d{2}:\d{2}[,.]\d{3})\s*-->\s*(\d{2}:\d{2}:\d{2}[,.]\d{3})"
)
_BLOCK_SPLIT_RE = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)*")
_INDEX_RE = re.compile(r"^\d+$")


class SpeakerExtractor(Protocol):
    def extract(self, text: str) -> Tuple[Optional[str], str]:
        """Return ``(speaker, remaining_text)``; speaker is None when absent."""
        ...


class RegexSpeakerExtractor:
    """Treat a leading ``Name:`` as a speaker label.

    This is a heuristic. Any leading word(s) followed by a colon count as a
    label, so a line such as ``Note: the door is open`` is attributed to a
    speaker called ``Note``.
    """

    pattern = re.compile(r"^([A-Za-z0-9 _-]+):\s*(.+)", re.IGNORECASE | re.DOTALL)

    def extract(self, text: str) -> Tuple[Optional[str], str]:
        match = self.pattern.match(text)
        if not match:
            return None, text
        speaker = match.group(1).strip()
        rest = match.group(2).strip()
        if not speaker or not rest:
            return None, text
        return speaker, rest


class NullSpeakerExtractor:
    def extract(self, text: str) -> Tuple[Optional[str], str]:
        return None, text


class CueParser:
    def __init__(self, extractor: Optional[SpeakerExtractor] = None) -> None:
        self.extractor = extractor or RegexSpeakerExtractor()

    def parse(self, content: str) -> List[Cue]:
        cues: List[Cue] = []
        normalized = content.replace("\r\n", "\n").replace("\r", "\n").strip()
        if not normalized:
            return cues

        for block_no, block in enumerate(_BLOCK_SPLIT_RE.split(normalized), start=1):
            cue = self._parse_block(block, next_index=len(cues) + 1)
            if cue is None:
                log.debug("skipping unparseable subtitle block", extra={"block": block_no})
                continue
            cues.append(cue)
        return cues

    def _parse_block(self, block: str, next_index: int) -> Optional[Cue]:
        lines = block.split("\n")
        if len(lines) < 2:
            return None

        index_line, time_line, text_lines = lines[0], lines[1], lines[2:]
        if TIME_ARROW_RE.search(index_line):
            time_line = index_line
            text_lines = lines[1:]
            index_line = str(next_index)

        if not _INDEX_RE.match(index_line.strip()):
            return None
        match = TIME_ARROW_RE.search(time_line)
        if not match:
            return None

        start_time = match.group(1).replace(".", ",")
        end_time = match.group(2).replace(".", ",")
        text = "\n".join(text_lines).strip()
        speaker, text = self.extractor.extract(text)

        return Cue(
            index=int(index_line.strip()),
            start_time=start_time,
            end_time=end_time,
            text=text,
            speaker=speaker,
        )


def parse_subtitle(content: str, extractor: Optional[SpeakerExtractor] = None) -> List[Cue]:
    """Parse subtitle text into cues in source order."""
    return CueParser(extractor).parse(content)
