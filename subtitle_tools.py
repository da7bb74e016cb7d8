from __future__ import annotations

import argparse
import os
import sys

from dubbing.config import Settings, load_env_file
from dubbing.formatters import FORMATTERS, to_script
from dubbing.logging_utils import get_logger, setup_logging
from dubbing.parser import NullSpeakerExtractor, parse_subtitle
from dubbing.timeline import adjust_timings, timeline_info

log = get_logger(__name__)

EXPORT_FORMATS = sorted(FORMATTERS) + ["script"]


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments for subtitle timing repair and export."""
    parser = argparse.ArgumentParser(description="Repair subtitle timings and export to SRT/ASS/TXT or a narration script")
    parser.add_argument("--srt", type=str, required=True, help="Input subtitle file")
    parser.add_argument("--format", type=str, choices=EXPORT_FORMATS, default="srt", help="Output format (default: srt)")
    parser.add_argument("--output", type=str, default=None, help="Output file (default: <input stem>.<format>)")
    parser.add_argument("--min_gap", type=int, default=None, help="Minimum gap between cues in ms (default: DUBBING_MIN_GAP_MS or 1)")
    parser.add_argument("--no_adjust", action="store_true", help="Export cues without repairing their timings")
    parser.add_argument("--no_speakers", action="store_true", help="Do not treat leading 'Name:' as a speaker label")
    parser.add_argument("--summary", action="store_true", help="Only print cue count and duration")
    parser.add_argument("--env_file", type=str, default=None, help=".env file with settings")
    parser.add_argument("--log_level", type=str, default=None, help="Log level (e.g., INFO, DEBUG)")
    args = parser.parse_args()
    if args.min_gap is not None and args.min_gap < 0:
        parser.error("--min_gap must be 0 or greater")
    return args


def _default_output(srt_path: str, fmt: str) -> str:
    stem, _ = os.path.splitext(srt_path)
    return f"{stem}_script.txt" if fmt == "script" else f"{stem}.{fmt}"


def main() -> int:
    """CLI entry point for repairing and exporting subtitles.

    Examples:
      python3 subtitle_tools.py --srt episode.srt --format ass
      python3 subtitle_tools.py --srt episode.srt --min_gap 50 --output fixed.srt
      python3 subtitle_tools.py --srt episode.srt --format script
    """
    args = parse_args()
    setup_logging(args.log_level)
    load_env_file(args.env_file)
    settings = Settings.from_env()

    with open(args.srt, "r", encoding="utf-8-sig") as f:
        cues = parse_subtitle(f.read(), NullSpeakerExtractor() if args.no_speakers else None)

    info = timeline_info(cues)
    if info is None:
        log.error("no subtitle cues found", extra={"file": args.srt})
        return 1
    log.info(f"{info.cues} cues, duration {info.duration}", extra={"file": args.srt})
    if args.summary:
        return 0

    if args.format == "script":
        # The script mirrors the source timings.
        content = to_script(cues, os.path.basename(args.srt))
    else:
        if not args.no_adjust:
            min_gap = args.min_gap if args.min_gap is not None else settings.minimum_gap_ms
            result = adjust_timings(cues, min_gap, settings.default_duration)
            cues = result.adjusted_cues
            if result.adjustments_count > 0:
                log.info(f"Adjusted {result.adjustments_count} cues with timing errors.")
            else:
                log.info("No timing errors found.")
        content = FORMATTERS[args.format](cues)

    output = args.output or _default_output(args.srt, args.format)
    with open(output, "w", encoding="utf-8") as f:
        f.write(content)
    log.info("subtitle export done", extra={"file": output, "format": args.format})
    return 0


if __name__ == "__main__":
    sys.exit(main())
