from __future__ import annotations

import argparse
import signal
import sys
from typing import List

from dubbing.backends import build_backends
from dubbing.capture import CaptureHarness, SystemAudioRecorder
from dubbing.config import Settings, load_env_file
from dubbing.dispatcher import DISCLOSURE_PHRASE, BackendDispatcher
from dubbing.errors import DubbingError, SessionCancelled
from dubbing.local_engine import LocalSpeechEngine
from dubbing.logging_utils import get_logger, progress_logger, setup_logging
from dubbing.parser import parse_subtitle
from dubbing.scheduler import PlaybackMode, PlaybackScheduler
from dubbing.session import SessionState
from dubbing.timeline import adjust_timings, timeline_info
from dubbing.types import SpeakerConfig
from dubbing.voices import PROVIDERS, CustomVoiceStore, VoiceRegistry, build_speaker_roster, reconcile_voices

log = get_logger(__name__)

EXIT_CANCELLED = 130


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments for dubbing playback and capture."""
    parser = argparse.ArgumentParser(description="Speak a subtitle track with per-speaker voices, or record it to a WAV file")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--srt", type=str, help="Subtitle file to dub")
    source.add_argument("--text", type=str, help="Plain text to speak with --voice")
    parser.add_argument("--voice", type=str, default=None, help="Voice id for --text (default: first available voice)")
    parser.add_argument("--speaker", action="append", default=[], metavar="NAME=VOICE_ID",
                        help="Map a speaker to a voice id (repeatable)")
    parser.add_argument("--language", type=str, default=None, help="Voice language (default: DUBBING_LANGUAGE or vi-VN)")
    parser.add_argument("--provider", type=str, choices=PROVIDERS, default="local", help="Voice provider for automatic assignment")
    parser.add_argument("--output", type=str, default=None, help="Record to this WAV file instead of previewing")
    parser.add_argument("--adjust", action="store_true", help="Repair cue timings before playback")
    parser.add_argument("--min_gap", type=int, default=None, help="Minimum gap between cues in ms for --adjust")
    parser.add_argument("--list_voices", action="store_true", help="List available voices and exit")
    parser.add_argument("--add_custom_voice", type=str, default=None, metavar="NAME", help="Register a custom voice and exit")
    parser.add_argument("--delete_custom_voice", type=str, default=None, metavar="VOICE_ID", help="Remove a custom voice and exit")
    parser.add_argument("--summary", action="store_true", help="Show cue count, duration and speaker roster only")
    parser.add_argument("--env_file", type=str, default=None, help=".env file with API keys and settings")
    parser.add_argument("--log_level", type=str, default=None, help="Log level (e.g., INFO, DEBUG)")
    args = parser.parse_args()
    if args.min_gap is not None and args.min_gap < 0:
        parser.error("--min_gap must be 0 or greater")
    return args


def _parse_speaker_args(values: List[str]) -> List[SpeakerConfig]:
    configs = []
    for i, value in enumerate(values):
        name, sep, voice_id = value.partition("=")
        if not sep or not name.strip():
            raise SystemExit(f"--speaker expects NAME=VOICE_ID, got {value!r}")
        configs.append(SpeakerConfig(speaker_name=name.strip(), voice_id=voice_id.strip(), id=i + 1))
    return configs


def main() -> int:
    """
    Examples:
      # preview a dubbed track with the original pacing
      python3 subtitle_dubber.py --srt episode.srt --speaker Joe=fpt-leminh --speaker Ann=vi-VN-Wavenet-A

      # record the track as fast as the voices allow
      python3 subtitle_dubber.py --srt episode.srt --adjust --output episode.wav

      # speak a single text
      python3 subtitle_dubber.py --text "Xin chao" --voice microsoft-vi-VN-HoaiMyNeural
    """
    args = parse_args()
    setup_logging(args.log_level)
    load_env_file(args.env_file)
    settings = Settings.from_env()
    language = args.language or settings.language

    engine = LocalSpeechEngine()
    store = CustomVoiceStore(settings.custom_voices_path)
    registry = VoiceRegistry(engine, store)

    if args.add_custom_voice:
        voice = store.add(args.add_custom_voice)
        log.info("custom voice registered", extra={"voice_id": voice.id, "voice_name": voice.name})
        return 0
    if args.delete_custom_voice:
        store.delete(args.delete_custom_voice)
        return 0

    try:
        voices = registry.voices(language, args.provider)
    except DubbingError as e:
        log.error(str(e))
        return 1

    if args.list_voices:
        for voice in voices:
            print(f"{voice.id}\t{voice.name}\t{voice.gender}")
        return 0

    dispatcher = BackendDispatcher(
        engine,
        build_backends(settings),
        disclosure_phrase=settings.disclosure_phrase or DISCLOSURE_PHRASE,
    )
    scheduler = PlaybackScheduler(dispatcher, registry)
    harness = CaptureHarness(
        scheduler,
        recorder_factory=lambda: SystemAudioRecorder(device=settings.capture_device_arg()),
        tail_seconds=settings.capture_tail_seconds,
    )
    report = progress_logger(log)
    session = scheduler.start_session()
    signal.signal(signal.SIGINT, lambda signum, frame: session.cancel())

    try:
        if args.text is not None:
            voice_id = args.voice or (voices[0].id if voices else "")
            if not args.text.strip() or not voice_id:
                log.error("Please provide a text and a voice.")
                return 1
            if args.output:
                harness.record_text(args.text, voice_id, args.output, report, session=session)
                log.info("audio recorded", extra={"file": args.output})
                return 0
            state = scheduler.speak_text(args.text, voice_id, session=session)
        else:
            if not args.srt:
                log.error("Please provide a subtitle file (--srt) or a text (--text).")
                return 1
            with open(args.srt, "r", encoding="utf-8-sig") as f:
                cues = parse_subtitle(f.read())
            info = timeline_info(cues)
            if info is None:
                log.error("Please provide a subtitle file with at least one cue.", extra={"file": args.srt})
                return 1
            if args.adjust:
                min_gap = args.min_gap if args.min_gap is not None else settings.minimum_gap_ms
                result = adjust_timings(cues, min_gap, settings.default_duration)
                cues = result.adjusted_cues
                log.info(f"Adjusted {result.adjustments_count} cues with timing errors.")

            configs = _parse_speaker_args(args.speaker) or build_speaker_roster(cues, voices)
            configs = reconcile_voices(configs, voices) if not args.speaker else configs
            log.info(f"{info.cues} cues, duration {info.duration}", extra={"file": args.srt})
            for config in configs:
                log.info(f"speaker {config.speaker_name} -> {config.voice_id or '(none)'}")
            if args.summary:
                return 0

            if args.output:
                harness.record(cues, configs, args.output, report, session=session)
                log.info("audio recorded", extra={"file": args.output})
                return 0
            state = scheduler.run(cues, configs, PlaybackMode.PREVIEW, report, session=session)
    except SessionCancelled:
        log.info("cancelled")
        return EXIT_CANCELLED
    except DubbingError as e:
        log.error(str(e))
        return 1

    if state == SessionState.CANCELLED:
        log.info("cancelled")
        return EXIT_CANCELLED
    return 0


if __name__ == "__main__":
    sys.exit(main())
