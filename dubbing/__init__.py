"""Core package for subtitle dubbing: cue parsing, timing repair, and playback.

The CLI scripts at the repository root import these modules; remote TTS
HTTP calls live in the sibling ``apis`` package.
"""
