"""Transcript parsers for WebVTT/SRT subtitles and speech-to-text JSON."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable

from src.ingestion.models import TimestampedTranscript, TranscriptSegment

logger = logging.getLogger(__name__)

# HH:MM:SS.mmm --> HH:MM:SS.mmm (SRT uses a comma before the milliseconds)
TIMESTAMP_RE = re.compile(
    r"(\d{1,2}):(\d{2}):(\d{2})[.,](\d{3})\s*-->\s*(\d{1,2}):(\d{2}):(\d{2})[.,](\d{3})"
)

_BLOCK_SPLIT_RE = re.compile(r"\n\s*\n")

# Blocks that carry file metadata rather than cues
_SKIPPED_BLOCK_PREFIXES = ("WEBVTT", "NOTE", "STYLE", "REGION")


def _to_seconds(hours: str, minutes: str, seconds: str, millis: str) -> float:
    """Convert timestamp components to seconds."""
    return int(hours) * 3600 + int(minutes) * 60 + int(seconds) + int(millis) / 1000.0


def parse_vtt(content: str) -> TimestampedTranscript:
    """Parse WebVTT (or SRT) subtitle text into a timestamped transcript.

    The file is split into blank-line separated blocks. Header and comment
    blocks are skipped. In every other block the first line holding a
    ``HH:MM:SS.mmm --> HH:MM:SS.mmm`` pair gives the cue times, and the lines
    after it, joined by spaces, give the cue text. Blocks without a
    timestamp line or without text are dropped; this never raises.
    """
    segments: list[TranscriptSegment] = []
    normalised = content.replace("\r\n", "\n").replace("\r", "\n").strip()

    for block in _BLOCK_SPLIT_RE.split(normalised):
        lines = [line.strip() for line in block.strip().splitlines()]
        if not lines or lines[0].startswith(_SKIPPED_BLOCK_PREFIXES):
            continue

        ts_index: int | None = None
        match: re.Match[str] | None = None
        for idx, line in enumerate(lines):
            match = TIMESTAMP_RE.search(line)
            if match:
                ts_index = idx
                break

        if ts_index is None or match is None:
            logger.debug("Dropping cue without timestamp line: %r", lines[0][:40])
            continue

        text = " ".join(line for line in lines[ts_index + 1 :] if line).strip()
        if not text:
            logger.debug("Dropping empty cue at %s", match.group(0))
            continue

        start = _to_seconds(*match.group(1, 2, 3, 4))
        end = _to_seconds(*match.group(5, 6, 7, 8))
        if end < start:
            logger.debug("Dropping cue with reversed times at %s", match.group(0))
            continue

        segments.append(TranscriptSegment(text=text, start=start, end=end))

    return TimestampedTranscript.from_segments(segments)


def parse_whisper_json(content: str) -> TimestampedTranscript:
    """Parse Whisper's JSON output (``--output_format json``).

    Format::

        {"text": "...", "segments": [{"start": s, "end": s, "text": "..."}]}
    """
    data = json.loads(content)
    if "segments" not in data:
        msg = f"Unrecognized Whisper JSON format. Keys: {list(data.keys())}"
        raise ValueError(msg)

    segments: list[TranscriptSegment] = []
    for seg in data["segments"]:
        text = str(seg.get("text", "")).strip()
        if not text:
            continue
        start = float(seg.get("start", 0.0))
        end = max(start, float(seg.get("end", start)))
        segments.append(TranscriptSegment(text=text, start=start, end=end))

    return TimestampedTranscript.from_segments(segments)


def parse_assemblyai_json(content: str) -> TimestampedTranscript:
    """Parse AssemblyAI utterances (times in milliseconds).

    Format::

        {"utterances": [{"speaker": "A", "text": "...", "start": ms, "end": ms}]}
    """
    data = json.loads(content)
    if "utterances" not in data:
        msg = f"Unrecognized AssemblyAI JSON format. Keys: {list(data.keys())}"
        raise ValueError(msg)

    segments: list[TranscriptSegment] = []
    for utt in data["utterances"]:
        text = str(utt.get("text", "")).strip()
        if not text:
            continue
        start = utt.get("start", 0) / 1000.0
        end = max(start, utt.get("end", 0) / 1000.0)
        segments.append(TranscriptSegment(text=text, start=start, end=end))

    return TimestampedTranscript.from_segments(segments)


def parse_json(content: str) -> TimestampedTranscript:
    """Parse a JSON transcript from Whisper or AssemblyAI.

    Raises:
        ValueError: If the JSON shape is not recognized.
    """
    data = json.loads(content)
    if isinstance(data, dict) and "utterances" in data:
        return parse_assemblyai_json(content)
    if isinstance(data, dict) and "segments" in data:
        return parse_whisper_json(content)

    keys = list(data.keys()) if isinstance(data, dict) else type(data).__name__
    msg = f"Unrecognized JSON transcript format. Keys: {keys}"
    raise ValueError(msg)


def parse_transcript(content: str, format: str) -> TimestampedTranscript:
    """Dispatch to the correct parser based on *format*.

    Args:
        content: Raw transcript text.
        format: One of ``"vtt"``, ``"srt"`` or ``"json"``.

    Returns:
        The parsed transcript.

    Raises:
        ValueError: If *format* is not recognized.
    """
    dispatch: dict[str, Callable[[str], TimestampedTranscript]] = {
        "vtt": parse_vtt,
        "srt": parse_vtt,
        "json": parse_json,
    }

    parser = dispatch.get(format)
    if parser is None:
        msg = f"Unknown transcript format: {format!r}. Supported: {list(dispatch.keys())}"
        raise ValueError(msg)

    return parser(content)
