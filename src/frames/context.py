"""Match a frame's timestamp to the transcript spoken around it."""

from __future__ import annotations

from src.ingestion.models import TranscriptSegment

NO_TRANSCRIPT = "[No transcript available]"


def transcript_for_frame(
    timestamp: float,
    segments: list[TranscriptSegment],
    context_window: float = 5.0,
) -> str:
    """Return the text of every segment overlapping ``[t - c, t + c]``.

    Returns :data:`NO_TRANSCRIPT` instead of an empty string when nothing
    overlaps, so silence is distinguishable from "not computed".
    """
    window_start = timestamp - context_window
    window_end = timestamp + context_window
    texts = [s.text for s in segments if s.start <= window_end and s.end >= window_start]
    return " ".join(texts) if texts else NO_TRANSCRIPT
