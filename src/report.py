"""Render transcripts, summaries and frame narrations for output."""

from __future__ import annotations

from typing import Any

from src.frames.models import FrameNarration
from src.ingestion.models import TimestampedTranscript
from src.pipeline_config import TranscriptStyle


def format_timestamp(seconds: float) -> str:
    """Format seconds as ``m:ss``."""
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes}:{secs:02d}"


def render_transcript(
    transcript: TimestampedTranscript,
    style: TranscriptStyle = TranscriptStyle.TIMESTAMPED,
) -> str:
    if style is TranscriptStyle.PLAIN:
        return transcript.full_text
    return "\n".join(f"[{format_timestamp(s.start)}] {s.text}" for s in transcript.segments)


def render_output(
    source: str,
    transcript: TimestampedTranscript,
    summary: str | None = None,
    style: TranscriptStyle = TranscriptStyle.TIMESTAMPED,
) -> str:
    """Build the text report: transcript, then the summary if there is one."""
    output = f"Transcript of {source}:\n\n{render_transcript(transcript, style)}"
    if summary:
        output += f"\n\n---\n\nSummary:\n\n{summary}"
    return output


def timestamped_payload(
    source: str,
    transcript: TimestampedTranscript,
    narrations: list[FrameNarration] | None = None,
) -> dict[str, Any]:
    """JSON-serialisable record of segments and frame narrations."""
    return {
        "video": source,
        "transcript": {
            "full_text": transcript.full_text,
            "segments": [
                {"text": s.text, "start": s.start, "end": s.end} for s in transcript.segments
            ],
        },
        "frame_summaries": [
            {
                "frame_number": n.frame.frame_number,
                "timestamp": n.frame.timestamp,
                "summary": n.render(),
                "failed": n.failed,
            }
            for n in narrations or []
        ],
    }
