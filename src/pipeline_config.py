"""Pipeline configuration: strategy enums and PipelineConfig dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FrameSelection(str, Enum):
    """How frame timestamps are chosen before extraction."""

    KEY_MOMENTS = "key_moments"
    INTERVAL = "interval"


class TranscriptStyle(str, Enum):
    """How the transcript is rendered in the final output."""

    TIMESTAMPED = "timestamped"
    PLAIN = "plain"


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration for one pipeline run.

    Defaults mirror the tool's standard behaviour: key-moment frame
    selection with a fixed-interval fallback, timestamped transcript output,
    and sequential map calls.
    """

    analyze_frames: bool = True
    transcribe_only: bool = False
    frame_selection: FrameSelection = FrameSelection.KEY_MOMENTS
    transcript_style: TranscriptStyle = TranscriptStyle.TIMESTAMPED
    max_frames: int = 30
    frame_interval: int = 3
    context_window: float = 5.0
    max_chunk_chars: int = 4000
    map_workers: int = 1
    attach_frames_to_summary: bool = False
    keep_audio: bool = False
    keep_frames: bool = False
