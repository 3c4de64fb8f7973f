"""Pydantic request/response schemas for the Video Digest API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from src.extraction.models import KeySelection
from src.frames.models import FrameNarration
from src.ingestion.models import TimestampedTranscript


class SegmentModel(BaseModel):
    """A single time-coded transcript segment."""

    text: str
    start: float
    end: float


class TranscriptResponse(BaseModel):
    """Response body for the /api/transcripts/parse endpoint."""

    full_text: str
    segments: list[SegmentModel]
    duration_seconds: float

    @classmethod
    def from_transcript(cls, transcript: TimestampedTranscript) -> TranscriptResponse:
        return cls(
            full_text=transcript.full_text,
            segments=[SegmentModel(text=s.text, start=s.start, end=s.end) for s in transcript.segments],
            duration_seconds=transcript.duration,
        )


class KeyMomentModel(BaseModel):
    timestamp: float
    reason: str


class KeyMomentsResponse(BaseModel):
    """Response body for the /api/key-moments endpoint."""

    moments: list[KeyMomentModel]
    used_fallback: bool = False
    failure: str | None = None

    @classmethod
    def from_selection(cls, selection: KeySelection) -> KeyMomentsResponse:
        return cls(
            moments=[KeyMomentModel(timestamp=m.timestamp, reason=m.reason) for m in selection.moments],
            used_fallback=selection.used_fallback,
            failure=selection.failure.message if selection.failure else None,
        )


class SummaryResponse(BaseModel):
    """Response body for the /api/summarize endpoint."""

    summary: str
    chunk_count: int
    map_calls: int


class FrameNarrationModel(BaseModel):
    frame_number: int
    timestamp: float
    description: str | None = None
    transcript_context: str
    failed: bool = False
    error: str | None = None

    @classmethod
    def from_narration(cls, narration: FrameNarration) -> FrameNarrationModel:
        return cls(
            frame_number=narration.frame.frame_number,
            timestamp=narration.frame.timestamp,
            description=narration.description,
            transcript_context=narration.transcript_context,
            failed=narration.failed,
            error=narration.error,
        )


class VideoProcessResponse(BaseModel):
    """Response body for the /api/videos/process endpoint."""

    source: str
    transcript: TranscriptResponse
    key_moments: KeyMomentsResponse | None = None
    narrations: list[FrameNarrationModel] = []
    summary: str | None = None
    summary_error: str | None = None
    report: str = ""
    timestamps: dict[str, Any] = {}
